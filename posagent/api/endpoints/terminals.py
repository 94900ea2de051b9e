# posagent/api/endpoints/terminals.py

from typing import Annotated

from fastapi import APIRouter, Path
from loguru import logger

from posagent.api.deps import SunmiClientDep, run_operation
from posagent.models.sunmi import OperationResult

router = APIRouter()

TerminalId = Annotated[str, Path(min_length=1, max_length=128)]


@router.get("/terminals", response_model=OperationResult, response_model_exclude_none=True, tags=["Terminals"])
async def list_terminals(client: SunmiClientDep):
    logger.bind(api_endpoint="/terminals GET").info("Terminal list request")
    return await run_operation(client.get_terminal_list())


@router.get("/terminal/{terminal_id}", response_model=OperationResult, response_model_exclude_none=True, tags=["Terminals"])
async def get_terminal_info(client: SunmiClientDep, terminal_id: TerminalId):
    logger.bind(api_endpoint="/terminal/{id} GET", terminal_id=terminal_id).info("Terminal info request")
    return await run_operation(client.get_terminal_info(terminal_id))


@router.get("/terminal/{terminal_id}/status", response_model=OperationResult, response_model_exclude_none=True, tags=["Terminals"])
async def get_terminal_status(client: SunmiClientDep, terminal_id: TerminalId):
    logger.bind(api_endpoint="/terminal/{id}/status GET", terminal_id=terminal_id).info("Terminal status request")
    return await run_operation(client.get_terminal_status(terminal_id))
