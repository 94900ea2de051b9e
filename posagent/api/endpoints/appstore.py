# posagent/api/endpoints/appstore.py

from typing import Annotated

from fastapi import APIRouter, Path
from loguru import logger

from posagent.api.deps import SunmiClientDep, run_operation
from posagent.models.sunmi import OperationResult

router = APIRouter(prefix="/appstore", tags=["App Store"])


@router.get("/apps", response_model=OperationResult, response_model_exclude_none=True)
async def list_store_apps(client: SunmiClientDep):
    logger.bind(api_endpoint="/appstore/apps GET").info("App store list request")
    return await run_operation(client.get_app_list())


@router.get("/apps/{app_id}", response_model=OperationResult, response_model_exclude_none=True)
async def get_store_app(client: SunmiClientDep, app_id: Annotated[str, Path(min_length=1, max_length=128)]):
    logger.bind(api_endpoint="/appstore/apps/{id} GET", app_id=app_id).info("App store detail request")
    return await run_operation(client.get_app_detail(app_id))
