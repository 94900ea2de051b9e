# posagent/api/endpoints/diagnostic.py

from typing import Optional

from fastapi import APIRouter, Query
from loguru import logger

from posagent.api.deps import SunmiClientDep
from posagent.models.sunmi import CapabilityReport, DeveloperReport
from posagent.services.sunmi.diagnostics import check_account_capabilities, generate_developer_report

router = APIRouter(prefix="/diagnostic", tags=["Diagnostics"])


@router.get("", response_model=CapabilityReport, summary="Probe which Sunmi API families this account can use")
async def get_capabilities(client: SunmiClientDep):
    logger.bind(api_endpoint="/diagnostic GET").info("API diagnostic request")
    return await check_account_capabilities(client)


@router.get("/report", response_model=DeveloperReport, summary="Detailed report to share with Sunmi developer support")
async def get_developer_report(
    client: SunmiClientDep,
    device_id: Optional[str] = Query(None, min_length=1, max_length=128),
):
    logger.bind(api_endpoint="/diagnostic/report GET", device_id=device_id).info("Developer report request")
    return await generate_developer_report(client, device_id)
