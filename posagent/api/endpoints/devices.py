# posagent/api/endpoints/devices.py

import asyncio
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Path, Query, Response, status
from loguru import logger

from posagent.api.deps import SunmiClientDep, run_operation
from posagent.core.logging_config import trace_id_var
from posagent.models.api import (
    AppInstallRequest, AppUninstallRequest, AppUpdateRequest, CommandRequest,
    DeviceLocationResponse, DeviceStatusResponse, MessageRequest, NotificationRequest,
)
from posagent.models.sunmi import CompositeResult, OperationResult
from posagent.services.sunmi.diagnostics import check_device_health

router = APIRouter()

DeviceId = Annotated[str, Path(min_length=1, max_length=128, description="Device serial number / id")]


def _log(endpoint: str, device_id: Optional[str] = None):
    return logger.bind(trace_id=trace_id_var.get(), api_endpoint=endpoint, device_id=device_id)


@router.get(
    "/devices",
    response_model=OperationResult,
    response_model_exclude_none=True,
    tags=["Devices"],
    summary="List devices registered to the account",
)
async def list_devices(
    client: SunmiClientDep,
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=500),
):
    _log("/devices GET").info("Device list request")
    params: Dict[str, Any] = {"page": page, "page_size": page_size}
    return await run_operation(client.get_device_list({k: v for k, v in params.items() if v is not None}))


@router.get(
    "/device/{device_id}",
    response_model=CompositeResult,
    response_model_exclude_none=True,
    tags=["Devices"],
    summary="Full device profile (status, info, location, network, apps)",
)
async def get_device(client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id} GET", device_id).info("Device info request")
    result = await client.get_device_full_info(device_id)
    if not result.success:
        return Response(
            content=result.model_dump_json(exclude_none=True),
            status_code=status.HTTP_404_NOT_FOUND,
            media_type="application/json",
        )
    return result


@router.get(
    "/device/{device_id}/status",
    response_model=DeviceStatusResponse,
    tags=["Devices"],
    summary="Device health check (detail, status and location lookups)",
)
async def get_device_status(client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/status GET", device_id).info("Device status request")
    try:
        report = await check_device_health(client, device_id)
    except ValueError as val_err:
        return Response(
            content=OperationResult(success=False, error=str(val_err)).model_dump_json(exclude_none=True),
            status_code=status.HTTP_400_BAD_REQUEST,
            media_type="application/json",
        )
    return DeviceStatusResponse(device_id=device_id, healthy=report.healthy, report=report)


@router.get(
    "/device/{device_id}/location",
    response_model=DeviceLocationResponse,
    tags=["Devices"],
    summary="Device location and network details",
)
async def get_device_location(client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/location GET", device_id).info("Device location request")
    location, network = await asyncio.gather(
        run_operation(client.get_device_location(device_id)),
        run_operation(client.get_device_network(device_id)),
    )
    return DeviceLocationResponse(
        device_id=device_id,
        location=location.data if location.success else None,
        network=network.data if network.success else None,
    )


@router.get("/device/{device_id}/apps", response_model=OperationResult, response_model_exclude_none=True, tags=["Devices"])
async def get_device_apps(client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/apps GET", device_id).info("Device apps request")
    return await run_operation(client.get_device_apps(device_id))


@router.get("/device/{device_id}/messages", response_model=OperationResult, response_model_exclude_none=True, tags=["Messaging"])
async def get_message_history(client: SunmiClientDep, device_id: DeviceId, limit: int = Query(50, ge=1, le=500)):
    _log("/device/{id}/messages GET", device_id).info(f"Message history request (limit={limit})")
    return await run_operation(client.get_message_history(device_id, limit=limit))


@router.post("/device/{device_id}/message", response_model=OperationResult, response_model_exclude_none=True, tags=["Messaging"])
async def send_message(payload: MessageRequest, client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/message POST", device_id).info(f"Send message request ({payload.message_type})")
    return await run_operation(client.send_message(device_id, payload.message, payload.message_type))


@router.post("/device/{device_id}/notification", response_model=OperationResult, response_model_exclude_none=True, tags=["Messaging"])
async def send_notification(payload: NotificationRequest, client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/notification POST", device_id).info("Push notification request")
    return await run_operation(client.send_notification(device_id, payload.title, payload.content, payload.priority))


@router.post("/device/{device_id}/command", response_model=OperationResult, response_model_exclude_none=True, tags=["Messaging"])
async def send_command(payload: CommandRequest, client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/command POST", device_id).info(f"Command request: {payload.command}")
    return await run_operation(client.send_command(device_id, payload.command, payload.parameters))


@router.post("/device/{device_id}/apps/install", response_model=OperationResult, response_model_exclude_none=True, tags=["Apps"])
async def install_app(payload: AppInstallRequest, client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/apps/install POST", device_id).info(f"App install request: {payload.app_url}")
    return await run_operation(client.install_app_from_url(device_id, payload.app_url, payload.app_name, payload.package_name))


@router.post("/device/{device_id}/apps/uninstall", response_model=OperationResult, response_model_exclude_none=True, tags=["Apps"])
async def uninstall_app(payload: AppUninstallRequest, client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/apps/uninstall POST", device_id).info(f"App uninstall request: {payload.package_name}")
    return await run_operation(client.uninstall_app(device_id, payload.package_name))


@router.post("/device/{device_id}/apps/update", response_model=OperationResult, response_model_exclude_none=True, tags=["Apps"])
async def update_app(payload: AppUpdateRequest, client: SunmiClientDep, device_id: DeviceId):
    _log("/device/{id}/apps/update POST", device_id).info(f"App update request: {payload.package_name}")
    return await run_operation(client.update_app(device_id, payload.package_name, payload.app_url))
