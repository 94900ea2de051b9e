# posagent/api/endpoints/status.py

import time as process_time
from typing import Dict

from fastapi import APIRouter, Request
from loguru import logger

from posagent.api.deps import AppSettings
from posagent.models.api import ComponentStatus, HealthCheckResponse, ServiceIndexResponse

PROCESS_START_TIME = process_time.monotonic()

router = APIRouter(tags=["Status & Health"])


@router.get("/health", response_model=HealthCheckResponse, summary="Service health and configuration status")
async def get_health(request: Request, settings: AppSettings):
    log = logger.bind(api_endpoint="/health GET")
    components: Dict[str, ComponentStatus] = {}

    if getattr(request.app.state, "sunmi_client", None) is None:
        components["sunmi_api"] = ComponentStatus(status="error", message="Client not initialized")
    elif not settings.sunmi_configured:
        components["sunmi_api"] = ComponentStatus(status="unconfigured", message="SUNMI_APP_ID / SUNMI_APP_KEY missing")
    else:
        components["sunmi_api"] = ComponentStatus(status="ok")

    if settings.llm_configured:
        components["llm"] = ComponentStatus(status="ok", message=settings.GEMINI_MODEL)
    else:
        components["llm"] = ComponentStatus(status="unconfigured", message="GEMINI_API_KEY missing")

    overall = "healthy" if all(c.status == "ok" for c in components.values()) else "degraded"
    log.debug(f"Health check: {overall}")
    return HealthCheckResponse(
        status=overall,
        uptime_seconds=process_time.monotonic() - PROCESS_START_TIME,
        components=components,
    )


def service_index(settings) -> ServiceIndexResponse:
    prefix = settings.API_PREFIX
    return ServiceIndexResponse(
        message=f"{settings.PROJECT_NAME} - Customer Support Chatbot",
        version=settings.VERSION,
        endpoints={
            "chat": f"{prefix}/chat",
            "devices": f"{prefix}/devices",
            "device": f"{prefix}/device/{{device_id}}",
            "terminals": f"{prefix}/terminals",
            "appstore": f"{prefix}/appstore/apps",
            "diagnostic": f"{prefix}/diagnostic",
            "health": "/health",
        },
    )
