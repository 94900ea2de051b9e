# posagent/api/deps.py

from typing import Annotated, Awaitable

from fastapi import Depends, HTTPException, Request, status

from posagent.core.config import Settings
from posagent.models.sunmi import OperationResult
from posagent.services.llm_client import BaseLLMClient
from posagent.services.sunmi.client import SunmiClient
from posagent.services.support_agent import SupportAgent


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_sunmi_client(request: Request) -> SunmiClient:
    client = getattr(request.app.state, "sunmi_client", None)
    if client is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Sunmi client not initialized.")
    return client


def get_llm_client(request: Request) -> BaseLLMClient:
    client = getattr(request.app.state, "llm_client", None)
    if client is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="LLM client not initialized.")
    return client


def get_support_agent(
    settings: Annotated[Settings, Depends(get_app_settings)],
    sunmi_client: Annotated[SunmiClient, Depends(get_sunmi_client)],
    llm_client: Annotated[BaseLLMClient, Depends(get_llm_client)],
) -> SupportAgent:
    return SupportAgent(sunmi_client, llm_client, llm_enabled=settings.llm_configured)


AppSettings = Annotated[Settings, Depends(get_app_settings)]
SunmiClientDep = Annotated[SunmiClient, Depends(get_sunmi_client)]
SupportAgentDep = Annotated[SupportAgent, Depends(get_support_agent)]


async def run_operation(call: Awaitable[OperationResult]) -> OperationResult:
    """Awaits a client operation, turning a malformed identifier into HTTP 400."""
    try:
        return await call
    except ValueError as val_err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(val_err))
