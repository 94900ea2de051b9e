# posagent/api/endpoints/chat.py

from typing import Annotated

from fastapi import APIRouter, Path, Response, status
from loguru import logger

from posagent.api.deps import SunmiClientDep, SupportAgentDep
from posagent.core.logging_config import trace_id_var
from posagent.models.api import (
    AnalysisResponse, ChatContext, ChatRequest, ChatResponse, TroubleshootRequest, TroubleshootResponse,
)
from posagent.models.sunmi import CompositeResult

router = APIRouter(tags=["AI Support"])


@router.post("/chat", response_model=ChatResponse, summary="Ask the support assistant")
async def chat(payload: ChatRequest, agent: SupportAgentDep):
    """
    Forwards the message to the LLM, attaching the device profile when a
    device id is given (or mentioned as 'device <id>' in the message).
    """
    log = logger.bind(trace_id=trace_id_var.get(), api_endpoint="/chat POST", device_id=payload.device_id)
    log.info(f"Chat request received: '{payload.message[:100]}'")

    reply = await agent.handle_query(payload.message, payload.device_id)
    body = ChatResponse(
        response=reply.text,
        timestamp=reply.timestamp,
        context=ChatContext(message=payload.message, device_id=reply.device_id, intent=reply.intent),
        requires_setup=reply.requires_setup,
        fallback=reply.fallback,
        error=reply.error,
    )
    if not reply.success:
        return Response(
            content=body.model_dump_json(),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            media_type="application/json",
        )
    return body


@router.post("/device/{device_id}/analyze", response_model=AnalysisResponse, summary="AI health analysis of a device")
async def analyze_device(
    agent: SupportAgentDep,
    client: SunmiClientDep,
    device_id: Annotated[str, Path(min_length=1, max_length=128)],
):
    log = logger.bind(trace_id=trace_id_var.get(), api_endpoint="/device/{id}/analyze POST", device_id=device_id)
    log.info("Device analysis request")

    if not agent.llm_enabled:
        reply = await agent.analyze_device_health({})
        return AnalysisResponse(device_id=device_id, analysis=reply.text, success=reply.success, requires_setup=True)

    profile = await client.get_device_full_info(device_id)
    if not profile.success or profile.data is None:
        return Response(
            content=CompositeResult(success=False, device_id=device_id, error="Device not found or unavailable").model_dump_json(exclude_none=True),
            status_code=status.HTTP_404_NOT_FOUND,
            media_type="application/json",
        )

    reply = await agent.analyze_device_health(profile.data.model_dump())
    return AnalysisResponse(
        device_id=device_id,
        analysis=reply.text,
        success=reply.success,
        device_data=profile.data,
        timestamp=reply.timestamp,
    )


@router.post("/troubleshoot", response_model=TroubleshootResponse, summary="AI troubleshooting steps for an issue")
async def troubleshoot(payload: TroubleshootRequest, agent: SupportAgentDep, client: SunmiClientDep):
    log = logger.bind(trace_id=trace_id_var.get(), api_endpoint="/troubleshoot POST", device_id=payload.device_id)
    log.info(f"Troubleshooting request: '{payload.issue[:100]}'")

    device_context = None
    if payload.device_id and agent.llm_enabled:
        profile = await client.get_device_full_info(payload.device_id)
        if profile.success and profile.data is not None:
            device_context = profile.data.model_dump()

    reply = await agent.generate_troubleshooting_steps(payload.issue, device_context)
    return TroubleshootResponse(
        issue=payload.issue,
        device_id=payload.device_id,
        troubleshooting=reply.text,
        success=reply.success,
        requires_setup=reply.requires_setup,
        timestamp=reply.timestamp,
    )
