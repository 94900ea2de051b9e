# posagent/services/support_agent.py

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from posagent.core.logging_config import trace_id_var
from posagent.models.support import SupportReply
from posagent.services.llm_client import BaseLLMClient
from posagent.services.sunmi.client import SunmiClient

SYSTEM_PROMPT = (
    "You are a customer support assistant for Sunmi point-of-sale device management. "
    "Answer clearly and concisely, give actionable steps, and use the device data "
    "provided (status, location, network, installed apps) when it is relevant."
)

SETUP_MESSAGE = (
    "AI responses are not configured yet. Add GEMINI_API_KEY to the environment "
    "to enable the support assistant."
)

# Ordered: the first rule with a matching keyword wins
INTENT_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    ("device_status", ("status", "online", "offline")),
    ("device_location", ("location", "where", "ip")),
    ("device_apps", ("app", "application", "software")),
    ("troubleshooting", ("troubleshoot", "problem", "issue", "help")),
    ("device_health", ("health", "diagnostic", "report")),
]
DEFAULT_INTENT = "general_support"

FALLBACK_RESPONSES: Dict[str, str] = {
    "device_status": (
        "I couldn't reach the AI service to check {target} right now. Please verify the device "
        "is powered on and connected to the internet, then try again in a few minutes."
    ),
    "device_location": (
        "Location details for {target} are temporarily unavailable. Check the device's network "
        "settings for its IP address, or try again shortly."
    ),
    "device_apps": (
        "I can't list the applications on {target} at the moment. Open Settings > Apps on the "
        "device to review installed apps, or try again shortly."
    ),
    "troubleshooting": (
        "Let's start with the basics for {target}: restart the device, confirm network "
        "connectivity, and note any error messages. Tell me what you've already tried."
    ),
    "device_health": (
        "A full health report for {target} isn't available right now. Please try again in a few minutes."
    ),
    DEFAULT_INTENT: (
        "I'm having trouble reaching the AI service right now. Please try again in a few minutes, "
        "or describe your issue in more detail."
    ),
}

DEVICE_ID_PATTERN = re.compile(r"device\s+([A-Za-z0-9_-]*\d[A-Za-z0-9_-]*)", re.IGNORECASE)


def determine_intent(message: str) -> str:
    lower_message = message.lower()
    for intent, keywords in INTENT_RULES:
        if any(keyword in lower_message for keyword in keywords):
            return intent
    return DEFAULT_INTENT


def extract_device_id(message: str) -> Optional[str]:
    """Finds 'device <id>' in free text; ids must contain a digit (serials do, plain words don't)."""
    match = DEVICE_ID_PATTERN.search(message)
    return match.group(1) if match else None


def fallback_response(intent: str, device_id: Optional[str] = None) -> str:
    template = FALLBACK_RESPONSES.get(intent, FALLBACK_RESPONSES[DEFAULT_INTENT])
    return template.format(target=f"device {device_id}" if device_id else "your device")


def _as_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


class SupportAgent:
    """Combines device data from the Sunmi client with LLM completions."""

    def __init__(self, sunmi_client: SunmiClient, llm_client: BaseLLMClient, llm_enabled: bool = True):
        self.sunmi_client = sunmi_client
        self.llm_client = llm_client
        self.llm_enabled = llm_enabled

    async def _device_context(self, device_id: str) -> Optional[Dict[str, Any]]:
        profile = await self.sunmi_client.get_device_full_info(device_id)
        if not profile.success or profile.data is None:
            return None
        return {"device_id": device_id, **profile.data.model_dump()}

    async def handle_query(self, message: str, device_id: Optional[str] = None) -> SupportReply:
        intent = determine_intent(message)
        device_id = device_id or extract_device_id(message)
        log = logger.bind(trace_id=trace_id_var.get(), service="SupportAgent", intent=intent, device_id=device_id)
        log.info("Handling support query...")

        if not self.llm_enabled:
            return SupportReply(success=True, text=SETUP_MESSAGE, intent=intent, device_id=device_id, requires_setup=True)

        device_context = await self._device_context(device_id) if device_id else None
        context_info = f"\n\nCurrent Device Context:\n{_as_json(device_context)}" if device_context else ""
        prompt = f"{SYSTEM_PROMPT}\n\nUser Message: {message}{context_info}\n\nPlease provide a helpful response:"

        completion = await self.llm_client.generate(prompt)
        if completion.success:
            return SupportReply(
                success=True, text=completion.text, intent=intent,
                device_id=device_id, device_context=device_context,
            )

        log.warning(f"LLM completion failed, answering with fallback: {completion.error.message if completion.error else 'unknown'}")
        return SupportReply(
            success=False,
            text=fallback_response(intent, device_id),
            intent=intent,
            device_id=device_id,
            device_context=device_context,
            fallback=True,
            error=completion.error.message if completion.error else None,
        )

    async def analyze_device_health(self, device_data: Dict[str, Any]) -> SupportReply:
        if not self.llm_enabled:
            return SupportReply(success=True, text="AI analysis requires Gemini API key configuration.", requires_setup=True)

        prompt = (
            f"{SYSTEM_PROMPT}\n\nPlease analyze this device data and provide a health assessment:\n\n"
            f"{_as_json(device_data)}\n\nProvide:\n1. Overall health status\n2. Any issues or concerns\n"
            "3. Recommended actions\n4. Performance summary"
        )
        completion = await self.llm_client.generate(prompt)
        if completion.success:
            return SupportReply(success=True, text=completion.text, intent="device_health")
        return SupportReply(
            success=False, text="Unable to analyze device health at this time.", intent="device_health",
            fallback=True, error=completion.error.message if completion.error else None,
        )

    async def generate_troubleshooting_steps(self, issue: str, device_context: Optional[Dict[str, Any]] = None) -> SupportReply:
        if not self.llm_enabled:
            return SupportReply(success=True, text="AI troubleshooting requires Gemini API key configuration.", requires_setup=True)

        context_info = f"\n\nDevice Context:\n{_as_json(device_context)}" if device_context else ""
        prompt = (
            f"{SYSTEM_PROMPT}\n\nA customer is experiencing this issue: {issue}{context_info}\n\n"
            "Please provide detailed troubleshooting steps in a clear, numbered format. Include:\n"
            "1. Initial diagnosis questions\n2. Step-by-step resolution guide\n"
            "3. Alternative solutions if the first approach doesn't work\n4. When to escalate to technical support"
        )
        completion = await self.llm_client.generate(prompt)
        if completion.success:
            return SupportReply(success=True, text=completion.text, intent="troubleshooting", device_context=device_context)
        return SupportReply(
            success=False, text="Unable to generate troubleshooting steps at this time.", intent="troubleshooting",
            device_context=device_context, fallback=True, error=completion.error.message if completion.error else None,
        )
