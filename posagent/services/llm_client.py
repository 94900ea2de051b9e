# posagent/services/llm_client.py

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from posagent.core.logging_config import trace_id_var
from posagent.models.llm import LLMCompletion, LLMError

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class BaseLLMClient(ABC):
    provider_name: str
    model: str

    @abstractmethod
    async def generate(self, prompt: str, temperature: float = 0.7, max_tokens: int = 1500) -> LLMCompletion:
        """Returns a completion for `prompt`; provider failures come back as `success=False`."""

    async def aclose(self):
        pass


class GeminiClient(BaseLLMClient):
    provider_name = "Gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-1.5-flash",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        if not api_key:
            logger.warning("Gemini API key not configured. LLM features disabled.")
            self.api_key = None
            self.aclient = None
        else:
            self.api_key = api_key
            self.aclient = httpx.AsyncClient(
                base_url=GEMINI_API_BASE_URL,
                timeout=timeout,
                headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
                transport=transport,
            )
            logger.info(f"Gemini Client initialized for API Key: ...{api_key[-4:]}")

    @property
    def configured(self) -> bool:
        return self.aclient is not None

    async def aclose(self):
        if self.aclient:
            await self.aclient.aclose()

    def _error(self, message: str, **details: Any) -> LLMCompletion:
        return LLMCompletion(
            success=False, provider=self.provider_name, model=self.model,
            error=LLMError(message=message, **details),
        )

    @staticmethod
    def _extract_text(response_data: Dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
        candidates = response_data.get("candidates") or []
        if not candidates:
            return None, None
        first = candidates[0]
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        return (text or None), first.get("finishReason")

    async def generate(self, prompt: str, temperature: float = 0.7, max_tokens: int = 1500) -> LLMCompletion:
        """Calls the Gemini generateContent API."""
        if not self.aclient:
            logger.error("Gemini Client not initialized (missing API key).")
            return self._error("Gemini client not initialized.", type="not_configured")

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        log = logger.bind(trace_id=trace_id_var.get(), service="LLMClient", provider=self.provider_name, model=self.model)
        log.info("Sending request to Gemini generateContent...")
        log.debug(f"Prompt Start: '{prompt[:80]}...'")

        request_time = datetime.now(timezone.utc)
        try:
            response = await self.aclient.post(f"/models/{self.model}:generateContent", json=payload)
            duration = (datetime.now(timezone.utc) - request_time).total_seconds()
            log.debug(f"Gemini Response Status: {response.status_code}, Duration: {duration:.3f}s")
            response.raise_for_status()
            response_data = response.json()
        except httpx.HTTPStatusError as http_err:
            error_body_text = http_err.response.text[:500]
            log.error(f"HTTP Error {http_err.response.status_code} from Gemini: {error_body_text}")
            details: Dict[str, Any] = {"code": http_err.response.status_code}
            try:
                error_info = http_err.response.json().get("error", {})
                details["type"] = error_info.get("status")
                message = error_info.get("message") or f"HTTP error {http_err.response.status_code} from Gemini"
            except ValueError:
                message = f"HTTP error {http_err.response.status_code} from Gemini"
            return self._error(message, **details)
        except httpx.TimeoutException:
            log.error(f"Timeout error connecting to Gemini API after {self.aclient.timeout.read}s.")
            return self._error("Request to Gemini API timed out.", type="timeout")
        except httpx.RequestError as req_err:
            log.error(f"Network/Request error calling Gemini: {req_err}")
            return self._error(f"Network/Request error calling Gemini: {req_err}", type="request_error")
        except ValueError as parse_err:
            log.error(f"Gemini returned a non-JSON body: {parse_err}")
            return self._error("Failed to parse Gemini response.", type="invalid_response")

        text, finish_reason = self._extract_text(response_data)
        if not text:
            block_reason = (response_data.get("promptFeedback") or {}).get("blockReason")
            log.warning(f"Gemini response OK but without text. Block reason: {block_reason or 'N/A'}")
            return self._error(f"Gemini returned no text{f' (blocked: {block_reason})' if block_reason else ''}.", type="empty_response")

        log.info(f"Gemini request successful. Finish Reason: {finish_reason or 'N/A'}")
        return LLMCompletion(
            success=True, text=text, provider=self.provider_name, model=self.model, finish_reason=finish_reason,
        )


def get_llm_client_instance(settings, provider: str = "gemini", transport: Optional[httpx.AsyncBaseTransport] = None) -> BaseLLMClient:
    """Builds the LLM client for `provider` from settings."""
    provider_lower = provider.lower()
    log = logger.bind(service="LLMClientGetter")
    log.info(f"Building LLM client for provider: '{provider_lower}'")
    if provider_lower == "gemini":
        return GeminiClient(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            transport=transport,
        )
    log.error(f"Unsupported LLM provider requested: '{provider}'")
    raise ValueError(f"Unsupported LLM provider: {provider}")
