# tests/conftest.py
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from posagent.core.config import Settings
from posagent.models.llm import LLMCompletion, LLMError
from posagent.models.sunmi import Credentials
from posagent.services.llm_client import BaseLLMClient
from posagent.services.sunmi.client import SunmiClient

SUNMI_BASE_URL = "https://sunmi.test"
NOT_FOUND_BODY = {"code": 30001, "msg": "route not found"}


@dataclass
class StubRoute:
    status_code: int = 200
    json: Any = None
    text: Optional[str] = None
    delay: float = 0.0
    exc: Optional[type] = None


@dataclass
class RecordedCall:
    method: str
    endpoint: str
    headers: Dict[str, str]
    body: bytes
    started_at: float


@dataclass
class SunmiStub:
    """In-memory Sunmi API; unknown routes answer HTTP 200 with code 30001."""
    routes: Dict[str, StubRoute] = field(default_factory=dict)
    calls: List[RecordedCall] = field(default_factory=list)

    def on(self, endpoint: str, **kwargs) -> "SunmiStub":
        self.routes[endpoint] = StubRoute(**kwargs)
        return self

    @property
    def endpoints_called(self) -> List[str]:
        return [c.endpoint for c in self.calls]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        query = request.url.query.decode()
        endpoint = f"{request.url.path}?{query}" if query else request.url.path
        self.calls.append(RecordedCall(
            method=request.method,
            endpoint=endpoint,
            headers=dict(request.headers),
            body=request.content,
            started_at=time.monotonic(),
        ))
        route = self.routes.get(endpoint, StubRoute(json=NOT_FOUND_BODY))
        if route.delay:
            await asyncio.sleep(route.delay)
        if route.exc is not None:
            raise route.exc("stubbed transport failure", request=request)
        if route.text is not None:
            return httpx.Response(route.status_code, text=route.text)
        return httpx.Response(route.status_code, json=route.json)


class FakeLLM(BaseLLMClient):
    provider_name = "Fake"
    model = "fake-model"

    def __init__(self, text: Optional[str] = "Here is some help.", error: Optional[str] = None):
        self.text = text
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str, temperature: float = 0.7, max_tokens: int = 1500) -> LLMCompletion:
        self.prompts.append(prompt)
        if self.error:
            return LLMCompletion(success=False, provider=self.provider_name, model=self.model, error=LLMError(message=self.error))
        return LLMCompletion(success=True, text=self.text, provider=self.provider_name, model=self.model)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        LOG_LEVEL="DEBUG",
        SUNMI_APP_ID="test-app-id",
        SUNMI_APP_KEY="test-app-secret",
        SUNMI_API_BASE_URL=SUNMI_BASE_URL,
        GEMINI_API_KEY="test-gemini-key",
    )


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(app_id="test-app-id", app_secret="test-app-secret", base_url=SUNMI_BASE_URL)


@pytest.fixture
def sunmi_stub() -> SunmiStub:
    return SunmiStub()


@pytest_asyncio.fixture
async def sunmi_client(credentials: Credentials, sunmi_stub: SunmiStub) -> AsyncGenerator[SunmiClient, None]:
    client = SunmiClient(credentials, timeout=2.0, transport=httpx.MockTransport(sunmi_stub.handler))
    yield client
    await client.aclose()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()
