# tests/services/test_composite.py
import time

import httpx
import pytest

from posagent.services.sunmi.client import SunmiClient

pytestmark = pytest.mark.asyncio

FIRST_CANDIDATES = {
    "status": "/v2/vas/device/status?device_id=SN1",
    "info": "/v2/vas/device/info?device_id=SN1",
    "location": "/v2/midplat/device/location?device_id=SN1",
    "network": "/v2/midplat/device/network?device_id=SN1",
    "apps": "/v2/midplat/device/apps?device_id=SN1",
}


async def test_failed_fields_degrade_to_none(sunmi_client, sunmi_stub):
    sunmi_stub.on(FIRST_CANDIDATES["status"], json={"code": 0, "data": {"online": True}})
    sunmi_stub.on(FIRST_CANDIDATES["info"], json={"code": 0, "data": {"model": "V2 Pro"}})

    result = await sunmi_client.get_device_full_info("SN1")

    assert result.success is True
    assert result.device_id == "SN1"
    assert result.data.status == {"code": 0, "data": {"online": True}}
    assert result.data.info == {"code": 0, "data": {"model": "V2 Pro"}}
    assert result.data.location is None
    assert result.data.network is None
    assert result.data.apps is None


async def test_sub_operations_are_issued_concurrently(sunmi_client, sunmi_stub):
    delay = 0.3
    for name, endpoint in FIRST_CANDIDATES.items():
        sunmi_stub.on(endpoint, json={"code": 0, "field": name}, delay=delay)

    started = time.monotonic()
    result = await sunmi_client.get_device_full_info("SN1")
    elapsed = time.monotonic() - started

    assert result.success is True
    assert {result.data.status["field"], result.data.apps["field"]} == {"status", "apps"}
    starts = [c.started_at for c in sunmi_stub.calls]
    assert len(starts) == 5
    assert max(starts) - min(starts) < delay / 2
    assert elapsed < delay * 3


async def test_missing_identifier_fails_the_composite(sunmi_client, sunmi_stub):
    result = await sunmi_client.get_device_full_info("")

    assert result.success is False
    assert "identifier" in result.error
    assert result.data is None
    assert sunmi_stub.calls == []


async def test_raising_sub_route_only_blanks_its_field(credentials):
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/apps"):
            raise RuntimeError("apps backend exploded")
        if request.url.path == "/v2/vas/device/status":
            return httpx.Response(200, json={"code": 0, "data": {"online": True}})
        return httpx.Response(200, json={"code": 30001})

    async with SunmiClient(credentials, transport=httpx.MockTransport(handler)) as client:
        result = await client.get_device_full_info("SN1")

    assert result.success is True
    assert result.data.status == {"code": 0, "data": {"online": True}}
    assert result.data.apps is None
    assert result.data.info is None
