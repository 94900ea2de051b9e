# tests/services/test_sunmi_client.py
import json

import httpx
import pytest

from posagent.models.sunmi import AttemptOutcome, Operation, RouteCandidate
from posagent.services.sunmi.client import SunmiClient
from posagent.services.sunmi.routes import ROUTE_TABLE
from posagent.services.sunmi.signing import compute_signature

pytestmark = pytest.mark.asyncio

STATUS_V2_DEVICE_ID = "/v2/vas/device/status?device_id=SN1"
STATUS_V2_DEVICE_ID_CAMEL = "/v2/vas/device/status?deviceId=SN1"


def rendered(operation, identifier=None, params=None):
    out = []
    for candidate in ROUTE_TABLE[operation]:
        path, query = candidate.render(identifier, params)
        out.append(SunmiClient._display_endpoint(path, query))
    return out


async def test_first_qualifying_candidate_wins(sunmi_client, sunmi_stub):
    sunmi_stub.on(STATUS_V2_DEVICE_ID, json={"code": 0, "data": {"from": "c1"}})
    sunmi_stub.on(STATUS_V2_DEVICE_ID_CAMEL, json={"code": 0, "data": {"from": "c2"}})

    result = await sunmi_client.get_device_status("SN1")

    assert result.success is True
    assert result.data["data"]["from"] == "c1"
    assert result.endpoint == STATUS_V2_DEVICE_ID
    assert result.endpoints_tried is None
    assert sunmi_stub.endpoints_called == [STATUS_V2_DEVICE_ID]


async def test_disqualified_candidate_is_skipped(sunmi_client, sunmi_stub):
    sunmi_stub.on(STATUS_V2_DEVICE_ID, json={"code": 30000, "msg": "forbidden"})
    sunmi_stub.on(STATUS_V2_DEVICE_ID_CAMEL, json={"code": 0, "data": {"from": "c2"}})

    result = await sunmi_client.get_device_status("SN1")

    assert result.success is True
    assert result.data["data"]["from"] == "c2"
    assert sunmi_stub.endpoints_called == [STATUS_V2_DEVICE_ID, STATUS_V2_DEVICE_ID_CAMEL]


async def test_exhaustion_lists_every_route_in_order(sunmi_client, sunmi_stub):
    result = await sunmi_client.get_device_status("SN1")

    expected = rendered(Operation.DEVICE_STATUS, "SN1")
    assert result.success is False
    assert result.endpoints_tried == expected
    assert len(result.endpoints_tried) == len(ROUTE_TABLE[Operation.DEVICE_STATUS])
    assert sunmi_stub.endpoints_called == expected
    assert all(a.outcome == AttemptOutcome.VENDOR_ERROR for a in result.attempts)
    assert "documentation may be outdated" in result.error
    assert "SN1" in result.error


async def test_exhaustion_explains_missing_vas_permission(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/vas/device/list", json={"code": 30000, "msg": "access forbidden"})

    result = await sunmi_client.get_device_list()

    assert result.success is False
    assert "VAS" in result.error
    assert result.vendor_code == 30000
    assert len(result.endpoints_tried) == 7


async def test_transport_failures_move_to_next_candidate(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/midplat/terminal/list", exc=httpx.ConnectError)
    sunmi_stub.on("/v1/terminal/list", exc=httpx.ReadTimeout)
    sunmi_stub.on("/api/terminal/list", status_code=502, text="<html>bad gateway</html>")
    sunmi_stub.on("/terminal/list", json={"code": 0, "data": [{"terminal_id": "T1"}]})

    result = await sunmi_client.get_terminal_list()

    assert result.success is True
    assert result.endpoint == "/terminal/list"
    assert len(sunmi_stub.calls) == 4


async def test_unreachable_service_explanation(sunmi_client, sunmi_stub):
    for endpoint in rendered(Operation.TERMINAL_INFO, "T1"):
        sunmi_stub.on(endpoint, exc=httpx.ConnectError)

    result = await sunmi_client.get_terminal_info("T1")

    assert result.success is False
    assert all(a.outcome == AttemptOutcome.TRANSPORT_ERROR for a in result.attempts)
    assert all(a.status_code is None for a in result.attempts)
    assert "could not be reached" in result.error


async def test_unparseable_success_body_is_not_accepted(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/appstore/appstore/app/list", text="OK")

    result = await sunmi_client.get_app_list()

    assert result.success is False
    assert result.attempts[0].outcome == AttemptOutcome.TRANSPORT_ERROR
    assert "unparseable" in result.attempts[0].error


async def test_other_vendor_codes_are_accepted(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/appstore/appstore/app/detail?app_id=A1", json={"code": 40002, "msg": "invalid sign"})

    result = await sunmi_client.get_app_detail("A1")

    assert result.success is True
    assert result.vendor_code == 40002


async def test_post_body_is_signed_exactly_as_sent(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v1/device/message/send", json={"code": 0, "data": {"message_id": "m1"}})

    result = await sunmi_client.send_message("SN1", "Hello terminal", message_type="text")

    assert result.success is True
    assert [c.method for c in sunmi_stub.calls] == ["POST", "POST"]
    call = sunmi_stub.calls[-1]
    body = json.loads(call.body)
    assert body["device_id"] == "SN1"
    assert body["message"] == "Hello terminal"
    assert body["message_type"] == "text"
    assert isinstance(body["timestamp"], int)
    assert call.headers["content-type"] == "application/json"
    assert call.headers["sunmi-appid"] == "test-app-id"
    assert call.headers["sunmi-sign"] == compute_signature(
        "test-app-secret", call.body.decode(), "test-app-id",
        call.headers["sunmi-timestamp"], call.headers["sunmi-nonce"],
    )


async def test_get_requests_sign_empty_body(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/vas/device/list", json={"code": 0, "data": []})

    await sunmi_client.get_device_list()

    call = sunmi_stub.calls[0]
    assert call.body == b""
    assert call.headers["sunmi-sign"] == compute_signature(
        "test-app-secret", "", "test-app-id", call.headers["sunmi-timestamp"], call.headers["sunmi-nonce"],
    )


async def test_each_attempt_gets_a_fresh_nonce(sunmi_client, sunmi_stub):
    await sunmi_client.get_device_location("SN1")
    nonces = [c.headers["sunmi-nonce"] for c in sunmi_stub.calls]
    assert len(nonces) == 5
    assert len(set(nonces)) == 5


async def test_message_history_passes_limit(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/midplat/device/message/history?device_id=SN1&limit=10", json={"code": 0, "data": []})

    result = await sunmi_client.get_message_history("SN1", limit=10)

    assert result.success is True
    assert result.endpoint == "/v2/midplat/device/message/history?device_id=SN1&limit=10"


async def test_app_payload_merges_device_id(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/midplat/device/app/install", json={"code": 0})

    await sunmi_client.install_app_from_url("SN1", "https://cdn.example.com/app.apk", package_name="com.shop.pos")

    body = json.loads(sunmi_stub.calls[0].body)
    assert body == {
        "device_id": "SN1",
        "app_url": "https://cdn.example.com/app.apk",
        "app_name": "Remote App",
        "package_name": "com.shop.pos",
    }


async def test_file_install_uploads_multipart(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/midplat/device/app/upload", json={"code": 0, "data": {"task_id": "t1"}})

    result = await sunmi_client.install_app_from_file("SN1", b"APK-BYTES", "Shop POS", "com.shop.pos")

    assert result.success is True
    call = sunmi_stub.calls[0]
    assert call.headers["content-type"].startswith("multipart/form-data")
    assert b"APK-BYTES" in call.body
    assert b'name="device_id"' in call.body
    signed_fields = json.dumps(
        {"device_id": "SN1", "app_name": "Shop POS", "package_name": "com.shop.pos"}, separators=(",", ":"),
    )
    assert call.headers["sunmi-sign"] == compute_signature(
        "test-app-secret", signed_fields, "test-app-id",
        call.headers["sunmi-timestamp"], call.headers["sunmi-nonce"],
    )


async def test_file_install_without_package_signs_only_sent_fields(sunmi_client, sunmi_stub):
    sunmi_stub.on("/v2/midplat/device/app/upload", json={"code": 0, "data": {"task_id": "t2"}})

    result = await sunmi_client.install_app_from_file("SN1", b"APK-BYTES", "Shop POS")

    assert result.success is True
    call = sunmi_stub.calls[0]
    assert b'name="package_name"' not in call.body
    signed_fields = json.dumps({"device_id": "SN1", "app_name": "Shop POS"}, separators=(",", ":"))
    assert call.headers["sunmi-sign"] == compute_signature(
        "test-app-secret", signed_fields, "test-app-id",
        call.headers["sunmi-timestamp"], call.headers["sunmi-nonce"],
    )


async def test_unexpected_send_error_moves_to_next_candidate(credentials):
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("device_id") == "SN1" and request.url.path == "/v2/vas/device/status":
            raise RuntimeError("transport exploded")
        return httpx.Response(200, json={"code": 0, "data": {"online": True}})

    async with SunmiClient(credentials, transport=httpx.MockTransport(handler)) as client:
        result = await client.get_device_status("SN1")

    assert result.success is True
    assert result.endpoint == STATUS_V2_DEVICE_ID_CAMEL


async def test_missing_identifier_raises_before_any_call(sunmi_client, sunmi_stub):
    with pytest.raises(ValueError):
        await sunmi_client.get_device_info("  ")
    assert sunmi_stub.calls == []


async def test_custom_route_table_with_path_injection(credentials, sunmi_stub):
    table = {
        Operation.DEVICE_STATUS: (
            RouteCandidate(path="/v3/devices/{id}/status", injection="path"),
        ),
    }
    sunmi_stub.on("/v3/devices/SN9/status", json={"code": 0, "online": True})
    async with SunmiClient(credentials, transport=httpx.MockTransport(sunmi_stub.handler), route_table=table) as client:
        result = await client.get_device_status("SN9")
        assert result.success is True
        assert result.data["online"] is True
        with pytest.raises(ValueError):
            await client.get_device_list()
