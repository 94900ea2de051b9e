# tests/services/test_routes.py
import pytest

from posagent.models.sunmi import IdInjection, Operation, RouteCandidate
from posagent.services.sunmi.routes import ROUTE_TABLE, candidates_for


def test_every_operation_has_candidates():
    for operation in Operation:
        assert candidates_for(operation), operation


def test_device_status_prefers_vas_family_and_alias_order():
    paths = [c.render("SN1")[0] for c in ROUTE_TABLE[Operation.DEVICE_STATUS]]
    keys = [c.id_key for c in ROUTE_TABLE[Operation.DEVICE_STATUS]]
    assert paths[0] == "/v2/vas/device/status"
    assert keys[:3] == ["device_id", "deviceId", "sn"]
    first_midplat = paths.index("/v2/midplat/device/status")
    assert all("/vas/" in p for p in paths[:first_midplat])
    assert len(paths) == 10


def test_midplat_only_lookups_skip_vas():
    for operation in (Operation.DEVICE_LOCATION, Operation.DEVICE_NETWORK, Operation.DEVICE_APPS):
        assert not any("/vas/" in c.path for c in ROUTE_TABLE[operation])
        assert len(ROUTE_TABLE[operation]) == 5


def test_query_injection_renders_identifier_and_params():
    candidate = RouteCandidate(path="/v1/device/message/history", injection=IdInjection.QUERY, id_key="device_id")
    assert candidate.render(" SN1 ", {"limit": 5, "skip": None}) == ("/v1/device/message/history", {"device_id": "SN1", "limit": 5})


def test_path_injection_substitutes_segment():
    candidate = RouteCandidate(path="/v3/devices/{id}/status", injection=IdInjection.PATH)
    assert candidate.render("SN42") == ("/v3/devices/SN42/status", {})
    with pytest.raises(ValueError):
        candidate.render("a/b")


def test_body_injection_keeps_identifier_out_of_query():
    candidate = ROUTE_TABLE[Operation.SEND_MESSAGE][0]
    assert candidate.method == "POST"
    assert candidate.render("SN1") == ("/v2/midplat/device/message/send", {})


@pytest.mark.parametrize("identifier", [None, "", "   "])
def test_missing_identifier_raises(identifier):
    with pytest.raises(ValueError):
        ROUTE_TABLE[Operation.DEVICE_INFO][0].render(identifier)


def test_tables_are_immutable_tuples():
    assert all(isinstance(candidates, tuple) for candidates in ROUTE_TABLE.values())


def test_candidates_for_uses_the_given_table():
    custom = {Operation.DEVICE_LIST: (RouteCandidate(path="/v9/devices"),)}
    assert candidates_for(Operation.DEVICE_LIST, custom)[0].path == "/v9/devices"
    with pytest.raises(ValueError):
        candidates_for(Operation.TERMINAL_LIST, custom)
    with pytest.raises(ValueError):
        candidates_for(Operation.DEVICE_LIST, {Operation.DEVICE_LIST: ()})
