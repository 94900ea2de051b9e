# posagent/services/sunmi/routes.py
"""
Candidate route tables for every Sunmi operation.

Order is priority: the VAS family is tried before the midplat family, and
versioned routes before legacy aliases. The first candidate that yields a
genuine success wins, so reordering a table changes which route is used.
"""

from typing import Dict, Iterable, Mapping, Tuple

from posagent.models.sunmi import IdInjection, Operation, RouteCandidate

DEVICE_ID_ALIASES = ("device_id", "deviceId", "sn")


def _get(path: str) -> RouteCandidate:
    return RouteCandidate(method="GET", path=path)


def _post(path: str) -> RouteCandidate:
    return RouteCandidate(method="POST", path=path, injection=IdInjection.BODY, id_key="device_id")


def _query(path: str, key: str = "device_id") -> RouteCandidate:
    return RouteCandidate(method="GET", path=path, injection=IdInjection.QUERY, id_key=key)


def _aliased(path: str, keys: Iterable[str] = DEVICE_ID_ALIASES) -> Tuple[RouteCandidate, ...]:
    return tuple(_query(path, key) for key in keys)


def _device_lookup(resource: str, include_vas: bool = True, legacy: str | None = None) -> Tuple[RouteCandidate, ...]:
    legacy = legacy or resource
    routes: Tuple[RouteCandidate, ...] = ()
    if include_vas:
        routes += _aliased(f"/v2/vas/device/{resource}")
        routes += (
            _query(f"/v1/vas/device/{resource}"),
            _query(f"/vas/device/{resource}"),
        )
    routes += _aliased(f"/v2/midplat/device/{resource}")
    routes += (
        _query(f"/v1/device/{legacy}"),
        _query(f"/api/device/{legacy}"),
    )
    return routes


def _device_action(action: str) -> Tuple[RouteCandidate, ...]:
    return (
        _post(f"/v2/midplat/device/{action}"),
        _post(f"/v1/device/{action}"),
        _post(f"/api/device/{action}"),
    )


ROUTE_TABLE: Dict[Operation, Tuple[RouteCandidate, ...]] = {
    Operation.DEVICE_LIST: (
        _get("/v2/vas/device/list"),
        _get("/v1/vas/device/list"),
        _get("/vas/device/list"),
        _get("/v2/midplat/device/list"),
        _get("/v1/device/list"),
        _get("/api/device/list"),
        _get("/device/list"),
    ),
    Operation.DEVICE_DETAIL: _device_lookup("detail", legacy="info"),
    Operation.DEVICE_STATUS: _device_lookup("status"),
    Operation.DEVICE_INFO: _device_lookup("info"),
    Operation.DEVICE_LOCATION: _device_lookup("location", include_vas=False),
    Operation.DEVICE_NETWORK: _device_lookup("network", include_vas=False),
    Operation.DEVICE_APPS: _device_lookup("apps", include_vas=False),
    Operation.APP_INSTALL: _device_action("app/install"),
    Operation.APP_UPLOAD: _device_action("app/upload"),
    Operation.APP_UNINSTALL: _device_action("app/uninstall"),
    Operation.APP_UPDATE: _device_action("app/update"),
    Operation.SEND_MESSAGE: _device_action("message/send"),
    Operation.SEND_NOTIFICATION: _device_action("notification/push"),
    Operation.SEND_COMMAND: _device_action("command/execute"),
    Operation.MESSAGE_HISTORY: (
        _query("/v2/midplat/device/message/history"),
        _query("/v1/device/message/history"),
        _query("/api/device/message/history"),
    ),
    Operation.TERMINAL_LIST: (
        _get("/v2/midplat/terminal/list"),
        _get("/v1/terminal/list"),
        _get("/api/terminal/list"),
        _get("/terminal/list"),
    ),
    Operation.TERMINAL_INFO: (
        _query("/v2/midplat/terminal/info", "terminal_id"),
        _query("/v1/terminal/info", "terminal_id"),
        _query("/api/terminal/info", "terminal_id"),
    ),
    Operation.TERMINAL_STATUS: (
        _query("/v2/midplat/terminal/status", "terminal_id"),
        _query("/v1/terminal/status", "terminal_id"),
        _query("/api/terminal/status", "terminal_id"),
    ),
    Operation.APPSTORE_LIST: (
        _get("/v2/appstore/appstore/app/list"),
    ),
    Operation.APPSTORE_DETAIL: (
        _query("/v2/appstore/appstore/app/detail", "app_id"),
    ),
}


def candidates_for(
    operation: Operation,
    table: Mapping[Operation, Tuple[RouteCandidate, ...]] = ROUTE_TABLE,
) -> Tuple[RouteCandidate, ...]:
    """Ordered candidates of `operation` in `table`; ValueError when it has none."""
    candidates = table.get(operation)
    if not candidates:
        raise ValueError(f"No candidate routes registered for operation '{operation}'.")
    return candidates
