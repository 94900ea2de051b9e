# posagent/services/sunmi/client.py

import asyncio
import json
import time
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

import httpx
from loguru import logger

from posagent.core.logging_config import redact_headers, trace_id_var
from posagent.models.sunmi import (
    AttemptOutcome, AttemptRecord, CompositeDeviceInfo, CompositeResult, Credentials,
    IdInjection, Operation, OperationResult, RouteCandidate, SignedRequest, VendorErrorCode,
)
from posagent.services.sunmi.classifier import classify_response
from posagent.services.sunmi.routes import ROUTE_TABLE, candidates_for
from posagent.services.sunmi.signing import RequestSigner

DEFAULT_TIMEOUT_SECONDS = 10.0
APK_CONTENT_TYPE = "application/vnd.android.package-archive"

# Multipart file part: (field name, (filename, content, content type))
FilePart = Tuple[str, Tuple[str, bytes, str]]


def serialize_body(payload: Optional[Dict[str, Any]]) -> str:
    """Compact JSON text; the exact string that is signed is the string that is sent."""
    if not payload:
        return ""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def explain_exhaustion(operation: Operation, identifier: Optional[str], attempts: List[AttemptRecord]) -> str:
    """Operator-facing explanation for an operation where every candidate failed."""
    label = operation.value.replace("_", " ")
    target = f" for {identifier}" if identifier else ""
    prefix = f"No working {label} endpoint found{target} ({len(attempts)} routes tried)."

    codes = {a.vendor_code for a in attempts if a.vendor_code is not None}
    if VendorErrorCode.ACCESS_FORBIDDEN.value in codes:
        return (f"{prefix} The vendor answered 'access forbidden' ({VendorErrorCode.ACCESS_FORBIDDEN.value}): "
                "your account may lack VAS (premium tier) permissions for this operation. "
                "Contact Sunmi support to enable VAS access for your App ID.")
    if attempts and all(a.vendor_code == VendorErrorCode.NOT_FOUND.value for a in attempts):
        return (f"{prefix} Every route was reported as unsupported ({VendorErrorCode.NOT_FOUND.value}); "
                "the API documentation may be outdated.")
    if attempts and all(a.outcome == AttemptOutcome.TRANSPORT_ERROR and a.status_code is None for a in attempts):
        return f"{prefix} The Sunmi API could not be reached (network error or timeout on every route)."
    return (f"{prefix} The device may not be registered to this account, the account may lack "
            "device management permissions, or the API documentation may be outdated.")


class SunmiClient:
    """
    Sunmi Open API client that resolves each logical operation against an
    ordered list of candidate routes.

    Candidates are tried one at a time, in declared order. The first response
    that is transport-successful and not disqualified by a vendor error code
    is the operation's result. Credentials and route tables are fixed at
    construction, so one instance can serve concurrent calls.
    """

    def __init__(
        self,
        credentials: Credentials,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        route_table: Optional[Mapping[Operation, Tuple[RouteCandidate, ...]]] = None,
    ):
        self.credentials = credentials
        self.signer = RequestSigner(credentials.app_id, credentials.app_secret)
        self.route_table = MappingProxyType(dict(route_table or ROUTE_TABLE))
        self.timeout = timeout
        self.aclient = httpx.AsyncClient(
            base_url=credentials.base_url,
            timeout=timeout,
            transport=transport,
        )
        logger.info(f"Sunmi client initialized for App ID ...{credentials.app_id[-4:]} at {credentials.base_url}")

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "SunmiClient":
        credentials = Credentials(
            app_id=settings.SUNMI_APP_ID or "",
            app_secret=settings.SUNMI_APP_KEY or "",
            base_url=settings.SUNMI_API_BASE_URL,
        )
        return cls(credentials, timeout=settings.SUNMI_TIMEOUT_SECONDS, transport=transport)

    async def aclose(self):
        await self.aclient.aclose()

    async def __aenter__(self) -> "SunmiClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # --- Resolution ---

    @staticmethod
    def _display_endpoint(path: str, query: Dict[str, Any]) -> str:
        return f"{path}?{urlencode(query)}" if query else path

    async def _attempt(
        self,
        operation: Operation,
        index: int,
        candidate: RouteCandidate,
        identifier: Optional[str],
        payload: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
        files: Optional[List[FilePart]],
    ) -> Tuple[AttemptRecord, Any]:
        path, query = candidate.render(identifier, params)
        endpoint = self._display_endpoint(path, query)

        body: Optional[Dict[str, Any]] = None
        if candidate.method == "POST":
            body = dict(payload or {})
            if candidate.injection == IdInjection.BODY:
                body = {candidate.id_key: str(identifier).strip(), **body}
            if files:
                # Multipart has no null; sign only the fields that become form parts
                body = {k: v for k, v in body.items() if v is not None}
        body_text = serialize_body(body)

        signed = self.signer.sign(body_text)
        headers = self.signer.headers(signed)
        if body_text and not files:
            headers["Content-Type"] = "application/json"
        signed_request = SignedRequest(
            method=candidate.method,
            url=f"{self.credentials.base_url}{endpoint}",
            timestamp=signed.timestamp,
            nonce=signed.nonce,
            signature=signed.signature,
        )

        log = logger.bind(
            trace_id=trace_id_var.get(), service="SunmiClient",
            operation=operation.value, attempt=index,
        )
        log.debug(f"Sunmi request {signed_request.method} {signed_request.url}")
        log.debug(f"Sunmi request headers: {redact_headers(headers)}")
        if body_text:
            log.debug(f"Sunmi request body: {body_text}")

        try:
            if files:
                form = {k: str(v) for k, v in (body or {}).items()}
                response = await self.aclient.request(
                    candidate.method, path, params=query, headers=headers, data=form, files=files,
                )
            elif body_text:
                response = await self.aclient.request(
                    candidate.method, path, params=query, headers=headers, content=body_text.encode("utf-8"),
                )
            else:
                response = await self.aclient.request(candidate.method, path, params=query, headers=headers)
        except httpx.TimeoutException:
            log.warning(f"Attempt {index} {endpoint}: timeout after {self.timeout}s")
            return AttemptRecord(
                endpoint=endpoint, method=candidate.method, outcome=AttemptOutcome.TRANSPORT_ERROR,
                error=f"Timeout after {self.timeout}s",
            ), None
        except httpx.RequestError as req_err:
            log.warning(f"Attempt {index} {endpoint}: network error: {req_err!r}")
            return AttemptRecord(
                endpoint=endpoint, method=candidate.method, outcome=AttemptOutcome.TRANSPORT_ERROR,
                error=f"Network error: {req_err!r}",
            ), None
        except Exception as e:
            log.exception(f"Attempt {index} {endpoint}: unexpected error while sending: {e!r}")
            return AttemptRecord(
                endpoint=endpoint, method=candidate.method, outcome=AttemptOutcome.TRANSPORT_ERROR,
                error=f"Unexpected error: {e!r}",
            ), None

        parsed = True
        try:
            data: Any = response.json()
        except ValueError:
            parsed = False
            data = response.text[:500]

        outcome, vendor_code = classify_response(response.status_code, data, parsed=parsed)
        error: Optional[str] = None
        if outcome == AttemptOutcome.TRANSPORT_ERROR:
            error = f"HTTP {response.status_code}" + ("" if parsed else " (unparseable body)")
        elif outcome == AttemptOutcome.VENDOR_ERROR:
            message = data.get("msg") if isinstance(data, dict) else None
            error = f"Vendor code {vendor_code}" + (f": {message}" if message else "")

        log.debug(f"Sunmi response {response.status_code}: {data}")
        log.info(f"Attempt {index} {candidate.method} {endpoint} -> {outcome.value} (HTTP {response.status_code}, code={vendor_code})")
        record = AttemptRecord(
            endpoint=endpoint, method=candidate.method, outcome=outcome,
            status_code=response.status_code, vendor_code=vendor_code, error=error,
        )
        return record, data

    async def resolve(
        self,
        operation: Operation,
        identifier: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[List[FilePart]] = None,
    ) -> OperationResult:
        """
        Tries each candidate route of `operation` in order and returns the
        first genuine success.

        Raises ValueError for an operation with no candidates, or a missing
        identifier on an operation that needs one. Every other failure is
        returned as an OperationResult whose `endpoints_tried` lists the
        attempted routes in declared order.
        """
        candidates = candidates_for(operation, self.route_table)

        log = logger.bind(trace_id=trace_id_var.get(), service="SunmiClient", operation=operation.value)
        attempts: List[AttemptRecord] = []
        for index, candidate in enumerate(candidates, start=1):
            record, data = await self._attempt(operation, index, candidate, identifier, payload, params, files)
            attempts.append(record)
            if record.outcome == AttemptOutcome.SUCCESS:
                log.success(f"{operation.value} resolved via {record.endpoint} (candidate {index}/{len(candidates)})")
                return OperationResult(
                    success=True, data=data, status_code=record.status_code, endpoint=record.endpoint,
                )

        error = explain_exhaustion(operation, identifier, attempts)
        log.warning(error)
        return OperationResult(
            success=False,
            error=error,
            endpoints_tried=[a.endpoint for a in attempts],
            attempts=attempts,
        )

    # --- Device lookups ---

    async def get_device_list(self, params: Optional[Dict[str, Any]] = None) -> OperationResult:
        return await self.resolve(Operation.DEVICE_LIST, params=params)

    async def get_device_detail(self, device_id: str) -> OperationResult:
        return await self.resolve(Operation.DEVICE_DETAIL, device_id)

    async def get_device_status(self, device_id: str) -> OperationResult:
        return await self.resolve(Operation.DEVICE_STATUS, device_id)

    async def get_device_info(self, device_id: str) -> OperationResult:
        return await self.resolve(Operation.DEVICE_INFO, device_id)

    async def get_device_location(self, device_id: str) -> OperationResult:
        return await self.resolve(Operation.DEVICE_LOCATION, device_id)

    async def get_device_network(self, device_id: str) -> OperationResult:
        return await self.resolve(Operation.DEVICE_NETWORK, device_id)

    async def get_device_apps(self, device_id: str) -> OperationResult:
        return await self.resolve(Operation.DEVICE_APPS, device_id)

    # --- App management ---

    async def install_app(self, device_id: str, app_data: Dict[str, Any]) -> OperationResult:
        return await self.resolve(Operation.APP_INSTALL, device_id, payload=app_data)

    async def install_app_from_url(
        self, device_id: str, app_url: str, app_name: Optional[str] = None, package_name: Optional[str] = None,
    ) -> OperationResult:
        app_data = {
            "app_url": app_url,
            "app_name": app_name or "Remote App",
            "package_name": package_name,
        }
        return await self.install_app(device_id, app_data)

    async def install_app_from_file(
        self, device_id: str, apk_bytes: bytes, app_name: str, package_name: Optional[str] = None,
    ) -> OperationResult:
        """Uploads an APK as multipart form data; the signature covers the non-file fields."""
        fields = {"app_name": app_name, "package_name": package_name}
        files: List[FilePart] = [("apk_file", ("app.apk", apk_bytes, APK_CONTENT_TYPE))]
        return await self.resolve(Operation.APP_UPLOAD, device_id, payload=fields, files=files)

    async def uninstall_app(self, device_id: str, package_name: str) -> OperationResult:
        return await self.resolve(Operation.APP_UNINSTALL, device_id, payload={"package_name": package_name})

    async def update_app(self, device_id: str, package_name: str, app_url: Optional[str] = None) -> OperationResult:
        payload = {"package_name": package_name, "app_url": app_url}
        return await self.resolve(Operation.APP_UPDATE, device_id, payload=payload)

    # --- Messaging ---

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def send_message(self, device_id: str, message: str, message_type: str = "text") -> OperationResult:
        payload = {"message": message, "message_type": message_type, "timestamp": self._now_ms()}
        return await self.resolve(Operation.SEND_MESSAGE, device_id, payload=payload)

    async def send_notification(
        self, device_id: str, title: str, content: str, priority: str = "normal",
    ) -> OperationResult:
        payload = {"title": title, "content": content, "priority": priority, "timestamp": self._now_ms()}
        return await self.resolve(Operation.SEND_NOTIFICATION, device_id, payload=payload)

    async def send_command(
        self, device_id: str, command: str, parameters: Optional[Dict[str, Any]] = None,
    ) -> OperationResult:
        payload = {"command": command, "parameters": parameters or {}, "timestamp": self._now_ms()}
        return await self.resolve(Operation.SEND_COMMAND, device_id, payload=payload)

    async def get_message_history(self, device_id: str, limit: int = 50) -> OperationResult:
        return await self.resolve(Operation.MESSAGE_HISTORY, device_id, params={"limit": limit})

    # --- Terminals & App Store ---

    async def get_terminal_list(self) -> OperationResult:
        return await self.resolve(Operation.TERMINAL_LIST)

    async def get_terminal_info(self, terminal_id: str) -> OperationResult:
        return await self.resolve(Operation.TERMINAL_INFO, terminal_id)

    async def get_terminal_status(self, terminal_id: str) -> OperationResult:
        return await self.resolve(Operation.TERMINAL_STATUS, terminal_id)

    async def get_app_list(self) -> OperationResult:
        return await self.resolve(Operation.APPSTORE_LIST)

    async def get_app_detail(self, app_id: str) -> OperationResult:
        return await self.resolve(Operation.APPSTORE_DETAIL, app_id)

    # --- Composite ---

    async def get_device_full_info(self, device_id: str) -> CompositeResult:
        """
        Fetches status, info, location, network and apps concurrently.

        A failed field becomes None, including a sub-call that raised; only a
        malformed identifier fails the whole result.
        """
        log = logger.bind(trace_id=trace_id_var.get(), service="SunmiClient", device_id=device_id)
        log.info("Fetching full device profile...")
        if not device_id or not str(device_id).strip():
            error = "A device identifier is required to build a device profile."
            log.warning(f"Device profile aggregation rejected: {error}")
            return CompositeResult(success=False, device_id=device_id, error=error)

        names = ("status", "info", "location", "network", "apps")
        results = await asyncio.gather(
            self.get_device_status(device_id),
            self.get_device_info(device_id),
            self.get_device_location(device_id),
            self.get_device_network(device_id),
            self.get_device_apps(device_id),
            return_exceptions=True,
        )

        fields: Dict[str, Any] = {}
        for name, result in zip(names, results):
            if isinstance(result, ValueError):
                log.warning(f"Device profile aggregation rejected: {result}")
                return CompositeResult(success=False, device_id=device_id, error=str(result))
            if isinstance(result, BaseException):
                log.opt(exception=result).error(f"Device {name} lookup raised: {result!r}")
                fields[name] = None
            else:
                fields[name] = result.data if result.success else None

        data = CompositeDeviceInfo(**fields)
        missing = [name for name, value in fields.items() if value is None]
        if missing:
            log.warning(f"Device profile incomplete, missing: {', '.join(missing)}")
        return CompositeResult(success=True, device_id=device_id, data=data)
