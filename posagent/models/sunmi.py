# posagent/models/sunmi.py

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SUNMI_BASE_URL = "https://openapi.sunmi.com"


class VendorErrorCode(int, Enum):
    """`code` values the vendor returns inside HTTP 200 bodies to signal a logical failure."""
    ACCESS_FORBIDDEN = 30000 # VAS / premium tier not entitled
    NOT_FOUND = 30001 # Route unsupported or not found


DISQUALIFYING_CODES: frozenset = frozenset(c.value for c in VendorErrorCode)


def extract_vendor_code(body: Any) -> Optional[int]:
    """The integer `code` of a vendor body; numeric strings count, booleans do not."""
    if not isinstance(body, dict):
        return None
    code = body.get("code")
    if isinstance(code, bool):
        return None
    if isinstance(code, int):
        return code
    if isinstance(code, str) and code.strip().lstrip("-").isdigit():
        return int(code)
    return None


class Operation(str, Enum):
    DEVICE_LIST = "device_list"
    DEVICE_DETAIL = "device_detail"
    DEVICE_STATUS = "device_status"
    DEVICE_INFO = "device_info"
    DEVICE_LOCATION = "device_location"
    DEVICE_NETWORK = "device_network"
    DEVICE_APPS = "device_apps"
    APP_INSTALL = "app_install"
    APP_UPLOAD = "app_upload"
    APP_UNINSTALL = "app_uninstall"
    APP_UPDATE = "app_update"
    SEND_MESSAGE = "send_message"
    SEND_NOTIFICATION = "send_notification"
    SEND_COMMAND = "send_command"
    MESSAGE_HISTORY = "message_history"
    TERMINAL_LIST = "terminal_list"
    TERMINAL_INFO = "terminal_info"
    TERMINAL_STATUS = "terminal_status"
    APPSTORE_LIST = "appstore_list"
    APPSTORE_DETAIL = "appstore_detail"


class IdInjection(str, Enum):
    NONE = "none" # No identifier
    QUERY = "query" # ?<id_key>=<identifier>
    PATH = "path" # "{id}" placeholder in the path
    BODY = "body" # <id_key> field of the JSON/multipart body


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    TRANSPORT_ERROR = "transport_error"
    VENDOR_ERROR = "vendor_error"


class Credentials(BaseModel):
    """Sunmi Open API credentials, immutable for the lifetime of a client."""
    model_config = ConfigDict(frozen=True)

    app_id: str
    app_secret: str = Field(..., repr=False)
    base_url: str = DEFAULT_SUNMI_BASE_URL


class RouteCandidate(BaseModel):
    """One concrete wire route that may realise an Operation."""
    model_config = ConfigDict(frozen=True)

    method: Literal["GET", "POST"] = "GET"
    path: str
    injection: IdInjection = IdInjection.NONE
    id_key: Optional[str] = None

    @property
    def needs_identifier(self) -> bool:
        return self.injection != IdInjection.NONE

    def render(self, identifier: Optional[str] = None, params: Optional[Dict[str, Any]] = None) -> Tuple[str, Dict[str, Any]]:
        """Returns (path, query params) for this candidate and identifier."""
        if self.needs_identifier:
            if identifier is None or not str(identifier).strip():
                raise ValueError(f"Route {self.path} requires a non-empty identifier.")
            identifier = str(identifier).strip()

        path = self.path
        query: Dict[str, Any] = {}
        if self.injection == IdInjection.PATH:
            if "/" in identifier:
                raise ValueError(f"Identifier '{identifier}' cannot be used as a path segment.")
            path = path.format(id=identifier)
        elif self.injection == IdInjection.QUERY:
            query[self.id_key] = identifier
        if params:
            query.update({k: v for k, v in params.items() if v is not None})
        return path, query


class SignedRequest(BaseModel):
    """A signed call, created per attempt and never reused."""
    method: str
    url: str
    timestamp: str
    nonce: str
    signature: str


class AttemptRecord(BaseModel):
    endpoint: str
    method: str
    outcome: AttemptOutcome
    status_code: Optional[int] = None
    vendor_code: Optional[int] = None
    error: Optional[str] = None


class OperationResult(BaseModel):
    """Uniform return shape of every client operation."""
    success: bool
    data: Optional[Any] = None
    error: Optional[Any] = None
    status_code: Optional[int] = None
    endpoint: Optional[str] = None
    # Only populated when every candidate failed
    endpoints_tried: Optional[List[str]] = None
    attempts: Optional[List[AttemptRecord]] = None

    @property
    def vendor_code(self) -> Optional[int]:
        code = extract_vendor_code(self.data)
        if code is not None:
            return code
        for attempt in self.attempts or []:
            if attempt.vendor_code is not None:
                return attempt.vendor_code
        return None


class CompositeDeviceInfo(BaseModel):
    status: Optional[Any] = None
    info: Optional[Any] = None
    location: Optional[Any] = None
    network: Optional[Any] = None
    apps: Optional[Any] = None


class CompositeResult(BaseModel):
    success: bool
    device_id: Optional[str] = None
    data: Optional[CompositeDeviceInfo] = None
    error: Optional[str] = None


# --- Diagnostics ---

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CapabilityCheck(BaseModel):
    success: bool
    has_data: bool
    error: Optional[Any] = None
    vendor_code: Optional[int] = None
    data: Optional[Any] = None


class CapabilityReport(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    capabilities: Dict[str, CapabilityCheck]
    recommendation: str


class HealthTest(BaseModel):
    test: str
    success: bool
    endpoints_tried: Optional[List[str]] = None
    response: Optional[Any] = None


class DeviceHealthReport(BaseModel):
    device_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    tests: List[HealthTest] = Field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return bool(self.tests) and all(t.success for t in self.tests)


class ReportTestResult(BaseModel):
    test: str
    device_id: Optional[str] = None
    success: bool
    endpoints_tried: Optional[List[str]] = None
    response: Optional[Any] = None
    error_code: Optional[int] = None
    error: Optional[str] = None


class Recommendation(BaseModel):
    issue: str
    description: str
    solution: str
    priority: Literal["HIGH", "MEDIUM", "LOW"]


class DeveloperReport(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    app_id: str
    base_url: str
    test_results: List[ReportTestResult] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
