# posagent/models/api.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from posagent.models.sunmi import CompositeDeviceInfo, DeviceHealthReport


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorDetail(BaseModel):
    msg: str
    type: Optional[str] = None
    loc: Optional[List[str | int]] = None


# --- Status ---

class ComponentStatus(BaseModel):
    status: Literal["ok", "error", "unconfigured"] = "ok"
    message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    status: Literal["healthy", "degraded"] = "healthy"
    timestamp: datetime = Field(default_factory=_utcnow)
    uptime_seconds: float = Field(..., description="Process uptime in seconds")
    components: Dict[str, ComponentStatus]


class ServiceIndexResponse(BaseModel):
    message: str
    version: str
    status: str = "running"
    endpoints: Dict[str, str]


# --- Chat & AI ---

class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=10000)
    device_id: Optional[str] = Field(None, alias="deviceId")


class ChatContext(BaseModel):
    message: str
    device_id: Optional[str] = None
    intent: Optional[str] = None


class ChatResponse(BaseModel):
    response: str
    timestamp: datetime = Field(default_factory=_utcnow)
    context: ChatContext
    requires_setup: bool = False
    fallback: bool = False
    error: Optional[str] = None


class TroubleshootRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    issue: str = Field(..., min_length=1, max_length=10000)
    device_id: Optional[str] = Field(None, alias="deviceId")


class TroubleshootResponse(BaseModel):
    issue: str
    device_id: Optional[str] = None
    troubleshooting: str
    success: bool
    requires_setup: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)


class AnalysisResponse(BaseModel):
    device_id: str
    analysis: str
    success: bool
    requires_setup: bool = False
    device_data: Optional[CompositeDeviceInfo] = None
    timestamp: datetime = Field(default_factory=_utcnow)


# --- Device actions ---

class MessageRequest(BaseModel):
    message: str = Field(..., min_length=1)
    message_type: str = "text"


class NotificationRequest(BaseModel):
    title: str = Field(..., min_length=1)
    content: str
    priority: Literal["low", "normal", "high"] = "normal"


class CommandRequest(BaseModel):
    command: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class AppInstallRequest(BaseModel):
    app_url: str = Field(..., min_length=1)
    app_name: Optional[str] = None
    package_name: Optional[str] = None


class AppUninstallRequest(BaseModel):
    package_name: str = Field(..., min_length=1)


class AppUpdateRequest(BaseModel):
    package_name: str = Field(..., min_length=1)
    app_url: Optional[str] = None


# --- Device lookups ---

class DeviceLocationResponse(BaseModel):
    device_id: str
    location: Optional[Any] = None
    network: Optional[Any] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class DeviceStatusResponse(BaseModel):
    device_id: str
    healthy: bool
    report: DeviceHealthReport
    timestamp: datetime = Field(default_factory=_utcnow)
