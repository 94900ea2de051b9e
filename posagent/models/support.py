# posagent/models/support.py

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SupportReply(BaseModel):
    """Result of a support-agent call (chat, analysis or troubleshooting)."""
    success: bool
    text: str
    intent: Optional[str] = None
    device_id: Optional[str] = None
    device_context: Optional[Dict[str, Any]] = None
    requires_setup: bool = False
    fallback: bool = False
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
