# posagent/models/llm.py

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class LLMError(BaseModel):
    message: str
    type: Optional[str] = None
    code: Optional[int | str] = None


class LLMCompletion(BaseModel):
    """Normalized completion: text on success, error otherwise."""
    success: bool
    text: Optional[str] = None
    error: Optional[LLMError] = None
    provider: str
    model: str
    finish_reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
