from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Any
from loginguard.models.types import Severity


class AlertReview(BaseModel):
    reviewed_by: str
    action_taken: Optional[str] = None


class SecurityAlertResponse(BaseModel):
    id: int
    identifier: str
    alert_type: str
    reason: str
    severity: Severity
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias="metadata_")
    created_at: datetime
    reviewed: bool
    reviewed_at: Optional[datetime]
    reviewed_by: Optional[str]
    action_taken: Optional[str]

    class Config:
        from_attributes = True


class SuspicionResult(BaseModel):
    suspicious: bool
    reason: Optional[str] = None
    requires_captcha: bool = False
    alert_created: bool = False
