from pydantic import BaseModel, Field
from datetime import datetime, timedelta
from typing import Optional, Any
from loginguard.models.types import IdentifierType, Severity


class BlockStatus(BaseModel):
    blocked: bool
    reason: Optional[str] = None
    severity: Optional[Severity] = None
    expires_at: Optional[datetime] = None
    remaining_seconds: Optional[int] = None


class BlockResult(BaseModel):
    success: bool
    expires_at: Optional[datetime] = None


class BlockCreate(BaseModel):
    identifier: str
    identifier_type: IdentifierType = IdentifierType.IP
    reason: str = "Suspicious activity"
    severity: Severity = Severity.MEDIUM
    duration_minutes: Optional[int] = None
    blocked_by: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def duration(self) -> Optional[timedelta]:
        if self.duration_minutes is None:
            return None
        return timedelta(minutes=self.duration_minutes)


class SecurityBlockResponse(BaseModel):
    id: int
    identifier: str
    identifier_type: str
    reason: str
    severity: Severity
    blocked_at: datetime
    expires_at: Optional[datetime]
    is_active: bool
    blocked_by: Optional[str]
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias="metadata_")

    class Config:
        from_attributes = True
