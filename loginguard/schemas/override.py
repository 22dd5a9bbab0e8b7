from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from loginguard.models.types import IdentifierType


class RateLimitOverrideCreate(BaseModel):
    identifier: str
    identifier_type: IdentifierType = IdentifierType.IP
    endpoint_pattern: Optional[str] = None
    max_requests: int = Field(gt=0)
    window_minutes: int = Field(gt=0)
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_by: Optional[str] = None


class RateLimitOverrideResponse(BaseModel):
    id: int
    identifier: str
    identifier_type: str
    endpoint_pattern: str
    max_requests: int
    window_minutes: int
    is_active: bool
    reason: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]
    created_by: Optional[str]

    class Config:
        from_attributes = True
