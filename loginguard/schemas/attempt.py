from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Any
from loginguard.models.types import IdentifierType


class AttemptReport(BaseModel):
    identifier: str
    identifier_type: IdentifierType = IdentifierType.EMAIL
    success: bool
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AttemptSnapshot(BaseModel):
    ip_address: Optional[str]
    attempted_at: datetime
    success: bool


class AttemptStats(BaseModel):
    identifier: str
    identifier_type: str
    successful_attempts: int
    failed_attempts: int
    total_attempts: int
    last_attempt: Optional[datetime]
    unique_ips: int
