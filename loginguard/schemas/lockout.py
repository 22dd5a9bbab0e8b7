from pydantic import BaseModel
from datetime import datetime, timedelta
from typing import Optional
from loginguard.models.types import IdentifierType


class LockStatus(BaseModel):
    locked: bool
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    remaining_seconds: Optional[int] = None


class LockResult(BaseModel):
    success: bool
    expires_at: Optional[datetime] = None


class UnlockResult(BaseModel):
    success: bool


class LockCreate(BaseModel):
    identifier: str
    identifier_type: IdentifierType = IdentifierType.EMAIL
    reason: str = "Security violation"
    duration_minutes: Optional[int] = None
    locked_by: Optional[str] = None

    @property
    def duration(self) -> Optional[timedelta]:
        if self.duration_minutes is None:
            return None
        return timedelta(minutes=self.duration_minutes)


class AccountLockResponse(BaseModel):
    id: int
    identifier: str
    identifier_type: str
    reason: str
    locked_at: datetime
    expires_at: datetime
    unlocked_at: Optional[datetime]
    is_active: bool
    locked_by: Optional[str]

    class Config:
        from_attributes = True
