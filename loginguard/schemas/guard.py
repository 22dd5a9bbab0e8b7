from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from loginguard.models.types import IdentifierType
from loginguard.schemas.captcha import ChallengeIssued

GENERIC_DENIAL_MESSAGE = "Too many attempts, please try again later"


class LoginCheck(BaseModel):
    identifier: str
    identifier_type: IdentifierType = IdentifierType.EMAIL
    ip_address: Optional[str] = None


class LoginDecision(BaseModel):
    allowed: bool
    status_code: int = 200
    message: Optional[str] = None
    expires_at: Optional[datetime] = None
    retry_after_seconds: Optional[int] = None
    delay_ms: int = 0
    requires_captcha: bool = False


class LoginOutcome(BaseModel):
    recorded: bool = True
    suspicious: bool = False
    requires_captcha: bool = False
    challenge: Optional[ChallengeIssued] = None
    ip_blocked: bool = False


class ActiveThreat(BaseModel):
    threat_type: str
    identifier: str
    identifier_type: str
    reason: str
    severity: str
    occurred_at: datetime
    expires_at: Optional[datetime]
