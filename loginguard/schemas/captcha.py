from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from loginguard.core.errors import ChallengeFailure
from loginguard.models.types import IdentifierType


class ChallengeRequest(BaseModel):
    identifier: str
    identifier_type: IdentifierType = IdentifierType.EMAIL
    challenge_type: Optional[str] = None


class ChallengeIssued(BaseModel):
    token: str
    expires_at: datetime
    challenge_type: str


class ChallengeProof(BaseModel):
    token: str
    proof: str
    remote_ip: Optional[str] = None


class ChallengeVerification(BaseModel):
    verified: bool
    reason: Optional[ChallengeFailure] = None
