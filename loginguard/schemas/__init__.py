from loginguard.schemas.lockout import LockStatus, LockResult, UnlockResult, LockCreate, AccountLockResponse
from loginguard.schemas.block import BlockStatus, BlockResult, BlockCreate, SecurityBlockResponse
from loginguard.schemas.alert import AlertReview, SecurityAlertResponse, SuspicionResult
from loginguard.schemas.captcha import ChallengeRequest, ChallengeIssued, ChallengeProof, ChallengeVerification
from loginguard.schemas.attempt import AttemptReport, AttemptSnapshot, AttemptStats
from loginguard.schemas.override import RateLimitOverrideCreate, RateLimitOverrideResponse
from loginguard.schemas.guard import LoginCheck, LoginDecision, LoginOutcome, ActiveThreat
from loginguard.schemas.maintenance import SweepReport

__all__ = [
    "LockStatus",
    "LockResult",
    "UnlockResult",
    "LockCreate",
    "AccountLockResponse",
    "BlockStatus",
    "BlockResult",
    "BlockCreate",
    "SecurityBlockResponse",
    "AlertReview",
    "SecurityAlertResponse",
    "SuspicionResult",
    "ChallengeRequest",
    "ChallengeIssued",
    "ChallengeProof",
    "ChallengeVerification",
    "AttemptReport",
    "AttemptSnapshot",
    "AttemptStats",
    "RateLimitOverrideCreate",
    "RateLimitOverrideResponse",
    "LoginCheck",
    "LoginDecision",
    "LoginOutcome",
    "ActiveThreat",
    "SweepReport",
]
