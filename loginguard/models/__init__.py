from loginguard.models.types import IdentifierType, Severity
from loginguard.models.login_attempt import LoginAttempt
from loginguard.models.account_lock import AccountLock
from loginguard.models.security_block import SecurityBlock
from loginguard.models.security_alert import SecurityAlert, AlertType
from loginguard.models.rate_limit_override import RateLimitOverride
from loginguard.models.captcha_challenge import CaptchaChallenge

__all__ = [
    "IdentifierType",
    "Severity",
    "LoginAttempt",
    "AccountLock",
    "SecurityBlock",
    "SecurityAlert",
    "AlertType",
    "RateLimitOverride",
    "CaptchaChallenge",
]
