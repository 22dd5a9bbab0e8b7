from loginguard.security.attempt_tracker import AttemptTracker
from loginguard.security.progressive_delay import ProgressiveDelayCalculator
from loginguard.security.lockout_manager import LockoutManager
from loginguard.security.ip_block_manager import IPBlockManager
from loginguard.security.suspicious_activity import SuspiciousActivityDetector
from loginguard.security.captcha_manager import CaptchaChallengeManager, ProviderVerifier
from loginguard.security.rate_limit_overrides import RateLimitOverrideManager
from loginguard.security.login_guard import LoginGuard

__all__ = [
    "AttemptTracker",
    "ProgressiveDelayCalculator",
    "LockoutManager",
    "IPBlockManager",
    "SuspiciousActivityDetector",
    "CaptchaChallengeManager",
    "ProviderVerifier",
    "RateLimitOverrideManager",
    "LoginGuard",
]
