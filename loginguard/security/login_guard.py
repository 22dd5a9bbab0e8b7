from typing import Any, Optional, Union
from fastapi import status
from sqlalchemy import or_
from loginguard.config import Settings, settings as default_settings
from loginguard.core.clock import as_naive_utc, expiry_rank, utcnow
from loginguard.core.errors import StoreUnavailable
from loginguard.core.logger import logger
from loginguard.core.store import Store
from loginguard.models.account_lock import AccountLock
from loginguard.models.security_block import SecurityBlock
from loginguard.models.types import (
    ATTEMPT_IDENTIFIER_TYPES,
    BLOCK_IDENTIFIER_TYPES,
    CHALLENGE_IDENTIFIER_TYPES,
    LOCK_IDENTIFIER_TYPES,
    IdentifierType,
    coerce_identifier_type,
)
from loginguard.schemas.guard import GENERIC_DENIAL_MESSAGE, ActiveThreat, LoginDecision, LoginOutcome
from loginguard.security.attempt_tracker import AttemptTracker
from loginguard.security.captcha_manager import CaptchaChallengeManager, ProofVerifier
from loginguard.security.ip_block_manager import IPBlockManager
from loginguard.security.lockout_manager import LockoutManager
from loginguard.security.progressive_delay import ProgressiveDelayCalculator
from loginguard.security.rate_limit_overrides import RateLimitOverrideManager
from loginguard.security.suspicious_activity import SuspiciousActivityDetector
from loginguard.services.alert_service import AlertService


class LoginGuard:
    """Gate consulted around every login request.

    ``check`` runs before credentials are verified (IP block, identifier
    block, account lock, progressive delay, pending CAPTCHA). ``report`` runs
    after, recording the outcome and reacting to failures. When several
    denials apply the one lasting longest is reported. Denials carry a generic
    message only.
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        settings: Optional[Settings] = None,
        verifier: Optional[ProofVerifier] = None,
        redis=None
    ):
        self.settings = settings or default_settings
        self.store = store or Store(settings=self.settings)
        self.tracker = AttemptTracker(self.store, self.settings, redis=redis)
        self.alerts = AlertService(self.store, self.settings)
        self.lockout = LockoutManager(self.store, self.tracker, self.settings)
        self.delay = ProgressiveDelayCalculator(self.tracker, self.settings)
        self.blocks = IPBlockManager(self.store, self.tracker, self.settings)
        self.detector = SuspiciousActivityDetector(self.tracker, self.alerts, self.settings)
        self.captcha = CaptchaChallengeManager(self.store, self.settings, verifier)
        self.overrides = RateLimitOverrideManager(self.store)

    def check(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.EMAIL,
        ip_address: Optional[str] = None
    ) -> LoginDecision:
        identifier_type = coerce_identifier_type(identifier_type, IdentifierType)
        denials = []

        if ip_address:
            ip_block = self.blocks.is_blocked(ip_address, IdentifierType.IP)
            if ip_block.blocked:
                denials.append((status.HTTP_403_FORBIDDEN, ip_block.expires_at, ip_block.remaining_seconds))

        if identifier_type in BLOCK_IDENTIFIER_TYPES and not (
            identifier_type == IdentifierType.IP and identifier == ip_address
        ):
            block = self.blocks.is_blocked(identifier, identifier_type)
            if block.blocked:
                denials.append((status.HTTP_403_FORBIDDEN, block.expires_at, block.remaining_seconds))

        if identifier_type in LOCK_IDENTIFIER_TYPES:
            lock = self.lockout.check_and_enforce_lock(identifier, identifier_type)
            if lock.locked:
                denials.append((status.HTTP_423_LOCKED, lock.expires_at, lock.remaining_seconds))

        if denials:
            status_code, expires_at, remaining = max(denials, key=lambda d: expiry_rank(d[1]))
            logger.warning(
                "login_denied",
                identifier=identifier,
                ip=ip_address,
                status_code=status_code,
                expires_at=expires_at.isoformat() if expires_at else None
            )
            return LoginDecision(
                allowed=False,
                status_code=status_code,
                message=GENERIC_DENIAL_MESSAGE,
                expires_at=expires_at,
                retry_after_seconds=remaining
            )

        delay_ms = 0
        if identifier_type in ATTEMPT_IDENTIFIER_TYPES:
            delay_ms = self.delay.calculate(identifier, identifier_type)
        requires_captcha = self.captcha.has_pending_challenge(identifier)

        return LoginDecision(
            allowed=True,
            delay_ms=delay_ms,
            requires_captcha=requires_captcha
        )

    def report(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.EMAIL,
        success: bool = False,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None
    ) -> LoginOutcome:
        metadata = dict(metadata or {})
        if ip_address:
            metadata["ip"] = ip_address
        if user_agent:
            metadata["user_agent"] = user_agent

        self.tracker.record_attempt(identifier, identifier_type, success, metadata)

        if success:
            return LoginOutcome()

        outcome = LoginOutcome()

        suspicion = self.detector.evaluate(identifier, {"ip": ip_address} if ip_address else None)
        outcome.suspicious = suspicion.suspicious
        outcome.requires_captcha = suspicion.requires_captcha or self.detector.should_require_captcha(
            identifier,
            identifier_type
        )

        if ip_address:
            outcome.ip_blocked = self.blocks.record_ip_failure(ip_address)

        if outcome.requires_captcha:
            challenge_target, challenge_type = self._challenge_target(identifier, identifier_type, ip_address)
            if challenge_target is not None:
                outcome.challenge = self.captcha.issue_challenge(challenge_target, challenge_type)

        return outcome

    def _challenge_target(self, identifier, identifier_type, ip_address):
        identifier_type = coerce_identifier_type(identifier_type, IdentifierType)
        if identifier_type in CHALLENGE_IDENTIFIER_TYPES:
            return identifier, identifier_type
        if ip_address:
            return ip_address, IdentifierType.IP
        return None, None

    def active_threats(self, limit: int = 100) -> list[ActiveThreat]:
        now = utcnow()
        try:
            with self.store.read() as db:
                blocks = db.query(SecurityBlock).filter(
                    SecurityBlock.is_active.is_(True),
                    or_(SecurityBlock.expires_at.is_(None), SecurityBlock.expires_at > now)
                ).limit(limit).all()
                locks = db.query(AccountLock).filter(
                    AccountLock.is_active.is_(True),
                    AccountLock.expires_at > now
                ).limit(limit).all()

                threats = [
                    ActiveThreat(
                        threat_type="block",
                        identifier=b.identifier,
                        identifier_type=b.identifier_type,
                        reason=b.reason,
                        severity=b.severity.value,
                        occurred_at=as_naive_utc(b.blocked_at),
                        expires_at=as_naive_utc(b.expires_at)
                    )
                    for b in blocks
                ] + [
                    ActiveThreat(
                        threat_type="lock",
                        identifier=lock.identifier,
                        identifier_type=lock.identifier_type,
                        reason=lock.reason,
                        severity="high",
                        occurred_at=as_naive_utc(lock.locked_at),
                        expires_at=as_naive_utc(lock.expires_at)
                    )
                    for lock in locks
                ]
        except StoreUnavailable as e:
            logger.error("active_threats_error", error=str(e))
            return []

        threats.sort(key=lambda t: t.occurred_at, reverse=True)
        return threats[:limit]
