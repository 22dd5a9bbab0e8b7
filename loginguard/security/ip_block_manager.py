from typing import Any, Optional, Union
from datetime import timedelta
from sqlalchemy import or_
from sqlalchemy.orm import Session
from loginguard.config import Settings, settings as default_settings
from loginguard.core.clock import as_naive_utc, expiry_rank, seconds_until, utcnow
from loginguard.core.errors import StoreUnavailable
from loginguard.core.logger import logger
from loginguard.core.store import Store
from loginguard.models.security_block import SecurityBlock
from loginguard.models.types import (
    BLOCK_IDENTIFIER_TYPES,
    IdentifierType,
    Severity,
    coerce_identifier_type,
    coerce_severity,
)
from loginguard.schemas.block import BlockResult, BlockStatus, SecurityBlockResponse
from loginguard.security.attempt_tracker import AttemptTracker

BRUTE_FORCE_BLOCK_REASON = "Excessive failed login attempts"


class IPBlockManager:
    def __init__(self, store: Store, tracker: AttemptTracker, settings: Optional[Settings] = None):
        self.store = store
        self.tracker = tracker
        self.settings = settings or default_settings
        self.default_durations = {
            Severity.LOW: timedelta(hours=self.settings.block_duration_low_hours),
            Severity.MEDIUM: timedelta(hours=self.settings.block_duration_medium_hours),
            Severity.HIGH: timedelta(hours=self.settings.block_duration_high_hours),
            Severity.CRITICAL: None,
        }

    def default_duration(self, severity: Union[str, Severity]) -> Optional[timedelta]:
        return self.default_durations[coerce_severity(severity)]

    def block_identifier(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.IP,
        reason: str = "Suspicious activity",
        duration: Optional[timedelta] = None,
        severity: Union[str, Severity] = Severity.MEDIUM,
        blocked_by: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None
    ) -> BlockResult:
        identifier_type = coerce_identifier_type(identifier_type, BLOCK_IDENTIFIER_TYPES)
        severity = coerce_severity(severity)
        if duration is None:
            duration = self.default_duration(severity)

        now = utcnow()
        expires_at = now + duration if duration is not None else None

        def _insert(db: Session) -> None:
            db.add(SecurityBlock(
                identifier=identifier,
                identifier_type=identifier_type.value,
                reason=reason,
                severity=severity,
                blocked_at=now,
                expires_at=expires_at,
                is_active=True,
                blocked_by=blocked_by,
                metadata_=dict(metadata or {})
            ))

        try:
            self.store.write(_insert)
        except StoreUnavailable as e:
            logger.error("security_block_error", identifier=identifier, error=str(e))
            return BlockResult(success=False)

        logger.warning(
            "identifier_blocked",
            identifier=identifier,
            identifier_type=identifier_type.value,
            severity=severity.value,
            reason=reason,
            expires_at=expires_at.isoformat() if expires_at else None,
            blocked_by=blocked_by
        )
        return BlockResult(success=True, expires_at=expires_at)

    def is_blocked(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.IP
    ) -> BlockStatus:
        """Most durable active block on the identifier; fails open."""
        identifier_type = coerce_identifier_type(identifier_type, BLOCK_IDENTIFIER_TYPES)
        now = utcnow()

        try:
            with self.store.read() as db:
                blocks = db.query(SecurityBlock).filter(
                    SecurityBlock.identifier == identifier,
                    SecurityBlock.identifier_type == identifier_type.value,
                    SecurityBlock.is_active.is_(True),
                    or_(SecurityBlock.expires_at.is_(None), SecurityBlock.expires_at > now)
                ).all()

                if not blocks:
                    return BlockStatus(blocked=False)

                block = max(blocks, key=lambda b: expiry_rank(b.expires_at))
                expires_at = as_naive_utc(block.expires_at)
                return BlockStatus(
                    blocked=True,
                    reason=block.reason,
                    severity=block.severity,
                    expires_at=expires_at,
                    remaining_seconds=seconds_until(expires_at, now)
                )
        except StoreUnavailable as e:
            logger.error("security_block_check_error", identifier=identifier, error=str(e))
            return BlockStatus(blocked=False)

    def unblock(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.IP
    ) -> bool:
        identifier_type = coerce_identifier_type(identifier_type, BLOCK_IDENTIFIER_TYPES)

        def _deactivate(db: Session) -> int:
            return db.query(SecurityBlock).filter(
                SecurityBlock.identifier == identifier,
                SecurityBlock.identifier_type == identifier_type.value,
                SecurityBlock.is_active.is_(True)
            ).update({SecurityBlock.is_active: False}, synchronize_session=False)

        try:
            released = self.store.write(_deactivate)
        except StoreUnavailable as e:
            logger.error("security_unblock_error", identifier=identifier, error=str(e))
            return False

        logger.info("identifier_unblocked", identifier=identifier, identifier_type=identifier_type.value, released=released)
        return released > 0

    def active_blocks(
        self,
        identifier_type: Optional[Union[str, IdentifierType]] = None,
        skip: int = 0,
        limit: int = 100
    ) -> list[SecurityBlockResponse]:
        now = utcnow()
        with self.store.read() as db:
            query = db.query(SecurityBlock).filter(
                SecurityBlock.is_active.is_(True),
                or_(SecurityBlock.expires_at.is_(None), SecurityBlock.expires_at > now)
            )
            if identifier_type is not None:
                identifier_type = coerce_identifier_type(identifier_type, BLOCK_IDENTIFIER_TYPES)
                query = query.filter(SecurityBlock.identifier_type == identifier_type.value)

            blocks = query.order_by(SecurityBlock.blocked_at.desc()).offset(skip).limit(limit).all()
            return [SecurityBlockResponse.model_validate(block) for block in blocks]

    def record_ip_failure(self, ip_address: str) -> bool:
        """Block an origin that keeps failing across many accounts.

        Returns True when this call opened a block.
        """
        threshold = self.settings.ip_block_failure_threshold
        try:
            failures = self.tracker.count_recent_failures_from_ip(
                ip_address,
                self.settings.ip_block_window_minutes
            )
        except StoreUnavailable as e:
            logger.error("ip_failure_count_error", ip=ip_address, error=str(e))
            return False

        if failures <= threshold:
            return False

        if self.is_blocked(ip_address, IdentifierType.IP).blocked:
            return False

        result = self.block_identifier(
            ip_address,
            IdentifierType.IP,
            reason=BRUTE_FORCE_BLOCK_REASON,
            severity=self.settings.ip_block_severity,
            metadata={"failed_attempts": failures, "window_minutes": self.settings.ip_block_window_minutes}
        )
        return result.success
