"""Retention and expiry sweeps over the security tables.

Every operation is idempotent and independent of the others, so the external
scheduler may run them repeatedly and in any order.
"""
from typing import Optional
from datetime import timedelta
from sqlalchemy import and_, func
from sqlalchemy.orm import Session
from loginguard.config import Settings, settings as default_settings
from loginguard.core.clock import utcnow
from loginguard.core.logger import logger
from loginguard.core.store import Store
from loginguard.models.account_lock import AccountLock
from loginguard.models.login_attempt import LoginAttempt
from loginguard.models.rate_limit_override import RateLimitOverride
from loginguard.models.security_alert import AlertType, SecurityAlert
from loginguard.models.security_block import SecurityBlock
from loginguard.models.types import Severity
from loginguard.schemas.maintenance import SweepReport

ARCHIVED_PATTERN_REASON = "Archived suspicious login pattern"


class RetentionSweeper:
    def __init__(self, store: Store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or default_settings

    def delete_cleared_attempts(self) -> int:
        cutoff = utcnow() - timedelta(days=self.settings.retention_cleared_days)

        def _delete(db: Session) -> int:
            return db.query(LoginAttempt).filter(
                LoginAttempt.attempted_at < cutoff,
                LoginAttempt.cleared.is_(True)
            ).delete(synchronize_session=False)

        deleted = self.store.write(_delete)
        logger.info("cleared_attempts_deleted", count=deleted, cutoff=cutoff.isoformat())
        return deleted

    def archive_and_purge_attempts(self) -> tuple[int, int]:
        """Summarise heavy failure clusters past the purge horizon, then delete them.

        The alerts and the deletion share one transaction, so a rerun never
        archives the same rows twice. Returns (patterns_archived, rows_deleted).
        """
        cutoff = utcnow() - timedelta(days=self.settings.retention_purge_days)
        min_attempts = self.settings.archive_min_attempts

        def _archive(db: Session) -> tuple[int, int]:
            clusters = db.query(
                LoginAttempt.identifier,
                func.count(LoginAttempt.id),
                func.min(LoginAttempt.attempted_at),
                func.max(LoginAttempt.attempted_at)
            ).filter(
                LoginAttempt.attempted_at < cutoff,
                LoginAttempt.success.is_(False)
            ).group_by(
                LoginAttempt.identifier
            ).having(func.count(LoginAttempt.id) > min_attempts).all()

            for identifier, count, first_attempt, last_attempt in clusters:
                db.add(SecurityAlert(
                    identifier=identifier,
                    alert_type=AlertType.ARCHIVED_PATTERN,
                    reason=ARCHIVED_PATTERN_REASON,
                    severity=Severity.MEDIUM,
                    metadata_={
                        "attempt_count": count,
                        "date_range": {
                            "start": first_attempt.isoformat(),
                            "end": last_attempt.isoformat(),
                        },
                    },
                    created_at=utcnow(),
                    reviewed=False
                ))

            deleted = db.query(LoginAttempt).filter(
                LoginAttempt.attempted_at < cutoff
            ).delete(synchronize_session=False)
            return len(clusters), deleted

        archived, deleted = self.store.write(_archive)
        logger.info("old_attempts_purged", patterns_archived=archived, deleted=deleted, cutoff=cutoff.isoformat())
        return archived, deleted

    def expire_locks_and_blocks(self) -> tuple[int, int]:
        now = utcnow()

        def _expire(db: Session) -> tuple[int, int]:
            locks = db.query(AccountLock).filter(
                AccountLock.is_active.is_(True),
                AccountLock.expires_at <= now
            ).update(
                {AccountLock.is_active: False, AccountLock.active_key: None},
                synchronize_session=False
            )
            blocks = db.query(SecurityBlock).filter(
                and_(
                    SecurityBlock.is_active.is_(True),
                    SecurityBlock.expires_at.isnot(None),
                    SecurityBlock.expires_at <= now
                )
            ).update({SecurityBlock.is_active: False}, synchronize_session=False)
            return locks, blocks

        locks, blocks = self.store.write(_expire)
        logger.info("locks_and_blocks_expired", locks=locks, blocks=blocks)
        return locks, blocks

    def expire_overrides(self) -> int:
        now = utcnow()

        def _expire(db: Session) -> int:
            return db.query(RateLimitOverride).filter(
                RateLimitOverride.is_active.is_(True),
                RateLimitOverride.expires_at.isnot(None),
                RateLimitOverride.expires_at <= now
            ).update({RateLimitOverride.is_active: False}, synchronize_session=False)

        expired = self.store.write(_expire)
        logger.info("rate_limit_overrides_expired", count=expired)
        return expired

    def run(self) -> SweepReport:
        cleared = self.delete_cleared_attempts()
        archived, purged = self.archive_and_purge_attempts()
        locks, blocks = self.expire_locks_and_blocks()
        overrides = self.expire_overrides()
        return SweepReport(
            cleared_attempts_deleted=cleared,
            patterns_archived=archived,
            old_attempts_deleted=purged,
            locks_expired=locks,
            blocks_expired=blocks,
            overrides_expired=overrides
        )
