from typing import Optional, Union
from datetime import timedelta
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from loginguard.config import Settings, settings as default_settings
from loginguard.core.clock import as_naive_utc, seconds_until, utcnow
from loginguard.core.errors import ConcurrentLockConflict, StoreUnavailable
from loginguard.core.logger import logger
from loginguard.core.store import Store
from loginguard.models.account_lock import AccountLock, lock_key
from loginguard.models.types import (
    ATTEMPT_IDENTIFIER_TYPES,
    LOCK_IDENTIFIER_TYPES,
    IdentifierType,
    coerce_identifier_type,
)
from loginguard.schemas.lockout import AccountLockResponse, LockResult, LockStatus, UnlockResult
from loginguard.security.attempt_tracker import AttemptTracker

THRESHOLD_LOCK_REASON = "Exceeded maximum login attempts"


class LockoutManager:
    """Timed account locks driven by windowed failure counts.

    Availability wins over lockout precision: when the store cannot be read
    the identifier is reported as unlocked rather than denying a legitimate
    user because of an infrastructure fault.
    """

    def __init__(self, store: Store, tracker: AttemptTracker, settings: Optional[Settings] = None):
        self.store = store
        self.tracker = tracker
        self.settings = settings or default_settings
        self.max_attempts = self.settings.lockout_max_attempts
        self.window_minutes = self.settings.lockout_window_minutes
        self.lockout_duration = timedelta(minutes=self.settings.lockout_duration_minutes)

    def check_and_enforce_lock(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.EMAIL
    ) -> LockStatus:
        """Report the lock state, creating the lock if the threshold is crossed.

        This read has a write side effect: with no active lock but at least
        ``lockout_max_attempts`` failures in the window, an AccountLock is
        opened before returning. Concurrent callers converge on a single
        active lock through the ``active_key`` unique constraint.
        """
        identifier_type = coerce_identifier_type(identifier_type, LOCK_IDENTIFIER_TYPES)

        try:
            status = self._active_lock_status(identifier, identifier_type)
            if status is not None:
                return status

            if identifier_type not in ATTEMPT_IDENTIFIER_TYPES:
                return LockStatus(locked=False)

            failures = self.tracker.count_recent_failures(identifier, identifier_type, self.window_minutes)
            if failures < self.max_attempts:
                return LockStatus(locked=False)

            return self._open_lock(identifier, identifier_type, THRESHOLD_LOCK_REASON)
        except StoreUnavailable as e:
            logger.error("account_lock_check_error", identifier=identifier, error=str(e))
            return LockStatus(locked=False)

    is_account_locked = check_and_enforce_lock

    def lock_account(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.EMAIL,
        reason: str = "Security violation",
        duration: Optional[timedelta] = None,
        locked_by: Optional[str] = None
    ) -> LockResult:
        identifier_type = coerce_identifier_type(identifier_type, LOCK_IDENTIFIER_TYPES)
        try:
            status = self._open_lock(identifier, identifier_type, reason, duration, locked_by)
        except StoreUnavailable as e:
            logger.error("account_lock_error", identifier=identifier, error=str(e))
            return LockResult(success=False)
        return LockResult(success=True, expires_at=status.expires_at)

    def unlock_account(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.EMAIL
    ) -> UnlockResult:
        identifier_type = coerce_identifier_type(identifier_type, LOCK_IDENTIFIER_TYPES)
        now = utcnow()

        def _deactivate(db: Session) -> int:
            locks = db.query(AccountLock).filter(
                AccountLock.identifier == identifier,
                AccountLock.identifier_type == identifier_type.value,
                AccountLock.is_active.is_(True)
            ).all()
            for lock in locks:
                lock.deactivate(now)
            if identifier_type in ATTEMPT_IDENTIFIER_TYPES:
                # same transaction, so a released lock never keeps its failures
                self.tracker._clear_failed(db, identifier, identifier_type)
            return len(locks)

        try:
            released = self.store.write(_deactivate)
        except StoreUnavailable as e:
            logger.error("account_unlock_error", identifier=identifier, error=str(e))
            return UnlockResult(success=False)
        finally:
            if identifier_type in ATTEMPT_IDENTIFIER_TYPES:
                self.tracker._invalidate_cache(identifier, identifier_type)

        logger.info("account_unlocked", identifier=identifier, identifier_type=identifier_type.value, released=released)
        return UnlockResult(success=True)

    def active_locks(self, skip: int = 0, limit: int = 100) -> list[AccountLockResponse]:
        with self.store.read() as db:
            locks = db.query(AccountLock).filter(
                AccountLock.is_active.is_(True),
                AccountLock.expires_at > utcnow()
            ).order_by(AccountLock.expires_at.desc()).offset(skip).limit(limit).all()
            return [AccountLockResponse.model_validate(lock) for lock in locks]

    def _active_lock_status(self, identifier: str, identifier_type: IdentifierType) -> Optional[LockStatus]:
        now = utcnow()
        with self.store.read() as db:
            lock = db.query(AccountLock).filter(
                AccountLock.identifier == identifier,
                AccountLock.identifier_type == identifier_type.value,
                AccountLock.is_active.is_(True),
                AccountLock.expires_at > now
            ).order_by(AccountLock.expires_at.desc()).first()

            if lock is None:
                return None
            return self._status_for(lock, now)

    def _status_for(self, lock: AccountLock, now) -> LockStatus:
        expires_at = as_naive_utc(lock.expires_at)
        return LockStatus(
            locked=True,
            reason=lock.reason,
            expires_at=expires_at,
            remaining_seconds=seconds_until(expires_at, now)
        )

    def _open_lock(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        reason: str,
        duration: Optional[timedelta] = None,
        locked_by: Optional[str] = None
    ) -> LockStatus:
        key = lock_key(identifier, identifier_type.value)

        def _insert(db: Session) -> LockStatus:
            now = utcnow()
            # a lock past its expiry but not yet swept still holds the key
            stale = db.query(AccountLock).filter(
                AccountLock.active_key == key,
                AccountLock.expires_at <= now
            ).all()
            for lock in stale:
                lock.deactivate()
            db.flush()

            lock = AccountLock(
                identifier=identifier,
                identifier_type=identifier_type.value,
                reason=reason,
                locked_at=now,
                expires_at=now + (duration or self.lockout_duration),
                is_active=True,
                locked_by=locked_by,
                active_key=key
            )
            db.add(lock)
            try:
                db.flush()
            except IntegrityError as e:
                raise ConcurrentLockConflict(key) from e
            return self._status_for(lock, now)

        try:
            status = self.store.write(_insert)
        except (ConcurrentLockConflict, IntegrityError):
            logger.info("account_lock_already_active", identifier=identifier, identifier_type=identifier_type.value)
            existing = self._active_lock_status(identifier, identifier_type)
            if existing is None:
                raise StoreUnavailable(f"active lock for {key} vanished after conflict")
            return existing

        logger.warning(
            "account_locked",
            identifier=identifier,
            identifier_type=identifier_type.value,
            reason=reason,
            expires_at=status.expires_at.isoformat(),
            locked_by=locked_by
        )
        return status
