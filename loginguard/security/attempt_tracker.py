from typing import Any, Optional, Union
from datetime import timedelta
from sqlalchemy import case, func
from sqlalchemy.orm import Session
from loginguard.config import Settings, settings as default_settings
from loginguard.core.clock import utcnow
from loginguard.core.errors import StoreUnavailable
from loginguard.core.logger import logger
from loginguard.core.store import Store
from loginguard.models.login_attempt import LoginAttempt
from loginguard.models.types import ATTEMPT_IDENTIFIER_TYPES, IdentifierType, coerce_identifier_type
from loginguard.schemas.attempt import AttemptSnapshot, AttemptStats


class AttemptTracker:
    def __init__(self, store: Store, settings: Optional[Settings] = None, redis=None):
        self.store = store
        self.settings = settings or default_settings
        self.cache_ttl = self.settings.count_cache_ttl_seconds
        self.redis = redis
        if self.redis is None and self.cache_ttl > 0:
            from loginguard.core.redis_client import get_redis
            self.redis = get_redis(self.settings.redis_url)

    def record_attempt(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType],
        success: bool,
        metadata: Optional[dict[str, Any]] = None
    ) -> None:
        """Persist one login attempt.

        Never raises on store failure: the attempt is logged and dropped, so
        authentication proceeds with degraded tracking precision.
        """
        identifier_type = coerce_identifier_type(identifier_type, ATTEMPT_IDENTIFIER_TYPES)
        metadata = dict(metadata or {})

        def _insert(db: Session) -> None:
            db.add(LoginAttempt(
                identifier=identifier,
                identifier_type=identifier_type.value,
                success=success,
                ip_address=metadata.get("ip"),
                user_agent=metadata.get("user_agent"),
                attempted_at=utcnow(),
                metadata_=metadata
            ))
            if success:
                self._clear_failed(db, identifier, identifier_type)

        try:
            self.store.write(_insert)
        except StoreUnavailable as e:
            logger.error(
                "login_attempt_tracking_failed",
                identifier=identifier,
                identifier_type=identifier_type.value,
                success=success,
                error=str(e)
            )
        finally:
            self._invalidate_cache(identifier, identifier_type)

    def clear_failed_attempts(self, identifier: str, identifier_type: Union[str, IdentifierType]) -> bool:
        identifier_type = coerce_identifier_type(identifier_type, ATTEMPT_IDENTIFIER_TYPES)
        try:
            cleared = self.store.write(lambda db: self._clear_failed(db, identifier, identifier_type))
        except StoreUnavailable as e:
            logger.error("clear_failed_attempts_error", identifier=identifier, error=str(e))
            return False
        finally:
            self._invalidate_cache(identifier, identifier_type)

        if cleared:
            logger.info("failed_attempts_cleared", identifier=identifier, count=cleared)
        return True

    def _clear_failed(self, db: Session, identifier: str, identifier_type: IdentifierType) -> int:
        # rows stay for audit; only the counting flag flips
        return db.query(LoginAttempt).filter(
            LoginAttempt.identifier == identifier,
            LoginAttempt.identifier_type == identifier_type.value,
            LoginAttempt.success.is_(False),
            LoginAttempt.cleared.is_(False)
        ).update({LoginAttempt.cleared: True}, synchronize_session=False)

    def count_recent_failures(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType],
        window_minutes: int
    ) -> int:
        """Failed, uncleared attempts in the sliding window (now - window, now].

        Raises ``StoreUnavailable``; callers pick their own fail-open default.
        """
        identifier_type = coerce_identifier_type(identifier_type, ATTEMPT_IDENTIFIER_TYPES)

        cached = self._cached_count(identifier, identifier_type, window_minutes)
        if cached is not None:
            return cached

        since = utcnow() - timedelta(minutes=window_minutes)
        with self.store.read() as db:
            count = db.query(func.count(LoginAttempt.id)).filter(
                LoginAttempt.identifier == identifier,
                LoginAttempt.identifier_type == identifier_type.value,
                LoginAttempt.success.is_(False),
                LoginAttempt.cleared.is_(False),
                LoginAttempt.attempted_at > since
            ).scalar() or 0

        self._store_count(identifier, identifier_type, window_minutes, count)
        return count

    def count_recent_failures_from_ip(self, ip_address: str, window_minutes: int) -> int:
        since = utcnow() - timedelta(minutes=window_minutes)
        with self.store.read() as db:
            return db.query(func.count(LoginAttempt.id)).filter(
                LoginAttempt.ip_address == ip_address,
                LoginAttempt.success.is_(False),
                LoginAttempt.cleared.is_(False),
                LoginAttempt.attempted_at > since
            ).scalar() or 0

    def recent_attempts(self, identifier: str, window_minutes: int) -> list[AttemptSnapshot]:
        since = utcnow() - timedelta(minutes=window_minutes)
        with self.store.read() as db:
            rows = db.query(
                LoginAttempt.ip_address,
                LoginAttempt.attempted_at,
                LoginAttempt.success
            ).filter(
                LoginAttempt.identifier == identifier,
                LoginAttempt.attempted_at > since
            ).order_by(LoginAttempt.attempted_at.desc(), LoginAttempt.id.desc()).all()

            return [
                AttemptSnapshot(ip_address=ip, attempted_at=at, success=ok)
                for ip, at, ok in rows
            ]

    def attempt_stats(self, hours: int = 24, limit: int = 100) -> list[AttemptStats]:
        since = utcnow() - timedelta(hours=hours)
        with self.store.read() as db:
            rows = db.query(
                LoginAttempt.identifier,
                LoginAttempt.identifier_type,
                func.sum(case((LoginAttempt.success.is_(True), 1), else_=0)),
                func.sum(case((LoginAttempt.success.is_(False), 1), else_=0)),
                func.count(LoginAttempt.id),
                func.max(LoginAttempt.attempted_at),
                func.count(func.distinct(LoginAttempt.ip_address))
            ).filter(
                LoginAttempt.attempted_at > since
            ).group_by(
                LoginAttempt.identifier,
                LoginAttempt.identifier_type
            ).order_by(func.count(LoginAttempt.id).desc()).limit(limit).all()

            return [
                AttemptStats(
                    identifier=identifier,
                    identifier_type=identifier_type,
                    successful_attempts=int(successes or 0),
                    failed_attempts=int(failures or 0),
                    total_attempts=total,
                    last_attempt=last_attempt,
                    unique_ips=unique_ips
                )
                for identifier, identifier_type, successes, failures, total, last_attempt, unique_ips in rows
            ]

    def _cache_key(self, identifier: str, identifier_type: IdentifierType, window_minutes: int) -> str:
        return f"login_failures:{identifier_type.value}:{identifier}:{window_minutes}"

    def _cached_count(self, identifier: str, identifier_type: IdentifierType, window_minutes: int) -> Optional[int]:
        if self.redis is None or self.cache_ttl <= 0:
            return None
        try:
            cached = self.redis.get(self._cache_key(identifier, identifier_type, window_minutes))
            return int(cached) if cached is not None else None
        except Exception as e:
            logger.warning("failure_count_cache_error", error=str(e))
            return None

    def _store_count(self, identifier: str, identifier_type: IdentifierType, window_minutes: int, count: int):
        if self.redis is None or self.cache_ttl <= 0:
            return
        try:
            self.redis.setex(self._cache_key(identifier, identifier_type, window_minutes), self.cache_ttl, count)
        except Exception as e:
            logger.warning("failure_count_cache_error", error=str(e))

    def _invalidate_cache(self, identifier: str, identifier_type: IdentifierType):
        if self.redis is None or self.cache_ttl <= 0:
            return
        try:
            keys = list(self.redis.scan_iter(match=f"login_failures:{identifier_type.value}:{identifier}:*"))
            if keys:
                self.redis.delete(*keys)
        except Exception as e:
            logger.warning("failure_count_cache_error", error=str(e))
