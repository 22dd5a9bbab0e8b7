from typing import Optional, Union
from datetime import datetime
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from loginguard.core.clock import utcnow
from loginguard.core.logger import logger
from loginguard.core.store import Store
from loginguard.models.rate_limit_override import GLOBAL_ENDPOINT, RateLimitOverride
from loginguard.models.types import OVERRIDE_IDENTIFIER_TYPES, IdentifierType, coerce_identifier_type
from loginguard.schemas.override import RateLimitOverrideResponse


class RateLimitOverrideManager:
    def __init__(self, store: Store):
        self.store = store

    def set_override(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType],
        max_requests: int,
        window_minutes: int,
        endpoint_pattern: Optional[str] = None,
        reason: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        created_by: Optional[str] = None
    ) -> RateLimitOverrideResponse:
        identifier_type = coerce_identifier_type(identifier_type, OVERRIDE_IDENTIFIER_TYPES)
        pattern = endpoint_pattern or GLOBAL_ENDPOINT

        def _upsert(db: Session) -> RateLimitOverrideResponse:
            override = db.query(RateLimitOverride).filter(
                RateLimitOverride.identifier == identifier,
                RateLimitOverride.identifier_type == identifier_type.value,
                RateLimitOverride.endpoint_pattern == pattern
            ).first()

            if override is None:
                override = RateLimitOverride(
                    identifier=identifier,
                    identifier_type=identifier_type.value,
                    endpoint_pattern=pattern,
                    created_at=utcnow()
                )
                db.add(override)

            override.max_requests = max_requests
            override.window_minutes = window_minutes
            override.reason = reason
            override.expires_at = expires_at
            override.created_by = created_by
            override.is_active = True
            db.flush()
            return RateLimitOverrideResponse.model_validate(override)

        try:
            result = self.store.write(_upsert)
        except IntegrityError:
            # a concurrent writer inserted the same target first; update it instead
            result = self.store.write(_upsert)

        logger.info(
            "rate_limit_override_set",
            identifier=identifier,
            identifier_type=identifier_type.value,
            endpoint_pattern=pattern,
            max_requests=max_requests,
            window_minutes=window_minutes
        )
        return result

    def get_override(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType],
        endpoint: Optional[str] = None
    ) -> Optional[RateLimitOverrideResponse]:
        """Endpoint-specific override if one is active, else the global one."""
        identifier_type = coerce_identifier_type(identifier_type, OVERRIDE_IDENTIFIER_TYPES)
        patterns = [GLOBAL_ENDPOINT] if not endpoint else [endpoint, GLOBAL_ENDPOINT]

        with self.store.read() as db:
            overrides = db.query(RateLimitOverride).filter(
                RateLimitOverride.identifier == identifier,
                RateLimitOverride.identifier_type == identifier_type.value,
                RateLimitOverride.endpoint_pattern.in_(patterns),
                RateLimitOverride.is_active.is_(True),
                or_(RateLimitOverride.expires_at.is_(None), RateLimitOverride.expires_at > utcnow())
            ).all()

            by_pattern = {o.endpoint_pattern: o for o in overrides}
            for pattern in patterns:
                if pattern in by_pattern:
                    return RateLimitOverrideResponse.model_validate(by_pattern[pattern])
            return None

    def remove_override(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType],
        endpoint_pattern: Optional[str] = None
    ) -> bool:
        identifier_type = coerce_identifier_type(identifier_type, OVERRIDE_IDENTIFIER_TYPES)
        pattern = endpoint_pattern or GLOBAL_ENDPOINT

        def _delete(db: Session) -> int:
            return db.query(RateLimitOverride).filter(
                RateLimitOverride.identifier == identifier,
                RateLimitOverride.identifier_type == identifier_type.value,
                RateLimitOverride.endpoint_pattern == pattern
            ).delete(synchronize_session=False)

        removed = self.store.write(_delete)
        if removed:
            logger.info("rate_limit_override_removed", identifier=identifier, endpoint_pattern=pattern)
        return removed > 0

    def list_overrides(self, active_only: bool = True, skip: int = 0, limit: int = 100) -> list[RateLimitOverrideResponse]:
        with self.store.read() as db:
            query = db.query(RateLimitOverride)
            if active_only:
                query = query.filter(RateLimitOverride.is_active.is_(True))
            overrides = query.order_by(RateLimitOverride.created_at.desc()).offset(skip).limit(limit).all()
            return [RateLimitOverrideResponse.model_validate(o) for o in overrides]
