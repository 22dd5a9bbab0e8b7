from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text, UniqueConstraint
from loginguard.core.clock import utcnow
from loginguard.core.database import Base
from loginguard.models.types import OVERRIDE_IDENTIFIER_TYPES, check_constraint_sql

GLOBAL_ENDPOINT = "*"


class RateLimitOverride(Base):
    __tablename__ = "rate_limit_overrides"
    __table_args__ = (
        UniqueConstraint(
            "identifier", "identifier_type", "endpoint_pattern",
            name="uq_rate_limit_overrides_target"
        ),
        CheckConstraint(
            check_constraint_sql("identifier_type", OVERRIDE_IDENTIFIER_TYPES),
            name="ck_rate_limit_overrides_identifier_type"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(255), nullable=False, index=True)
    identifier_type = Column(String(50), nullable=False)
    endpoint_pattern = Column(String(255), nullable=False, default=GLOBAL_ENDPOINT)
    max_requests = Column(Integer, nullable=False)
    window_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(255), nullable=True)
