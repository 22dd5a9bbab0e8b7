from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, JSON, String, Text
from loginguard.core.clock import utcnow
from loginguard.core.database import Base
from loginguard.models.types import ATTEMPT_IDENTIFIER_TYPES, check_constraint_sql


class LoginAttempt(Base):
    __tablename__ = "login_attempts"
    __table_args__ = (
        CheckConstraint(
            check_constraint_sql("identifier_type", ATTEMPT_IDENTIFIER_TYPES),
            name="ck_login_attempts_identifier_type"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(255), nullable=False, index=True)
    identifier_type = Column(String(50), nullable=False, index=True)
    success = Column(Boolean, nullable=False, default=False, index=True)
    ip_address = Column(String(64), index=True)
    user_agent = Column(Text)
    attempted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    cleared = Column(Boolean, nullable=False, default=False, index=True)
    metadata_ = Column("metadata", JSON, default=dict)
