from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text
from loginguard.core.clock import utcnow
from loginguard.core.database import Base
from loginguard.models.types import LOCK_IDENTIFIER_TYPES, check_constraint_sql


def lock_key(identifier: str, identifier_type: str) -> str:
    return f"{identifier_type}:{identifier}"


class AccountLock(Base):
    __tablename__ = "account_locks"
    __table_args__ = (
        CheckConstraint(
            check_constraint_sql("identifier_type", LOCK_IDENTIFIER_TYPES),
            name="ck_account_locks_identifier_type"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(255), nullable=False, index=True)
    identifier_type = Column(String(50), nullable=False)
    reason = Column(Text, nullable=False)
    locked_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    unlocked_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    locked_by = Column(String(255), nullable=True)
    # "{type}:{identifier}" while active, NULL once deactivated; NULLs never collide
    active_key = Column(String(320), unique=True, nullable=True)

    def deactivate(self, when=None):
        self.is_active = False
        self.active_key = None
        if when is not None:
            self.unlocked_at = when
