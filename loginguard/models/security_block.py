from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, Integer, JSON, String, Text
from loginguard.core.clock import utcnow
from loginguard.core.database import Base
from loginguard.models.types import BLOCK_IDENTIFIER_TYPES, Severity, check_constraint_sql


class SecurityBlock(Base):
    __tablename__ = "security_blocks"
    __table_args__ = (
        CheckConstraint(
            check_constraint_sql("identifier_type", BLOCK_IDENTIFIER_TYPES),
            name="ck_security_blocks_identifier_type"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(255), nullable=False, index=True)
    identifier_type = Column(String(50), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    severity = Column(Enum(Severity), nullable=False, default=Severity.MEDIUM)
    blocked_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    # NULL means no automatic expiry (critical blocks)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    blocked_by = Column(String(255), nullable=True)
    metadata_ = Column("metadata", JSON, default=dict)
