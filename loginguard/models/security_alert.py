import hashlib
from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, JSON, String, Text
from loginguard.core.clock import utcnow
from loginguard.core.database import Base
from loginguard.models.types import Severity


def dedupe_key(identifier: str, alert_type: str, reason: str, bucket: int) -> str:
    digest = hashlib.sha1(reason.encode("utf-8")).hexdigest()
    return f"{alert_type}:{identifier}:{digest}:{bucket}"


class AlertType:
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    ARCHIVED_PATTERN = "archived_pattern"


class SecurityAlert(Base):
    __tablename__ = "security_alerts"

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(255), nullable=False, index=True)
    alert_type = Column(String(100), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    severity = Column(Enum(Severity), nullable=False, default=Severity.MEDIUM)
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    reviewed = Column(Boolean, nullable=False, default=False, index=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(255), nullable=True)
    action_taken = Column(Text, nullable=True)
    # one alert per identifier, type and reason inside a cooldown slot
    dedupe_key = Column(String(700), unique=True, nullable=True)
