from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String
from loginguard.core.clock import utcnow
from loginguard.core.database import Base
from loginguard.models.types import CHALLENGE_IDENTIFIER_TYPES, check_constraint_sql


def pending_key(identifier: str, identifier_type: str, challenge_type: str) -> str:
    return f"{identifier_type}:{identifier}:{challenge_type}"


class CaptchaChallenge(Base):
    __tablename__ = "captcha_challenges"
    __table_args__ = (
        CheckConstraint(
            check_constraint_sql("identifier_type", CHALLENGE_IDENTIFIER_TYPES),
            name="ck_captcha_challenges_identifier_type"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(255), nullable=False, index=True)
    identifier_type = Column(String(50), nullable=False)
    challenge_token = Column(String(255), unique=True, nullable=False, index=True)
    challenge_type = Column(String(50), nullable=False, default="recaptcha")
    issued_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    # held while the challenge can still be answered; one open challenge per key
    pending_key = Column(String(400), unique=True, nullable=True)
