import secrets
from typing import Callable, Optional, Union
from datetime import timedelta
import requests
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from loginguard.config import Settings, settings as default_settings
from loginguard.core.clock import as_naive_utc, utcnow
from loginguard.core.errors import ChallengeFailure, StoreUnavailable
from loginguard.core.logger import logger
from loginguard.core.store import Store
from loginguard.models.captcha_challenge import CaptchaChallenge, pending_key
from loginguard.models.types import CHALLENGE_IDENTIFIER_TYPES, IdentifierType, coerce_identifier_type
from loginguard.schemas.captcha import ChallengeIssued, ChallengeVerification

ProofVerifier = Callable[[str, Optional[str]], bool]


class ProviderVerifier:
    """Checks a CAPTCHA response against a siteverify-style HTTP endpoint."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or default_settings
        self.session = session or requests.Session()

    def __call__(self, proof: str, remote_ip: Optional[str] = None) -> bool:
        if not self.settings.captcha_secret_key:
            logger.warning("captcha_provider_not_configured")
            return False

        payload = {"secret": self.settings.captcha_secret_key, "response": proof}
        if remote_ip:
            payload["remoteip"] = remote_ip

        response = self.session.post(
            self.settings.captcha_verify_url,
            data=payload,
            timeout=self.settings.captcha_timeout_seconds
        )
        response.raise_for_status()
        return bool(response.json().get("success", False))


class CaptchaChallengeManager:
    def __init__(
        self,
        store: Store,
        settings: Optional[Settings] = None,
        verifier: Optional[ProofVerifier] = None
    ):
        self.store = store
        self.settings = settings or default_settings
        self.verifier = verifier or ProviderVerifier(self.settings)
        self.challenge_ttl = timedelta(minutes=self.settings.captcha_ttl_minutes)
        self.max_attempts = self.settings.captcha_max_attempts

    def generate_challenge_token(self) -> str:
        return secrets.token_urlsafe(32)

    def issue_challenge(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.EMAIL,
        challenge_type: Optional[str] = None
    ) -> Optional[ChallengeIssued]:
        """Return the outstanding challenge for the identifier or issue a new one.

        Returns None when the store cannot record the challenge.
        """
        identifier_type = coerce_identifier_type(identifier_type, CHALLENGE_IDENTIFIER_TYPES)
        challenge_type = challenge_type or self.settings.captcha_challenge_type
        key = pending_key(identifier, identifier_type.value, challenge_type)

        def _issue(db: Session) -> ChallengeIssued:
            now = utcnow()
            # used, expired or exhausted challenges give up the slot
            db.query(CaptchaChallenge).filter(
                CaptchaChallenge.pending_key == key,
                or_(
                    CaptchaChallenge.verified.is_(True),
                    CaptchaChallenge.expires_at <= now,
                    CaptchaChallenge.attempts >= self.max_attempts
                )
            ).update({CaptchaChallenge.pending_key: None}, synchronize_session=False)

            outstanding = self._outstanding(db, key)

            if outstanding is None:
                outstanding = CaptchaChallenge(
                    identifier=identifier,
                    identifier_type=identifier_type.value,
                    challenge_token=self.generate_challenge_token(),
                    challenge_type=challenge_type,
                    issued_at=now,
                    expires_at=now + self.challenge_ttl,
                    verified=False,
                    attempts=0,
                    pending_key=key
                )
                db.add(outstanding)
                db.flush()

            return ChallengeIssued(
                token=outstanding.challenge_token,
                expires_at=as_naive_utc(outstanding.expires_at),
                challenge_type=outstanding.challenge_type
            )

        for _ in range(3):
            try:
                challenge = self.store.write(_issue)
                logger.info("captcha_challenge_issued", identifier=identifier, challenge_type=challenge_type)
                return challenge
            except IntegrityError as e:
                # another issuer took the slot first, or the token collided; the next pass reads the winner
                logger.warning("captcha_issue_conflict", identifier=identifier, error=str(e))
            except StoreUnavailable as e:
                logger.error("captcha_issue_error", identifier=identifier, error=str(e))
                return None
        return None

    def _outstanding(self, db: Session, key: str) -> Optional[CaptchaChallenge]:
        return db.query(CaptchaChallenge).filter(CaptchaChallenge.pending_key == key).first()

    def verify_challenge(self, token: str, proof: str, remote_ip: Optional[str] = None) -> ChallengeVerification:
        """Single-use verification; every try counts against the attempt cap."""

        def _claim(db: Session) -> tuple[Optional[ChallengeFailure], Optional[int]]:
            challenge = db.query(CaptchaChallenge).filter(
                CaptchaChallenge.challenge_token == token
            ).with_for_update().first()

            if challenge is None:
                return ChallengeFailure.NOT_FOUND, None

            challenge.attempts = (challenge.attempts or 0) + 1

            failure = None
            if challenge.verified:
                failure = ChallengeFailure.ALREADY_USED
            elif challenge.attempts > self.max_attempts:
                failure = ChallengeFailure.ATTEMPTS_EXCEEDED
            elif as_naive_utc(challenge.expires_at) <= utcnow():
                failure = ChallengeFailure.EXPIRED

            if failure is not None:
                challenge.pending_key = None
            return failure, challenge.id

        try:
            failure, challenge_id = self.store.write(_claim)
        except StoreUnavailable as e:
            logger.error("captcha_verify_error", error=str(e))
            return ChallengeVerification(verified=False, reason=ChallengeFailure.PROVIDER_ERROR)

        if failure is not None:
            logger.info("captcha_challenge_rejected", challenge_id=challenge_id, reason=failure.value)
            return ChallengeVerification(verified=False, reason=failure)

        try:
            passed = self.verifier(proof, remote_ip)
        except Exception as e:
            logger.error("captcha_provider_error", challenge_id=challenge_id, error=str(e))
            return ChallengeVerification(verified=False, reason=ChallengeFailure.PROVIDER_ERROR)

        if not passed:
            return ChallengeVerification(verified=False, reason=ChallengeFailure.INVALID_PROOF)

        def _consume(db: Session) -> bool:
            # conditional update so only one concurrent verifier wins the token
            return db.query(CaptchaChallenge).filter(
                CaptchaChallenge.id == challenge_id,
                CaptchaChallenge.verified.is_(False)
            ).update(
                {
                    CaptchaChallenge.verified: True,
                    CaptchaChallenge.verified_at: utcnow(),
                    CaptchaChallenge.pending_key: None
                },
                synchronize_session=False
            ) == 1

        try:
            consumed = self.store.write(_consume)
        except StoreUnavailable as e:
            logger.error("captcha_verify_error", challenge_id=challenge_id, error=str(e))
            return ChallengeVerification(verified=False, reason=ChallengeFailure.PROVIDER_ERROR)

        if not consumed:
            return ChallengeVerification(verified=False, reason=ChallengeFailure.ALREADY_USED)

        logger.info("captcha_challenge_verified", challenge_id=challenge_id)
        return ChallengeVerification(verified=True)

    def has_pending_challenge(self, identifier: str) -> bool:
        try:
            with self.store.read() as db:
                pending = db.query(CaptchaChallenge.id).filter(
                    CaptchaChallenge.identifier == identifier,
                    CaptchaChallenge.verified.is_(False),
                    CaptchaChallenge.expires_at > utcnow(),
                    CaptchaChallenge.attempts < self.max_attempts
                ).first()
                return pending is not None
        except StoreUnavailable as e:
            logger.error("captcha_pending_check_error", identifier=identifier, error=str(e))
            return False
