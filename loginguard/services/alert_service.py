from typing import Any, Optional, Union
from datetime import timedelta
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from loginguard.config import Settings, settings as default_settings
from loginguard.core.clock import cooldown_bucket, utcnow
from loginguard.core.errors import StoreUnavailable
from loginguard.core.logger import logger
from loginguard.core.store import Store
from loginguard.models.security_alert import AlertType, SecurityAlert, dedupe_key
from loginguard.models.types import Severity, coerce_severity
from loginguard.schemas.alert import SecurityAlertResponse


class AlertService:
    def __init__(self, store: Store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or default_settings
        self.cooldown = timedelta(minutes=self.settings.alert_cooldown_minutes)

    def flag_suspicious_activity(
        self,
        identifier: str,
        reason: str,
        alert_type: str = AlertType.SUSPICIOUS_ACTIVITY,
        severity: Union[str, Severity] = Severity.MEDIUM,
        metadata: Optional[dict[str, Any]] = None,
        cooldown: Optional[timedelta] = None
    ) -> bool:
        """Write an alert unless the same identifier and reason fired within the cooldown.

        Returns True when a new row was written. The sliding-window read
        catches sequential repeats; concurrent writers in the same cooldown
        slot collide on ``dedupe_key`` and only one row survives.
        """
        severity = coerce_severity(severity)
        cooldown = self.cooldown if cooldown is None else cooldown

        def _insert(db: Session) -> bool:
            now = utcnow()
            key = None
            if cooldown > timedelta(0):
                key = dedupe_key(identifier, alert_type, reason, cooldown_bucket(now, cooldown))

            if self._recent_alert(db, identifier, alert_type, reason, now - cooldown) is not None:
                return False

            db.add(SecurityAlert(
                identifier=identifier,
                alert_type=alert_type,
                reason=reason,
                severity=severity,
                metadata_=dict(metadata or {}),
                created_at=now,
                reviewed=False,
                dedupe_key=key
            ))
            return True

        try:
            created = self.store.write(_insert)
        except IntegrityError:
            logger.info("security_alert_deduplicated", identifier=identifier, reason=reason, alert_type=alert_type)
            return False
        except StoreUnavailable as e:
            logger.error("security_alert_error", identifier=identifier, reason=reason, error=str(e))
            return False

        if created:
            logger.warning(
                "suspicious_activity_detected",
                identifier=identifier,
                reason=reason,
                alert_type=alert_type,
                severity=severity.value
            )
        return created

    def _recent_alert(self, db: Session, identifier: str, alert_type: str, reason: str, since) -> Optional[int]:
        row = db.query(SecurityAlert.id).filter(
            SecurityAlert.identifier == identifier,
            SecurityAlert.alert_type == alert_type,
            SecurityAlert.reason == reason,
            SecurityAlert.created_at > since
        ).first()
        return row.id if row is not None else None

    def review_alert(
        self,
        alert_id: int,
        reviewed_by: str,
        action_taken: Optional[str] = None
    ) -> Optional[SecurityAlertResponse]:
        def _review(db: Session) -> Optional[SecurityAlertResponse]:
            alert = db.get(SecurityAlert, alert_id)
            if alert is None:
                return None
            alert.reviewed = True
            alert.reviewed_at = utcnow()
            alert.reviewed_by = reviewed_by
            alert.action_taken = action_taken
            db.flush()
            return SecurityAlertResponse.model_validate(alert)

        reviewed = self.store.write(_review)
        if reviewed is not None:
            logger.info("security_alert_reviewed", alert_id=alert_id, reviewed_by=reviewed_by)
        return reviewed

    def list_alerts(
        self,
        identifier: Optional[str] = None,
        alert_type: Optional[str] = None,
        reviewed: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100
    ) -> list[SecurityAlertResponse]:
        with self.store.read() as db:
            query = db.query(SecurityAlert)

            if identifier:
                query = query.filter(SecurityAlert.identifier == identifier)

            if alert_type:
                query = query.filter(SecurityAlert.alert_type == alert_type)

            if reviewed is not None:
                query = query.filter(SecurityAlert.reviewed.is_(reviewed))

            alerts = query.order_by(desc(SecurityAlert.created_at), desc(SecurityAlert.id)).offset(skip).limit(limit).all()
            return [SecurityAlertResponse.model_validate(alert) for alert in alerts]
