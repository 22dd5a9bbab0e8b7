from typing import Any, Optional, Union
from loginguard.config import Settings, settings as default_settings
from loginguard.core.clock import as_naive_utc
from loginguard.core.errors import StoreUnavailable
from loginguard.core.logger import logger
from loginguard.models.types import IdentifierType, Severity
from loginguard.schemas.alert import SuspicionResult
from loginguard.schemas.attempt import AttemptSnapshot
from loginguard.security.attempt_tracker import AttemptTracker
from loginguard.services.alert_service import AlertService

FANOUT_REASON = "Multiple IPs attempting access"
AUTOMATION_REASON = "Automated attack detected"


class SuspiciousActivityDetector:
    """Heuristics over the trailing window of attempts for one identifier.

    Runs after each failed attempt. A hit writes an alert (deduplicated per
    identifier and reason within the cooldown) and asks for a CAPTCHA on the
    next attempt.
    """

    def __init__(
        self,
        tracker: AttemptTracker,
        alerts: AlertService,
        settings: Optional[Settings] = None
    ):
        self.tracker = tracker
        self.alerts = alerts
        self.settings = settings or default_settings
        self.window_minutes = self.settings.suspicious_window_minutes
        self.min_distinct_ips = self.settings.fanout_min_distinct_ips
        self.min_attempts = self.settings.fanout_min_attempts
        self.automation_interval_ms = self.settings.automation_mean_interval_ms

    def evaluate(self, identifier: str, metadata: Optional[dict[str, Any]] = None) -> SuspicionResult:
        try:
            attempts = self.tracker.recent_attempts(identifier, self.window_minutes)
        except StoreUnavailable as e:
            logger.error("suspicious_activity_check_error", identifier=identifier, error=str(e))
            return SuspicionResult(suspicious=False)

        if not attempts:
            return SuspicionResult(suspicious=False)

        reason, details = self.analyze(attempts)
        if reason is None:
            return SuspicionResult(suspicious=False)

        details.update(metadata or {})
        created = self.alerts.flag_suspicious_activity(
            identifier,
            reason,
            severity=Severity.HIGH if reason == AUTOMATION_REASON else Severity.MEDIUM,
            metadata=details
        )
        return SuspicionResult(
            suspicious=True,
            reason=reason,
            requires_captcha=True,
            alert_created=created
        )

    def analyze(self, attempts: list[AttemptSnapshot]) -> tuple[Optional[str], dict[str, Any]]:
        """Apply the fan-out rule, then the automation rule, to newest-first attempts."""
        total = len(attempts)
        distinct_ips = len({a.ip_address for a in attempts})

        if distinct_ips > self.min_distinct_ips and total > self.min_attempts:
            return FANOUT_REASON, {"distinct_ips": distinct_ips, "attempts": total}

        if total >= 2:
            mean_interval = self.mean_interval_ms(attempts)
            if mean_interval < self.automation_interval_ms:
                return AUTOMATION_REASON, {"mean_interval_ms": round(mean_interval, 1), "attempts": total}

        return None, {}

    @staticmethod
    def mean_interval_ms(attempts: list[AttemptSnapshot]) -> float:
        times = [as_naive_utc(a.attempted_at) for a in attempts]
        intervals = [
            abs((times[i - 1] - times[i]).total_seconds()) * 1000.0
            for i in range(1, len(times))
        ]
        return sum(intervals) / len(intervals)

    def should_require_captcha(
        self,
        identifier: str,
        identifier_type: Union[str, IdentifierType] = IdentifierType.EMAIL
    ) -> bool:
        try:
            failures = self.tracker.count_recent_failures(
                identifier,
                identifier_type,
                self.settings.delay_window_minutes
            )
        except StoreUnavailable as e:
            logger.error("captcha_requirement_check_error", identifier=identifier, error=str(e))
            return False
        return failures > self.settings.captcha_failure_threshold
