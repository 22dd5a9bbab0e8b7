from datetime import timedelta
from loginguard.config import Settings
from loginguard.models import SecurityAlert, Severity
from loginguard.security.attempt_tracker import AttemptTracker
from loginguard.security.suspicious_activity import AUTOMATION_REASON, FANOUT_REASON, SuspiciousActivityDetector
from loginguard.services.alert_service import AlertService

FOUR_IPS = ["10.0.0.1", "10.0.0.2", "10.0.0.3", "10.0.0.4"]


def make_detector(store, settings):
    return SuspiciousActivityDetector(
        AttemptTracker(store, settings),
        AlertService(store, settings),
        settings
    )


def test_quiet_identifier_not_suspicious(store, settings):
    assert make_detector(store, settings).evaluate("a@x.com").suspicious is False


def test_slow_single_ip_not_suspicious(store, settings, seed_attempts):
    seed_attempts("a@x.com", 6, spacing=timedelta(seconds=30))

    result = make_detector(store, settings).evaluate("a@x.com")
    assert result.suspicious is False


def test_fanout_raises_one_alert(store, settings, seed_attempts, db):
    seed_attempts("a@x.com", 11, ips=FOUR_IPS)
    detector = make_detector(store, settings)

    first = detector.evaluate("a@x.com", {"ip": "10.0.0.4"})
    assert first.suspicious is True
    assert first.reason == FANOUT_REASON
    assert first.requires_captcha is True
    assert first.alert_created is True

    seed_attempts("a@x.com", 1, ips=["10.0.0.5"], spacing=timedelta(seconds=1))
    second = detector.evaluate("a@x.com")
    assert second.suspicious is True
    assert second.alert_created is False

    alerts = db.query(SecurityAlert).filter(SecurityAlert.reason == FANOUT_REASON).all()
    assert len(alerts) == 1
    assert alerts[0].metadata_["distinct_ips"] == 4
    assert alerts[0].metadata_["ip"] == "10.0.0.4"


def test_ten_attempts_across_four_ips_below_fanout(store, settings, seed_attempts):
    seed_attempts("a@x.com", 10, ips=FOUR_IPS)

    assert make_detector(store, settings).evaluate("a@x.com").suspicious is False


def test_fanout_through_guard_reports(guard, db):
    for i in range(14):
        guard.report("a@x.com", "email", False, ip_address=FOUR_IPS[i % 4])

    assert db.query(SecurityAlert).filter(SecurityAlert.reason == FANOUT_REASON).count() == 1


def test_rapid_attempts_flagged_as_automation(store, settings, seed_attempts, db):
    seed_attempts("a@x.com", 3, spacing=timedelta(milliseconds=200))

    result = make_detector(store, settings).evaluate("a@x.com")
    assert result.reason == AUTOMATION_REASON

    alert = db.query(SecurityAlert).one()
    assert alert.severity == Severity.HIGH


def test_automation_threshold_is_configurable(store, seed_attempts):
    relaxed = Settings(_env_file=None, automation_mean_interval_ms=100.0, store_retry_backoff_ms=0)
    seed_attempts("a@x.com", 3, spacing=timedelta(milliseconds=200))

    assert make_detector(store, relaxed).evaluate("a@x.com").suspicious is False


def test_mean_interval(store, settings, seed_attempts):
    seed_attempts("a@x.com", 3, spacing=timedelta(seconds=2))
    attempts = make_detector(store, settings).tracker.recent_attempts("a@x.com", 5)

    assert abs(SuspiciousActivityDetector.mean_interval_ms(attempts) - 2000.0) < 1.0


def test_captcha_required_after_failure_threshold(store, settings, seed_attempts):
    detector = make_detector(store, settings)
    seed_attempts("a@x.com", settings.captcha_failure_threshold, spacing=timedelta(minutes=1))
    assert detector.should_require_captcha("a@x.com", "email") is False

    seed_attempts("a@x.com", 1, spacing=timedelta(seconds=5))
    assert detector.should_require_captcha("a@x.com", "email") is True


def test_alert_review(store, settings):
    alerts = AlertService(store, settings)
    alerts.flag_suspicious_activity("a@x.com", "manual check")

    alert = alerts.list_alerts(identifier="a@x.com")[0]
    reviewed = alerts.review_alert(alert.id, "ops", "contacted user")

    assert reviewed.reviewed is True
    assert reviewed.reviewed_by == "ops"
    assert alerts.list_alerts(reviewed=False) == []
    assert alerts.review_alert(9999, "ops") is None


def test_concurrent_alerts_in_one_cooldown_keep_one_row(store, settings, db, monkeypatch):
    alerts = AlertService(store, settings)
    # both writers miss each other on the window read
    monkeypatch.setattr(alerts, "_recent_alert", lambda *args: None)

    assert alerts.flag_suspicious_activity("a@x.com", "burst", cooldown=timedelta(days=1)) is True
    assert alerts.flag_suspicious_activity("a@x.com", "burst", cooldown=timedelta(days=1)) is False

    assert db.query(SecurityAlert).filter(SecurityAlert.identifier == "a@x.com").count() == 1


def test_zero_cooldown_does_not_deduplicate(store, settings, db):
    alerts = AlertService(store, settings)

    assert alerts.flag_suspicious_activity("a@x.com", "burst", cooldown=timedelta(0)) is True
    assert alerts.flag_suspicious_activity("a@x.com", "burst", cooldown=timedelta(0)) is True

    assert db.query(SecurityAlert).filter(SecurityAlert.identifier == "a@x.com").count() == 2
