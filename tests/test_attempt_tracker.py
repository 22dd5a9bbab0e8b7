from datetime import timedelta
import pytest
from loginguard.core.errors import InvalidIdentifierType
from loginguard.models import LoginAttempt
from loginguard.security.attempt_tracker import AttemptTracker


class FakeRedis:
    def __init__(self):
        self.values = {}

    def get(self, key):
        return self.values.get(key)

    def setex(self, key, ttl, value):
        self.values[key] = str(value)

    def scan_iter(self, match):
        prefix = match.rstrip("*")
        return [k for k in self.values if k.startswith(prefix)]

    def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)


def test_record_and_count_failures(store, settings):
    tracker = AttemptTracker(store, settings)
    for _ in range(3):
        tracker.record_attempt("a@x.com", "email", False, {"ip": "10.0.0.1"})

    assert tracker.count_recent_failures("a@x.com", "email", 30) == 3
    assert tracker.count_recent_failures("b@x.com", "email", 30) == 0


def test_ip_and_user_agent_taken_from_metadata(store, settings, db):
    tracker = AttemptTracker(store, settings)
    tracker.record_attempt("a@x.com", "email", False, {"ip": "10.0.0.9", "user_agent": "curl/8"})

    attempt = db.query(LoginAttempt).one()
    assert attempt.ip_address == "10.0.0.9"
    assert attempt.user_agent == "curl/8"
    assert attempt.metadata_["ip"] == "10.0.0.9"


def test_counts_are_per_identifier_type(store, settings):
    tracker = AttemptTracker(store, settings)
    tracker.record_attempt("alice", "username", False)

    assert tracker.count_recent_failures("alice", "username", 30) == 1
    assert tracker.count_recent_failures("alice", "email", 30) == 0


def test_window_excludes_old_failures(store, settings, seed_attempts):
    seed_attempts("a@x.com", 4, spacing=timedelta(minutes=10))
    tracker = AttemptTracker(store, settings)

    # rows at now-40, -30, -20, -10 minutes
    assert tracker.count_recent_failures("a@x.com", "email", 15) == 1
    assert tracker.count_recent_failures("a@x.com", "email", 60) == 4


def test_success_clears_failures(store, settings, db):
    tracker = AttemptTracker(store, settings)
    tracker.record_attempt("a@x.com", "email", False)
    tracker.record_attempt("a@x.com", "email", False)
    tracker.record_attempt("a@x.com", "email", True)

    assert tracker.count_recent_failures("a@x.com", "email", 30) == 0
    # cleared rows are kept
    assert db.query(LoginAttempt).filter(LoginAttempt.cleared.is_(True)).count() == 2


def test_clear_failed_attempts(store, settings):
    tracker = AttemptTracker(store, settings)
    tracker.record_attempt("a@x.com", "email", False)

    assert tracker.clear_failed_attempts("a@x.com", "email") is True
    assert tracker.count_recent_failures("a@x.com", "email", 30) == 0


def test_invalid_identifier_type_rejected(store, settings):
    tracker = AttemptTracker(store, settings)
    with pytest.raises(InvalidIdentifierType):
        tracker.record_attempt("abc", "fingerprint", False)

    with pytest.raises(InvalidIdentifierType):
        tracker.count_recent_failures("abc", "bogus", 30)


def test_recent_attempts_newest_first(store, settings, seed_attempts):
    seed_attempts("a@x.com", 3, ips=["10.0.0.1", "10.0.0.2", "10.0.0.3"])
    attempts = AttemptTracker(store, settings).recent_attempts("a@x.com", 5)

    assert [a.ip_address for a in attempts] == ["10.0.0.3", "10.0.0.2", "10.0.0.1"]


def test_count_from_ip_spans_identifiers(store, settings):
    tracker = AttemptTracker(store, settings)
    for account in ("a@x.com", "b@x.com", "c@x.com"):
        tracker.record_attempt(account, "email", False, {"ip": "10.9.9.9"})

    assert tracker.count_recent_failures_from_ip("10.9.9.9", 60) == 3


def test_attempt_stats(store, settings):
    tracker = AttemptTracker(store, settings)
    tracker.record_attempt("a@x.com", "email", False, {"ip": "10.0.0.1"})
    tracker.record_attempt("a@x.com", "email", False, {"ip": "10.0.0.2"})
    tracker.record_attempt("a@x.com", "email", True, {"ip": "10.0.0.2"})

    stats = tracker.attempt_stats(hours=1)
    assert len(stats) == 1
    assert stats[0].failed_attempts == 2
    assert stats[0].successful_attempts == 1
    assert stats[0].total_attempts == 3
    assert stats[0].unique_ips == 2


def test_count_cache_is_invalidated_on_write(store):
    from loginguard.config import Settings

    cached_settings = Settings(_env_file=None, count_cache_ttl_seconds=5, store_retry_backoff_ms=0)
    redis = FakeRedis()
    tracker = AttemptTracker(store, cached_settings, redis=redis)

    tracker.record_attempt("a@x.com", "email", False)
    assert tracker.count_recent_failures("a@x.com", "email", 30) == 1
    assert redis.get("login_failures:email:a@x.com:30") == "1"

    tracker.record_attempt("a@x.com", "email", False)
    assert redis.get("login_failures:email:a@x.com:30") is None
    assert tracker.count_recent_failures("a@x.com", "email", 30) == 2
