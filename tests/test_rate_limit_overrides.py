from datetime import timedelta
import pytest
from loginguard.core.clock import utcnow
from loginguard.core.errors import InvalidIdentifierType
from loginguard.models import RateLimitOverride
from loginguard.models.rate_limit_override import GLOBAL_ENDPOINT
from loginguard.security.rate_limit_overrides import RateLimitOverrideManager


def test_global_override(store):
    manager = RateLimitOverrideManager(store)
    manager.set_override("10.0.0.1", "ip", 500, 1, reason="load test")

    override = manager.get_override("10.0.0.1", "ip", "/api/login")
    assert override.endpoint_pattern == GLOBAL_ENDPOINT
    assert override.max_requests == 500


def test_endpoint_override_wins_over_global(store):
    manager = RateLimitOverrideManager(store)
    manager.set_override("key-1", "api_key", 100, 1)
    manager.set_override("key-1", "api_key", 5, 1, endpoint_pattern="/api/login")

    assert manager.get_override("key-1", "api_key", "/api/login").max_requests == 5
    assert manager.get_override("key-1", "api_key", "/api/other").max_requests == 100
    assert manager.get_override("key-1", "api_key").max_requests == 100


def test_set_override_updates_in_place(store, db):
    manager = RateLimitOverrideManager(store)
    manager.set_override("42", "user_id", 10, 1)
    manager.set_override("42", "user_id", 20, 5, created_by="ops")

    rows = db.query(RateLimitOverride).all()
    assert len(rows) == 1
    assert rows[0].max_requests == 20
    assert rows[0].window_minutes == 5


def test_expired_override_ignored(store):
    manager = RateLimitOverrideManager(store)
    manager.set_override("10.0.0.1", "ip", 500, 1, expires_at=utcnow() - timedelta(minutes=1))

    assert manager.get_override("10.0.0.1", "ip") is None


def test_remove_override(store):
    manager = RateLimitOverrideManager(store)
    manager.set_override("10.0.0.1", "ip", 500, 1)

    assert manager.remove_override("10.0.0.1", "ip") is True
    assert manager.remove_override("10.0.0.1", "ip") is False
    assert manager.list_overrides() == []


def test_email_is_not_an_override_type(store):
    with pytest.raises(InvalidIdentifierType):
        RateLimitOverrideManager(store).set_override("a@x.com", "email", 10, 1)
