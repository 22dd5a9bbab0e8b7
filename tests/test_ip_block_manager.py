from datetime import timedelta
import pytest
from loginguard.core.clock import utcnow
from loginguard.core.errors import InvalidIdentifierType
from loginguard.models import SecurityBlock, Severity
from loginguard.security.attempt_tracker import AttemptTracker
from loginguard.security.ip_block_manager import BRUTE_FORCE_BLOCK_REASON, IPBlockManager


def make_manager(store, settings):
    return IPBlockManager(store, AttemptTracker(store, settings), settings)


def test_block_and_check(store, settings):
    manager = make_manager(store, settings)
    result = manager.block_identifier("10.0.0.1", "ip", reason="scanner", severity="high")

    assert result.success is True
    status = manager.is_blocked("10.0.0.1", "ip")
    assert status.blocked is True
    assert status.severity == Severity.HIGH
    assert status.reason == "scanner"
    assert status.remaining_seconds > 167 * 3600


def test_default_durations_by_severity(store, settings):
    manager = make_manager(store, settings)

    assert manager.default_duration("low") == timedelta(hours=1)
    assert manager.default_duration(Severity.MEDIUM) == timedelta(hours=24)
    assert manager.default_duration("high") == timedelta(days=7)
    assert manager.default_duration("critical") is None


def test_critical_block_never_expires(store, settings):
    manager = make_manager(store, settings)
    result = manager.block_identifier("10.0.0.1", "ip", severity="critical")

    assert result.expires_at is None
    status = manager.is_blocked("10.0.0.1", "ip")
    assert status.blocked is True
    assert status.remaining_seconds is None


def test_expired_block_is_ignored(store, settings, db):
    now = utcnow()
    db.add(SecurityBlock(
        identifier="10.0.0.1",
        identifier_type="ip",
        reason="old",
        severity=Severity.LOW,
        blocked_at=now - timedelta(hours=2),
        expires_at=now - timedelta(hours=1),
        is_active=True
    ))
    db.commit()

    assert make_manager(store, settings).is_blocked("10.0.0.1", "ip").blocked is False


def test_longest_block_reported(store, settings):
    manager = make_manager(store, settings)
    manager.block_identifier("10.0.0.1", "ip", reason="short", duration=timedelta(minutes=5))
    manager.block_identifier("10.0.0.1", "ip", reason="long", duration=timedelta(hours=5))

    assert manager.is_blocked("10.0.0.1", "ip").reason == "long"


def test_blocks_are_per_identifier_type(store, settings):
    manager = make_manager(store, settings)
    manager.block_identifier("abc123", "fingerprint")

    assert manager.is_blocked("abc123", "fingerprint").blocked is True
    assert manager.is_blocked("abc123", "email").blocked is False


def test_unblock(store, settings):
    manager = make_manager(store, settings)
    manager.block_identifier("10.0.0.1", "ip")

    assert manager.unblock("10.0.0.1", "ip") is True
    assert manager.is_blocked("10.0.0.1", "ip").blocked is False
    assert manager.unblock("10.0.0.1", "ip") is False


def test_username_cannot_be_blocked(store, settings):
    with pytest.raises(InvalidIdentifierType):
        make_manager(store, settings).block_identifier("alice", "username")


def test_ip_blocked_after_threshold_failures(store, settings, seed_attempts):
    manager = make_manager(store, settings)
    accounts = ["a@x.com", "b@x.com", "c@x.com", "d@x.com", "e@x.com"]
    for i in range(settings.ip_block_failure_threshold):
        seed_attempts(accounts[i % len(accounts)], 1, ips=["10.6.6.6"], spacing=timedelta(seconds=30))

    assert manager.record_ip_failure("10.6.6.6") is False

    seed_attempts("f@x.com", 1, ips=["10.6.6.6"])
    assert manager.record_ip_failure("10.6.6.6") is True

    status = manager.is_blocked("10.6.6.6", "ip")
    assert status.blocked is True
    assert status.reason == BRUTE_FORCE_BLOCK_REASON
    assert status.severity == Severity.MEDIUM

    # already blocked; no second row
    assert manager.record_ip_failure("10.6.6.6") is False


def test_active_blocks(store, settings):
    manager = make_manager(store, settings)
    manager.block_identifier("10.0.0.1", "ip", metadata={"source": "manual"})
    manager.block_identifier("abc", "fingerprint")

    blocks = manager.active_blocks("ip")
    assert len(blocks) == 1
    assert blocks[0].metadata == {"source": "manual"}
    assert len(manager.active_blocks()) == 2
