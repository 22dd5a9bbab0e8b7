from datetime import timedelta
import pytest
from sqlalchemy.exc import OperationalError
from loginguard.core.clock import utcnow
from loginguard.core.errors import InvalidIdentifierType
from loginguard.models import AccountLock, IdentifierType
from loginguard.security.attempt_tracker import AttemptTracker
from loginguard.security.lockout_manager import THRESHOLD_LOCK_REASON, LockoutManager


def make_manager(store, settings):
    return LockoutManager(store, AttemptTracker(store, settings), settings)


def fail(manager, identifier, times, identifier_type="email"):
    for _ in range(times):
        manager.tracker.record_attempt(identifier, identifier_type, False)


def test_not_locked_below_threshold(store, settings):
    manager = make_manager(store, settings)
    fail(manager, "a@x.com", settings.lockout_max_attempts - 1)

    assert manager.check_and_enforce_lock("a@x.com", "email").locked is False


def test_locked_at_threshold(store, settings):
    manager = make_manager(store, settings)
    fail(manager, "a@x.com", settings.lockout_max_attempts)

    status = manager.check_and_enforce_lock("a@x.com", "email")
    assert status.locked is True
    assert status.reason == THRESHOLD_LOCK_REASON
    assert status.remaining_seconds > 29 * 60


def test_repeated_checks_create_one_lock(store, settings, db):
    manager = make_manager(store, settings)
    fail(manager, "a@x.com", settings.lockout_max_attempts)

    first = manager.check_and_enforce_lock("a@x.com", "email")
    second = manager.is_account_locked("a@x.com", "email")

    assert first.locked and second.locked
    assert first.expires_at == second.expires_at
    assert db.query(AccountLock).filter(AccountLock.is_active.is_(True)).count() == 1


def test_lock_account_on_locked_identifier_returns_existing(store, settings, db):
    manager = make_manager(store, settings)
    first = manager.lock_account("a@x.com", "email", duration=timedelta(hours=2))
    second = manager.lock_account("a@x.com", "email", duration=timedelta(minutes=5))

    assert first.success and second.success
    assert second.expires_at == first.expires_at
    assert db.query(AccountLock).count() == 1


def test_expired_unswept_lock_does_not_block_new_lock(store, settings, db):
    now = utcnow()
    db.add(AccountLock(
        identifier="a@x.com",
        identifier_type="email",
        reason="old",
        locked_at=now - timedelta(hours=2),
        expires_at=now - timedelta(hours=1),
        is_active=True,
        active_key="email:a@x.com"
    ))
    db.commit()

    manager = make_manager(store, settings)
    assert manager.check_and_enforce_lock("a@x.com", "email").locked is False

    result = manager.lock_account("a@x.com", "email", reason="again")
    assert result.success is True
    assert manager.check_and_enforce_lock("a@x.com", "email").reason == "again"


def test_unlock_releases_lock_and_clears_failures(store, settings):
    manager = make_manager(store, settings)
    fail(manager, "a@x.com", settings.lockout_max_attempts)
    assert manager.check_and_enforce_lock("a@x.com", "email").locked is True

    assert manager.unlock_account("a@x.com", "email").success is True
    assert manager.check_and_enforce_lock("a@x.com", "email").locked is False
    assert manager.tracker.count_recent_failures("a@x.com", "email", 30) == 0


def test_unlock_sets_unlocked_at(store, settings, db):
    manager = make_manager(store, settings)
    manager.lock_account("a@x.com", "email")
    manager.unlock_account("a@x.com", "email")

    lock = db.query(AccountLock).one()
    assert lock.is_active is False
    assert lock.active_key is None
    assert lock.unlocked_at is not None


def test_user_id_locks_are_manual_only(store, settings):
    manager = make_manager(store, settings)
    assert manager.check_and_enforce_lock("42", "user_id").locked is False

    manager.lock_account("42", "user_id", locked_by="ops")
    assert manager.check_and_enforce_lock("42", "user_id").locked is True


def test_ip_is_not_a_lock_type(store, settings):
    manager = make_manager(store, settings)
    with pytest.raises(InvalidIdentifierType):
        manager.lock_account("10.0.0.1", "ip")


def test_active_locks_lists_only_current(store, settings):
    manager = make_manager(store, settings)
    manager.lock_account("a@x.com", "email")
    manager.lock_account("b@x.com", "email")
    manager.unlock_account("b@x.com", "email")

    locks = manager.active_locks()
    assert [lock.identifier for lock in locks] == ["a@x.com"]


def test_unlock_is_all_or_nothing(store, settings, monkeypatch):
    manager = make_manager(store, settings)
    fail(manager, "a@x.com", settings.lockout_max_attempts)
    assert manager.check_and_enforce_lock("a@x.com", "email").locked is True

    def broken_clear(db, identifier, identifier_type):
        raise OperationalError("UPDATE login_attempts", {}, Exception("disk I/O error"))

    monkeypatch.setattr(manager.tracker, "_clear_failed", broken_clear)

    assert manager.unlock_account("a@x.com", "email").success is False
    assert manager.check_and_enforce_lock("a@x.com", "email").locked is True
    assert manager.tracker.count_recent_failures("a@x.com", "email", 30) == settings.lockout_max_attempts


def test_invalid_type_message_names_the_value():
    error = InvalidIdentifierType(IdentifierType.USER_ID, {IdentifierType.EMAIL, IdentifierType.USERNAME})

    assert str(error) == "Invalid identifier type 'user_id'; expected one of email, username"
    assert error.value == "user_id"
