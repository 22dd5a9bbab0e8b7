import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from loginguard.core.errors import StoreUnavailable
from loginguard.core.store import Store
from loginguard.models import RateLimitOverride


class FlakySession:
    def __init__(self, log):
        self.log = log

    def commit(self):
        self.log.append("commit")

    def rollback(self):
        self.log.append("rollback")

    def close(self):
        self.log.append("close")


def transient_failure(times):
    state = {"calls": 0}

    def operation(db):
        state["calls"] += 1
        if state["calls"] <= times:
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return "done"

    return operation, state


def test_write_retries_transient_errors(settings):
    log = []
    store = Store(lambda: FlakySession(log), settings)
    operation, state = transient_failure(2)

    assert store.write(operation) == "done"
    assert state["calls"] == 3
    assert log.count("rollback") == 2
    assert log.count("commit") == 1


def test_write_gives_up_after_bounded_retries(settings):
    store = Store(lambda: FlakySession([]), settings)
    operation, state = transient_failure(10)

    with pytest.raises(StoreUnavailable):
        store.write(operation)
    assert state["calls"] == settings.store_write_retries


def test_integrity_errors_propagate(store):
    def _insert_twice(db):
        for _ in range(2):
            db.add(RateLimitOverride(
                identifier="10.0.0.1",
                identifier_type="ip",
                endpoint_pattern="*",
                max_requests=1,
                window_minutes=1
            ))
        db.flush()

    with pytest.raises(IntegrityError):
        store.write(_insert_twice)


def test_read_errors_become_store_unavailable(broken_store):
    with pytest.raises(StoreUnavailable):
        with broken_store.read() as db:
            db.query(RateLimitOverride).all()
