from datetime import timedelta
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from loginguard.config import Settings
from loginguard.core.clock import utcnow
from loginguard.core.database import Base
from loginguard.core.store import Store
from loginguard.models import LoginAttempt
from loginguard.security.login_guard import LoginGuard

CORRECT_PROOF = "correct-proof"


class StubVerifier:
    def __init__(self, accepted: str = CORRECT_PROOF, error: Exception = None):
        self.accepted = accepted
        self.error = error
        self.calls = []

    def __call__(self, proof, remote_ip=None):
        self.calls.append((proof, remote_ip))
        if self.error is not None:
            raise self.error
        return proof == self.accepted


def memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )


@pytest.fixture
def settings():
    return Settings(_env_file=None, store_retry_backoff_ms=0, count_cache_ttl_seconds=0)


@pytest.fixture
def engine():
    engine = memory_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(session_factory, settings):
    return Store(session_factory, settings)


@pytest.fixture
def broken_store(settings):
    # a reachable database with none of the tables behaves like a store outage
    engine = memory_engine()
    yield Store(sessionmaker(bind=engine), settings)
    engine.dispose()


@pytest.fixture
def verifier():
    return StubVerifier()


@pytest.fixture
def guard(store, settings, verifier):
    return LoginGuard(store=store, settings=settings, verifier=verifier)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed_attempts(session_factory):
    def _seed(identifier, count, identifier_type="email", success=False, ips=None, spacing=timedelta(seconds=20), start=None, cleared=False):
        ips = ips or ["10.0.0.1"]
        start = start or utcnow() - spacing * count
        session = session_factory()
        try:
            for i in range(count):
                session.add(LoginAttempt(
                    identifier=identifier,
                    identifier_type=identifier_type,
                    success=success,
                    ip_address=ips[i % len(ips)],
                    attempted_at=start + spacing * i,
                    cleared=cleared,
                    metadata_={}
                ))
            session.commit()
        finally:
            session.close()
    return _seed
