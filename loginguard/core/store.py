import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from loginguard.config import Settings, settings as default_settings
from loginguard.core.errors import StoreUnavailable
from loginguard.core.logger import logger

T = TypeVar("T")


class Store:
    """Handle on the six record collections.

    Wraps a SQLAlchemy session factory. Reads are attempted once; writes are
    retried a bounded number of times on transient (operational) failures.
    Either path reports exhaustion as ``StoreUnavailable``. Integrity errors
    are not transient and propagate unchanged so callers can resolve
    uniqueness conflicts themselves.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        settings: Optional[Settings] = None
    ):
        if session_factory is None:
            from loginguard.core.database import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory
        self.settings = settings or default_settings
        self.write_retries = max(1, self.settings.store_write_retries)
        self.retry_backoff = self.settings.store_retry_backoff_ms / 1000.0

    @contextmanager
    def read(self) -> Iterator[Session]:
        db = None
        try:
            db = self.session_factory()
            yield db
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            if db is not None:
                db.close()

    def write(self, operation: Callable[[Session], T]) -> T:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.write_retries + 1):
            db = None
            try:
                db = self.session_factory()
                result = operation(db)
                db.commit()
                return result
            except IntegrityError:
                if db is not None:
                    db.rollback()
                raise
            except OperationalError as e:
                last_error = e
                if db is not None:
                    db.rollback()
                logger.warning(
                    "store_write_retry",
                    attempt=attempt,
                    max_attempts=self.write_retries,
                    error=str(e)
                )
                if attempt < self.write_retries:
                    time.sleep(self.retry_backoff * attempt)
            except SQLAlchemyError as e:
                if db is not None:
                    db.rollback()
                raise StoreUnavailable(str(e)) from e
            finally:
                if db is not None:
                    db.close()

        raise StoreUnavailable(str(last_error)) from last_error
