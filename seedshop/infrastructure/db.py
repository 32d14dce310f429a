from contextlib import contextmanager
from typing import Iterator
import time

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from seedshop.core import get_logger
from seedshop.core_settings import Settings
from seedshop.domain.models import Base

logger = get_logger(__name__)

class DatabaseUnavailableError(RuntimeError):
    pass

class Database:
    """Store client owning the engine and its connection pool.

    Constructed once at startup, handed to the order service and disposed at
    shutdown. Every unit of work borrows a pooled connection through
    :meth:`session` or :meth:`transaction` and returns it on all exit paths.
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = url
        self.engine = create_engine(url, echo=echo, future=True, pool_pre_ping=True, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        url = settings.database_url
        engine_kwargs = {}
        if make_url(url).get_backend_name() != "sqlite":
            engine_kwargs.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
            )
        return cls(url, **engine_kwargs)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only unit of work; the session is closed on exit."""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit on success, roll back on any exception, always release the connection."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            logger.debug("Transaction rolled back")
            raise
        finally:
            db.close()

    def init_models(self) -> None:
        Base.metadata.create_all(self.engine)

    def ping(self) -> float:
        """Run ``SELECT 1`` and return the round trip in milliseconds."""
        start_time = time.perf_counter()
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return (time.perf_counter() - start_time) * 1000

    def wait_until_ready(self, max_attempts: int = 30, delay: float = 1.0) -> int:
        """Block until the database answers; return the number of attempts used."""
        for attempt in range(1, max_attempts + 1):
            try:
                self.ping()
                logger.info(f"Database ready after {attempt} attempt(s)")
                return attempt
            except SQLAlchemyError as e:
                logger.warning(f"Database not ready (attempt {attempt}/{max_attempts}): {e}")
                if attempt < max_attempts:
                    time.sleep(delay)
        raise DatabaseUnavailableError(f"Database not ready after {max_attempts} attempts")

    def dispose(self) -> None:
        self.engine.dispose()

def get_db(request: Request) -> Database:
    return request.app.state.db
