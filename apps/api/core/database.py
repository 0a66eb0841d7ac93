"""
Database connection management with connection pooling.

Two credentials are configured: a privileged (service-role) DSN and a
restricted (anon) DSN. DatabaseClientSelector decides which one serves
requests. The privileged client is preferred until it fails once; after
that the process stays on the restricted client.
"""
import logging
import threading
from typing import Callable, Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import QueuePool

from core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

SessionFactory = Callable[[], Session]


def build_engine(url: str) -> Engine:
    """Create an engine with pooling appropriate for the URL's backend."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, echo=settings.DEBUG)

    engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        logger.debug("New database connection established")

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,  # Rows are serialized after commit
    )


class DatabaseClientSelector:
    """
    Chooses between the privileged and restricted session factories.

    State is shared by every request in the process, so the two flags
    are read and written under a lock. The downgrade is one-way.
    """

    CHECK_SQL = text("SELECT id FROM person LIMIT 1")

    def __init__(self, privileged: SessionFactory, restricted: SessionFactory):
        self.privileged = privileged
        self.restricted = restricted
        self._lock = threading.Lock()
        self._using_service_role = True
        self._warning_logged = False

    @property
    def using_service_role(self) -> bool:
        with self._lock:
            return self._using_service_role

    def downgrade(self, reason: str) -> None:
        """Switch permanently to the restricted client, warning once."""
        with self._lock:
            self._using_service_role = False
            if self._warning_logged:
                return
            self._warning_logged = True
        logger.warning(
            "Privileged database client failed, falling back to restricted client",
            extra={"extra_fields": {"reason": reason}},
        )

    def check_privileged(self) -> Optional[str]:
        """Run a trivial read with the privileged client. Returns an error string on failure."""
        session = self.privileged()
        try:
            session.execute(self.CHECK_SQL)
            return None
        except Exception as e:
            return f"{type(e).__name__}: {e}"
        finally:
            session.close()

    def select(self) -> SessionFactory:
        """Return the session factory that should serve the current request."""
        if not self.using_service_role:
            return self.restricted

        error = self.check_privileged()
        if error is None:
            return self.privileged

        self.downgrade(error)
        return self.restricted

    def session(self) -> Session:
        return self.select()()


def build_client_selector() -> DatabaseClientSelector:
    privileged_engine = build_engine(settings.DATABASE_URL)
    if settings.anon_database_url == settings.DATABASE_URL:
        restricted_engine = privileged_engine
    else:
        restricted_engine = build_engine(settings.anon_database_url)
    return DatabaseClientSelector(
        privileged=build_session_factory(privileged_engine),
        restricted=build_session_factory(restricted_engine),
    )


def get_client_selector(request: Request) -> DatabaseClientSelector:
    """FastAPI dependency: the selector installed on the application state."""
    return request.app.state.client_selector


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency for FastAPI to get a database session.

    Commits when the handler returns normally and rolls back on error.
    Handlers that need their writes visible before responding commit
    explicitly.
    """
    db = get_client_selector(request).session()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        from fastapi import HTTPException
        if not isinstance(e, HTTPException):
            logger.error(f"Database transaction error: {e}")
        raise
    finally:
        db.close()


def check_db_connection(factory: SessionFactory) -> bool:
    """
    Check if the database is reachable through the given session factory.

    Returns:
        True if connection is healthy, False otherwise
    """
    session = factory()
    try:
        session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
    finally:
        session.close()
