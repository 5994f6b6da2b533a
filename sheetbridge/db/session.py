import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from sheetbridge.core.config import settings

logger = logging.getLogger(__name__)

_engine = None


def _report_connection_failure(exc: Exception) -> None:
    """Log high-signal diagnostics when the application cannot reach the database."""
    logger.warning(f"Could not connect to database: {exc}")
    logger.warning("The application will start but database operations will fail until the connection succeeds.")

    try:
        url = make_url(settings.database_url)
    except Exception as parse_error:  # pragma: no cover
        logger.warning(f"Unable to parse DATABASE_URL ({parse_error}); skipping detailed diagnostics.")
        return

    logger.warning(
        "Database connection settings: dialect=%s host=%s port=%s database=%s user=%s",
        url.get_backend_name(),
        url.host or "localhost",
        url.port or "(default)",
        url.database,
        url.username,
    )


def _engine_kwargs(database_url: str) -> dict:
    # SQLite connections are shared with the webhook dispatch thread
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def get_engine():
    global _engine
    if _engine is None:
        kwargs = _engine_kwargs(settings.database_url)
        try:
            _engine = create_engine(settings.database_url, **kwargs)
            # Test connection eagerly so failures surface immediately.
            with _engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            _report_connection_failure(e)
            # Create the engine anyway so callers can proceed (may still fail later).
            _engine = create_engine(settings.database_url, **kwargs)
    return _engine


def dispose_engine() -> None:
    """Drop the cached engine so the next call picks up a new DATABASE_URL."""
    global _engine, SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    SessionLocal = None


# Don't create engine at import time
SessionLocal = None

Base = declarative_base()


def get_session_local():
    global SessionLocal
    if SessionLocal is None:
        engine = get_engine()
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    return SessionLocal


def get_db():
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create the pipeline tables if they are missing."""
    # Import models so they register on Base.metadata
    from sheetbridge.db import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info("Pipeline tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


@contextmanager
def session_scope():
    """Session for one unit of work; rolled back if the block raises."""
    session = get_session_local()()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
