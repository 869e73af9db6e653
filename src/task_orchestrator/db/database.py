import threading

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from src.task_orchestrator.config import db_settings, get_settings

# --- Lazy Initialization for Database Engine and Session Factory ---

_engine = None
_SessionLocal = None
_lock = threading.Lock()


def _initialize_factory():
    """
    Lazy initializer for the database engine and session factory.
    This prevents settings from being loaded at import time and is thread-safe.

    Database switching is controlled by USE_SQLITE flag in settings.
    """
    global _engine, _SessionLocal
    with _lock:
        if _engine is None:
            settings = get_settings()

            # use_sqlite=True -> SQLite (offline development/testing)
            # use_sqlite=False -> PostgreSQL (production)
            if settings.use_sqlite:
                db_url = f"sqlite:///{settings.sqlite_file_path}"

                # Celery workers and the CLI may share the file across threads
                _engine = create_engine(
                    db_url, connect_args={"check_same_thread": False}
                )

            else:
                db_url = db_settings.database_url
                if not db_url:
                    raise ValueError(
                        "DATABASE_URL must be set when USE_SQLITE is False."
                    )
                _engine = create_engine(db_url, pool_pre_ping=True)

            _SessionLocal = sessionmaker(
                autocommit=False, autoflush=False, bind=_engine
            )


def create_db_session():
    """
    Creates a new SQLAlchemy session.
    For direct use in places like the CLI or background tasks.
    """
    _initialize_factory()
    return _SessionLocal()


def get_db():
    """
    Generator that provides a database session and ensures it's closed.
    """
    session = create_db_session()
    try:
        yield session
    finally:
        session.close()


# --- Declarative Base for Models ---

Base = declarative_base()


# Make Base and Engine accessible to external modules (especially test fixtures)
def get_engine():
    _initialize_factory()
    return _engine
