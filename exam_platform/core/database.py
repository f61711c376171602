import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from exam_platform.core.config import settings
from exam_platform.core.errors import ExamPlatformError, InternalError

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    """SQLite needs cross-thread connections for the sweeper and a busy timeout for concurrent writers"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


# SQLAlchemy setup
engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)

Base = declarative_base()


# Request-scoped session dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """Create all tables registered on Base"""
    # models must be imported so their tables are registered
    import exam_platform.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def storage_errors(db, action: str):
    """Roll back and surface storage failures as InternalError.

    Domain errors raised inside the block pass through untouched. Nothing is
    retried here: a repeated transition could apply its side effects twice.
    """
    try:
        yield
    except ExamPlatformError:
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure during {action}: {e}")
        raise InternalError(f"Storage failure during {action}") from e
