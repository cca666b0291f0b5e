"""
Engine and session factory.

The API gets one session per request through `get_db`; Celery tasks call
`SessionLocal()` themselves and close it when the task returns.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storybook.core.config import settings


# pre-ping drops connections PostgreSQL closed while a worker sat in a 15 minute poll loop
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_recycle=settings.db_pool_recycle_seconds,
    connect_args={"connect_timeout": settings.db_connect_timeout_seconds},
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    """Request-scoped session; an exception escaping the route rolls it back."""
    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
