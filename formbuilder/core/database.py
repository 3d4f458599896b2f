"""Database engine, session factory and declarative base.

The engine is created lazily on first use so that importing the models (for
example from Alembic or the test suite) never opens a connection. The
application lifespan calls :func:`dispose_engine` on shutdown.
"""

import logging
from collections.abc import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from formbuilder.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def engine_connect_args(url: str) -> dict:
    """Pin PostgreSQL sessions to UTC so naive timestamp columns hold UTC."""
    if url.startswith("postgresql"):
        return {"options": "-c timezone=utc"}
    return {}


_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    global _engine, _session_factory
    if _engine is None:
        _engine = create_engine(
            settings.DATABASE_URL,
            pool_pre_ping=True,
            connect_args=engine_connect_args(settings.DATABASE_URL),
        )
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
        logger.info("Database engine created")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    get_engine()
    assert _session_factory is not None
    return _session_factory


def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


def get_db() -> Iterator[Session]:
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
