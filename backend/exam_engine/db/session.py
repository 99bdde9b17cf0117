"""Database engine, declarative base and request-scoped sessions.

The engine is built on first use, so importing the models (tests, Alembic
revisions) never opens a connection. Postgres is the deployment target;
a ``sqlite:///`` URL is accepted for local runs.
"""

from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from exam_engine.config import settings

_engine: Engine | None = None
_session_factory: sessionmaker | None = None  # type: ignore[type-arg]


class Base(DeclarativeBase):
    """Declarative base for the exam engine tables."""


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        url = settings.DATABASE_URL
        if _is_sqlite(url):
            _engine = create_engine(
                url,
                echo=settings.DATABASE_ECHO,
                connect_args={"check_same_thread": False},
            )
            event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
        else:
            _engine = create_engine(
                url,
                echo=settings.DATABASE_ECHO,
                pool_size=settings.DATABASE_POOL_SIZE,
                pool_pre_ping=True,
            )
    return _engine


def get_session_factory() -> sessionmaker:  # type: ignore[type-arg]
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)
    return _session_factory


def init_db() -> None:
    """Create every table directly; local runs only, deployments use Alembic."""
    from exam_engine.db import models  # noqa: F401  registers the tables

    Base.metadata.create_all(bind=get_engine())


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request, always closed."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
