"""
Engine and session factory construction.

SQLite is the default backend; foreign keys are enforced and writers wait
for the database lock instead of failing immediately, so concurrent
ingestion of the same URL surfaces as a unique-constraint violation.
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DatabaseConfig
from .models import Base

logger = logging.getLogger(__name__)


def create_engine_from_config(cfg: DatabaseConfig) -> Engine:
    """Create a SQLAlchemy engine for ``cfg.url``."""
    if cfg.url.startswith("sqlite"):
        kwargs = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": cfg.busy_timeout_seconds,
            },
            "echo": cfg.echo,
        }
        if ":memory:" in cfg.url or cfg.url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(cfg.url, **kwargs)
        event.listen(engine, "connect", _set_sqlite_pragma)
        return engine

    return create_engine(cfg.url, pool_pre_ping=True, echo=cfg.echo)


def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def init_database(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=engine)
    logger.debug("Database schema ready at %s", engine.url)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
