"""
SQLAlchemy engine, session factory and declarative base.

``get_db`` is the FastAPI dependency used by every router; it yields one
session per request and always closes it.  Service functions receive that
session and decide when to commit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

_engine_kwargs: dict = {"pool_pre_ping": True}
if make_url(settings.DATABASE_URL).get_backend_name() == "sqlite":
    # FastAPI runs sync endpoints in a thread pool
    _engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Create all tables that do not exist yet."""
    # Register every mapper before create_all
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("init_db: tables ensured on %s", engine.url.render_as_string(hide_password=True))


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
