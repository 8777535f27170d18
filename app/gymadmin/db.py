from __future__ import annotations

import logging
from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

# Pool sizing for Postgres; SQLite uses SQLAlchemy's defaults.
POSTGRES_POOL_OPTIONS: dict[str, object] = {
    "pool_recycle": 1800,
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 30,
}

# psycopg 3; a bare postgresql:// URL resolves to psycopg2 on SQLAlchemy 2.0.
POSTGRES_DRIVER = "postgresql+psycopg"


def normalize_db_url(db_url: str) -> str:
    for prefix in ("postgres://", "postgresql://"):
        if db_url.startswith(prefix):
            return f"{POSTGRES_DRIVER}://{db_url[len(prefix):]}"
    return db_url


def build_engine(db_url: str, *, log_checkouts: bool = False) -> Engine:
    """Engine for the app and the command-line scripts alike."""
    db_url = normalize_db_url(db_url)
    engine_kwargs: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        engine_kwargs.update(POSTGRES_POOL_OPTIONS)
    engine = create_engine(db_url, **engine_kwargs)

    if db_url.startswith("sqlite"):
        # Bookings, packages and notifications rely on ON DELETE CASCADE.
        @event.listens_for(engine, "connect")
        def _sqlite_fk_pragma(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    if log_checkouts:
        @event.listens_for(engine, "checkout")
        def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            logger.debug("DB connection checkout from pool")

    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_db(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    engine = build_engine(app.config["DATABASE_URL"], log_checkouts=env not in ("prod", "production"))
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)


def db_session() -> Session:
    """
    Request-scoped session. Use inside request handlers; closed on app-context teardown.
    """
    s = getattr(g, "db_session", None)
    if s is None:
        s = current_app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is not None:
        s.close()


@contextmanager
def committing(sm: sessionmaker) -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on error."""
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Non-request helper for tests and one-off jobs run inside the app.
    """
    with committing(app.extensions["sqlalchemy_sessionmaker"]) as s:
        yield s
