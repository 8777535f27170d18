from __future__ import annotations

from contextlib import contextmanager

from app.gymadmin.db import build_engine, committing, make_sessionmaker


@contextmanager
def script_session(db_url: str):
    """Session for command-line scripts: commits on success, rolls back on error."""
    engine = build_engine(db_url)
    try:
        with committing(make_sessionmaker(engine)) as s:
            yield s
    finally:
        engine.dispose()
