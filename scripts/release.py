"""
Release-phase helper, run before the web process starts.

Steps:
- Refuse to run on SQLite in production.
- Apply Alembic migrations.
- Seed the admin account and default studio settings (idempotent; never overwrites passwords).
- Optionally generate the default class schedule on a fresh database (SCHEDULE_BOOTSTRAP=1).

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _require_env(name: str) -> str:
    v = (os.environ.get(name) or "").strip()
    if not v:
        raise RuntimeError(f"Missing required environment variable {name}.")
    return v


def run_migrations(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def bootstrap_schedule(db_url: str, weeks: int) -> int:
    """Generate the default template only when no classes exist yet. Returns classes created."""
    from app.gymadmin.modules.classes.models import GymClass
    from app.gymadmin.modules.classes.service import generate_default_schedule
    from scripts._db_utils import script_session

    with script_session(db_url) as s:
        if s.query(GymClass).count():
            return 0
        return generate_default_schedule(s, None, weeks=weeks)


def run_release() -> None:
    db_url = _require_env("DATABASE_URL")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")

    print("=== GymXam admin release start ===", flush=True)
    print(f"ENV={env or '(unset)'}", flush=True)

    print("Running Alembic migrations...", flush=True)
    run_migrations(db_url)
    print("Migrations complete.", flush=True)

    print("Seeding admin/settings (idempotent)...", flush=True)
    from scripts import init_db

    init_db.seed_only(database_url=db_url)

    if (os.environ.get("SCHEDULE_BOOTSTRAP") or "").strip() == "1":
        weeks = int(os.environ.get("SCHEDULE_WEEKS") or 52)
        created = bootstrap_schedule(db_url, weeks)
        print(f"Schedule bootstrap: {created} classes created.", flush=True)

    print("=== GymXam admin release done ===", flush=True)


if __name__ == "__main__":
    run_release()
