"""
Generate the default weekly class template for N weeks (idempotent).

Usage:
  python scripts/generate_schedule.py                 # 52 weeks from this Monday
  python scripts/generate_schedule.py --weeks 12 --start 2026-01-05
"""

from __future__ import annotations

import argparse
import os
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.gymadmin.modules.classes.service import generate_default_schedule  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--weeks", type=int, default=int(os.environ.get("SCHEDULE_WEEKS") or 52))
    parser.add_argument("--start", type=date.fromisoformat, default=None, help="YYYY-MM-DD (defaults to today)")
    args = parser.parse_args(argv)

    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///gymadmin.db").strip()
    with script_session(db_url) as s:
        created = generate_default_schedule(s, None, start=args.start, weeks=args.weeks)
    print(f"Created {created} classes.", flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
