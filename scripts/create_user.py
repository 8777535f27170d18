"""
Create a user account from the command line.

Pending accounts trigger the same admin notification a self-registration would.

Usage:
  python scripts/create_user.py --email jane@example.com --name "Jane Doe" --role pending
"""

from __future__ import annotations

import argparse
import getpass
import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.gymadmin.models import ROLE_PENDING, VALID_ROLES, User  # noqa: E402
from app.gymadmin.modules.pending_users.service import announce_pending_user  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def create_user(s, *, email: str, name: str, password: str, role: str) -> User:
    email = email.strip().lower()
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}")
    if s.query(User).filter(User.email == email).one_or_none():
        raise ValueError(f"User {email} already exists.")
    u = User(name=name.strip(), email=email, password_hash=generate_password_hash(password), role=role, is_active=True)
    s.add(u)
    s.flush()
    if role == ROLE_PENDING:
        announce_pending_user(s, u)
    return u


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a GymXam user account.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="")
    parser.add_argument("--role", default=ROLE_PENDING, choices=VALID_ROLES)
    args = parser.parse_args(argv)

    password = os.environ.get("NEW_USER_PASSWORD") or getpass.getpass("Password: ")
    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///gymadmin.db").strip()
    try:
        with script_session(db_url) as s:
            u = create_user(s, email=args.email, name=args.name, password=password, role=args.role)
            print(f"Created {u.role} user {u.email} (id={u.id})", flush=True)
    except ValueError as e:
        print(f"ERROR: {e}", flush=True)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
