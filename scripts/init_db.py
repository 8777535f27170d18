import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.gymadmin.models import ROLE_ADMIN, User  # noqa: E402
from app.gymadmin.modules.settings.service import ensure_default_settings  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def ensure_admin(s, email: str, password: str, name: str = "Admin") -> User:
    """Create the admin account if missing. Never overwrites an existing password."""
    u = s.query(User).filter(User.email == email).one_or_none()
    if not u:
        u = User(name=name, email=email, password_hash=generate_password_hash(password), role=ROLE_ADMIN, is_active=True)
        s.add(u)
        print(f"Created admin user {email}", flush=True)
    elif u.role != ROLE_ADMIN:
        u.role = ROLE_ADMIN
        print(f"Promoted existing user {email} to admin", flush=True)
    return u


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the admin user and default studio settings in an idempotent way.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@gymxam.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///gymadmin.db").strip()

    with script_session(db_url) as s:
        ensure_admin(s, admin_email, admin_password)
        created = ensure_default_settings(s)
        if created:
            print(f"Created {created} default settings sections", flush=True)


def main() -> None:
    from dotenv import load_dotenv

    load_dotenv()
    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///gymadmin.db").strip()
    if db_url.startswith("sqlite"):
        # Local dev convenience: create tables directly when migrations were not run.
        from sqlalchemy import create_engine

        from app.gymadmin.models import Base

        engine = create_engine(db_url, future=True)
        Base.metadata.create_all(bind=engine)
        engine.dispose()
    seed_only(database_url=db_url)
    print("Seed complete.", flush=True)


if __name__ == "__main__":
    main()
