from datetime import date, datetime, timedelta

import pytest
from werkzeug.security import generate_password_hash

from app.gymadmin import create_app
from app.gymadmin.db import session_scope
from app.gymadmin.models import ROLE_ADMIN, ROLE_CLIENT, ROLE_PENDING, Base, User
from app.gymadmin.modules.classes.models import GymClass
from app.gymadmin.modules.clients.models import ClientPackage

CSRF = "test-csrf-token"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("ADMIN_DIAGNOSTICS_ENABLED", raising=False)
    monkeypatch.delenv("SCHEDULE_WEEKS", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(name="Admin", email="admin@example.com", password_hash=generate_password_hash("pw"), role=ROLE_ADMIN))
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_client(client):
    """Logged-in admin client that sends a valid CSRF token on every request."""
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF
    client.environ_base["HTTP_X_CSRF_TOKEN"] = CSRF
    return client


def add_user(app, *, email, name="", role=ROLE_CLIENT, created_at=None) -> int:
    with session_scope(app) as s:
        u = User(
            name=name,
            email=email,
            password_hash=generate_password_hash("pw"),
            role=role,
            created_at=created_at or datetime.utcnow(),
        )
        s.add(u)
        s.flush()
        return u.id


def add_pending_user(app, *, email, name="") -> int:
    return add_user(app, email=email, name=name, role=ROLE_PENDING)


def add_class(app, *, name="CrossFit", on=None, time="8:00 AM", capacity=5, enabled=True) -> int:
    from app.gymadmin.modules.classes.schedule import weekday_name

    on = on or date.today() + timedelta(days=1)
    with session_scope(app) as s:
        cls = GymClass(
            name=name,
            day=weekday_name(on),
            date=on,
            time=time,
            capacity=capacity,
            enabled=enabled,
        )
        s.add(cls)
        s.flush()
        return cls.id


def add_package(app, user_id, *, classes_remaining=8, total_classes=8, ends_in_days=20, active=True) -> int:
    today = date.today()
    with session_scope(app) as s:
        pkg = ClientPackage(
            user_id=user_id,
            name="8-Class Package: 30 days",
            package_type="8-class",
            total_classes=total_classes,
            classes_remaining=classes_remaining,
            start_date=today - timedelta(days=10),
            end_date=today + timedelta(days=ends_in_days),
            active=active,
        )
        s.add(pkg)
        s.flush()
        return pkg.id
