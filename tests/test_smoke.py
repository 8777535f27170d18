import re

from app.gymadmin.db import build_engine, normalize_db_url, session_scope
from app.gymadmin.models import User
from app.gymadmin.modules.notifications.models import Notification

from conftest import add_package, add_pending_user, add_user


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json == {"ok": True, "database": "ok"}


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200


def test_root_redirects_to_dashboard(client):
    r = client.get("/")
    assert r.status_code == 302
    assert "/admin/" in r.headers["Location"]


def test_login_and_admin_access(client):
    # Anonymous is sent to the login page
    r = client.get("/admin/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Dashboard" in r.data


def test_bad_password_is_rejected(client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"}, follow_redirects=True)
    assert b"Invalid credentials" in r.data
    r = client.get("/admin/")
    assert r.status_code == 302


def test_client_account_cannot_sign_in(app, client):
    add_user(app, email="member@example.com", name="Member")
    r = client.post("/auth/login", data={"email": "member@example.com", "password": "pw"}, follow_redirects=True)
    assert b"permission to access the admin area" in r.data
    r = client.get("/admin/")
    assert r.status_code == 302


def test_api_requires_authentication(client):
    r = client.get("/api/admin/bookings")
    assert r.status_code == 401
    assert r.json["error"] == "Authentication required"


def test_api_rejects_non_admin_session(app, client):
    uid = add_user(app, email="member@example.com", name="Member")
    with client.session_transaction() as sess:
        sess["user_id"] = uid
    r = client.get("/api/admin/clients")
    assert r.status_code == 403
    assert r.json["error"] == "Admin access required"


def test_mutation_without_csrf_is_rejected(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.post("/api/classes", json={"name": "HIIT", "date": "2030-01-07", "time": "7:00 AM"})
    assert r.status_code == 400
    assert "CSRF" in r.json["error"]


def test_unknown_api_route_returns_json_404(admin_client):
    r = admin_client.get("/api/admin/does-not-exist")
    assert r.status_code == 404
    assert r.json["error"] == "Not found"


def test_logout_clears_session(admin_client):
    r = admin_client.get("/auth/logout")
    assert r.status_code == 302
    r = admin_client.get("/admin/")
    assert r.status_code == 302


def test_audit_page_lists_login(admin_client):
    r = admin_client.get("/admin/audit?action=auth.login")
    assert r.status_code == 200
    assert b"auth.login" in r.data


def test_diagnostics_page_available_outside_production(admin_client):
    r = admin_client.get("/admin/diagnostics")
    assert r.status_code == 200
    assert b"connected" in r.data


def test_pending_account_is_told_to_wait(app, client):
    add_user(app, email="new@example.com", role="pending")
    r = client.post("/auth/login", data={"email": "new@example.com", "password": "pw"}, follow_redirects=True)
    assert b"awaiting approval" in r.data


def test_login_throttle(app, client):
    app.config["LOGIN_RATE_LIMIT"] = 2
    for _ in range(2):
        client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"})
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    assert b"Too many login attempts" in r.data
    assert client.get("/admin/").status_code == 302


def test_login_honours_local_next_only(client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw", "next": "/admin/clients"})
    assert r.headers["Location"].endswith("/admin/clients")
    client.get("/auth/logout")
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw", "next": "//evil.example"})
    assert r.headers["Location"].endswith("/admin/")


def test_dashboard_counts_and_sidebar_badges(app, admin_client):
    ann = add_user(app, email="ann@example.com", name="Ann")
    add_package(app, ann)
    add_user(app, email="bob@example.com", name="Bob")
    add_pending_user(app, email="new@example.com")
    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        s.add_all(
            [
                Notification(user_id=admin.id, type="admin_cancellation", message="Ann cancelled HIIT"),
                Notification(user_id=admin.id, type="admin_cancellation", message="Bob cancelled Yoga"),
                Notification(user_id=admin.id, type="admin_cancellation", message="old", read=True),
            ]
        )

    r = admin_client.get("/admin/")
    assert r.status_code == 200
    html = r.get_data(as_text=True)
    assert "Clients: 2 (1 with an active package)" in html
    assert "Pending users: 1" in html
    assert "Unread notifications: 2" in html
    assert re.search(r'Notifications\s*<span class="badge">2</span>', html)
    assert re.search(r'Pending Users\s*<span class="badge">1</span>', html)

    # badges follow the admin to every page
    html = admin_client.get("/admin/bookings").get_data(as_text=True)
    assert re.search(r'Notifications\s*<span class="badge">2</span>', html)


def test_postgres_urls_use_psycopg_driver():
    assert normalize_db_url("postgres://u:p@db/gym") == "postgresql+psycopg://u:p@db/gym"
    assert normalize_db_url("postgresql://u:p@db/gym") == "postgresql+psycopg://u:p@db/gym"
    assert normalize_db_url("postgresql+psycopg2://u:p@db/gym") == "postgresql+psycopg2://u:p@db/gym"
    assert normalize_db_url("sqlite:///gym.db") == "sqlite:///gym.db"

    engine = build_engine("postgresql://u:p@localhost/gym")
    assert engine.dialect.driver == "psycopg"
    engine.dispose()
