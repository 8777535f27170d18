from datetime import datetime, timedelta

from app.gymadmin.db import session_scope
from app.gymadmin.models import User
from app.gymadmin.modules.notifications.models import Notification
from app.gymadmin.modules.pending_users.service import announce_pending_user

from conftest import add_pending_user, add_user


def test_list_pending_users_newest_first(app, admin_client):
    older = add_user(app, email="old@example.com", role="pending", created_at=datetime.utcnow() - timedelta(days=1))
    newer = add_pending_user(app, email="new@example.com")
    add_user(app, email="client@example.com")

    r = admin_client.get("/api/admin/pending-users")
    assert r.status_code == 200
    assert [u["id"] for u in r.json] == [newer, older]
    assert r.json[0]["role"] == "pending"


def test_approve_pending_user(app, admin_client):
    uid = add_pending_user(app, email="new@example.com", name="Newbie")
    r = admin_client.post("/api/admin/pending-users", json={"userId": uid})
    assert r.status_code == 200
    assert r.json["user"]["role"] == "client"
    with session_scope(app) as s:
        assert s.get(User, uid).role == "client"

    # Already approved users are no longer pending.
    r = admin_client.post("/api/admin/pending-users", json={"userId": uid})
    assert r.status_code == 404


def test_decline_pending_user(app, admin_client):
    uid = add_pending_user(app, email="new@example.com")
    r = admin_client.delete(f"/api/admin/pending-users?userId={uid}")
    assert r.status_code == 200
    with session_scope(app) as s:
        assert s.get(User, uid) is None

    other = add_pending_user(app, email="other@example.com")
    r = admin_client.delete("/api/admin/pending-users", json={"userId": other})
    assert r.status_code == 200


def test_pending_user_errors(app, admin_client):
    assert admin_client.post("/api/admin/pending-users", json={}).status_code == 400
    assert admin_client.post("/api/admin/pending-users", json={"userId": "abc"}).status_code == 400
    assert admin_client.delete("/api/admin/pending-users").status_code == 400

    client_id = add_user(app, email="client@example.com")
    assert admin_client.post("/api/admin/pending-users", json={"userId": client_id}).status_code == 404


def test_pending_users_page_actions(app, admin_client):
    uid = add_pending_user(app, email="new@example.com", name="Newbie")
    r = admin_client.get("/admin/pending-users")
    assert r.status_code == 200
    assert b"new@example.com" in r.data

    r = admin_client.post(f"/admin/pending-users/{uid}/approve", follow_redirects=True)
    assert b"Newbie approved" in r.data

    r = admin_client.post(f"/admin/pending-users/{uid}/decline", follow_redirects=True)
    assert b"Pending user not found" in r.data


def test_announce_pending_user_notifies_admins(app):
    uid = add_pending_user(app, email="new@example.com", name="Newbie")
    with session_scope(app) as s:
        announce_pending_user(s, s.get(User, uid))
    with session_scope(app) as s:
        notes = s.query(Notification).all()
        assert len(notes) == 1
        assert notes[0].type == "pending_user"
        assert "Newbie (new@example.com)" in notes[0].message
