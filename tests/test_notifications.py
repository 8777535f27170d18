from datetime import datetime, timedelta

from app.gymadmin.db import session_scope
from app.gymadmin.models import User
from app.gymadmin.modules.notifications.models import Notification
from app.gymadmin.modules.notifications.service import time_ago

from conftest import add_user


def _admin_id(app) -> int:
    with session_scope(app) as s:
        return s.query(User).filter(User.email == "admin@example.com").one().id


def _notify(app, user_id, message, *, read=False, minutes_ago=0) -> int:
    with session_scope(app) as s:
        n = Notification(
            user_id=user_id,
            type="admin_cancellation",
            message=message,
            read=read,
            created_at=datetime.utcnow() - timedelta(minutes=minutes_ago),
        )
        s.add(n)
        s.flush()
        return n.id


def test_list_and_unread_count(app, admin_client):
    admin_id = _admin_id(app)
    older = _notify(app, admin_id, "older", minutes_ago=10)
    newer = _notify(app, admin_id, "newer")
    _notify(app, admin_id, "seen", read=True, minutes_ago=20)

    r = admin_client.get("/api/admin/notifications")
    assert r.status_code == 200
    assert [n["id"] for n in r.json["notifications"]][:2] == [newer, older]
    assert r.json["unreadCount"] == 2

    r = admin_client.get("/api/admin/notifications?unreadOnly=true&limit=1")
    assert [n["id"] for n in r.json["notifications"]] == [newer]

    r = admin_client.get("/api/admin/notifications?limit=abc")
    assert r.status_code == 400


def test_mark_read_and_all_read(app, admin_client):
    admin_id = _admin_id(app)
    a = _notify(app, admin_id, "a")
    _notify(app, admin_id, "b")

    r = admin_client.put("/api/admin/notifications", json={"notificationIds": [a]})
    assert r.json == {"updated": 1, "unreadCount": 1}

    r = admin_client.put("/api/admin/notifications", json={"markAllRead": True})
    assert r.json == {"updated": 1, "unreadCount": 0}

    r = admin_client.put("/api/admin/notifications", json={})
    assert r.status_code == 400


def test_cannot_touch_other_users_notifications(app, admin_client):
    other = add_user(app, email="other-admin@example.com", role="admin")
    theirs = _notify(app, other, "not yours")
    r = admin_client.put("/api/admin/notifications", json={"notificationIds": [theirs]})
    assert r.json["updated"] == 0
    r = admin_client.delete(f"/api/admin/notifications?id={theirs}")
    assert r.status_code == 404


def test_delete_notification(app, admin_client):
    nid = _notify(app, _admin_id(app), "bye")
    r = admin_client.delete("/api/admin/notifications")
    assert r.status_code == 400
    r = admin_client.delete(f"/api/admin/notifications?id={nid}")
    assert r.status_code == 200
    with session_scope(app) as s:
        assert s.get(Notification, nid) is None


def test_diagnostics_endpoints(app, admin_client):
    r = admin_client.post("/api/admin/test-notifications")
    assert r.json["created"] == 3

    r = admin_client.post("/api/admin/simple-test")
    assert r.json["created"] == 1

    r = admin_client.get("/api/admin/check-notifications")
    assert r.json["totalNotifications"] == 4
    assert [a["email"] for a in r.json["adminUsers"]] == ["admin@example.com"]

    r = admin_client.delete("/api/admin/simple-test")
    assert r.json["deleted"] == 1

    r = admin_client.delete("/api/admin/test-notifications")
    assert r.json["deleted"] == 3


def test_diagnostics_hidden_in_production(app, admin_client):
    app.config["ENV"] = "production"
    assert admin_client.get("/api/admin/check-notifications").status_code == 404
    assert admin_client.post("/api/admin/simple-test").status_code == 404

    app.config["ADMIN_DIAGNOSTICS_ENABLED"] = True
    assert admin_client.get("/api/admin/check-notifications").status_code == 200


def test_notifications_page_actions(app, admin_client):
    admin_id = _admin_id(app)
    nid = _notify(app, admin_id, "Ann cancelled HIIT")
    r = admin_client.get("/admin/notifications")
    assert r.status_code == 200
    assert b"Ann cancelled HIIT" in r.data

    admin_client.post(f"/admin/notifications/{nid}/read")
    with session_scope(app) as s:
        assert s.get(Notification, nid).read is True

    r = admin_client.post(f"/admin/notifications/{nid}/delete")
    assert r.status_code == 302
    assert admin_client.post(f"/admin/notifications/{nid}/delete").status_code == 404


def test_time_ago():
    now = datetime(2024, 11, 18, 12, 0, 0)
    assert time_ago(now - timedelta(seconds=10), now) == "less than a minute ago"
    assert time_ago(now - timedelta(minutes=1), now) == "1 minute ago"
    assert time_ago(now - timedelta(minutes=5), now) == "5 minutes ago"
    assert time_ago(now - timedelta(hours=3), now) == "about 3 hours ago"
    assert time_ago(now - timedelta(days=2), now) == "2 days ago"
    assert time_ago(None, now) == ""
