from datetime import date, timedelta

from app.gymadmin.db import session_scope
from app.gymadmin.models import AuditEvent, User
from app.gymadmin.modules.clients.models import ClientPackage
from app.gymadmin.modules.clients.service import status_counts
from app.gymadmin.modules.notifications.models import Notification

from conftest import add_package, add_pending_user, add_user


def test_clients_api_status_and_package(app, admin_client):
    active = add_user(app, email="ann@example.com", name="Ann")
    add_package(app, active, ends_in_days=20)
    warning = add_user(app, email="bob@example.com", name="Bob")
    add_package(app, warning, ends_in_days=3)
    add_user(app, email="cat@example.com", name="Cat")
    add_pending_user(app, email="new@example.com")

    r = admin_client.get("/api/admin/clients")
    assert r.status_code == 200
    by_email = {c["email"]: c for c in r.json}
    assert set(by_email) == {"ann@example.com", "bob@example.com", "cat@example.com"}
    assert by_email["ann@example.com"]["status"] == "active"
    assert by_email["ann@example.com"]["package"]["daysRemaining"] == 20
    assert by_email["bob@example.com"]["status"] == "warning"
    assert by_email["cat@example.com"]["status"] == "expired"
    assert by_email["cat@example.com"]["package"] is None


def test_clients_filter_and_search(app, admin_client):
    ann = add_user(app, email="ann@example.com", name="Ann")
    add_package(app, ann)
    add_user(app, email="bob@example.com", name="Bob")

    r = admin_client.get("/api/admin/clients?filter=nopackage")
    assert [c["name"] for c in r.json] == ["Bob"]

    r = admin_client.get("/api/admin/clients?q=ann")
    assert [c["name"] for c in r.json] == ["Ann"]

    r = admin_client.get("/api/admin/clients?sort=name&order=desc")
    assert [c["name"] for c in r.json] == ["Bob", "Ann"]


def test_nopackage_filter_includes_expired_packages(app, admin_client):
    ann = add_user(app, email="ann@example.com", name="Ann")
    add_package(app, ann, ends_in_days=-5)
    bob = add_user(app, email="bob@example.com", name="Bob")
    add_package(app, bob)

    r = admin_client.get("/api/admin/clients?filter=nopackage")
    assert [c["name"] for c in r.json] == ["Ann"]
    assert r.json[0]["package"] is None

    with session_scope(app) as s:
        assert status_counts(s)["nopackage"] == 1


def test_assign_package_replaces_active_package(app, admin_client):
    uid = add_user(app, email="ann@example.com", name="Ann")
    old = add_package(app, uid)

    r = admin_client.post(f"/api/admin/clients/{uid}/assign-package", json={"packageType": "12-class"})
    assert r.status_code == 200
    pkg = r.json["package"]
    assert pkg["name"] == "12-Class Package: 30 days"
    assert pkg["totalClasses"] == 12
    assert pkg["classesRemaining"] == 12
    assert pkg["startDate"] == date.today().isoformat()
    assert pkg["endDate"] == (date.today() + timedelta(days=30)).isoformat()

    with session_scope(app) as s:
        assert s.get(ClientPackage, old).active is False
        notes = s.query(Notification).filter(Notification.user_id == uid).all()
        assert [n.type for n in notes] == ["package_assigned"]


def test_assign_unlimited_and_duration_setting(app, admin_client):
    uid = add_user(app, email="ann@example.com")
    admin_client.post("/api/admin/settings", json={"section": "packages", "settings": {"packageDuration": "60"}})

    r = admin_client.post(f"/api/admin/clients/{uid}/assign-package", json={"packageType": "unlimited"})
    assert r.json["package"]["totalClasses"] == 999
    assert r.json["package"]["name"] == "Unlimited Package: 60 days"


def test_assign_package_validation(app, admin_client):
    uid = add_user(app, email="ann@example.com")
    r = admin_client.post(f"/api/admin/clients/{uid}/assign-package", json={"packageType": "20-class"})
    assert r.status_code == 400
    assert "Invalid package type" in r.json["error"]

    r = admin_client.post("/api/admin/clients/9999/assign-package", json={"packageType": "8-class"})
    assert r.status_code == 404


def test_update_classes_and_expiration(app, admin_client):
    uid = add_user(app, email="ann@example.com")
    pid = add_package(app, uid, classes_remaining=8)

    r = admin_client.post(
        "/api/admin/clients/update-classes",
        json={"clientId": uid, "packageId": pid, "classesRemaining": 3},
    )
    assert r.status_code == 200
    assert r.json["package"]["classesRemaining"] == 3

    r = admin_client.post(
        "/api/admin/clients/update-classes",
        json={"clientId": uid, "packageId": pid, "classesRemaining": -1},
    )
    assert r.status_code == 400

    r = admin_client.post("/api/admin/clients/update-classes", json={"clientId": uid})
    assert r.status_code == 400
    assert "packageId" in r.json["error"]

    new_end = (date.today() + timedelta(days=45)).isoformat()
    r = admin_client.post(
        "/api/admin/clients/update-expiration",
        json={"clientId": uid, "packageId": pid, "newExpirationDate": new_end},
    )
    assert r.status_code == 200
    assert r.json["package"]["endDate"] == new_end


def test_update_expiration_reactivates_package(app, admin_client):
    uid = add_user(app, email="ann@example.com")
    pid = add_package(app, uid, ends_in_days=-2, active=False)
    new_end = (date.today() + timedelta(days=5)).isoformat()
    r = admin_client.post(
        "/api/admin/clients/update-expiration",
        json={"clientId": uid, "packageId": pid, "newExpirationDate": new_end},
    )
    assert r.status_code == 200
    assert r.json["package"]["active"] is True


def test_update_expiration_rejects_unknown_package(app, admin_client):
    uid = add_user(app, email="ann@example.com")
    other = add_user(app, email="bob@example.com")
    pid = add_package(app, other)
    r = admin_client.post(
        "/api/admin/clients/update-expiration",
        json={"clientId": uid, "packageId": pid, "newExpirationDate": "2030-01-01"},
    )
    assert r.status_code == 404


def test_adjust_classes_records_reason(app, admin_client):
    uid = add_user(app, email="ann@example.com")
    pid = add_package(app, uid)
    r = admin_client.post(
        f"/api/admin/clients/{uid}/adjust-classes",
        json={"packageId": pid, "newClassesRemaining": 5, "reason": "Missed class credit"},
    )
    assert r.status_code == 200
    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "client.classes_adjust").one()
        assert ev.reason == "Missed class credit"


def test_remind_creates_notification(app, admin_client):
    uid = add_user(app, email="ann@example.com", name="Ann")
    add_package(app, uid, ends_in_days=3)
    r = admin_client.post(f"/api/admin/clients/{uid}/remind")
    assert r.status_code == 200
    assert r.json["message"] == "Reminder sent to Ann"
    with session_scope(app) as s:
        n = s.get(Notification, r.json["notificationId"])
        assert n.user_id == uid
        assert n.type == "renewal_reminder"
        assert "expires in 3 days" in n.message


def test_remind_without_package(app, admin_client):
    uid = add_user(app, email="ann@example.com")
    r = admin_client.post(f"/api/admin/clients/{uid}/remind")
    assert r.status_code == 400


def test_users_list_and_delete(app, admin_client):
    uid = add_user(app, email="ann@example.com", name="Ann")
    add_package(app, uid)
    r = admin_client.get("/api/admin/users")
    assert r.json == [{"id": uid, "name": "Ann", "email": "ann@example.com"}]

    r = admin_client.delete(f"/api/admin/users/{uid}")
    assert r.status_code == 200
    with session_scope(app) as s:
        assert s.get(User, uid) is None
        assert s.query(ClientPackage).count() == 0

    r = admin_client.delete(f"/api/admin/users/{uid}")
    assert r.status_code == 404


def test_cannot_delete_admin_through_users_api(app, admin_client):
    with session_scope(app) as s:
        admin_id = s.query(User).filter(User.email == "admin@example.com").one().id
    r = admin_client.delete(f"/api/admin/users/{admin_id}")
    assert r.status_code == 400


def test_clients_page_and_forms(app, admin_client):
    uid = add_user(app, email="ann@example.com", name="Ann")
    r = admin_client.get("/admin/clients")
    assert r.status_code == 200
    assert b"ann@example.com" in r.data

    r = admin_client.post(f"/admin/clients/{uid}/assign-package", data={"packageType": "8-class"}, follow_redirects=True)
    assert b"Assigned 8-Class Package" in r.data

    with session_scope(app) as s:
        pid = s.query(ClientPackage).filter(ClientPackage.user_id == uid).one().id
    r = admin_client.post(
        f"/admin/clients/{uid}/adjust-classes",
        data={"packageId": pid, "newClassesRemaining": "4"},
        follow_redirects=True,
    )
    assert b"Reason is required" in r.data
