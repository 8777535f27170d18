"""Tests for the classes module (API + admin pages)."""
from datetime import date, timedelta

from app.gymadmin.db import session_scope
from app.gymadmin.models import AuditEvent
from app.gymadmin.modules.bookings.models import Booking
from app.gymadmin.modules.classes.models import GymClass
from app.gymadmin.modules.classes.schedule import monday_of
from app.gymadmin.modules.clients.models import ClientPackage
from app.gymadmin.modules.notifications.models import Notification

from conftest import add_class, add_package, add_pending_user, add_user


def test_create_class_derives_day_and_default_capacity(admin_client):
    r = admin_client.post("/api/classes", json={"name": "HIIT", "date": "2030-01-07", "time": "17:30"})
    assert r.status_code == 201
    body = r.json
    assert body["day"] == "Monday"
    assert body["time"] == "5:30 PM"
    assert body["capacity"] == 5
    assert body["enabled"] is True
    assert body["currentBookings"] == 0


def test_create_class_from_hour_minute_period(admin_client):
    r = admin_client.post(
        "/api/classes",
        json={"name": "Strength", "date": "2030-01-08T00:00:00.000Z", "timeHour": "7", "timeMinute": "5", "timePeriod": "AM", "capacity": 12},
    )
    assert r.status_code == 201
    assert r.json["time"] == "7:05 AM"
    assert r.json["day"] == "Tuesday"
    assert r.json["capacity"] == 12


def test_create_class_validation(admin_client):
    r = admin_client.post("/api/classes", json={"date": "2030-01-07", "time": "7:00 AM"})
    assert r.status_code == 400
    assert "Name is required" in r.json["error"]

    r = admin_client.post("/api/classes", json={"name": "HIIT", "time": "7:00 AM"})
    assert r.status_code == 400
    assert "Date is required" in r.json["error"]

    r = admin_client.post("/api/classes", json={"name": "HIIT", "date": "2030-01-07", "time": "7:00 AM", "capacity": 0})
    assert r.status_code == 400
    assert "Capacity" in r.json["error"]


def test_class_payload_rejects_non_text_values(app, admin_client):
    r = admin_client.post("/api/classes", json={"name": 5, "date": "2030-01-07", "time": "7:00 AM"})
    assert r.status_code == 400
    assert "Name must be text." in r.json["error"]

    r = admin_client.post("/api/classes", json={"name": "HIIT", "date": "2030-01-07", "time": 700})
    assert r.status_code == 400
    assert "Invalid time" in r.json["error"]

    r = admin_client.post(
        "/api/classes",
        json={"name": "HIIT", "date": "2030-01-07", "timeHour": 7, "timeMinute": [0], "timePeriod": "AM"},
    )
    assert r.status_code == 400
    assert "Invalid time" in r.json["error"]

    cid = add_class(app, name="Yoga")
    r = admin_client.patch(f"/api/classes/{cid}", json={"description": ["x"]})
    assert r.status_code == 400
    assert r.json["error"] == "Description must be text."
    with session_scope(app) as s:
        assert s.get(GymClass, cid).name == "Yoga"


def test_list_and_count(app, admin_client):
    add_class(app, name="Yoga", time="6:00 PM", enabled=False)
    add_class(app, name="CrossFit", time="8:00 AM")

    r = admin_client.get("/api/classes?count=true")
    assert r.json == {"count": 2}

    r = admin_client.get("/api/classes")
    assert [c["time"] for c in r.json] == ["8:00 AM", "6:00 PM"]

    r = admin_client.get("/api/classes?filter=inactive")
    assert [c["name"] for c in r.json] == ["Yoga"]

    r = admin_client.get("/api/classes?q=yog")
    assert [c["name"] for c in r.json] == ["Yoga"]


def test_filter_full_and_sort_by_bookings(app, admin_client):
    full_id = add_class(app, name="Tiny", capacity=1)
    add_class(app, name="Roomy", capacity=10)
    uid = add_user(app, email="a@example.com", name="Ann")
    with session_scope(app) as s:
        s.add(Booking(class_id=full_id, user_id=uid))

    r = admin_client.get("/api/classes?filter=full")
    assert [c["name"] for c in r.json] == ["Tiny"]

    r = admin_client.get("/api/classes?sort=bookings&order=desc")
    assert r.json[0]["name"] == "Tiny"


def test_update_and_delete_class(app, admin_client):
    cid = add_class(app)
    r = admin_client.patch(f"/api/classes/{cid}", json={"name": "Olympic Lifting", "capacity": 8, "time": "18:00"})
    assert r.status_code == 200
    assert r.json["name"] == "Olympic Lifting"
    assert r.json["capacity"] == 8
    assert r.json["time"] == "6:00 PM"

    r = admin_client.patch(f"/api/classes/{cid}", json={"capacity": 0})
    assert r.status_code == 400

    r = admin_client.delete(f"/api/classes/{cid}")
    assert r.status_code == 200
    r = admin_client.delete(f"/api/classes/{cid}")
    assert r.status_code == 404


def test_toggle_enabled(app, admin_client):
    cid = add_class(app)
    r = admin_client.post(f"/api/admin/classes/{cid}/toggle-enabled", json={"enabled": False})
    assert r.status_code == 200
    assert r.json["message"] == "Class disabled successfully"
    with session_scope(app) as s:
        assert s.get(GymClass, cid).enabled is False
        assert s.query(AuditEvent).filter(AuditEvent.action == "class.toggle").count() == 1

    r = admin_client.post("/api/admin/classes/9999/toggle-enabled", json={"enabled": True})
    assert r.status_code == 404


def test_batch_toggle_skips_unknown_ids(app, admin_client):
    a = add_class(app, time="8:00 AM")
    b = add_class(app, time="9:00 AM")
    r = admin_client.post("/api/classes/batch-toggle", json={"classIds": [a, b, 9999], "enabled": False})
    assert r.status_code == 200
    assert r.json == {"updatedCount": 2}

    r = admin_client.post("/api/classes/batch-toggle", json={"classIds": "nope", "enabled": False})
    assert r.status_code == 400


def test_week_toggle_form(app, admin_client):
    monday = monday_of(date.today()) + timedelta(weeks=1)
    first = add_class(app, on=monday)
    second = add_class(app, on=monday + timedelta(days=7))

    r = admin_client.post("/admin/classes/week/1/toggle", data={"enabled": "0"})
    assert r.status_code == 302
    with session_scope(app) as s:
        assert s.get(GymClass, first).enabled is True
        assert s.get(GymClass, second).enabled is False


def test_delete_past_keeps_last_week(app, admin_client):
    today = date.today()
    old = add_class(app, on=today - timedelta(days=8))
    recent = add_class(app, on=today - timedelta(days=7))
    future = add_class(app, on=today + timedelta(days=1))
    uid = add_user(app, email="a@example.com")
    with session_scope(app) as s:
        s.add(Booking(class_id=old, user_id=uid))

    r = admin_client.post("/api/admin/classes/delete-past")
    assert r.status_code == 200
    assert r.json == {"deleted": 1, "deletedClassIds": [old]}
    with session_scope(app) as s:
        assert {c.id for c in s.query(GymClass).all()} == {recent, future}
        assert s.query(Booking).count() == 0


def test_clear_all(app, admin_client):
    add_class(app, time="8:00 AM")
    add_class(app, time="9:00 AM")
    r = admin_client.delete("/api/admin/classes/clear-all")
    assert r.json == {"deleted": 2}
    assert admin_client.get("/api/classes?count=true").json == {"count": 0}


def test_generate_default_schedule_is_idempotent(app, admin_client):
    app.config["SCHEDULE_WEEKS"] = 2
    r = admin_client.post("/api/admin/classes/generate-default-schedule")
    assert r.status_code == 200
    assert r.json == {"totalClassesCreated": 64}

    r = admin_client.post("/api/admin/classes/generate-default-schedule")
    assert r.json == {"totalClassesCreated": 0}

    with session_scope(app) as s:
        first = s.query(GymClass).order_by(GymClass.date, GymClass.id).first()
        assert first.date == monday_of(date.today())
        assert first.day == "Monday"
        assert first.name == "CrossFit"


def test_add_user_decrements_package_and_blocks_duplicates(app, admin_client):
    cid = add_class(app, capacity=1)
    uid = add_user(app, email="ann@example.com", name="Ann")
    pid = add_package(app, uid, classes_remaining=3)

    r = admin_client.post(f"/api/admin/classes/{cid}/add-user", json={"userId": uid})
    assert r.status_code == 200
    assert r.json["preAdded"] is False
    assert r.json["message"] == "Ann added to class"

    r = admin_client.post(f"/api/admin/classes/{cid}/add-user", json={"userId": uid})
    assert r.status_code == 400
    assert "already booked" in r.json["error"]

    other = add_user(app, email="bob@example.com", name="Bob")
    r = admin_client.post(f"/api/admin/classes/{cid}/add-user", json={"userId": other})
    assert r.status_code == 400
    assert r.json["error"] == "Class is full."

    with session_scope(app) as s:
        assert s.get(ClientPackage, pid).classes_remaining == 2


def test_add_user_to_disabled_class_is_pre_added(app, admin_client):
    cid = add_class(app, enabled=False)
    uid = add_user(app, email="ann@example.com", name="Ann")
    r = admin_client.post(f"/api/admin/classes/{cid}/add-user", json={"userId": uid})
    assert r.status_code == 200
    assert r.json["preAdded"] is True
    assert "pre-added" in r.json["message"]


def test_add_user_rejects_unknown_and_pending_users(app, admin_client):
    cid = add_class(app)
    r = admin_client.post(f"/api/admin/classes/{cid}/add-user", json={"userId": 4242})
    assert r.status_code == 404

    pending = add_pending_user(app, email="new@example.com")
    r = admin_client.post(f"/api/admin/classes/{cid}/add-user", json={"userId": pending})
    assert r.status_code == 400

    r = admin_client.post(f"/api/admin/classes/{cid}/add-user", json={})
    assert r.status_code == 400


def test_remove_user_refunds_and_notifies_admins(app, admin_client):
    cid = add_class(app)
    uid = add_user(app, email="ann@example.com", name="Ann")
    pid = add_package(app, uid, classes_remaining=8, total_classes=8)
    r = admin_client.post(f"/api/admin/classes/{cid}/add-user", json={"userId": uid})
    booking_id = r.json["bookingId"]

    r = admin_client.post(f"/api/admin/classes/{cid}/remove-user", json={"bookingId": booking_id})
    assert r.status_code == 200

    with session_scope(app) as s:
        booking = s.get(Booking, booking_id)
        assert booking.status == "cancelled"
        assert booking.cancelled_at is not None
        assert s.get(ClientPackage, pid).classes_remaining == 8
        notes = s.query(Notification).filter(Notification.type == "admin_cancellation").all()
        assert len(notes) == 1
        assert "Ann was removed from CrossFit" in notes[0].message

    r = admin_client.post(f"/api/admin/classes/{cid}/remove-user", json={"bookingId": booking_id})
    assert r.status_code == 400


def test_remove_user_booking_must_belong_to_class(app, admin_client):
    a = add_class(app, time="8:00 AM")
    b = add_class(app, time="9:00 AM")
    uid = add_user(app, email="ann@example.com")
    with session_scope(app) as s:
        booking = Booking(class_id=a, user_id=uid)
        s.add(booking)
        s.flush()
        booking_id = booking.id
    r = admin_client.post(f"/api/admin/classes/{b}/remove-user", json={"bookingId": booking_id})
    assert r.status_code == 404


def test_admin_classes_list_includes_roster(app, admin_client):
    cid = add_class(app)
    uid = add_user(app, email="ann@example.com", name="Ann")
    with session_scope(app) as s:
        s.add(Booking(class_id=cid, user_id=uid))
    r = admin_client.get("/api/admin/classes")
    assert r.json[0]["currentBookings"] == 1
    assert r.json[0]["bookings"][0]["user"]["email"] == "ann@example.com"


def test_update_capacities_uses_setting(app, admin_client):
    past = add_class(app, on=date.today() - timedelta(days=3), capacity=5)
    upcoming = add_class(app, capacity=5)
    admin_client.post("/api/admin/settings", json={"section": "general", "settings": {"classCapacity": "9"}})

    r = admin_client.post("/api/admin/update-class-capacities")
    assert r.status_code == 200
    assert r.json["message"] == "Updated 1 classes to capacity 9"
    with session_scope(app) as s:
        assert s.get(GymClass, past).capacity == 5
        assert s.get(GymClass, upcoming).capacity == 9


def test_pages_render(app, admin_client):
    cid = add_class(app)
    assert admin_client.get("/admin/").status_code == 200
    assert admin_client.get("/admin/?view=day").status_code == 200
    assert admin_client.get("/admin/classes?filter=active&sort=name").status_code == 200
    assert admin_client.get(f"/admin/classes/{cid}").status_code == 200
    assert admin_client.get("/admin/classes/9999").status_code == 404


def test_new_class_form_flashes_errors(admin_client):
    r = admin_client.post("/admin/classes/new", data={"name": "", "date": "2030-01-07", "timeHour": "7", "timeMinute": "00", "timePeriod": "AM"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Name is required" in r.data

    r = admin_client.post("/admin/classes/new", data={"name": "HIIT", "date": "2030-01-07", "timeHour": "7", "timeMinute": "00", "timePeriod": "AM"}, follow_redirects=True)
    assert b"Class HIIT added" in r.data
