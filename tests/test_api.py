import os
import sys
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from fixlink.main import app

client = TestClient(app)


def _login(user_id: str) -> dict:
    response = client.post("/auth/login", json={"user_id": user_id, "password": "fixlink-demo"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _booking_payload(service_id: str = "svc_1", days_ahead: int = 3, **overrides) -> dict:
    payload = {
        "service_id": service_id,
        "scheduled_date": (datetime.now(timezone.utc) + timedelta(days=days_ahead)).isoformat(),
        "scheduled_time": "10:00",
        "duration": 2,
        "location": {"address": "Marina Walk, Dubai Marina", "coordinates": [25.08, 55.14]},
        "description": "Leaking pipe under the kitchen sink",
    }
    payload.update(overrides)
    return payload


def test_health_ok():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_auth_login_and_me():
    headers = _login("provider_2")
    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json() == {"user_id": "provider_2", "role": "provider"}


def test_auth_rejects_bad_password_and_missing_token():
    bad = client.post("/auth/login", json={"user_id": "customer_1", "password": "wrong"})
    assert bad.status_code == 401

    assert client.get("/bookings").status_code == 401
    assert client.get("/bookings", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_booking_golden_path():
    customer = _login("customer_1")
    provider = _login("provider_1")

    created = client.post("/bookings", json=_booking_payload(), headers=customer)
    assert created.status_code == 201
    booking = created.json()
    assert booking["status"] == "pending"
    assert booking["total_amount"] == 170
    assert booking["service"]["name"] == "Emergency Plumbing Repair"
    assert booking["can_be_cancelled"] is True
    booking_id = booking["id"]

    confirmed = client.put(f"/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=provider)
    assert confirmed.status_code == 200

    skipped = client.put(f"/bookings/{booking_id}/status", json={"status": "completed"}, headers=provider)
    assert skipped.status_code == 409
    assert skipped.json()["detail"]["kind"] == "invalid_state"

    for status in ("in-progress", "completed"):
        response = client.put(f"/bookings/{booking_id}/status", json={"status": status}, headers=provider)
        assert response.status_code == 200
        assert response.json()["status"] == status

    reviewed = client.post(
        f"/bookings/{booking_id}/review",
        json={"rating": 5, "review": "Fixed in under an hour"},
        headers=customer,
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["rating"] == 5

    again = client.post(f"/bookings/{booking_id}/review", json={"rating": 2}, headers=customer)
    assert again.status_code == 409
    assert again.json()["detail"]["kind"] == "conflict"

    fetched = client.get(f"/bookings/{booking_id}", headers=customer)
    assert fetched.json()["rating"] == 5
    assert fetched.json()["review"] == "Fixed in under an hour"

    profile = client.get("/catalog/providers/provider_1")
    assert profile.status_code == 200
    assert profile.json()["rating"] == 5.0
    assert profile.json()["total_reviews"] == 1

    history = client.get(f"/bookings/{booking_id}/history", headers=provider)
    assert [row["to_status"] for row in history.json()] == ["pending", "confirmed", "in-progress", "completed"]


def test_stranger_cannot_touch_booking():
    created = client.post("/bookings", json=_booking_payload("svc_2"), headers=_login("customer_1"))
    booking_id = created.json()["id"]
    stranger = _login("customer_2")

    assert client.get(f"/bookings/{booking_id}", headers=stranger).status_code == 403
    response = client.put(f"/bookings/{booking_id}/status", json={"status": "cancelled"}, headers=stranger)
    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "forbidden"

    assert client.get("/bookings/bk_missing", headers=stranger).status_code == 404


def test_customer_cancel_records_party():
    customer = _login("customer_2")
    created = client.post("/bookings", json=_booking_payload("svc_3"), headers=customer)
    booking_id = created.json()["id"]

    cancelled = client.put(
        f"/bookings/{booking_id}/status",
        json={"status": "cancelled", "cancellation_reason": "Found someone closer"},
        headers=customer,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["cancelled_by"] == "customer"
    assert cancelled.json()["can_be_cancelled"] is False


def test_provider_cannot_create_booking():
    response = client.post("/bookings", json=_booking_payload("svc_4"), headers=_login("provider_4"))
    assert response.status_code == 403


def test_create_booking_validation():
    customer = _login("customer_2")

    past = client.post("/bookings", json=_booking_payload("svc_4", days_ahead=-1), headers=customer)
    assert past.status_code == 400
    assert past.json()["detail"]["kind"] == "validation_error"

    too_short = client.post("/bookings", json=_booking_payload("svc_4", duration=0.1), headers=customer)
    assert too_short.status_code == past.status_code
    assert too_short.json()["detail"]["kind"] == "validation_error"
    assert "duration" in too_short.json()["detail"]["message"]

    long_text = client.post("/bookings", json=_booking_payload("svc_4", description="x" * 1001), headers=customer)
    assert long_text.status_code == 400
    assert long_text.json()["detail"]["kind"] == "validation_error"

    missing = client.post("/bookings", json=_booking_payload("svc_missing"), headers=customer)
    assert missing.status_code == 404

    bad_location = client.post(
        "/bookings",
        json=_booking_payload("svc_4", location={"address": "Deira", "coordinates": [25.2]}),
        headers=customer,
    )
    assert bad_location.status_code == 400


def test_unknown_status_is_rejected():
    created = client.post("/bookings", json=_booking_payload("svc_5"), headers=_login("customer_2"))
    response = client.put(
        f"/bookings/{created.json()['id']}/status",
        json={"status": "archived"},
        headers=_login("provider_5"),
    )
    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "validation_error"


def test_list_scoped_to_caller():
    customer = _login("customer_2")
    client.post("/bookings", json=_booking_payload("svc_5"), headers=customer)

    listing = client.get("/bookings", params={"limit": 100}, headers=customer)
    assert listing.status_code == 200
    payload = listing.json()
    assert payload["total"] >= 1
    assert all(row["customer_id"] == "customer_2" for row in payload["bookings"])

    pending = client.get("/bookings", params={"status": "pending"}, headers=customer)
    assert all(row["status"] == "pending" for row in pending.json()["bookings"])

    assert client.get("/bookings", params={"status": "archived"}, headers=customer).status_code == 400
    too_many = client.get("/bookings", params={"limit": 101}, headers=customer)
    assert too_many.status_code == 400
    assert too_many.json()["detail"]["kind"] == "validation_error"


def test_stats_for_new_customer():
    response = client.get("/bookings/stats", headers=_login("customer_3"))
    assert response.status_code == 200
    payload = response.json()
    assert payload["total_bookings"] == 0
    assert payload["completion_rate"] == 0
    assert payload["counts"]["pending"] == 0


def test_inactive_service_cannot_be_booked():
    admin = _login("admin_1")
    customer = _login("customer_2")

    disabled = client.put("/admin/services/svc_6/status", json={"is_active": False}, headers=admin)
    assert disabled.status_code == 200
    assert disabled.json()["is_active"] is False

    blocked = client.post("/bookings", json=_booking_payload("svc_6"), headers=customer)
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["kind"] == "invalid_state"

    client.put("/admin/services/svc_6/status", json={"is_active": True}, headers=admin)
    assert client.post("/bookings", json=_booking_payload("svc_6"), headers=customer).status_code == 201


def test_admin_stats_requires_admin():
    stats = client.get("/admin/stats", headers=_login("admin_1"))
    assert stats.status_code == 200
    assert stats.json()["total_users"] >= 10
    assert stats.json()["total_services"] >= 6

    assert client.get("/admin/stats", headers=_login("customer_1")).status_code == 403
    assert client.put(
        "/admin/users/customer_3/status", json={"is_active": False}, headers=_login("provider_1")
    ).status_code == 403


def test_provider_notified_and_can_mark_read():
    client.post("/bookings", json=_booking_payload("svc_5"), headers=_login("customer_1"))
    provider = _login("provider_5")

    inbox = client.get("/notifications", params={"unread_only": True}, headers=provider)
    assert inbox.status_code == 200
    rows = inbox.json()
    assert rows and rows[0]["category"] == "booking"

    marked = client.post(f"/notifications/{rows[0]['id']}/read", headers=provider)
    assert marked.status_code == 200
    assert marked.json()["read"] is True
    assert client.post("/notifications/ntf_missing/read", headers=provider).status_code == 404
