"""
HTTP-level tests for the booking, webhook, admin and vendor routes.
"""
import json

import pytest

from conftest import auth_headers
from marketplace.models import UserRole
from marketplace.services.paystack import SIGNATURE_HEADER, compute_signature

SECRET = "sk_test_webhook_secret"
START = "2030-01-14T09:00:00+00:00"


def booking_body(service, **overrides):
    body = {
        "service_id": str(service.id),
        "start_at": START,
        "customer_name": "Nana",
        "customer_email": "nana@example.com",
    }
    body.update(overrides)
    return body


def signed(payload) -> tuple:
    raw = json.dumps(payload).encode("utf-8")
    return raw, {SIGNATURE_HEADER: compute_signature(raw, SECRET), "Content-Type": "application/json"}


# ===== Public booking =====

@pytest.mark.integration
def test_create_booking_returns_checkout(client, bookable):
    _, _, service = bookable

    response = client.post("/bookings", json=booking_body(service))

    assert response.status_code == 201
    data = response.json()
    assert data["booking"]["status"] == "AWAITING_PAYMENT"
    assert data["booking"]["deposit_minor"] == 10000
    payment = data["payment"]
    assert payment["reference"] == data["booking"]["reference"]
    assert payment["amount_minor"] == 10000
    assert payment["currency"] == "GHS"
    assert payment["public_key"] == "pk_test_public"
    assert payment["email"] == "nana@example.com"


@pytest.mark.integration
def test_taken_slot_is_409_with_reason(client, bookable):
    _, _, service = bookable
    assert client.post("/bookings", json=booking_body(service)).status_code == 201

    response = client.post("/bookings", json=booking_body(service, customer_name="Yaw"))

    assert response.status_code == 409
    assert response.json()["details"]["reason"] == "slot_unavailable"
    assert "correlation_id" in response.json()


@pytest.mark.integration
def test_naive_start_rejected(client, bookable):
    _, _, service = bookable
    response = client.post("/bookings", json=booking_body(service, start_at="2030-01-14T09:00:00"))
    assert response.status_code == 400


@pytest.mark.integration
def test_missing_customer_name_is_422(client, bookable):
    _, _, service = bookable
    body = booking_body(service)
    del body["customer_name"]
    assert client.post("/bookings", json=body).status_code == 422


@pytest.mark.integration
def test_signed_in_customer_sees_upcoming(client, factory, bookable):
    _, _, service = bookable
    customer = factory.user(email="ama@example.com")

    created = client.post("/bookings", json=booking_body(service), headers=auth_headers(customer))
    assert created.status_code == 201
    assert created.json()["booking"]["customer_user_id"] == str(customer.id)

    upcoming = client.get("/me/bookings/upcoming", headers=auth_headers(customer))
    assert [b["id"] for b in upcoming.json()] == [created.json()["booking"]["id"]]


# ===== Webhook =====

@pytest.mark.integration
def test_webhook_rejects_bad_signature(client):
    raw = json.dumps({"event": "charge.success", "data": {}}).encode("utf-8")
    response = client.post("/webhooks/paystack", content=raw, headers={SIGNATURE_HEADER: "deadbeef"})
    assert response.status_code == 401


@pytest.mark.integration
def test_webhook_confirms_booking(client, bookable):
    owner, _, service = bookable
    booking = client.post("/bookings", json=booking_body(service)).json()["booking"]

    raw, headers = signed(
        {
            "event": "charge.success",
            "data": {"reference": booking["reference"], "amount": 10000, "currency": "GHS"},
        }
    )
    response = client.post("/webhooks/paystack", content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "outcome": "confirmed"}
    detail = client.get(f"/bookings/{booking['id']}", headers=auth_headers(owner)).json()
    assert detail["booking"]["status"] == "CONFIRMED"
    assert detail["payment"] is None


@pytest.mark.integration
def test_webhook_acknowledges_unparseable_body(client):
    raw = b"not json"
    headers = {SIGNATURE_HEADER: compute_signature(raw, SECRET)}

    response = client.post("/webhooks/paystack", content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json()["outcome"] == "malformed"


# ===== Vendor =====

@pytest.mark.integration
def test_vendor_routes_require_token(client):
    assert client.get("/vendor/services").status_code == 401


@pytest.mark.integration
def test_customer_cannot_use_vendor_routes(client, factory):
    customer = factory.user()
    assert client.get("/vendor/bookings", headers=auth_headers(customer)).status_code == 403


@pytest.mark.integration
def test_vendor_setup_then_public_slots(client, factory):
    owner = factory.user(UserRole.VENDOR)
    factory.vendor(owner)
    headers = auth_headers(owner)

    service = client.post(
        "/vendor/services",
        json={"name": "Cornrows", "price_minor": 8000, "duration_minutes": 60, "deposit_percent": 50},
        headers=headers,
    )
    assert service.status_code == 201
    weekly = client.put(
        "/vendor/availability/weekly",
        json={"windows": [{"day_of_week": 1, "start_minute": 540, "end_minute": 660}]},
        headers=headers,
    )
    assert weekly.status_code == 200

    slots = client.get(
        f"/services/{service.json()['id']}/slots",
        params={"start_date": "2030-01-14T00:00:00+00:00", "days": 1},
    )

    assert slots.status_code == 200
    assert len(slots.json()) == 2


@pytest.mark.integration
def test_overlapping_weekly_windows_are_409(client, factory):
    owner = factory.user(UserRole.VENDOR)
    factory.vendor(owner)

    response = client.put(
        "/vendor/availability/weekly",
        json={
            "windows": [
                {"day_of_week": 1, "start_minute": 540, "end_minute": 720},
                {"day_of_week": 1, "start_minute": 700, "end_minute": 800},
            ]
        },
        headers=auth_headers(owner),
    )

    assert response.status_code == 409
    assert response.json()["details"]["reason"] == "overlapping_windows"


@pytest.mark.integration
def test_vendor_cancels_then_second_cancel_is_400(client, bookable):
    owner, _, service = bookable
    booking = client.post("/bookings", json=booking_body(service)).json()["booking"]

    first = client.post(f"/bookings/{booking['id']}/cancel", json={"reason": "Closed"}, headers=auth_headers(owner))
    second = client.post(f"/bookings/{booking['id']}/cancel", headers=auth_headers(owner))

    assert first.status_code == 200
    assert first.json()["status"] == "CANCELLED"
    assert first.json()["cancelled_by"] == "VENDOR"
    assert second.status_code == 400


@pytest.mark.integration
def test_manual_booking_marked_paid(client, bookable):
    owner, _, service = bookable
    headers = auth_headers(owner)

    created = client.post("/vendor/bookings", json=booking_body(service, collect_deposit=True), headers=headers)
    assert created.status_code == 201
    booking = created.json()["booking"]
    assert booking["source"] == "MANUAL"

    paid = client.post(f"/vendor/bookings/{booking['id']}/mark-paid", headers=headers)

    assert paid.status_code == 200
    assert paid.json()["status"] == "CONFIRMED"
    assert paid.json()["balance_minor"] == 0


# ===== Admin =====

@pytest.mark.integration
def test_markup_admin_only(client, factory):
    vendor_user = factory.user(UserRole.VENDOR)
    assert client.get("/admin/platform/markup", headers=auth_headers(vendor_user)).status_code == 403


@pytest.mark.integration
def test_markup_clamped_and_applied(client, factory, bookable):
    _, _, service = bookable
    admin = factory.user(UserRole.ADMIN)
    headers = auth_headers(admin)

    clamped = client.put("/admin/platform/markup", json={"basis_points": 9000}, headers=headers)
    assert clamped.json() == {"basis_points": 5000, "max_basis_points": 5000}

    client.put("/admin/platform/markup", json={"basis_points": 1000}, headers=headers)
    assert client.get("/admin/platform/markup", headers=headers).json()["basis_points"] == 1000

    booking = client.post("/bookings", json=booking_body(service)).json()["booking"]
    assert booking["price_minor"] == 11000
