"""
Integration tests for booking reviews and vendor replies.
"""
from uuid import uuid4

import pytest

from conftest import FIXED_NOW, at, auth_headers, identity_for
from marketplace.lib.errors import BadRequestException, ForbiddenException, NotFoundException
from marketplace.models import BookingStatus, UserRole
from marketplace.services.booking_service import BookingRequest, BookingService
from marketplace.services.notification_service import (
    NotificationChannel,
    NotificationProvider,
    NotificationService,
)
from marketplace.services.reviews import ReviewService

DAY = 14


class RecordingEmail(NotificationProvider):
    def __init__(self):
        self.sent = []

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.EMAIL

    async def send(self, to: str, message: str, **kwargs) -> bool:
        self.sent.append((to, kwargs.get("subject"), message))
        return True


@pytest.fixture
def outbox():
    return RecordingEmail()


@pytest.fixture
def reviews(db, clock, outbox):
    return ReviewService(db, clock=clock, notifications=NotificationService({NotificationChannel.EMAIL: outbox}))


@pytest.fixture
def customer(factory):
    return factory.user(UserRole.CUSTOMER, email="efua@example.com")


def booking_for(db, service, customer, start_hour=9, status=BookingStatus.COMPLETED):
    booking = BookingService(db, clock=lambda: FIXED_NOW).create_public_booking(
        BookingRequest(service_id=service.id, start_at=at(start_hour, day=DAY), customer_name="Efua"),
        identity=identity_for(customer),
    ).booking
    booking.status = status
    db.commit()
    return booking


@pytest.mark.integration
def test_customer_reviews_completed_booking(db, bookable, customer, reviews, outbox):
    owner, vendor, service = bookable
    booking = booking_for(db, service, customer)

    review = reviews.create_review(identity_for(customer), booking.id, 5, "  Lovely finish  ")

    assert review.rating == 5
    assert review.comment == "Lovely finish"
    assert review.vendor_id == vendor.id
    assert review.reply is None
    assert outbox.sent[0][0] == owner.email
    assert outbox.sent[0][1] == "New review"


@pytest.mark.integration
@pytest.mark.parametrize("status", [BookingStatus.AWAITING_PAYMENT, BookingStatus.CONFIRMED, BookingStatus.CANCELLED])
def test_only_completed_bookings_can_be_reviewed(db, bookable, customer, reviews, status):
    _, _, service = bookable
    booking = booking_for(db, service, customer, status=status)

    with pytest.raises(BadRequestException):
        reviews.create_review(identity_for(customer), booking.id, 4)


@pytest.mark.integration
def test_one_review_per_booking(db, bookable, customer, reviews):
    _, _, service = bookable
    booking = booking_for(db, service, customer)
    reviews.create_review(identity_for(customer), booking.id, 4)

    with pytest.raises(BadRequestException) as exc_info:
        reviews.create_review(identity_for(customer), booking.id, 1, "Changed my mind")

    assert "already exists" in exc_info.value.message


@pytest.mark.integration
def test_review_by_other_customer_forbidden(db, factory, bookable, customer, reviews):
    _, _, service = bookable
    booking = booking_for(db, service, customer)

    with pytest.raises(ForbiddenException):
        reviews.create_review(identity_for(factory.user()), booking.id, 5)


@pytest.mark.integration
@pytest.mark.parametrize("rating", [0, 6])
def test_rating_out_of_range(db, bookable, customer, reviews, rating):
    _, _, service = bookable
    booking = booking_for(db, service, customer)

    with pytest.raises(BadRequestException):
        reviews.create_review(identity_for(customer), booking.id, rating)


@pytest.mark.integration
def test_vendor_owner_replies_once(db, bookable, customer, reviews, outbox):
    owner, _, service = bookable
    review = reviews.create_review(identity_for(customer), booking_for(db, service, customer).id, 3)

    replied = reviews.reply_to_review(identity_for(owner), review.id, " Thanks, see you soon ")

    assert replied.reply == "Thanks, see you soon"
    assert replied.replied_at == FIXED_NOW
    assert outbox.sent[-1][0] == "efua@example.com"
    with pytest.raises(BadRequestException):
        reviews.reply_to_review(identity_for(owner), review.id, "Again")


@pytest.mark.integration
def test_other_vendor_cannot_reply(db, factory, bookable, customer, reviews):
    _, _, service = bookable
    review = reviews.create_review(identity_for(customer), booking_for(db, service, customer).id, 2)
    rival = factory.user(UserRole.VENDOR)
    factory.vendor(rival)

    with pytest.raises(ForbiddenException):
        reviews.reply_to_review(identity_for(rival), review.id, "Come to us instead")
    with pytest.raises(ForbiddenException):
        reviews.reply_to_review(identity_for(customer), review.id, "Replying to myself")


@pytest.mark.integration
def test_empty_reply_rejected(db, bookable, customer, reviews):
    owner, _, service = bookable
    review = reviews.create_review(identity_for(customer), booking_for(db, service, customer).id, 4)

    with pytest.raises(BadRequestException):
        reviews.reply_to_review(identity_for(owner), review.id, "   ")


@pytest.mark.integration
def test_list_vendor_reviews_pending_only(db, factory, bookable, customer, reviews):
    owner, _, service = bookable
    first = reviews.create_review(identity_for(customer), booking_for(db, service, customer, start_hour=9).id, 5)
    second_customer = factory.user(UserRole.CUSTOMER)
    second = reviews.create_review(
        identity_for(second_customer), booking_for(db, service, second_customer, start_hour=14).id, 4
    )
    reviews.reply_to_review(identity_for(owner), first.id, "Thank you")

    assert {r.id for r in reviews.list_vendor_reviews(identity_for(owner))} == {first.id, second.id}
    assert [r.id for r in reviews.list_vendor_reviews(identity_for(owner), pending_only=True)] == [second.id]
    assert len(reviews.list_vendor_reviews(identity_for(owner), limit=1)) == 1


@pytest.mark.integration
def test_unknown_review(reviews, bookable):
    owner, _, _ = bookable
    with pytest.raises(NotFoundException):
        reviews.reply_to_review(identity_for(owner), uuid4(), "Hi")


@pytest.mark.integration
def test_review_routes(client, db, bookable, customer):
    owner, _, service = bookable
    booking = booking_for(db, service, customer)

    created = client.post(
        f"/bookings/{booking.id}/review", json={"rating": 5, "comment": "Great"}, headers=auth_headers(customer)
    )
    assert created.status_code == 201

    assert client.post(
        f"/bookings/{booking.id}/review", json={"rating": 9}, headers=auth_headers(customer)
    ).status_code == 422
    assert client.post(
        f"/reviews/{created.json()['id']}/reply", json={"reply": "Thanks"}, headers=auth_headers(customer)
    ).status_code == 403

    reply = client.post(f"/reviews/{created.json()['id']}/reply", json={"reply": "Thanks"}, headers=auth_headers(owner))
    assert reply.status_code == 200
    assert reply.json()["reply"] == "Thanks"

    listed = client.get("/vendor/reviews", params={"pending_only": True}, headers=auth_headers(owner))
    assert listed.status_code == 200
    assert listed.json() == []
