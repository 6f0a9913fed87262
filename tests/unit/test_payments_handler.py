"""Unit tests for payment endpoints."""

import json

import pytest

from core.config import Config
from core.db.memory import InMemoryDocumentStore
from core.models.trip import TripCreate
from core.models.user import AdminUserUpdate, RegisterRequest
from core.services import trips, users
from core.services.container import build_services
from core.services.rate_limit import InMemoryRateLimitStore
from handlers.payments import router


@pytest.fixture
def session(register):
    return register()


@pytest.fixture
def trip(services, session, trip_payload):
    user, _ = session
    return trips.create_trip(services, user.id, TripCreate.model_validate(trip_payload()))


@pytest.fixture
def created(call, session, trip, payment_payload):
    _, token = session
    status, body = call(router, "POST", "/payments", token=token, body=payment_payload(trip.id, status="completed"))
    assert status == 201
    return body["payment"]


def test_create_payment(created, trip):
    assert created["trip"] == trip.id
    assert created["status"] == "completed"
    assert created["totalAmount"] == 200
    assert created["transactionId"].startswith("TXN-")
    assert created["processedDate"] is not None


def test_create_payment_hides_card_number(call, session, trip, payment_payload):
    _, token = session
    method = {"type": "credit_card", "cardDetails": {"lastFourDigits": "4242", "cardType": "visa"}}
    status, body = call(router, "POST", "/payments", token=token, body=payment_payload(trip.id, paymentMethod=method))
    assert status == 201
    assert body["payment"]["paymentMethod"]["cardDetails"] == {"cardType": "visa"}


def test_create_payment_for_foreign_trip(call, register, trip, payment_payload):
    _, stranger_token = register()
    status, body = call(router, "POST", "/payments", token=stranger_token, body=payment_payload(trip.id))
    assert status == 404
    assert body["message"] == "Trip not found or access denied"


def test_get_payment(call, session, created):
    _, token = session
    status, body = call(router, "GET", "/payments/{id}", token=token, path_params={"id": created["id"]})
    assert status == 200
    assert body["payment"]["id"] == created["id"]


def test_refund_sequence(call, session, created):
    _, token = session

    def refund(amount):
        return call(
            router,
            "POST",
            "/payments/{id}/refund",
            token=token,
            path_params={"id": created["id"]},
            body={"amount": amount, "reason": "cancellation", "refundMethod": "original_payment_method"},
        )

    status, body = refund(50)
    assert status == 200
    assert body["message"] == "Refund processed successfully"
    assert body["payment"]["status"] == "partially_refunded"
    assert body["payment"]["netAmount"] == 150

    status, body = refund(150)
    assert body["payment"]["status"] == "refunded"
    assert body["payment"]["netAmount"] == 0

    status, body = refund(1)
    assert status == 400
    assert body == {"success": False, "message": "Refund amount cannot exceed 0.00 USD"}


def test_update_completed_amount_rejected(call, session, created):
    _, token = session
    status, body = call(
        router, "PUT", "/payments/{id}", token=token, path_params={"id": created["id"]}, body={"amount": 10}
    )
    assert status == 400
    assert body["message"] == "Cannot modify amount of completed payment"


def test_update_description(call, session, created):
    _, token = session
    status, body = call(
        router,
        "PUT",
        "/payments/{id}",
        token=token,
        path_params={"id": created["id"]},
        body={"description": "Hotel balance"},
    )
    assert status == 200
    assert body["payment"]["description"] == "Hotel balance"


def test_delete_processed_payment_rejected(call, session, created):
    _, token = session
    status, body = call(router, "DELETE", "/payments/{id}", token=token, path_params={"id": created["id"]})
    assert status == 400
    assert body["message"] == "Cannot delete processed payments"


def test_list_and_stats(call, session, created, trip, payment_payload):
    _, token = session
    call(router, "POST", "/payments", token=token, body=payment_payload(trip.id, category="food", amount=40))

    status, body = call(router, "GET", "/payments", token=token, query={"status": "completed"})
    assert status == 200
    assert [p["id"] for p in body["payments"]] == [created["id"]]

    status, body = call(router, "GET", "/payments/stats/overview", token=token)
    assert status == 200
    assert body["overview"]["totalAmount"] == 180
    assert body["paymentsByCategory"][0]["category"] == "accommodation"


def test_trip_payments(call, session, created, trip):
    _, token = session
    status, body = call(router, "GET", "/payments/trip/{tripId}", token=token, path_params={"tripId": trip.id})
    assert status == 200
    assert body["totalSpent"] == 180
    assert body["trip"] == {"title": "Kyoto in spring", "budget": 3000, "remaining": 2820}


def test_bulk_create(call, session, trip, payment_payload):
    _, token = session
    body = {"payments": [payment_payload(trip.id), payment_payload("missing-trip")]}
    status, body = call(router, "POST", "/payments/bulk", token=token, body=body)
    assert status == 201
    assert body["message"] == "1 payments created successfully"
    assert len(body["payments"]) == 1
    assert body["errors"] == [{"index": 1, "error": "Trip not found or access denied"}]


def test_bulk_create_keeps_going_past_malformed_item(call, session, trip, payment_payload):
    _, token = session
    malformed = payment_payload(trip.id)
    del malformed["vendor"]
    body = {"payments": [payment_payload(trip.id), malformed]}

    status, body = call(router, "POST", "/payments/bulk", token=token, body=body)

    assert status == 201
    assert body["message"] == "1 payments created successfully"
    assert len(body["payments"]) == 1
    assert body["errors"] == [
        {"index": 1, "error": "Validation errors", "errors": [{"field": "vendor", "message": "Field required"}]}
    ]


@pytest.mark.parametrize("count", [0, 11])
def test_bulk_create_batch_size(call, session, trip, payment_payload, count):
    _, token = session
    body = {"payments": [payment_payload(trip.id) for _ in range(count)]}
    status, body = call(router, "POST", "/payments/bulk", token=token, body=body)
    assert status == 400
    assert body["errors"][0]["field"] == "payments"


@pytest.mark.parametrize(
    "method, resource, body",
    [
        ("GET", "/payments/{id}", None),
        ("PUT", "/payments/{id}", {"description": "Hijacked"}),
        ("DELETE", "/payments/{id}", None),
        (
            "POST",
            "/payments/{id}/refund",
            {"amount": 50, "reason": "other", "refundMethod": "original_payment_method"},
        ),
    ],
)
def test_stranger_cannot_touch_payment(call, session, register, created, method, resource, body):
    _, token = session
    _, stranger_token = register()

    status, response = call(
        router, method, resource, token=stranger_token, path_params={"id": created["id"]}, body=body
    )
    assert status == 403
    assert response["success"] is False

    status, response = call(router, "GET", "/payments/{id}", token=token, path_params={"id": created["id"]})
    assert status == 200
    stored = response["payment"]
    assert stored["version"] == created["version"]
    assert stored["description"] == created["description"]
    assert stored["status"] == "completed"
    assert stored["refunds"] == []


def test_stranger_cannot_read_trip_payments(call, register, trip):
    _, stranger_token = register()
    status, body = call(
        router, "GET", "/payments/trip/{tripId}", token=stranger_token, path_params={"tripId": trip.id}
    )
    assert status == 404
    assert body["message"] == "Trip not found or access denied"


@pytest.fixture
def verifying_services(config):
    return build_services(
        Config(**{**config.model_dump(), "require_email_verification": True}),
        store=InMemoryDocumentStore(),
        rate_limit_store=InMemoryRateLimitStore(),
    )


def test_email_verification_gate(verifying_services, make_event, user_payload, trip_payload, payment_payload):
    user, token = users.register(verifying_services, RegisterRequest.model_validate(user_payload()))
    trip = trips.create_trip(verifying_services, user.id, TripCreate.model_validate(trip_payload()))

    response = router.dispatch(
        make_event("POST", "/payments", token=token, body=payment_payload(trip.id)), verifying_services
    )
    body = json.loads(response["body"])
    assert response["statusCode"] == 403
    assert body["requiresEmailVerification"] is True

    users.update_user(verifying_services, user.id, AdminUserUpdate(is_email_verified=True))
    response = router.dispatch(
        make_event("POST", "/payments", token=token, body=payment_payload(trip.id)), verifying_services
    )
    assert response["statusCode"] == 201
