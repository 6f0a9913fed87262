"""Payment service operations against the in-memory store."""

import pytest

from core.errors import ConcurrentModificationError, InvalidAmountError, InvalidStateError, NotFoundError, ValidationError
from core.models.payment import BulkPaymentRequest, PaymentCreate, PaymentStatus, PaymentUpdate, RefundRequest
from core.models.trip import TripCreate
from core.services import payments, trips
from core.services.listing import DateRangeQuery
from core.services.payments import PaymentListQuery


@pytest.fixture
def owner(register):
    user, _ = register()
    return user


@pytest.fixture
def trip(services, owner, trip_payload):
    return trips.create_trip(services, owner.id, TripCreate.model_validate(trip_payload()))


@pytest.fixture
def create(services, owner, trip, payment_payload):
    def _create(**overrides):
        return payments.create_payment(
            services, owner.id, PaymentCreate.model_validate(payment_payload(trip.id, **overrides))
        )

    return _create


def _refund(amount):
    return RefundRequest(amount=amount, reason="cancellation", refund_method="original_payment_method")


def test_create_payment(services, owner, trip, create):
    payment = create()
    assert payment.user == owner.id
    assert payment.trip == trip.id
    assert payment.status == PaymentStatus.PENDING
    assert payment.total_amount == 200
    assert payment.transaction_id.startswith("TXN-")
    assert payment.processed_date is None


def test_create_completed_payment_stamps_processed_date(create):
    payment = create(status="completed")
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.processed_date is not None


def test_create_payment_for_foreign_trip(services, owner, trip_payload, payment_payload):
    foreign = trips.create_trip(services, "someone-else", TripCreate.model_validate(trip_payload()))
    with pytest.raises(NotFoundError, match="Trip not found or access denied"):
        payments.create_payment(services, owner.id, PaymentCreate.model_validate(payment_payload(foreign.id)))


def test_create_recurring_without_frequency(create):
    with pytest.raises(ValidationError, match="Recurring payments require a frequency"):
        create(isRecurring=True)


def test_refund_lifecycle(services, owner, create):
    payment = create(status="completed")

    payment = payments.refund_payment(services, payment, owner, _refund(50))
    assert payment.status == PaymentStatus.PARTIALLY_REFUNDED
    assert payment.net_amount == 150
    assert payment.refunds[0].processed_by == owner.email

    payment = payments.refund_payment(services, payment, owner, _refund(150))
    assert payment.status == PaymentStatus.REFUNDED

    with pytest.raises(InvalidAmountError, match="Refund amount cannot exceed 0.00 USD"):
        payments.refund_payment(services, payment, owner, _refund(1))

    stored = services.payments.get(payment.id)
    assert stored.total_refunded == 200
    assert len(stored.refunds) == 2


def test_refund_pending_payment(services, owner, create):
    with pytest.raises(InvalidStateError, match="Cannot refund non-completed payment"):
        payments.refund_payment(services, create(), owner, _refund(10))


def test_concurrent_refunds_conflict(services, owner, create):
    payment = create(status="completed")
    stale = services.payments.get(payment.id)

    payments.refund_payment(services, payment, owner, _refund(150))
    with pytest.raises(ConcurrentModificationError):
        payments.refund_payment(services, stale, owner, _refund(150))

    assert services.payments.get(payment.id).total_refunded == 150


def test_update_amount_of_completed_payment(services, create):
    payment = create(status="completed")
    with pytest.raises(InvalidStateError, match="Cannot modify amount of completed payment"):
        payments.update_payment(services, payment, PaymentUpdate(amount=10))


def test_update_pending_payment(services, create):
    payment = create()
    updated = payments.update_payment(services, payment, PaymentUpdate(amount=250, status=PaymentStatus.COMPLETED))
    assert updated.amount == 250
    assert updated.total_amount == 270
    assert updated.processed_date is not None


def test_update_cannot_set_refund_status(services, create):
    payment = create(status="completed")
    with pytest.raises(InvalidStateError):
        payments.update_payment(services, payment, PaymentUpdate(status=PaymentStatus.REFUNDED))


def test_delete_rules(services, create):
    pending = create()
    payments.delete_payment(services, pending)
    assert services.payments.get(pending.id) is None

    completed = create(status="completed")
    with pytest.raises(InvalidStateError, match="Cannot delete processed payments"):
        payments.delete_payment(services, completed)


def test_list_payments_filters(services, owner, create):
    create(category="food")
    create(status="completed")
    create(status="completed", category="food")

    items, pagination = payments.list_payments(services, owner.id, PaymentListQuery(status="completed", category="food"))
    assert pagination["total"] == 1
    assert items[0]["category"] == "food"
    assert items[0]["status"] == "completed"


def test_payment_overview_counts_completed(services, owner, create):
    create()
    create(status="completed")
    result = payments.payment_overview(services, owner.id, DateRangeQuery())
    assert result["overview"]["totalPayments"] == 1
    assert result["overview"]["totalAmount"] == 180


def test_trip_payments_spend_counts_completed_only(services, owner, trip, create):
    create(status="completed")
    refunded = create(status="completed")
    payments.refund_payment(services, refunded, owner, _refund(30))
    create(category="food", amount=40)

    result = payments.trip_payments(services, owner.id, trip.id)
    assert len(result["payments"]) == 3
    assert result["totalSpent"] == 180
    assert result["trip"]["remaining"] == 2820
    assert {"category": "accommodation", "totalAmount": 360, "count": 2} in result["summary"]
    assert "lastFourDigits" not in str(result["payments"])


def test_trip_payments_foreign_trip(services, owner, trip_payload):
    foreign = trips.create_trip(services, "someone-else", TripCreate.model_validate(trip_payload()))
    with pytest.raises(NotFoundError, match="Trip not found or access denied"):
        payments.trip_payments(services, owner.id, foreign.id)


def test_bulk_create_collects_failures(services, owner, trip, payment_payload):
    request = BulkPaymentRequest.model_validate(
        {"payments": [payment_payload(trip.id), payment_payload("missing-trip"), payment_payload(trip.id)]}
    )
    created, failures = payments.bulk_create(services, owner.id, request)
    assert len(created) == 2
    assert failures == [{"index": 1, "error": "Trip not found or access denied"}]
