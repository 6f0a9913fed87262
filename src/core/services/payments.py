"""Payment aggregate operations: CRUD, refunds, bulk creation and statistics."""

import logging
from typing import TYPE_CHECKING, Any

from core.errors import InvalidStateError, NotFoundError, TripbookError
from core.http import validate
from core.models.base import utcnow
from core.models.payment import (
    BulkPaymentRequest,
    Payment,
    PaymentCategory,
    PaymentCreate,
    PaymentStatus,
    PaymentUpdate,
    RefundRequest,
    apply_refund,
    apply_side_effects,
    transition_payment_status,
    validate_recurring,
)
from core.models.user import User
from core.services import stats
from core.services.listing import DateRangeQuery, ListQuery, in_range, listing, sort_items
from core.services.trips import get_trip

if TYPE_CHECKING:
    from core.services.container import Services

logger = logging.getLogger(__name__)

DELETABLE = {PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentStatus.CANCELLED}
LOCKED_AMOUNT = {PaymentStatus.COMPLETED, PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}
TRIP_ACCESS_DENIED = "Trip not found or access denied"


class PaymentListQuery(ListQuery, DateRangeQuery):
    sort_by: str = "paymentDate"
    status: PaymentStatus | None = None
    category: PaymentCategory | None = None
    trip_id: str | None = None


def load_owned(services: "Services", payment_id: str) -> tuple[str, Payment] | None:
    """Ownership loader for ``require_ownership``."""
    return services.payments.owned(payment_id)


def list_payments(
    services: "Services", user_id: str, query: PaymentListQuery
) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    payments = services.payments.list_by_owner(user_id)
    if query.status:
        payments = [p for p in payments if p.status == query.status]
    if query.category:
        payments = [p for p in payments if p.category == query.category]
    if query.trip_id:
        payments = [p for p in payments if p.trip == query.trip_id]
    if query.start_date or query.end_date:
        payments = [p for p in payments if in_range(p.payment_date, query.start_date, query.end_date)]
    return listing(payments, query, Payment.public)


def _build_payment(services: "Services", user_id: str, payload: PaymentCreate) -> Payment:
    try:
        get_trip(services, payload.trip, user_id)
    except NotFoundError as e:
        raise NotFoundError(TRIP_ACCESS_DENIED) from e

    now = utcnow()
    fields = {k: v for k, v in dict(payload).items() if v is not None and k != "status"}
    payment = Payment(user=user_id, **fields)
    validate_recurring(payment)

    status, effects = transition_payment_status(payment, payload.status)
    return apply_side_effects(payment.model_copy(update={"status": status}), effects, now)


def create_payment(services: "Services", user_id: str, payload: PaymentCreate) -> Payment:
    payment = services.payments.add(_build_payment(services, user_id, payload))
    logger.info("Created payment %s (%s) for trip %s", payment.id, payment.transaction_id, payment.trip)
    return payment


def update_payment(services: "Services", payment: Payment, payload: PaymentUpdate) -> Payment:
    changes = payload.changes()
    money_fields = {"amount", "taxes", "fees"} & changes.keys()
    if money_fields and payment.status in LOCKED_AMOUNT:
        raise InvalidStateError("Cannot modify amount of completed payment")

    effects = []
    if "status" in changes:
        changes["status"], effects = transition_payment_status(payment, changes["status"])

    updated = apply_side_effects(payment.model_copy(update=changes), effects, utcnow())
    validate_recurring(updated)
    return services.payments.save(updated)


def delete_payment(services: "Services", payment: Payment) -> None:
    if payment.status not in DELETABLE:
        raise InvalidStateError("Cannot delete processed payments")
    services.payments.remove(payment)
    logger.info("Deleted payment %s", payment.id)


def refund_payment(services: "Services", payment: Payment, actor: User, payload: RefundRequest) -> Payment:
    """Record a refund; the write fails with a conflict if the payment changed since it was read."""
    refunded = apply_refund(
        payment,
        amount=payload.amount,
        reason=payload.reason,
        refund_method=payload.refund_method,
        processed_by=actor.email,
        notes=payload.notes,
    )
    saved = services.payments.save(refunded)
    logger.info(
        "Refunded %.2f %s on payment %s (status=%s)",
        payload.amount,
        payment.currency.value,
        payment.id,
        saved.status.value,
    )
    return saved


def payment_overview(services: "Services", user_id: str, query: DateRangeQuery) -> dict[str, Any]:
    payments = services.payments.list_by_owner(user_id)
    return stats.payment_statistics(payments, start=query.start_date, end=query.end_date)


def trip_payments(services: "Services", user_id: str, trip_id: str) -> dict[str, Any]:
    try:
        trip = get_trip(services, trip_id, user_id)
    except NotFoundError as e:
        raise NotFoundError(TRIP_ACCESS_DENIED) from e

    payments = [p for p in services.payments.find_by("trip", trip_id) if p.user == user_id]
    payments = sort_items(payments, "paymentDate", "desc")
    return {"payments": [p.public() for p in payments], **stats.trip_payment_summary(trip, payments)}


def bulk_create(
    services: "Services", user_id: str, payload: BulkPaymentRequest
) -> tuple[list[Payment], list[dict[str, Any]]]:
    """Create each payment independently, collecting per-item failures by index.

    Items are validated one at a time so a malformed entry is reported without
    rejecting the rest of the batch.
    """
    created: list[Payment] = []
    failures: list[dict[str, Any]] = []
    for index, raw in enumerate(payload.payments):
        try:
            item = validate(PaymentCreate, raw)
            created.append(create_payment(services, user_id, item))
        except TripbookError as e:
            failures.append({"index": index, "error": e.message, **e.extra()})
    if failures:
        logger.info("Bulk payment create for %s: %d created, %d failed", user_id, len(created), len(failures))
    return created, failures
