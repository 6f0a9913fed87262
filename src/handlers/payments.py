"""Payment endpoints."""

from typing import Any

from core.auth.middleware import (
    apply_rate_limit,
    current_user,
    log_activity,
    require_email_verification,
    require_ownership,
)
from core.http import Request, Router, ok
from core.models.payment import BulkPaymentRequest, Payment, PaymentCreate, PaymentUpdate, RefundRequest
from core.services import payments
from core.services.container import Services, get_services
from core.services.listing import DateRangeQuery

router = Router(middleware=[apply_rate_limit])


def _owned_payment(request: Request, services: Services) -> Payment:
    current_user(request, services)
    return require_ownership(request, lambda payment_id: payments.load_owned(services, payment_id))


@router.route("GET", "/payments")
def list_payments(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    page, pagination = payments.list_payments(services, user.id, request.parse_query(payments.PaymentListQuery))
    return ok(payments=page, pagination=pagination)


@router.route("POST", "/payments")
def create_payment(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    if services.config.require_email_verification:
        require_email_verification(request)
    payload = request.parse(PaymentCreate)
    log_activity(request, "payment_create")
    payment = payments.create_payment(services, user.id, payload)
    return ok("Payment created successfully", status_code=201, payment=payment.public())


@router.route("GET", "/payments/stats/overview")
def payment_stats(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    return ok(**payments.payment_overview(services, user.id, request.parse_query(DateRangeQuery)))


@router.route("GET", "/payments/trip/{tripId}")
def trip_payments(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    return ok(**payments.trip_payments(services, user.id, request.path_params["tripId"]))


@router.route("POST", "/payments/bulk")
def bulk_create(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    if services.config.require_email_verification:
        require_email_verification(request)
    payload = request.parse(BulkPaymentRequest)
    log_activity(request, "payment_bulk_create")
    created, failures = payments.bulk_create(services, user.id, payload)
    return ok(
        f"{len(created)} payments created successfully",
        status_code=201,
        payments=[p.public() for p in created],
        errors=failures,
    )


@router.route("GET", "/payments/{id}")
def get_payment(request: Request, services: Services) -> dict[str, Any]:
    payment = _owned_payment(request, services)
    return ok(payment=payment.public())


@router.route("PUT", "/payments/{id}")
def update_payment(request: Request, services: Services) -> dict[str, Any]:
    payment = _owned_payment(request, services)
    payload = request.parse(PaymentUpdate)
    log_activity(request, "payment_update")
    updated = payments.update_payment(services, payment, payload)
    return ok("Payment updated successfully", payment=updated.public())


@router.route("DELETE", "/payments/{id}")
def delete_payment(request: Request, services: Services) -> dict[str, Any]:
    payment = _owned_payment(request, services)
    log_activity(request, "payment_delete")
    payments.delete_payment(services, payment)
    return ok("Payment deleted successfully")


@router.route("POST", "/payments/{id}/refund")
def refund_payment(request: Request, services: Services) -> dict[str, Any]:
    payment = _owned_payment(request, services)
    payload = request.parse(RefundRequest)
    log_activity(request, "payment_refund")
    refunded = payments.refund_payment(services, payment, request.user, payload)
    return ok("Refund processed successfully", payment=refunded.public())


def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    return router.dispatch(event, get_services())
