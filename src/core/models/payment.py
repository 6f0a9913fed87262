"""Payment aggregate: totals, refunds, installments and status transitions."""

import secrets
import string
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, computed_field

from core.errors import InvalidAmountError, InvalidStateError, ValidationError
from core.models.base import ApiModel, Document, UtcDatetime, money, utcnow


class PaymentCategory(str, Enum):
    ACCOMMODATION = "accommodation"
    TRANSPORTATION = "transportation"
    FOOD = "food"
    ACTIVITIES = "activities"
    SHOPPING = "shopping"
    INSURANCE = "insurance"
    VISA = "visa"
    MISCELLANEOUS = "miscellaneous"


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    INR = "INR"
    CAD = "CAD"
    AUD = "AUD"
    JPY = "JPY"
    CHF = "CHF"
    CNY = "CNY"
    KRW = "KRW"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethodType(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    CASH = "cash"
    CRYPTO = "crypto"
    CHECK = "check"
    OTHER = "other"


class RefundReason(str, Enum):
    CANCELLATION = "cancellation"
    NO_SHOW = "no_show"
    SERVICE_ISSUE = "service_issue"
    DUPLICATE_CHARGE = "duplicate_charge"
    FRAUD = "fraud"
    OTHER = "other"


class RefundMethod(str, Enum):
    ORIGINAL_PAYMENT_METHOD = "original_payment_method"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    STORE_CREDIT = "store_credit"
    OTHER = "other"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class ExchangeRate(ApiModel):
    rate: float | None = Field(None, ge=0)
    from_currency: str | None = None
    to_currency: str | None = None
    rate_date: UtcDatetime | None = None


class CardDetails(ApiModel):
    last_four_digits: str | None = Field(None, pattern=r"^\d{4}$")
    card_type: str | None = Field(None, pattern="^(visa|mastercard|amex|discover|other)$")
    expiry_month: int | None = Field(None, ge=1, le=12)
    expiry_year: int | None = None
    cardholder_name: str | None = None


class BankDetails(ApiModel):
    bank_name: str | None = None
    account_number: str | None = None
    routing_number: str | None = None
    swift_code: str | None = None


class DigitalWallet(ApiModel):
    provider: str | None = Field(
        None, pattern="^(paypal|apple_pay|google_pay|samsung_pay|venmo|zelle)$"
    )
    account_id: str | None = None


class PaymentMethod(ApiModel):
    type: PaymentMethodType
    card_details: CardDetails | None = None
    bank_details: BankDetails | None = None
    digital_wallet: DigitalWallet | None = None


class VendorAddress(ApiModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zip_code: str | None = None


class Vendor(ApiModel):
    name: str = Field(..., min_length=2)
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    address: VendorAddress | None = None
    vendor_type: str | None = Field(
        None, pattern="^(hotel|airline|restaurant|tour_operator|transport|retail|service|other)$"
    )


class Tax(ApiModel):
    type: str = Field(..., pattern="^(vat|sales_tax|service_tax|city_tax|airport_tax|other)$")
    amount: float = Field(..., ge=0)
    rate: float | None = Field(None, ge=0, le=100)
    description: str | None = None


class Fee(ApiModel):
    type: str = Field(
        ...,
        pattern="^(processing_fee|service_fee|booking_fee|cancellation_fee|convenience_fee|other)$",
    )
    amount: float = Field(..., ge=0)
    description: str | None = None


class Refund(ApiModel):
    amount: float = Field(..., ge=0)
    reason: RefundReason
    refund_date: UtcDatetime
    refund_method: RefundMethod
    refund_transaction_id: str | None = None
    processed_by: str | None = None
    notes: str | None = None


class Installment(ApiModel):
    installment_number: int = Field(..., ge=1)
    amount: float = Field(..., ge=0)
    due_date: UtcDatetime
    paid_date: UtcDatetime | None = None
    status: InstallmentStatus = InstallmentStatus.PENDING
    transaction_id: str | None = None


class Receipt(ApiModel):
    receipt_number: str | None = None
    file_path: str | None = None
    file_url: str | None = None
    ocr_text: str | None = None
    verified: bool = False


class RecurringDetails(ApiModel):
    frequency: str | None = Field(None, pattern="^(weekly|monthly|quarterly|yearly)$")
    next_payment_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    total_installments: int | None = Field(None, ge=1)
    completed_installments: int = 0


# Stored but never returned to clients.
SENSITIVE_FIELDS: dict[str, Any] = {
    "payment_method": {
        "card_details": {"last_four_digits", "expiry_month", "expiry_year", "cardholder_name"},
        "bank_details": {"account_number", "routing_number"},
        "digital_wallet": {"account_id"},
    }
}


def generate_transaction_id(now: datetime | None = None) -> str:
    now = now or utcnow()
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(5))
    return f"TXN-{int(now.timestamp() * 1000)}-{suffix}"


class Payment(Document):
    user: str
    trip: str
    description: str = Field(..., min_length=3, max_length=200)
    category: PaymentCategory
    amount: float = Field(..., ge=0)
    currency: Currency = Currency.USD
    exchange_rate: ExchangeRate | None = None
    payment_method: PaymentMethod
    transaction_id: str = Field(default_factory=generate_transaction_id)
    payment_gateway: str = Field("manual", pattern="^(stripe|paypal|square|razorpay|manual|other)$")
    gateway_transaction_id: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    payment_date: UtcDatetime = Field(default_factory=utcnow)
    due_date: UtcDatetime | None = None
    processed_date: UtcDatetime | None = None
    vendor: Vendor
    confirmation_number: str | None = None
    booking_reference: str | None = None
    invoice_number: str | None = None
    taxes: list[Tax] = Field(default_factory=list)
    fees: list[Fee] = Field(default_factory=list)
    refunds: list[Refund] = Field(default_factory=list)
    installments: list[Installment] = Field(default_factory=list)
    receipt: Receipt | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring_details: RecurringDetails | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_amount(self) -> float:
        return money(self.amount + sum(t.amount for t in self.taxes) + sum(f.amount for f in self.fees))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_refunded(self) -> float:
        return money(sum(r.amount for r in self.refunds))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def net_amount(self) -> float:
        return money(self.total_amount - self.total_refunded)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def installment_progress(self) -> dict[str, int] | None:
        if not self.installments:
            return None
        paid = sum(1 for i in self.installments if i.status == InstallmentStatus.PAID)
        total = len(self.installments)
        return {"paid": paid, "total": total, "percentage": round(paid / total * 100)}

    def public(self) -> dict[str, Any]:
        return self.to_json(exclude=SENSITIVE_FIELDS)


def validate_recurring(payment: Payment) -> None:
    """A recurring payment needs a frequency."""
    if payment.is_recurring and (payment.recurring_details is None or not payment.recurring_details.frequency):
        raise ValidationError(
            "Recurring payments require a frequency",
            errors=[{"field": "recurringDetails.frequency", "message": "Frequency is required for recurring payments"}],
        )


# --- Status transitions ---


class SideEffect(str, Enum):
    STAMP_PROCESSED_DATE = "stamp_processed_date"


_REFUND_STATUSES = {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}

_ALLOWED_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.CANCELLED},
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.CANCELLED: set(),
    PaymentStatus.REFUNDED: set(),
    PaymentStatus.PARTIALLY_REFUNDED: set(),
}


def transition_payment_status(
    payment: Payment, target: PaymentStatus
) -> tuple[PaymentStatus, list[SideEffect]]:
    """Resolve a requested status change into the new status and the side effects it triggers."""
    current = payment.status
    if target == current:
        return current, []
    if target in _REFUND_STATUSES:
        raise InvalidStateError("Refund statuses can only be set by processing a refund")
    if target not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidStateError(f"Cannot change payment status from {current.value} to {target.value}")

    effects: list[SideEffect] = []
    if target == PaymentStatus.COMPLETED and payment.processed_date is None:
        effects.append(SideEffect.STAMP_PROCESSED_DATE)
    return target, effects


def apply_side_effects(payment: Payment, effects: list[SideEffect], now: datetime) -> Payment:
    updates: dict[str, Any] = {}
    for effect in effects:
        if effect == SideEffect.STAMP_PROCESSED_DATE:
            updates["processed_date"] = now
    return payment.model_copy(update=updates) if updates else payment


def status_after_refund(total_refunded: float, total_amount: float) -> PaymentStatus:
    if total_refunded >= total_amount:
        return PaymentStatus.REFUNDED
    return PaymentStatus.PARTIALLY_REFUNDED


def apply_refund(
    payment: Payment,
    amount: float,
    reason: RefundReason,
    refund_method: RefundMethod,
    processed_by: str | None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Payment:
    """Append a refund and recompute the status. Returns a new payment; the input is untouched."""
    if payment.status not in {PaymentStatus.COMPLETED, *_REFUND_STATUSES}:
        raise InvalidStateError("Cannot refund non-completed payment")
    if amount <= 0:
        raise InvalidAmountError("Refund amount must be greater than zero")

    max_refundable = money(payment.total_amount - payment.total_refunded)
    if amount > max_refundable:
        raise InvalidAmountError(
            f"Refund amount cannot exceed {max_refundable:.2f} {payment.currency.value}"
        )

    refund = Refund(
        amount=amount,
        reason=reason,
        refund_date=now or utcnow(),
        refund_method=refund_method,
        processed_by=processed_by,
        notes=notes,
    )
    refunded = money(payment.total_refunded + amount)
    return payment.model_copy(
        update={
            "refunds": [*payment.refunds, refund],
            "status": status_after_refund(refunded, payment.total_amount),
        }
    )


# --- Request payloads ---


class PaymentCreate(ApiModel):
    trip: str = Field(..., min_length=1)
    description: str = Field(..., min_length=3, max_length=200)
    category: PaymentCategory
    amount: float = Field(..., ge=0)
    currency: Currency = Currency.USD
    exchange_rate: ExchangeRate | None = None
    payment_method: PaymentMethod
    transaction_id: str | None = None
    payment_gateway: str = Field("manual", pattern="^(stripe|paypal|square|razorpay|manual|other)$")
    gateway_transaction_id: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    payment_date: UtcDatetime | None = None
    due_date: UtcDatetime | None = None
    vendor: Vendor
    confirmation_number: str | None = None
    booking_reference: str | None = None
    invoice_number: str | None = None
    taxes: list[Tax] = Field(default_factory=list)
    fees: list[Fee] = Field(default_factory=list)
    installments: list[Installment] = Field(default_factory=list)
    receipt: Receipt | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring_details: RecurringDetails | None = None


class PaymentUpdate(ApiModel):
    description: str | None = Field(None, min_length=3, max_length=200)
    category: PaymentCategory | None = None
    amount: float | None = Field(None, ge=0)
    status: PaymentStatus | None = None
    payment_date: UtcDatetime | None = None
    due_date: UtcDatetime | None = None
    vendor: Vendor | None = None
    confirmation_number: str | None = None
    booking_reference: str | None = None
    invoice_number: str | None = None
    taxes: list[Tax] | None = None
    fees: list[Fee] | None = None
    installments: list[Installment] | None = None
    receipt: Receipt | None = None
    notes: str | None = None
    tags: list[str] | None = None
    is_recurring: bool | None = None
    recurring_details: RecurringDetails | None = None


class RefundRequest(ApiModel):
    amount: float = Field(..., gt=0)
    reason: RefundReason
    refund_method: RefundMethod
    notes: str | None = Field(None, max_length=500)


class BulkPaymentRequest(ApiModel):
    payments: list[dict[str, Any]] = Field(..., min_length=1, max_length=10)
