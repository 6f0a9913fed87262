"""
Statistics engine.

Pure aggregation over already-loaded aggregates. Payment statistics only count
completed payments and group on the base ``amount``; refunds are reported in
``totalRefunded`` but never netted out of grouped sums.
"""

import calendar
from collections import defaultdict
from datetime import datetime
from typing import Any, Iterable

from core.models.base import money, utcnow
from core.models.payment import Payment, PaymentStatus
from core.models.trip import Trip, TripStatus
from core.services.listing import in_range

DEFAULT_TREND_MONTHS = 6
_UPCOMING = {TripStatus.PLANNED, TripStatus.BOOKED}


def completed_payments(
    payments: Iterable[Payment], start: datetime | None = None, end: datetime | None = None
) -> list[Payment]:
    """Completed payments whose payment date falls inside the optional range."""
    return [
        p for p in payments
        if p.status == PaymentStatus.COMPLETED and in_range(p.payment_date, start, end)
    ]


def _months_back(now: datetime, months: int) -> datetime:
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    day = min(now.day, calendar.monthrange(year, month + 1)[1])
    return now.replace(year=year, month=month + 1, day=day)


def by_category(payments: Iterable[Payment]) -> list[dict[str, Any]]:
    groups: dict[str, list[float]] = defaultdict(list)
    for payment in payments:
        groups[payment.category.value].append(payment.amount)

    rows = [
        {
            "category": category,
            "totalAmount": money(sum(amounts)),
            "totalPayments": len(amounts),
            "avgAmount": money(sum(amounts) / len(amounts)),
        }
        for category, amounts in groups.items()
    ]
    return sorted(rows, key=lambda row: row["totalAmount"], reverse=True)


def by_payment_method(payments: Iterable[Payment]) -> list[dict[str, Any]]:
    groups: dict[str, list[float]] = defaultdict(list)
    for payment in payments:
        groups[payment.payment_method.type.value].append(payment.amount)

    rows = [
        {"method": method, "count": len(amounts), "totalAmount": money(sum(amounts))}
        for method, amounts in groups.items()
    ]
    return sorted(rows, key=lambda row: row["totalAmount"], reverse=True)


def spending_trends(
    payments: Iterable[Payment], months: int = DEFAULT_TREND_MONTHS, now: datetime | None = None
) -> list[dict[str, Any]]:
    """Monthly totals of completed payments over the trailing ``months`` window, oldest first."""
    since = _months_back(now or utcnow(), months)
    buckets: dict[tuple[int, int], list[float]] = defaultdict(list)
    for payment in payments:
        if payment.status != PaymentStatus.COMPLETED or payment.payment_date < since:
            continue
        buckets[(payment.payment_date.year, payment.payment_date.month)].append(payment.amount)

    return [
        {"year": year, "month": month, "totalSpent": money(sum(amounts)), "transactionCount": len(amounts)}
        for (year, month), amounts in sorted(buckets.items())
    ]


def overview(payments: Iterable[Payment]) -> dict[str, Any]:
    payments = list(payments)
    if not payments:
        return {"totalAmount": 0, "totalPayments": 0, "avgPayment": 0, "totalRefunded": 0}

    total = sum(p.amount for p in payments)
    return {
        "totalAmount": money(total),
        "totalPayments": len(payments),
        "avgPayment": money(total / len(payments)),
        "totalRefunded": money(sum(p.total_refunded for p in payments)),
    }


def payment_statistics(
    payments: Iterable[Payment],
    start: datetime | None = None,
    end: datetime | None = None,
    months: int = DEFAULT_TREND_MONTHS,
    now: datetime | None = None,
) -> dict[str, Any]:
    payments = list(payments)
    in_window = completed_payments(payments, start, end)
    return {
        "overview": overview(in_window),
        "paymentsByCategory": by_category(in_window),
        "spendingTrends": spending_trends(payments, months, now),
        "paymentMethods": by_payment_method(in_window),
    }


def trip_payment_summary(trip: Trip, payments: Iterable[Payment]) -> dict[str, Any]:
    """Per-category totals for a trip plus spend against its budget.

    ``totalSpent`` counts completed payments net of their refunds.
    """
    payments = list(payments)
    groups: dict[str, list[float]] = defaultdict(list)
    for payment in payments:
        groups[payment.category.value].append(payment.amount)

    total_spent = money(
        sum(p.amount - p.total_refunded for p in payments if p.status == PaymentStatus.COMPLETED)
    )
    return {
        "summary": [
            {"category": category, "totalAmount": money(sum(amounts)), "count": len(amounts)}
            for category, amounts in groups.items()
        ],
        "totalSpent": total_spent,
        "trip": {
            "title": trip.title,
            "budget": trip.budget.total_budget,
            "remaining": money(trip.budget.total_budget - total_spent),
        },
    }


def trip_statistics(trips: Iterable[Trip], now: datetime | None = None) -> dict[str, Any]:
    trips = list(trips)
    now = now or utcnow()
    upcoming = [t for t in trips if t.status in _UPCOMING and t.start_date >= now]

    by_status: dict[str, int] = defaultdict(int)
    by_type: dict[str, int] = defaultdict(int)
    for trip in trips:
        by_status[trip.status.value] += 1
        by_type[trip.trip_type.value] += 1

    return {
        "stats": {
            "totalTrips": len(trips),
            "completedTrips": by_status.get(TripStatus.COMPLETED.value, 0),
            "upcomingTrips": len(upcoming),
            "totalBudget": money(sum(t.budget.total_budget for t in trips)),
            "totalSpent": money(sum(t.total_spent for t in trips)),
            "avgTripDuration": _average_days(trips),
        },
        "tripsByStatus": [{"status": k, "count": v} for k, v in by_status.items()],
        "tripsByType": [{"tripType": k, "count": v} for k, v in by_type.items()],
    }


def _average_days(trips: list[Trip]) -> float:
    if not trips:
        return 0
    days = [(t.end_date - t.start_date).total_seconds() / 86400 for t in trips]
    return round(sum(days) / len(days), 1)
