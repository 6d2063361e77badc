"""
tutorhub/services/ledger.py
Payment ledger: keeps a billing record's derived amounts in step with its installments

A billing record's ``amount_paid``, ``balance`` and ``payment_status`` are
never written by callers. Every mutation of ``installments`` goes through
``add_installment`` / ``remove_installment`` which finish with ``recompute``.
Nothing in here touches the database.
"""
import math
import secrets
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from tutorhub.core.config import settings
from tutorhub.core.exceptions import InstallmentNotFoundError, InvalidAmountError
from tutorhub.models.schemas import (
    BillingRecord, InstallmentEntry, MethodBreakdown, MonthlyRevenue,
    PaymentMethod, PaymentStatistics, PaymentStatus
)

RECEIPT_TOKEN_BYTES = 6
MONTHLY_REVENUE_WINDOW = 6


def parse_amount(value: Any, field: str = "amount") -> float:
    """Coerce a request amount to a finite float greater than zero."""
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(field, value)
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidAmountError(field, value)
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidAmountError(field, value)
    return amount


def normalize_method(method: Optional[str]) -> str:
    """Known methods are stored by their canonical value, anything else as given."""
    if not method:
        return settings.DEFAULT_PAYMENT_METHOD
    candidate = method.strip().lower().replace(" ", "_")
    if candidate in PaymentMethod._value2member_map_:
        return candidate
    return method.strip()


def classify(amount_paid: float, total_amount: float,
             track_overpaid: Optional[bool] = None) -> PaymentStatus:
    """Payment status tier for an amount paid against the expected total.

    Overpayment is reported as ``paid`` unless overpaid tracking is enabled.
    """
    if track_overpaid is None:
        track_overpaid = settings.TRACK_OVERPAID_STATUS

    if amount_paid == 0:
        return PaymentStatus.UNPAID
    if amount_paid > total_amount and track_overpaid:
        return PaymentStatus.OVERPAID
    if amount_paid >= total_amount:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def recompute(record: BillingRecord) -> BillingRecord:
    """Derive amount_paid, balance and payment_status from the installments."""
    amount_paid = sum(entry.amount for entry in record.installments)
    record.amount_paid = amount_paid
    record.balance = record.total_amount - amount_paid
    record.payment_status = classify(amount_paid, record.total_amount)
    return record


def generate_receipt_number(record: BillingRecord, now: Optional[datetime] = None) -> str:
    """
    Build a receipt number unique within ``record``.

    Format: ``{prefix}-{year}-{sequence}-{token}``, e.g. ``TUT-2026-003-9F2C41D07A3B``.
    The sequence is the entry's position, the token is 48 random bits.
    """
    now = now or datetime.now(timezone.utc)
    taken = {entry.receipt_number for entry in record.installments}
    sequence = len(record.installments) + 1

    while True:
        token = secrets.token_hex(RECEIPT_TOKEN_BYTES).upper()
        receipt = f"{settings.RECEIPT_PREFIX}-{now.year}-{sequence:03d}-{token}"
        if receipt not in taken:
            return receipt


def add_installment(
    record: BillingRecord,
    amount: Any,
    received_by: str,
    payment_date: Optional[datetime] = None,
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
) -> InstallmentEntry:
    """Append a payment to the record and recompute. Returns the new entry."""
    value = parse_amount(amount)
    now = datetime.now(timezone.utc)

    entry = InstallmentEntry(
        amount=value,
        payment_date=payment_date or now,
        payment_method=normalize_method(payment_method),
        receipt_number=generate_receipt_number(record, now),
        received_by=received_by,
        notes=notes or "",
    )
    record.installments.append(entry)
    recompute(record)
    return entry


def remove_installment(record: BillingRecord, receipt_number: str) -> InstallmentEntry:
    """Remove the entry carrying ``receipt_number`` and recompute.

    Raises InstallmentNotFoundError without touching the record on a miss.
    """
    for index, entry in enumerate(record.installments):
        if entry.receipt_number == receipt_number:
            removed = record.installments.pop(index)
            recompute(record)
            return removed

    raise InstallmentNotFoundError(receipt_number)


def correct(record: BillingRecord, period: Optional[str] = None,
            total_amount: Any = None) -> BillingRecord:
    """Apply an administrative correction of period and/or expected total."""
    if period is not None:
        record.period = period
    if total_amount is not None:
        record.total_amount = parse_amount(total_amount, "total_amount")
    return recompute(record)


def summarize(records: Iterable[BillingRecord], period: Optional[str] = None) -> PaymentStatistics:
    """Collection statistics over a set of billing records."""
    records = list(records)
    if not records:
        return PaymentStatistics(period=period or "All")

    total_expected = sum(r.total_amount for r in records)
    total_collected = sum(r.amount_paid for r in records)

    status_count = {status.value: 0 for status in PaymentStatus}
    if not settings.TRACK_OVERPAID_STATUS:
        del status_count[PaymentStatus.OVERPAID.value]
    for r in records:
        status_count[r.payment_status.value] = status_count.get(r.payment_status.value, 0) + 1

    by_method = defaultdict(list)
    by_month = defaultdict(float)
    for r in records:
        for entry in r.installments:
            by_method[entry.payment_method].append(entry.amount)
            by_month[entry.payment_date.strftime("%Y-%m")] += entry.amount

    method_breakdown: List[MethodBreakdown] = [
        MethodBreakdown(
            method=method,
            count=len(amounts),
            total=sum(amounts),
            average=round(sum(amounts) / len(amounts), 2),
        )
        for method, amounts in sorted(by_method.items())
    ]
    monthly_revenue = [
        MonthlyRevenue(month=month, revenue=revenue)
        for month, revenue in sorted(by_month.items())
    ][-MONTHLY_REVENUE_WINDOW:]

    collection_rate = (total_collected / total_expected * 100) if total_expected > 0 else 0

    return PaymentStatistics(
        total_records=len(records),
        total_expected=total_expected,
        total_collected=total_collected,
        total_outstanding=total_expected - total_collected,
        collection_rate_percentage=round(collection_rate, 2),
        status_count=status_count,
        method_breakdown=method_breakdown,
        monthly_revenue=monthly_revenue,
        period=period or "All",
    )
