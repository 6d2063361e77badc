"""
Unit tests for the payment ledger.

Verifies:
- Status classification boundaries
- amount_paid / balance derivation after every mutation
- Removal misses leave the record untouched
- Add-then-remove restores the previous state exactly
- Receipt numbers are unique within a record
"""

from datetime import datetime, timezone

import pytest

from tutorhub.core.config import settings
from tutorhub.core.exceptions import InstallmentNotFoundError, InvalidAmountError
from tutorhub.models.schemas import BillingRecord, InstallmentEntry, PaymentStatus
from tutorhub.services import ledger


def make_record(total_amount=75000, **kwargs):
    return BillingRecord(
        payment_id="pay_1",
        student_id="stu_1",
        parent_id="user_parent_1",
        period="October 2026",
        total_amount=total_amount,
        **kwargs,
    )


def snapshot(record):
    return (
        record.amount_paid,
        record.balance,
        record.payment_status,
        [e.model_dump() for e in record.installments],
    )


class TestClassify:
    """Tests for the status tiers."""

    @pytest.mark.parametrize("total", [1, 10000, 75000.5])
    def test_nothing_paid_is_unpaid(self, total):
        assert ledger.classify(0, total) == PaymentStatus.UNPAID

    def test_exact_total_is_paid(self):
        assert ledger.classify(75000, 75000) == PaymentStatus.PAID

    @pytest.mark.parametrize("excess", [0.01, 1, 5000])
    def test_overpayment_is_paid(self, excess):
        assert ledger.classify(75000 + excess, 75000) == PaymentStatus.PAID

    @pytest.mark.parametrize("paid", [0.01, 1, 37500, 74999.99])
    def test_between_zero_and_total_is_partial(self, paid):
        assert ledger.classify(paid, 75000) == PaymentStatus.PARTIAL

    def test_overpaid_tier_when_tracking_enabled(self):
        assert ledger.classify(15000, 10000, track_overpaid=True) == PaymentStatus.OVERPAID
        assert ledger.classify(10000, 10000, track_overpaid=True) == PaymentStatus.PAID

    def test_overpaid_tier_follows_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "TRACK_OVERPAID_STATUS", True)
        assert ledger.classify(15000, 10000) == PaymentStatus.OVERPAID


class TestParseAmount:

    @pytest.mark.parametrize("value,expected", [(25000, 25000.0), ("25000", 25000.0), (" 12.5 ", 12.5)])
    def test_accepts_positive_numbers(self, value, expected):
        assert ledger.parse_amount(value) == expected

    @pytest.mark.parametrize("value", [0, -1, "0", "-5", "abc", "", None, "nan", "inf", True])
    def test_rejects_invalid_amounts(self, value):
        with pytest.raises(InvalidAmountError) as exc_info:
            ledger.parse_amount(value)
        assert exc_info.value.category == "invalid_amount"
        assert exc_info.value.field == "amount"


class TestRecompute:

    def test_empty_record_is_unpaid(self):
        record = ledger.recompute(make_record())
        assert record.amount_paid == 0
        assert record.balance == 75000
        assert record.payment_status == PaymentStatus.UNPAID

    def test_derived_fields_ignore_stale_values(self):
        record = make_record(amount_paid=99999, balance=-1, payment_status=PaymentStatus.PAID)
        record.installments.append(InstallmentEntry(
            amount=1000,
            payment_date=datetime(2026, 10, 1, tzinfo=timezone.utc),
            receipt_number="R-1",
            received_by="user_admin_1",
        ))
        ledger.recompute(record)
        assert record.amount_paid == 1000
        assert record.balance == 74000
        assert record.payment_status == PaymentStatus.PARTIAL


class TestAddInstallment:

    def test_appends_entry_with_defaults(self):
        record = make_record()
        entry = ledger.add_installment(record, 25000, received_by="user_teacher_1")

        assert record.installments == [entry]
        assert entry.amount == 25000
        assert entry.payment_method == "cash"
        assert entry.received_by == "user_teacher_1"
        assert entry.notes == ""
        assert entry.payment_date.tzinfo is not None

    def test_keeps_given_fields(self):
        record = make_record()
        paid_on = datetime(2026, 9, 30, 10, 0, tzinfo=timezone.utc)
        entry = ledger.add_installment(
            record, "5000", received_by="user_admin_1", payment_date=paid_on,
            payment_method="Mobile Money", notes="MTN MoMo",
        )
        assert entry.payment_date == paid_on
        assert entry.payment_method == "mobile_money"
        assert entry.notes == "MTN MoMo"

    def test_unrecognised_method_is_kept_as_given(self):
        record = make_record()
        entry = ledger.add_installment(record, 100, received_by="u", payment_method="Cheque")
        assert entry.payment_method == "Cheque"

    def test_invalid_amount_leaves_record_untouched(self):
        record = make_record()
        ledger.add_installment(record, 1000, received_by="u")
        before = snapshot(record)

        with pytest.raises(InvalidAmountError):
            ledger.add_installment(record, -50, received_by="u")

        assert snapshot(record) == before

    def test_sum_invariant_over_many_entries(self):
        record = make_record(total_amount=100)
        for amount in [0.1, 0.2, 10, 33.3, 7]:
            ledger.add_installment(record, amount, received_by="u")
            assert record.amount_paid == sum(e.amount for e in record.installments)
            assert record.balance == record.total_amount - record.amount_paid


class TestRemoveInstallment:

    def test_removes_by_receipt_number(self):
        record = make_record()
        first = ledger.add_installment(record, 25000, received_by="u")
        second = ledger.add_installment(record, 10000, received_by="u")

        removed = ledger.remove_installment(record, first.receipt_number)

        assert removed == first
        assert record.installments == [second]
        assert record.amount_paid == 10000
        assert record.balance == 65000

    def test_missing_receipt_raises_and_changes_nothing(self):
        record = make_record()
        ledger.add_installment(record, 25000, received_by="u")
        before = snapshot(record)

        with pytest.raises(InstallmentNotFoundError) as exc_info:
            ledger.remove_installment(record, "TUT-2026-999-DOESNOTEXIST")

        assert exc_info.value.category == "not_found"
        assert snapshot(record) == before

    def test_add_then_remove_round_trip(self):
        record = make_record()
        ledger.add_installment(record, 12345.67, received_by="u")
        ledger.add_installment(record, 0.1, received_by="u")
        before = snapshot(record)

        entry = ledger.add_installment(record, 999.99, received_by="u")
        ledger.remove_installment(record, entry.receipt_number)

        assert snapshot(record) == before

    def test_removing_last_entry_returns_to_unpaid(self):
        record = make_record()
        entry = ledger.add_installment(record, 500, received_by="u")
        ledger.remove_installment(record, entry.receipt_number)
        assert record.amount_paid == 0
        assert record.payment_status == PaymentStatus.UNPAID


class TestScenarios:
    """Installment sequences with known outcomes."""

    def test_partial_then_paid_then_partial(self):
        record = make_record(total_amount=75000)

        first = ledger.add_installment(record, 25000, received_by="u")
        assert (record.amount_paid, record.balance, record.payment_status) == (
            25000, 50000, PaymentStatus.PARTIAL)

        ledger.add_installment(record, 50000, received_by="u")
        assert (record.amount_paid, record.balance, record.payment_status) == (
            75000, 0, PaymentStatus.PAID)

        ledger.remove_installment(record, first.receipt_number)
        assert (record.amount_paid, record.balance, record.payment_status) == (
            50000, 25000, PaymentStatus.PARTIAL)

    def test_overpayment_goes_negative_and_stays_paid(self):
        record = make_record(total_amount=10000)
        ledger.add_installment(record, 15000, received_by="u")
        assert record.amount_paid == 15000
        assert record.balance == -5000
        assert record.payment_status == PaymentStatus.PAID


class TestReceiptNumbers:

    def test_format(self):
        record = make_record()
        receipt = ledger.generate_receipt_number(record, datetime(2026, 10, 17, tzinfo=timezone.utc))
        prefix, year, sequence, token = receipt.split("-")
        assert prefix == settings.RECEIPT_PREFIX
        assert year == "2026"
        assert sequence == "001"
        assert len(token) == ledger.RECEIPT_TOKEN_BYTES * 2

    def test_unique_within_record(self):
        record = make_record(total_amount=10 ** 9)
        for _ in range(200):
            ledger.add_installment(record, 1, received_by="u")
        receipts = [e.receipt_number for e in record.installments]
        assert len(set(receipts)) == len(receipts)

    def test_regenerates_on_collision(self, monkeypatch):
        record = make_record()
        now = datetime(2026, 1, 5, tzinfo=timezone.utc)
        record.installments.append(InstallmentEntry(
            amount=1, payment_date=now, receipt_number="TUT-2026-002-AAAAAAAAAAAA", received_by="u",
        ))
        tokens = iter(["aaaaaaaaaaaa", "bbbbbbbbbbbb"])
        monkeypatch.setattr(ledger.secrets, "token_hex", lambda n: next(tokens))

        assert ledger.generate_receipt_number(record, now) == "TUT-2026-002-BBBBBBBBBBBB"


class TestCorrect:

    def test_new_total_recomputes_status(self):
        record = make_record(total_amount=75000)
        ledger.add_installment(record, 50000, received_by="u")

        ledger.correct(record, total_amount=50000)

        assert record.balance == 0
        assert record.payment_status == PaymentStatus.PAID

    def test_period_only(self):
        record = make_record()
        ledger.correct(record, period="November 2026")
        assert record.period == "November 2026"
        assert record.total_amount == 75000

    def test_rejects_non_positive_total(self):
        record = make_record()
        with pytest.raises(InvalidAmountError):
            ledger.correct(record, total_amount=0)
        assert record.total_amount == 75000


class TestSummarize:

    def test_empty(self):
        stats = ledger.summarize([])
        assert stats.total_records == 0
        assert stats.period == "All"

    def test_totals_and_breakdowns(self):
        paid = make_record(total_amount=10000)
        ledger.add_installment(paid, 10000, received_by="u", payment_method="cash",
                               payment_date=datetime(2026, 9, 3, tzinfo=timezone.utc))
        partial = make_record(total_amount=30000)
        ledger.add_installment(partial, 5000, received_by="u", payment_method="card",
                               payment_date=datetime(2026, 10, 1, tzinfo=timezone.utc))
        unpaid = ledger.recompute(make_record(total_amount=20000))

        stats = ledger.summarize([paid, partial, unpaid], "October 2026")

        assert stats.total_records == 3
        assert stats.total_expected == 60000
        assert stats.total_collected == 15000
        assert stats.total_outstanding == 45000
        assert stats.collection_rate_percentage == 25.0
        assert stats.status_count == {"unpaid": 1, "partial": 1, "paid": 1}
        assert [(m.method, m.count, m.total) for m in stats.method_breakdown] == [
            ("card", 1, 5000), ("cash", 1, 10000)]
        assert [(m.month, m.revenue) for m in stats.monthly_revenue] == [
            ("2026-09", 10000), ("2026-10", 5000)]
        assert stats.period == "October 2026"

    def test_monthly_revenue_keeps_last_six_months(self):
        record = make_record(total_amount=10 ** 6)
        for month in range(1, 10):
            ledger.add_installment(record, 100, received_by="u",
                                   payment_date=datetime(2026, month, 1, tzinfo=timezone.utc))
        stats = ledger.summarize([record])
        assert [m.month for m in stats.monthly_revenue] == [
            "2026-04", "2026-05", "2026-06", "2026-07", "2026-08", "2026-09"]
