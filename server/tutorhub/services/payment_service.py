"""
tutorhub/services/payment_service.py
Billing record workflows: create, record installments, remove them, correct, delete

Every mutation reads the record, applies the change to a copy through the
ledger, and writes it back only if the record's ``version`` is still the one
that was read. When another request won the race the write matches nothing,
so the record is reloaded and the change re-applied.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from tutorhub.core.config import settings
from tutorhub.core.exceptions import (
    ConcurrentModificationError, DuplicateRecordError, InvalidInputError,
    PersistenceError, RecordNotFoundError
)
from tutorhub.db.supabase import SupabaseQueries
from tutorhub.models.schemas import (
    BillingRecord, BillingRecordCreate, BillingRecordUpdate, InstallmentCreate,
    InstallmentEntry, PaymentStatistics, PaymentStatus, TokenPayload
)
from tutorhub.services import ledger, notices
from tutorhub.services.notices import Notice, NoticeChannel
from tutorhub.services.student_directory import StudentDirectory

logger = logging.getLogger(__name__)

TABLE = "payments"
ID_COLUMN = "payment_id"

# Fields written back after a ledger mutation; identity fields never change.
MUTABLE_FIELDS = {
    "period", "total_amount", "installments", "amount_paid",
    "balance", "payment_status", "version", "updated_at",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _seed_amount(value: Any) -> Optional[float]:
    """Initial payment at creation: absent or zero means none."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        if float(value) == 0:
            return None
    except (TypeError, ValueError):
        pass
    return ledger.parse_amount(value, "amount_paid")


def to_document(record: BillingRecord, include: Optional[set] = None) -> Dict[str, Any]:
    """Serialize a record to the JSON document stored in Supabase."""
    return record.model_dump(mode="json", include=include, exclude_none=include is None)


class PaymentService:
    def __init__(self, db: SupabaseQueries, channel: Optional[NoticeChannel] = None):
        self.db = db
        self.channel = channel or NoticeChannel()
        self.directory = StudentDirectory(db)

    # ============================================
    # READS
    # ============================================

    async def get_record(self, payment_id: str) -> BillingRecord:
        row = await self.db.select_by_id(TABLE, ID_COLUMN, payment_id)
        if not row:
            raise RecordNotFoundError(payment_id)
        return BillingRecord.model_validate(row)

    async def list_records(
        self,
        student_id: Optional[str] = None,
        parent_id: Optional[str] = None,
        period: Optional[str] = None,
        status: Optional[PaymentStatus] = None,
    ) -> List[BillingRecord]:
        filters = {}
        if student_id:
            filters["student_id"] = student_id
        if parent_id:
            filters["parent_id"] = parent_id
        if period:
            filters["period"] = period
        if status:
            filters["payment_status"] = status.value

        rows = await self.db.select_all(TABLE, filters or None, "created_at", ascending=False)
        return [BillingRecord.model_validate(row) for row in rows]

    async def statistics(self, period: Optional[str] = None) -> PaymentStatistics:
        records = await self.list_records(period=period)
        return ledger.summarize(records, period)

    # ============================================
    # CREATE
    # ============================================

    async def create_record(self, data: BillingRecordCreate, actor: TokenPayload) -> BillingRecord:
        """
        Create a billing record for a student and period.

        The student's parent becomes the payer. A positive ``amount_paid``
        seeds the first installment. What happens when a record already exists
        for the same student and period depends on DUPLICATE_PERIOD_POLICY.
        """
        total_amount = ledger.parse_amount(data.total_amount, "total_amount")
        seed_amount = _seed_amount(data.amount_paid)

        student = await self.directory.resolve_billable(data.student_id)

        policy = settings.DUPLICATE_PERIOD_POLICY
        if policy != "allow":
            existing = await self.db.select_one(
                TABLE, {"student_id": student.student_id, "period": data.period}
            )
            if existing and policy == "reject":
                raise DuplicateRecordError(student.student_id, data.period, existing.get(ID_COLUMN))
            if existing and policy == "merge":
                if seed_amount is None:
                    return BillingRecord.model_validate(existing)
                logger.info(
                    f"Merging payment into existing record {existing[ID_COLUMN]} "
                    f"for student {student.student_id} ({data.period})"
                )
                entry, record = await self.add_installment(
                    existing[ID_COLUMN],
                    InstallmentCreate(
                        amount=seed_amount,
                        payment_date=data.payment_date,
                        payment_method=data.payment_method,
                        notes=data.notes,
                    ),
                    actor,
                )
                return record

        now = _now()
        record = BillingRecord(
            student_id=student.student_id,
            parent_id=student.parent_id,
            class_level=student.class_level,
            period=data.period,
            total_amount=total_amount,
            currency=settings.DEFAULT_CURRENCY,
            created_by=actor.sub,
            version=1,
            created_at=now,
            updated_at=now,
        )
        entry = None
        if seed_amount is not None:
            entry = ledger.add_installment(
                record,
                seed_amount,
                received_by=actor.sub,
                payment_date=data.payment_date,
                payment_method=data.payment_method,
                notes=data.notes,
            )
        else:
            ledger.recompute(record)

        row = await self.db.insert_one(TABLE, to_document(record))
        if not row:
            raise PersistenceError("Failed to create payment record")
        created = BillingRecord.model_validate(row)

        logger.info(f"Payment record {created.payment_id} created for student {created.student_id}")
        await self._notify(notices.RECORD_CREATED, "Payment record created", created)
        if entry is not None:
            await self._notify(notices.INSTALLMENT_ADDED, "Installment added successfully",
                               created, entry)
        return created

    # ============================================
    # INSTALLMENTS
    # ============================================

    async def add_installment(
        self, payment_id: str, data: InstallmentCreate, actor: TokenPayload
    ) -> Tuple[InstallmentEntry, BillingRecord]:
        """Record a payment against a billing record. Returns the new entry and the saved record."""
        amount = ledger.parse_amount(data.amount)

        def apply(record: BillingRecord) -> InstallmentEntry:
            return ledger.add_installment(
                record,
                amount,
                received_by=actor.sub,
                payment_date=data.payment_date,
                payment_method=data.payment_method,
                notes=data.notes,
            )

        entry, record = await self._mutate(payment_id, apply)
        logger.info(
            f"Installment {entry.receipt_number} of {entry.amount} added to {payment_id}, "
            f"balance {record.balance}"
        )
        await self._notify(notices.INSTALLMENT_ADDED, "Installment added successfully", record, entry)
        return entry, record

    async def remove_installment(
        self, payment_id: str, receipt_number: str
    ) -> Tuple[InstallmentEntry, BillingRecord]:
        """Remove one installment by receipt number. Returns the removed entry and the saved record."""
        if not receipt_number:
            raise InvalidInputError("Receipt number is required")

        entry, record = await self._mutate(
            payment_id, lambda record: ledger.remove_installment(record, receipt_number)
        )
        logger.info(
            f"Installment {receipt_number} of {entry.amount} removed from {payment_id}, "
            f"balance {record.balance}"
        )
        await self._notify(notices.INSTALLMENT_REMOVED, "Payment entry removed successfully",
                           record, entry)
        return entry, record

    # ============================================
    # CORRECTIONS & DELETE
    # ============================================

    async def correct_record(self, payment_id: str, data: BillingRecordUpdate) -> BillingRecord:
        """Administrative correction of the period label and/or expected total."""
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise InvalidInputError("No fields to update")

        _, record = await self._mutate(
            payment_id,
            lambda record: ledger.correct(
                record, period=changes.get("period"), total_amount=changes.get("total_amount")
            ),
        )
        logger.info(f"Payment record {payment_id} corrected: {sorted(changes)}")
        await self._notify(notices.RECORD_UPDATED, "Payment record updated", record)
        return record

    async def delete_record(self, payment_id: str) -> BillingRecord:
        record = await self.get_record(payment_id)
        await self.db.delete_by_id(TABLE, ID_COLUMN, payment_id)
        logger.info(f"Payment record {payment_id} deleted")
        await self._notify(notices.RECORD_DELETED, "Payment deleted successfully", record)
        return record

    # ============================================
    # INTERNALS
    # ============================================

    async def _mutate(self, payment_id: str, apply: Callable[[BillingRecord], Any]):
        """
        Load, apply ``apply`` to a copy, recompute, and write back guarded by version.

        Returns (whatever ``apply`` returned, the persisted record). Errors
        raised by ``apply`` propagate before anything is written.
        """
        attempts = max(1, settings.LEDGER_WRITE_RETRIES)
        for attempt in range(1, attempts + 1):
            current = await self.get_record(payment_id)
            working = current.model_copy(deep=True)

            result = apply(working)
            ledger.recompute(working)
            working.version = current.version + 1
            working.updated_at = _now()

            rows = await self.db.update_where(
                TABLE,
                {ID_COLUMN: payment_id, "version": current.version},
                to_document(working, include=MUTABLE_FIELDS),
            )
            if rows:
                return result, BillingRecord.model_validate(rows[0])

            logger.warning(
                f"Version conflict on payment record {payment_id} "
                f"(attempt {attempt}/{attempts}, read version {current.version})"
            )

        raise ConcurrentModificationError(payment_id, attempts)

    async def _notify(self, kind: str, message: str, record: BillingRecord,
                      entry: Optional[InstallmentEntry] = None):
        payload = {
            "payment_id": record.payment_id,
            "student_id": record.student_id,
            "period": record.period,
            "balance": record.balance,
            "currency": record.currency,
            "payment_status": record.payment_status.value,
        }
        if entry is not None:
            payload.update(receipt_number=entry.receipt_number, amount=entry.amount)
        await self.channel.publish(Notice(kind=kind, message=message, payload=payload))
