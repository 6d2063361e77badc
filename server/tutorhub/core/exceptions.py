"""
tutorhub/core/exceptions.py
Typed error taxonomy for the payment ledger

Every error carries a machine-readable ``code``, a coarse ``category`` that
clients can switch on, and the HTTP status the API layer answers with:

    TutorHubError
    +-- UnauthorizedError            unauthorized    401
    +-- ForbiddenError               forbidden       403
    +-- NotFoundError                not_found       404
    |   +-- RecordNotFoundError
    |   +-- InstallmentNotFoundError
    |   +-- StudentNotFoundError
    +-- InvalidInputError            invalid_input   400
    |   +-- InvalidAmountError       invalid_amount  400
    +-- ConflictError                conflict        409
    |   +-- DuplicateRecordError
    |   +-- ConcurrentModificationError
    +-- PersistenceError             internal        500
"""
from typing import Any, Dict, Optional


class TutorHubError(Exception):
    """Base exception for all TutorHub errors."""

    code: str = "TUTORHUB_ERROR"
    category: str = "internal"
    status_code: int = 500

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details: Dict[str, Any] = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "detail": self.message,
            "category": self.category,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(TutorHubError):
    code = "UNAUTHORIZED"
    category = "unauthorized"
    status_code = 401


class ForbiddenError(TutorHubError):
    code = "FORBIDDEN"
    category = "forbidden"
    status_code = 403


# Lookup misses


class NotFoundError(TutorHubError):
    code = "NOT_FOUND"
    category = "not_found"
    status_code = 404


class RecordNotFoundError(NotFoundError):
    """Billing record id doesn't exist."""

    code = "PAYMENT_RECORD_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__("Payment record not found", payment_id=payment_id)


class InstallmentNotFoundError(NotFoundError):
    """No installment in the record carries the receipt number."""

    code = "PAYMENT_ENTRY_NOT_FOUND"

    def __init__(self, receipt_number: str):
        self.receipt_number = receipt_number
        super().__init__("Payment entry not found", receipt_number=receipt_number)


class StudentNotFoundError(NotFoundError):
    code = "STUDENT_NOT_FOUND"

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__("Student not found", student_id=student_id)


# Validation


class InvalidInputError(TutorHubError):
    code = "INVALID_INPUT"
    category = "invalid_input"
    status_code = 400


class InvalidAmountError(InvalidInputError):
    """Amount is non-numeric, not finite, or not strictly positive."""

    code = "INVALID_AMOUNT"
    category = "invalid_amount"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(
            f"{field} must be a number greater than 0",
            field=field,
            value=repr(value),
        )


# Conflicts


class ConflictError(TutorHubError):
    code = "CONFLICT"
    category = "conflict"
    status_code = 409


class DuplicateRecordError(ConflictError):
    code = "DUPLICATE_PAYMENT_RECORD"

    def __init__(self, student_id: str, period: str, existing_id: Optional[str] = None):
        self.student_id = student_id
        self.period = period
        super().__init__(
            f"A payment record for this student already exists for {period}",
            student_id=student_id,
            period=period,
            payment_id=existing_id,
        )


class ConcurrentModificationError(ConflictError):
    """The record kept changing underneath us; every retry lost the race."""

    code = "CONCURRENT_MODIFICATION"

    def __init__(self, payment_id: str, attempts: int):
        self.payment_id = payment_id
        self.attempts = attempts
        super().__init__(
            "Payment record was modified concurrently, please retry",
            payment_id=payment_id,
            attempts=attempts,
        )


class PersistenceError(TutorHubError):
    """Database call failed. Surfaced opaquely."""

    code = "PERSISTENCE_ERROR"
    category = "internal"
    status_code = 500
