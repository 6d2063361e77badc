"""
tutorhub/api/v1/endpoints/payments.py
Payment ledger endpoints
"""
from fastapi import APIRouter, HTTPException, status, Depends, Query, Response
from typing import List, Optional
from tutorhub.models.schemas import (
    BillingRecord, BillingRecordCreate, BillingRecordUpdate, BillingRecordResponse,
    InstallmentCreate, InstallmentRemove, InstallmentAddedResponse,
    InstallmentRemovedResponse, PaymentStatistics, PaymentStatus, TokenPayload, UserRole
)
from tutorhub.core.dependencies import get_payment_service
from tutorhub.core.exceptions import TutorHubError
from tutorhub.core.security import get_current_user, require_admin, require_staff
from tutorhub.services.payment_service import PaymentService
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


async def _to_response(record: BillingRecord, service: PaymentService) -> BillingRecordResponse:
    """Helper to add the student's display name."""
    student_name = await service.directory.student_name(record.student_id)
    return BillingRecordResponse(**record.model_dump(), student_name=student_name)


def _check_access(record: BillingRecord, current_user: TokenPayload):
    """Parents may only see the records they pay for."""
    if current_user.role == UserRole.PARENT and record.parent_id != current_user.sub:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.post("/", response_model=BillingRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_record(
    record_data: BillingRecordCreate,
    current_user: TokenPayload = Depends(require_staff),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Create a billing record for a student and period.
    - `amount_paid` > 0 records the first installment straight away
    """
    try:
        record = await service.create_record(record_data, current_user)
        return await _to_response(record, service)

    except (HTTPException, TutorHubError):
        raise
    except Exception as e:
        logger.error(f"Create payment record error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create payment record: {str(e)}"
        )


@router.get("/", response_model=List[BillingRecordResponse])
async def get_payment_records(
    student_id: Optional[str] = None,
    period: Optional[str] = None,
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    current_user: TokenPayload = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Get billing records with filtering.
    - Parents only ever see the records they pay for.
    """
    parent_id = current_user.sub if current_user.role == UserRole.PARENT else None

    try:
        records = await service.list_records(
            student_id=student_id, parent_id=parent_id, period=period, status=status_filter
        )
        return [await _to_response(record, service) for record in records]

    except (HTTPException, TutorHubError):
        raise
    except Exception as e:
        logger.error(f"Get payment records error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve payment records: {str(e)}"
        )


@router.get("/statistics/summary", response_model=PaymentStatistics)
async def get_payment_statistics(
    period: Optional[str] = None,
    current_user: TokenPayload = Depends(require_admin),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Get fee collection statistics (Admin only)
    """
    try:
        return await service.statistics(period)

    except (HTTPException, TutorHubError):
        raise
    except Exception as e:
        logger.error(f"Get payment statistics error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve payment statistics: {str(e)}"
        )


@router.get("/{payment_id}", response_model=BillingRecordResponse)
async def get_payment_record(
    payment_id: str,
    current_user: TokenPayload = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Get a single billing record with its installment history.
    """
    try:
        record = await service.get_record(payment_id)
        _check_access(record, current_user)
        return await _to_response(record, service)

    except (HTTPException, TutorHubError):
        raise
    except Exception as e:
        logger.error(f"Get payment record error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve payment record: {str(e)}"
        )


@router.put("/{payment_id}", response_model=BillingRecordResponse)
async def update_payment_record(
    payment_id: str,
    record_data: BillingRecordUpdate,
    current_user: TokenPayload = Depends(require_staff),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Correct a record's period or expected total.
    Installments are changed through add-payment / remove-payment only.
    """
    try:
        record = await service.correct_record(payment_id, record_data)
        return await _to_response(record, service)

    except (HTTPException, TutorHubError):
        raise
    except Exception as e:
        logger.error(f"Update payment record error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update payment record: {str(e)}"
        )


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment_record(
    payment_id: str,
    current_user: TokenPayload = Depends(require_admin),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Delete a billing record together with its installments (Admin only).
    """
    try:
        await service.delete_record(payment_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    except (HTTPException, TutorHubError):
        raise
    except Exception as e:
        logger.error(f"Delete payment record error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete payment record: {str(e)}"
        )


@router.post("/{payment_id}/add-payment", response_model=InstallmentAddedResponse)
async def add_installment(
    payment_id: str,
    installment: InstallmentCreate,
    current_user: TokenPayload = Depends(require_staff),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Record an installment against an existing billing record.
    """
    try:
        entry, record = await service.add_installment(payment_id, installment, current_user)
        return InstallmentAddedResponse(
            receipt_number=entry.receipt_number,
            amount=entry.amount,
            new_balance=record.balance,
            payment_status=record.payment_status,
        )

    except (HTTPException, TutorHubError):
        raise
    except Exception as e:
        logger.error(f"Add installment error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to add installment: {str(e)}"
        )


@router.post("/{payment_id}/remove-payment", response_model=InstallmentRemovedResponse)
async def remove_installment(
    payment_id: str,
    removal: InstallmentRemove,
    current_user: TokenPayload = Depends(require_staff),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Remove an installment by its receipt number.
    """
    try:
        entry, record = await service.remove_installment(payment_id, removal.receipt_number)
        return InstallmentRemovedResponse(
            amount_removed=entry.amount,
            new_balance=record.balance,
            payment_status=record.payment_status,
        )

    except (HTTPException, TutorHubError):
        raise
    except Exception as e:
        logger.error(f"Remove installment error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to remove payment entry: {str(e)}"
        )
