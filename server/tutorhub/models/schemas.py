"""
tutorhub/models/schemas.py
Pydantic schemas for the TutorHub payment ledger
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Dict, Union
from datetime import datetime

from pydantic import BaseModel, Field


# ============================================
# ENUMS
# ============================================

class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERPAID = "overpaid"  # only produced when TRACK_OVERPAID_STATUS is on


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    MOBILE_MONEY = "mobile_money"


# ============================================
# AUTH
# ============================================

class TokenPayload(BaseModel):
    sub: str
    role: UserRole
    exp: datetime


# ============================================
# LEDGER DOCUMENTS
# ============================================

class InstallmentEntry(BaseModel):
    amount: float
    payment_date: datetime
    payment_method: str = PaymentMethod.CASH.value
    receipt_number: str
    received_by: str
    notes: str = ""


class BillingRecord(BaseModel):
    """One student's fee obligation for one billing period.

    ``amount_paid``, ``balance`` and ``payment_status`` are derived from
    ``installments`` by the ledger and are never set directly.
    """
    payment_id: Optional[str] = None
    student_id: str
    parent_id: str
    class_level: Optional[str] = None
    period: str
    total_amount: float
    installments: List[InstallmentEntry] = []
    amount_paid: float = 0
    balance: float = 0
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    currency: str = "XAF"
    created_by: Optional[str] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================
# REQUESTS
# ============================================

# Amounts are accepted loosely (numbers or numeric strings) and validated by
# the ledger so that bad amounts surface as invalid_amount errors.
Amount = Union[float, str, None]


class BillingRecordCreate(BaseModel):
    student_id: str = Field(..., min_length=1)
    period: str = Field(..., min_length=1)
    total_amount: Amount = None
    amount_paid: Amount = None
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class BillingRecordUpdate(BaseModel):
    """Administrative correction. Only the period and the expected total may change."""
    period: Optional[str] = Field(None, min_length=1)
    total_amount: Amount = None


class InstallmentCreate(BaseModel):
    amount: Amount = None
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class InstallmentRemove(BaseModel):
    receipt_number: str = Field(..., min_length=1)


# ============================================
# RESPONSES
# ============================================

class BillingRecordResponse(BillingRecord):
    payment_id: str
    student_name: Optional[str] = None


class InstallmentAddedResponse(BaseModel):
    success: bool = True
    message: str = "Installment added successfully"
    receipt_number: str
    amount: float
    new_balance: float
    payment_status: PaymentStatus


class InstallmentRemovedResponse(BaseModel):
    success: bool = True
    message: str = "Payment entry removed successfully"
    amount_removed: float
    new_balance: float
    payment_status: PaymentStatus


class MethodBreakdown(BaseModel):
    method: str
    count: int
    total: float
    average: float


class MonthlyRevenue(BaseModel):
    month: str
    revenue: float


class PaymentStatistics(BaseModel):
    total_records: int = 0
    total_expected: float = 0
    total_collected: float = 0
    total_outstanding: float = 0
    collection_rate_percentage: float = 0
    status_count: Dict[str, int] = {}
    method_breakdown: List[MethodBreakdown] = []
    monthly_revenue: List[MonthlyRevenue] = []
    period: str = "All"


# ============================================
# EXPORTS
# ============================================

__all__ = [
    # Enums
    "UserRole",
    "PaymentStatus",
    "PaymentMethod",
    # Auth
    "TokenPayload",
    # Ledger documents
    "InstallmentEntry",
    "BillingRecord",
    # Requests
    "BillingRecordCreate",
    "BillingRecordUpdate",
    "InstallmentCreate",
    "InstallmentRemove",
    # Responses
    "BillingRecordResponse",
    "InstallmentAddedResponse",
    "InstallmentRemovedResponse",
    "MethodBreakdown",
    "MonthlyRevenue",
    "PaymentStatistics",
]
