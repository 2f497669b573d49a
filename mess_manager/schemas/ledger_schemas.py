"""Schemas for expense and payment bookkeeping."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.payment import PaymentMethod, PaymentStatus


class ExpenseCreate(BaseModel):
    member_id: Optional[int] = Field(None, gt=0, description="Defaults to the caller's membership")
    category_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    expense_date: date
    description: Optional[str] = Field(None, max_length=1000)


class ExpenseUpdate(BaseModel):
    category_id: Optional[int] = Field(None, gt=0)
    amount: Optional[Decimal] = Field(None, gt=0)
    expense_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=1000)


class ExpenseResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    mess_id: int
    member_id: int
    category_id: int
    amount: Decimal
    expense_date: date
    description: Optional[str]
    status: ApprovalStatus
    approved_at: Optional[datetime]
    approved_by: Optional[int]


class PaymentCreate(BaseModel):
    member_id: Optional[int] = Field(None, gt=0, description="Defaults to the caller's membership")
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    method: PaymentMethod
    transaction_ref: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    payment_date: Optional[date] = None
    method: Optional[PaymentMethod] = None
    transaction_ref: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)


class PaymentResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    mess_id: int
    member_id: int
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    status: PaymentStatus
    transaction_ref: Optional[str]
    approved_at: Optional[datetime]
    approved_by: Optional[int]


class PendingPaymentsResponse(BaseModel):
    payments: list[PaymentResponse]
    total_count: int
    total_amount: Decimal


class BulkApproveRequest(BaseModel):
    payment_ids: list[int] = Field(..., min_length=1, max_length=100)


class BulkApproveResult(BaseModel):
    payment_id: int
    status: str
    detail: Optional[str]


class BulkApproveResponse(BaseModel):
    results: list[BulkApproveResult]
    approved_count: int
    skipped_count: int
    failed_count: int
