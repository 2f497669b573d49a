from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mess_manager.core.clock import Clock
from mess_manager.database import get_db
from mess_manager.dependencies import get_clock, get_mess_context
from mess_manager.models.mess_context import MessContext
from mess_manager.models.payment import PaymentStatus
from mess_manager.schemas.ledger_schemas import (
    BulkApproveRequest,
    BulkApproveResponse,
    PaymentCreate,
    PaymentResponse,
    PaymentUpdate,
    PendingPaymentsResponse,
)
from mess_manager.services.payment_service import PaymentService

router = APIRouter()


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_data: PaymentCreate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = PaymentService(db, clock)
    return service.record_payment(payment_data, context)


@router.get("", response_model=list[PaymentResponse])
async def list_payments(
    member_id: Optional[int] = Query(None, gt=0),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = PaymentService(db, clock)
    return service.list_payments(context, member_id, start_date, end_date, payment_status)


@router.get("/pending", response_model=PendingPaymentsResponse)
async def get_pending_payments(
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Payments awaiting approval, oldest first.

    - **Requires ADMIN permissions**
    """
    service = PaymentService(db, clock)
    return service.get_pending_payments(context)


@router.post("/bulk-approve", response_model=BulkApproveResponse)
async def bulk_approve_payments(
    bulk_request: BulkApproveRequest,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Approve several pending payments at once.

    - Payments that are no longer pending are reported as skipped
    - Unknown ids are reported as failed
    """
    service = PaymentService(db, clock)
    return service.bulk_approve_payments(bulk_request.payment_ids, context)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = PaymentService(db, clock)
    return service.get_payment(payment_id, context)


@router.patch("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: int,
    payment_update: PaymentUpdate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = PaymentService(db, clock)
    return service.update_payment(payment_id, payment_update, context)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = PaymentService(db, clock)
    service.delete_payment(payment_id, context)
    return None


@router.post("/{payment_id}/approve", response_model=PaymentResponse)
async def approve_payment(
    payment_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = PaymentService(db, clock)
    return service.approve_payment(payment_id, context)


@router.post("/{payment_id}/complete", response_model=PaymentResponse)
async def complete_payment(
    payment_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Mark a payment as received.

    - **Requires ADMIN permissions**
    - Only completed payments reduce the member's due amount
    """
    service = PaymentService(db, clock)
    return service.complete_payment(payment_id, context)
