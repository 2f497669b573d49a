from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mess_manager.core.clock import Clock
from mess_manager.database import get_db
from mess_manager.dependencies import get_clock, get_mess_context
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.mess_context import MessContext
from mess_manager.schemas.bazar_schemas import (
    BazarCreate,
    BazarResponse,
    BazarUpdate,
    NextAssigneeResponse,
)
from mess_manager.services.bazar_service import BazarService

router = APIRouter()


@router.get("/next-assignee", response_model=NextAssigneeResponse)
async def next_assignee(
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Member whose turn it is to do the bazar.

    Both fields are null when rotation is disabled or nobody is eligible.
    """
    service = BazarService(db, clock)
    member = service.next_assignee(context.mess.id)
    if member is None:
        return {"member_id": None, "person_id": None}
    return {"member_id": member.id, "person_id": member.person_id}


@router.post("", response_model=BazarResponse, status_code=status.HTTP_201_CREATED)
async def record_purchase(
    bazar_data: BazarCreate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Record a bazar purchase (pending approval).

    - total_cost must match the sum of the items
    """
    service = BazarService(db, clock)
    return service.record_purchase(bazar_data, context)


@router.get("", response_model=list[BazarResponse])
async def list_purchases(
    assignee_id: Optional[int] = Query(None, gt=0),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    record_status: Optional[ApprovalStatus] = Query(None, alias="status"),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = BazarService(db, clock)
    return service.list_purchases(context, assignee_id, start_date, end_date, record_status)


@router.get("/{bazar_id}", response_model=BazarResponse)
async def get_purchase(
    bazar_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = BazarService(db, clock)
    return service.get_purchase(bazar_id, context)


@router.patch("/{bazar_id}", response_model=BazarResponse)
async def update_purchase(
    bazar_id: int,
    bazar_update: BazarUpdate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = BazarService(db, clock)
    return service.update_purchase(bazar_id, bazar_update, context)


@router.delete("/{bazar_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_purchase(
    bazar_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = BazarService(db, clock)
    service.delete_purchase(bazar_id, context)
    return None


@router.post("/{bazar_id}/approve", response_model=BazarResponse)
async def approve_purchase(
    bazar_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Approve a purchase.

    - **Requires ADMIN permissions**
    - Approved purchases count towards the assignee's statement
    """
    service = BazarService(db, clock)
    return service.approve(bazar_id, context)


@router.post("/{bazar_id}/reject", response_model=BazarResponse)
async def reject_purchase(
    bazar_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = BazarService(db, clock)
    return service.reject(bazar_id, context)
