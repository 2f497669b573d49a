from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mess_manager.core.clock import Clock
from mess_manager.database import get_db
from mess_manager.dependencies import get_clock, get_mess_context
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.mess_context import MessContext
from mess_manager.schemas.ledger_schemas import ExpenseCreate, ExpenseResponse, ExpenseUpdate
from mess_manager.services.expense_service import ExpenseService

router = APIRouter()


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense_data: ExpenseCreate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ExpenseService(db, clock)
    return service.create_expense(expense_data, context)


@router.get("", response_model=list[ExpenseResponse])
async def list_expenses(
    member_id: Optional[int] = Query(None, gt=0),
    category_id: Optional[int] = Query(None, gt=0),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    record_status: Optional[ApprovalStatus] = Query(None, alias="status"),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    List expenses with optional filters.

    Plain members only see their own expenses.
    """
    service = ExpenseService(db, clock)
    return service.list_expenses(context, member_id, category_id, start_date, end_date, record_status)


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ExpenseService(db, clock)
    return service.get_expense(expense_id, context)


@router.patch("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: int,
    expense_update: ExpenseUpdate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ExpenseService(db, clock)
    return service.update_expense(expense_id, expense_update, context)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ExpenseService(db, clock)
    service.delete_expense(expense_id, context)
    return None


@router.post("/{expense_id}/approve", response_model=ExpenseResponse)
async def approve_expense(
    expense_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ExpenseService(db, clock)
    return service.approve_expense(expense_id, context)


@router.post("/{expense_id}/reject", response_model=ExpenseResponse)
async def reject_expense(
    expense_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ExpenseService(db, clock)
    return service.reject_expense(expense_id, context)
