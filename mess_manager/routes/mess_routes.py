from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from mess_manager.database import get_db
from mess_manager.dependencies import get_clock, get_current_person, get_mess_context
from mess_manager.core.clock import Clock
from mess_manager.models.member import MemberStatus
from mess_manager.models.mess_context import MessContext
from mess_manager.models.person import Person
from mess_manager.schemas.mess_schemas import (
    ExpenseCategoryCreate,
    ExpenseCategoryResponse,
    MemberCreate,
    MemberResponse,
    MessCreate,
    MessResponse,
    MessUpdate,
    RateTableResponse,
)
from mess_manager.services.expense_service import ExpenseService
from mess_manager.services.mess_service import MessService
from mess_manager.services.rate_service import RateService

router = APIRouter()


@router.get("")
async def list_my_messes(
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    """
    List all messes the authenticated person belongs to.

    Includes pending and past memberships with the role held in each.
    """
    service = MessService(db)
    return service.list_person_messes(person)


@router.post("", response_model=MessResponse, status_code=status.HTTP_201_CREATED)
async def create_mess(
    mess_data: MessCreate,
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Create a new mess.

    The caller becomes its manager and the default expense categories are created.
    """
    service = MessService(db, clock)
    return service.create_mess(mess_data, person)


@router.get("/{mess_id}", response_model=MessResponse)
async def get_mess(context: MessContext = Depends(get_mess_context)):
    return context.mess


@router.patch("/{mess_id}", response_model=MessResponse)
async def update_mess(
    mess_update: MessUpdate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Update mess settings and meal rates.

    - **Requires ADMIN permissions**
    """
    service = MessService(db, clock)
    return service.update_mess(mess_update, context)


@router.delete("/{mess_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_mess(
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Soft-delete the mess.

    - **Manager only**
    - Fails while any other member is still active
    """
    service = MessService(db, clock)
    service.delete_mess(context)
    return None


@router.get("/{mess_id}/rates", response_model=RateTableResponse)
async def get_rate_table(
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
):
    service = RateService(db)
    return service.rate_table(context.mess.id)


@router.get("/{mess_id}/members", response_model=list[MemberResponse])
async def list_members(
    member_status: MemberStatus | None = None,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
):
    service = MessService(db)
    return service.get_members(context, member_status)


@router.post(
    "/{mess_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    member_data: MemberCreate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Add a person to the mess.

    - **Requires ADMIN permissions**
    - The person is created if they never signed in
    - Left pending unless `approve` is set
    """
    service = MessService(db, clock)
    return service.add_member(member_data, context)


@router.post("/{mess_id}/members/{member_id}/approve", response_model=MemberResponse)
async def approve_member(
    member_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MessService(db, clock)
    return service.approve_member(member_id, context)


@router.post("/{mess_id}/members/{member_id}/reject", response_model=MemberResponse)
async def reject_member(
    member_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MessService(db, clock)
    return service.reject_member(member_id, context)


@router.delete("/{mess_id}/members/{member_id}", response_model=MemberResponse)
async def remove_member(
    member_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Remove a member from the mess.

    - **Requires ADMIN permissions**
    - The manager cannot be removed
    - The membership is kept as LEFT (or REJECTED if still pending)
    """
    service = MessService(db, clock)
    return service.remove_member(member_id, context)


@router.post("/{mess_id}/leave", response_model=MemberResponse)
async def leave_mess(
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MessService(db, clock)
    return service.leave_mess(context)


@router.get("/{mess_id}/expense-categories", response_model=list[ExpenseCategoryResponse])
async def list_expense_categories(
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
):
    service = ExpenseService(db)
    return service.list_categories(context)


@router.post(
    "/{mess_id}/expense-categories",
    response_model=ExpenseCategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_expense_category(
    category_data: ExpenseCategoryCreate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
):
    service = ExpenseService(db)
    return service.create_category(category_data, context)
