from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mess_manager.core.clock import Clock
from mess_manager.database import get_db
from mess_manager.dependencies import get_clock, get_mess_context
from mess_manager.models.mess_context import MessContext
from mess_manager.schemas.meal_schemas import (
    MealEntryCreate,
    MealEntryResponse,
    MealEntryUpdate,
    MealLockRequest,
    MealLockResponse,
)
from mess_manager.services.meal_service import MealService

router = APIRouter()


@router.post("", response_model=MealEntryResponse, status_code=status.HTTP_201_CREATED)
async def record_meal(
    meal_data: MealEntryCreate,
    member_id: Optional[int] = Query(None, gt=0, description="Record for another member (staff)"),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Record a day's meals.

    - One entry per member and date
    - Today's entries close at the mess cutoff time
    """
    service = MealService(db, clock)
    return service.record_meal(meal_data, context, member_id)


@router.get("", response_model=list[MealEntryResponse])
async def list_meals(
    member_id: Optional[int] = Query(None, gt=0),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MealService(db, clock)
    return service.list_meals(context, member_id, start_date, end_date)


@router.get("/today")
async def today_summary(
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MealService(db, clock)
    return service.today_summary(context)


@router.get("/window")
async def entry_window(
    meal_date: date,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MealService(db, clock)
    return {"meal_date": meal_date, "open": service.is_entry_window_open(context.mess, meal_date)}


@router.post("/lock", response_model=MealLockResponse)
async def lock_meals(
    lock_request: MealLockRequest,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Lock all entries of a date.

    - **Requires STAFF or ADMIN permissions**
    - Before the cutoff only with `force`
    - Repeating the call locks nothing new
    """
    service = MealService(db, clock)
    locked = service.lock_meals(lock_request.meal_date, context, lock_request.force)
    return {"meal_date": lock_request.meal_date, "locked_count": locked}


@router.get("/stats/{member_id}")
async def member_monthly_stats(
    member_id: int,
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MealService(db, clock)
    return service.member_monthly_stats(member_id, year, month, context)


@router.get("/{meal_id}", response_model=MealEntryResponse)
async def get_meal(
    meal_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MealService(db, clock)
    return service.get_meal(meal_id, context)


@router.patch("/{meal_id}", response_model=MealEntryResponse)
async def update_meal(
    meal_id: int,
    meal_update: MealEntryUpdate,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MealService(db, clock)
    return service.update_meal(meal_id, meal_update, context)


@router.delete("/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meal(
    meal_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = MealService(db, clock)
    service.delete_meal(meal_id, context)
    return None


@router.post("/{meal_id}/unlock", response_model=MealEntryResponse)
async def unlock_meal(
    meal_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Reopen a locked entry.

    - **Requires ADMIN permissions**
    """
    service = MealService(db, clock)
    return service.unlock_meal(meal_id, context)
