import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mess_manager.core.authorization import Action, authorize, require
from mess_manager.core.clock import Clock, SystemClock
from mess_manager.core.exceptions import (
    DuplicateEntryException,
    ForbiddenException,
    LockedException,
    NotFoundException,
    ValidationException,
    WindowClosedException,
    WindowStillOpenException,
)
from mess_manager.database import atomic
from mess_manager.models.meal import MealEntry, MealType
from mess_manager.models.member import MessMember
from mess_manager.models.mess import Mess
from mess_manager.models.mess_context import MessContext
from mess_manager.models.statement import month_bounds
from mess_manager.repositories.meal_repository import MealRepository
from mess_manager.repositories.member_repository import MemberRepository
from mess_manager.schemas.meal_schemas import ExtraItem, MealEntryCreate, MealEntryUpdate
from mess_manager.services.rate_service import RateService

logger = logging.getLogger(__name__)


def entry_cost(entry: MealEntry, rates: dict[MealType, Decimal]) -> Decimal:
    """Unrounded cost of one day's entry: counts times rates plus extra items."""
    cost = sum(
        (Decimal(entry.count_for(meal_type)) * rates[meal_type] for meal_type in MealType),
        Decimal("0"),
    )
    return cost + entry.extra_items_cost()


def _serialize_extra_items(items: list[ExtraItem]) -> list[dict]:
    return [
        {"name": item.name, "quantity": str(item.quantity), "unit_price": str(item.unit_price)}
        for item in items
    ]


class MealService:
    """Service layer for the daily meal ledger"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.meal_repo = MealRepository(db)
        self.member_repo = MemberRepository(db)
        self.rate_service = RateService(db)

    def is_entry_window_open(self, mess: Mess, meal_date: date) -> bool:
        """
        Whether meals for ``meal_date`` may still be entered or changed.

        Future dates are always open, today is open until the mess cutoff
        (inclusive) and past dates are closed.
        """
        now = self.clock.now()
        if meal_date > now.date():
            return True
        if meal_date < now.date():
            return False
        return now.time() <= mess.meal_cutoff_time

    def _resolve_member(self, context: MessContext, member_id: Optional[int]) -> MessMember:
        if member_id is None or member_id == context.member.id:
            require(context, Action.ENTER_OWN_MEAL)
            return context.member

        require(context, Action.ENTER_MEAL_FOR_OTHERS)
        member = self.member_repo.get_by_id_and_mess(member_id, context.mess.id)
        if not member:
            raise NotFoundException(f"Member {member_id} not found in this mess")
        if not member.is_active:
            raise ForbiddenException(f"Member {member_id} is not an active member of this mess")
        return member

    def record_meal(
        self, data: MealEntryCreate, context: MessContext, member_id: Optional[int] = None
    ) -> MealEntry:
        """
        Record a member's meals for a day.

        Args:
            data: Meal counts, date and extra items
            context: Actor context
            member_id: Member to record for; defaults to the caller

        Returns:
            Created meal entry

        Raises:
            ForbiddenException: If the caller may not enter meals for that member
            WindowClosedException: If the entry window for the date has passed
            DuplicateEntryException: If the member already has an entry for the date
        """
        member = self._resolve_member(context, member_id)
        mess = context.mess

        if not self.is_entry_window_open(mess, data.meal_date):
            raise WindowClosedException(
                f"Meal entry for {data.meal_date.isoformat()} is closed "
                f"(cutoff {mess.meal_cutoff_time.strftime('%H:%M')})"
            )

        if self.meal_repo.get_for_member_date(mess.id, member.id, data.meal_date):
            raise DuplicateEntryException("Meal entry already exists for this date")

        entry = MealEntry(
            mess_id=mess.id,
            member_id=member.id,
            meal_date=data.meal_date,
            breakfast=data.breakfast,
            lunch=data.lunch,
            dinner=data.dinner,
            extra_items=_serialize_extra_items(data.extra_items),
            notes=data.notes,
            entered_by=context.person.id,
        )

        # A concurrent insert can still win the race between the check and the flush
        try:
            with atomic(self.db):
                self.meal_repo.create(entry)
        except IntegrityError:
            raise DuplicateEntryException("Meal entry already exists for this date")

        logger.info(
            "Meal recorded: mess=%s member=%s date=%s total=%s",
            mess.id, member.id, data.meal_date, entry.total_meals,
        )
        return entry

    def get_meal(self, meal_id: int, context: MessContext) -> MealEntry:
        """
        Raises:
            NotFoundException: If the entry is not in this mess
        """
        require(context, Action.VIEW_MESS)
        entry = self.meal_repo.get_by_id_and_mess(meal_id, context.mess.id)
        if not entry:
            raise NotFoundException(f"Meal entry {meal_id} not found")
        return entry

    def _check_owner(self, entry: MealEntry, context: MessContext) -> None:
        if entry.member_id == context.member.id:
            require(context, Action.ENTER_OWN_MEAL)
        else:
            require(context, Action.ENTER_MEAL_FOR_OTHERS)

    def _get_mutable_entry(self, meal_id: int, context: MessContext) -> MealEntry:
        # Re-read the row under lock so a concurrent lock_meals is observed
        entry = self.meal_repo.get_for_update(meal_id, context.mess.id)
        if not entry:
            raise NotFoundException(f"Meal entry {meal_id} not found")
        self._check_owner(entry, context)
        if entry.is_locked:
            raise LockedException("Meal entry is locked")
        if not self.is_entry_window_open(context.mess, entry.meal_date):
            raise WindowClosedException(
                f"Meal entry for {entry.meal_date.isoformat()} can no longer be changed"
            )
        return entry

    def update_meal(self, meal_id: int, data: MealEntryUpdate, context: MessContext) -> MealEntry:
        """
        Change an unlocked entry while its window is open.

        Raises:
            NotFoundException: If the entry is not in this mess
            LockedException: If the entry has been locked
            WindowClosedException: If the entry window has passed
        """
        with atomic(self.db):
            entry = self._get_mutable_entry(meal_id, context)

            update_data = data.model_dump(exclude_unset=True)
            for field in ("breakfast", "lunch", "dinner"):
                if update_data.get(field) is not None:
                    setattr(entry, field, update_data[field])
            if data.extra_items is not None:
                entry.extra_items = _serialize_extra_items(data.extra_items)
            if "notes" in update_data:
                entry.notes = data.notes
            self.db.flush()

        logger.info("Meal %s updated by person %s", entry.id, context.person.id)
        return entry

    def delete_meal(self, meal_id: int, context: MessContext) -> None:
        """
        Delete an unlocked entry while its window is open.

        Raises:
            NotFoundException: If the entry is not in this mess
            LockedException: If the entry has been locked
            WindowClosedException: If the entry window has passed
        """
        with atomic(self.db):
            entry = self._get_mutable_entry(meal_id, context)
            self.meal_repo.delete(entry)
        logger.info("Meal %s deleted by person %s", meal_id, context.person.id)

    def lock_meals(self, meal_date: date, context: MessContext, force: bool = False) -> int:
        """
        Lock every unlocked entry of the mess for ``meal_date``.

        Already-locked entries are left alone, so repeating the call locks
        nothing new.

        Args:
            meal_date: Day to lock
            context: Actor context (manager/staff)
            force: Lock even though the entry window is still open

        Returns:
            Number of entries newly locked

        Raises:
            ForbiddenException: If the caller may not lock meals
            WindowStillOpenException: If the window is open and force is not set
        """
        require(context, Action.LOCK_MEALS)
        mess = context.mess

        if self.is_entry_window_open(mess, meal_date) and not force:
            raise WindowStillOpenException(
                "Cannot lock meals before the cutoff time; use force to override"
            )

        now = self.clock.now()
        with atomic(self.db):
            entries = self.meal_repo.get_unlocked_for_date_for_update(mess.id, meal_date)
            for entry in entries:
                entry.lock(context.person.id, now)
            self.db.flush()

        logger.info(
            "Locked %d meal entries: mess=%s date=%s forced=%s",
            len(entries), mess.id, meal_date, force,
        )
        return len(entries)

    def unlock_meal(self, meal_id: int, context: MessContext) -> MealEntry:
        """
        Manager override returning a locked entry to the open state.

        Raises:
            ForbiddenException: If the caller is not allowed to unlock
            NotFoundException: If the entry is not in this mess
            ValidationException: If the entry is not locked
        """
        require(context, Action.UNLOCK_MEALS)

        with atomic(self.db):
            entry = self.meal_repo.get_for_update(meal_id, context.mess.id)
            if not entry:
                raise NotFoundException(f"Meal entry {meal_id} not found")
            if not entry.is_locked:
                raise ValidationException("Meal entry is not locked")
            entry.unlock()
            self.db.flush()

        logger.info("Meal %s unlocked by person %s", entry.id, context.person.id)
        return entry

    def list_meals(
        self,
        context: MessContext,
        member_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[MealEntry]:
        """Members see their own entries; staff and managers see everyone's."""
        require(context, Action.VIEW_MESS)
        if not authorize(context, Action.VIEW_REPORTS, context.mess):
            member_id = context.member.id
        return self.meal_repo.get_with_filters(context.mess.id, member_id, start_date, end_date)

    def today_summary(self, context: MessContext) -> dict:
        """Totals for today together with the cutoff status of the mess."""
        require(context, Action.VIEW_MESS)
        mess = context.mess
        now = self.clock.now()
        entries = self.meal_repo.get_with_filters(mess.id, start_date=now.date(), end_date=now.date())

        return {
            "date": now.date(),
            "cutoff_time": mess.meal_cutoff_time,
            "is_cutoff_passed": now.time() > mess.meal_cutoff_time,
            "total_breakfast": sum(e.breakfast for e in entries),
            "total_lunch": sum(e.lunch for e in entries),
            "total_dinner": sum(e.dinner for e in entries),
            "total_meals": sum(e.total_meals for e in entries),
            "members_entered": len({e.member_id for e in entries}),
            "locked": sum(1 for e in entries if e.is_locked),
        }

    def member_monthly_stats(
        self, member_id: int, year: int, month: int, context: MessContext
    ) -> dict:
        """
        Meal statistics of one member for a calendar month.

        Raises:
            ForbiddenException: If a plain member asks for someone else
            NotFoundException: If the member is not in this mess
        """
        if member_id != context.member.id:
            require(context, Action.VIEW_REPORTS)
        else:
            require(context, Action.VIEW_OWN_STATEMENT)

        member = self.member_repo.get_by_id_and_mess(member_id, context.mess.id)
        if not member:
            raise NotFoundException(f"Member {member_id} not found in this mess")

        start, end = month_bounds(year, month)
        entries = self.meal_repo.get_with_filters(context.mess.id, member.id, start, end)
        rates = self.rate_service.meal_rates(context.mess)

        return {
            "member_id": member.id,
            "year": year,
            "month": month,
            "total_breakfast": sum(e.breakfast for e in entries),
            "total_lunch": sum(e.lunch for e in entries),
            "total_dinner": sum(e.dinner for e in entries),
            "total_meals": sum(e.total_meals for e in entries),
            "days_with_meals": len(entries),
            "extra_items_cost": sum((e.extra_items_cost() for e in entries), Decimal("0")),
            "meal_cost": sum((entry_cost(e, rates) for e in entries), Decimal("0")),
        }
