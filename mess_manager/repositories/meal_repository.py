from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from mess_manager.database import lock_for_update
from mess_manager.models.meal import MealEntry


class MealRepository:
    """Repository for MealEntry data access"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, entry: MealEntry) -> MealEntry:
        """
        Add a meal entry and flush so the uniqueness constraint fires here.

        Raises:
            IntegrityError: If (mess_id, member_id, meal_date) already exists
        """
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_by_id_and_mess(self, meal_id: int, mess_id: int) -> Optional[MealEntry]:
        """Get meal entry by ID, ensuring it belongs to the mess"""
        return (
            self.db.query(MealEntry)
            .filter(MealEntry.id == meal_id, MealEntry.mess_id == mess_id)
            .first()
        )

    def get_for_update(self, meal_id: int, mess_id: int) -> Optional[MealEntry]:
        """Get meal entry with a row lock, re-reading lock state from the store"""
        query = self.db.query(MealEntry).filter(
            MealEntry.id == meal_id, MealEntry.mess_id == mess_id
        )
        return lock_for_update(query).populate_existing().first()

    def get_for_member_date(
        self, mess_id: int, member_id: int, meal_date: date
    ) -> Optional[MealEntry]:
        """Get the entry of a member for a date, locked or not"""
        return (
            self.db.query(MealEntry)
            .filter(
                MealEntry.mess_id == mess_id,
                MealEntry.member_id == member_id,
                MealEntry.meal_date == meal_date,
            )
            .first()
        )

    def get_unlocked_for_date_for_update(self, mess_id: int, meal_date: date) -> list[MealEntry]:
        """Get all unlocked entries of a mess for a date, row-locked"""
        query = self.db.query(MealEntry).filter(
            MealEntry.mess_id == mess_id,
            MealEntry.meal_date == meal_date,
            MealEntry.locked_at.is_(None),
        )
        return lock_for_update(query).order_by(MealEntry.id).all()

    def get_with_filters(
        self,
        mess_id: int,
        member_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[MealEntry]:
        """
        Get meal entries of a mess, optionally narrowed to a member and date range.

        Args:
            mess_id: Mess ID for isolation
            member_id: Optional member filter
            start_date: Optional start date filter (inclusive)
            end_date: Optional end date filter (inclusive)

        Returns:
            Entries ordered by date then member
        """
        query = self.db.query(MealEntry).filter(MealEntry.mess_id == mess_id)

        if member_id is not None:
            query = query.filter(MealEntry.member_id == member_id)

        if start_date is not None:
            query = query.filter(MealEntry.meal_date >= start_date)

        if end_date is not None:
            query = query.filter(MealEntry.meal_date <= end_date)

        return query.order_by(MealEntry.meal_date, MealEntry.member_id).all()

    def delete(self, entry: MealEntry) -> None:
        """Delete a meal entry (caller commits)"""
        self.db.delete(entry)
        self.db.flush()
