from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.expense import ExpenseCategory, ExpenseRecord


class ExpenseRepository:
    """Repository for expense records and categories"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, expense: ExpenseRecord) -> ExpenseRecord:
        """Add an expense record (caller commits)"""
        self.db.add(expense)
        self.db.flush()
        return expense

    def get_by_id_and_mess(self, expense_id: int, mess_id: int) -> Optional[ExpenseRecord]:
        """Get expense by ID, ensuring it belongs to the mess"""
        return (
            self.db.query(ExpenseRecord)
            .filter(ExpenseRecord.id == expense_id, ExpenseRecord.mess_id == mess_id)
            .first()
        )

    def get_with_filters(
        self,
        mess_id: int,
        member_id: Optional[int] = None,
        category_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[ApprovalStatus] = None,
    ) -> list[ExpenseRecord]:
        """Get expenses of a mess with optional member/category/date/status filters"""
        query = self.db.query(ExpenseRecord).filter(ExpenseRecord.mess_id == mess_id)

        if member_id is not None:
            query = query.filter(ExpenseRecord.member_id == member_id)

        if category_id is not None:
            query = query.filter(ExpenseRecord.category_id == category_id)

        if start_date is not None:
            query = query.filter(ExpenseRecord.expense_date >= start_date)

        if end_date is not None:
            query = query.filter(ExpenseRecord.expense_date <= end_date)

        if status is not None:
            query = query.filter(ExpenseRecord.status == status)

        return query.order_by(ExpenseRecord.expense_date, ExpenseRecord.id).all()

    def delete(self, expense: ExpenseRecord) -> None:
        self.db.delete(expense)
        self.db.flush()

    # Categories

    def create_category(self, category: ExpenseCategory) -> ExpenseCategory:
        self.db.add(category)
        self.db.flush()
        return category

    def get_category(self, category_id: int, mess_id: int) -> Optional[ExpenseCategory]:
        """Get category by ID, ensuring it belongs to the mess"""
        return (
            self.db.query(ExpenseCategory)
            .filter(ExpenseCategory.id == category_id, ExpenseCategory.mess_id == mess_id)
            .first()
        )

    def get_categories(self, mess_id: int, active_only: bool = True) -> list[ExpenseCategory]:
        query = self.db.query(ExpenseCategory).filter(ExpenseCategory.mess_id == mess_id)
        if active_only:
            query = query.filter(ExpenseCategory.is_active.is_(True))
        return query.order_by(ExpenseCategory.name).all()
