import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mess_manager.core.authorization import Action, authorize, ensure_mutable, require, require_owner_or
from mess_manager.core.clock import Clock, SystemClock
from mess_manager.core.exceptions import DuplicateEntryException, NotFoundException, ValidationException
from mess_manager.database import atomic
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.expense import ExpenseCategory, ExpenseRecord
from mess_manager.models.mess_context import MessContext
from mess_manager.repositories.expense_repository import ExpenseRepository
from mess_manager.repositories.member_repository import MemberRepository
from mess_manager.schemas.ledger_schemas import ExpenseCreate, ExpenseUpdate
from mess_manager.schemas.mess_schemas import ExpenseCategoryCreate

logger = logging.getLogger(__name__)


class ExpenseService:
    """Service layer for shared expenses and their categories"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.expense_repo = ExpenseRepository(db)
        self.member_repo = MemberRepository(db)

    def _get_active_category(self, category_id: int, mess_id: int) -> ExpenseCategory:
        category = self.expense_repo.get_category(category_id, mess_id)
        if not category or not category.is_active:
            raise NotFoundException(f"Expense category {category_id} not found")
        return category

    def list_categories(self, context: MessContext) -> list[ExpenseCategory]:
        require(context, Action.VIEW_MESS)
        return self.expense_repo.get_categories(context.mess.id)

    def create_category(self, data: ExpenseCategoryCreate, context: MessContext) -> ExpenseCategory:
        """
        Raises:
            ForbiddenException: If the caller cannot manage the mess
            DuplicateEntryException: If the name is taken in this mess
        """
        require(context, Action.MANAGE_MESS)
        category = ExpenseCategory(
            mess_id=context.mess.id,
            name=data.name,
            description=data.description,
            rate=data.rate,
        )
        try:
            with atomic(self.db):
                self.expense_repo.create_category(category)
        except IntegrityError:
            raise DuplicateEntryException(f"Expense category '{data.name}' already exists")
        return category

    def create_expense(self, data: ExpenseCreate, context: MessContext) -> ExpenseRecord:
        """
        Record an expense as pending approval.

        Raises:
            ForbiddenException: If the caller may not record for that member
            NotFoundException: If the member or category is not in this mess
            DuplicateEntryException: If the same expense was already recorded
        """
        member_id = data.member_id or context.member.id
        require_owner_or(context, member_id, Action.RECORD_OWN_EXPENSE, Action.RECORD_FOR_OTHERS)

        member = self.member_repo.get_by_id_and_mess(member_id, context.mess.id)
        if not member:
            raise NotFoundException(f"Member {member_id} not found in this mess")
        if not member.is_active:
            raise ValidationException(f"Member {member_id} is not an active member")
        self._get_active_category(data.category_id, context.mess.id)

        expense = ExpenseRecord(
            mess_id=context.mess.id,
            member_id=member.id,
            category_id=data.category_id,
            amount=data.amount,
            expense_date=data.expense_date,
            description=data.description,
            status=ApprovalStatus.PENDING,
            created_by=context.person.id,
        )
        try:
            with atomic(self.db):
                self.expense_repo.create(expense)
        except IntegrityError:
            raise DuplicateEntryException(
                "An expense in this category already exists for this member and date"
            )

        logger.info("Expense %s recorded: mess=%s amount=%s", expense.id, context.mess.id, data.amount)
        return expense

    def get_expense(self, expense_id: int, context: MessContext) -> ExpenseRecord:
        require(context, Action.VIEW_MESS)
        expense = self.expense_repo.get_by_id_and_mess(expense_id, context.mess.id)
        if not expense:
            raise NotFoundException(f"Expense {expense_id} not found")
        return expense

    def list_expenses(
        self,
        context: MessContext,
        member_id: Optional[int] = None,
        category_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[ApprovalStatus] = None,
    ) -> list[ExpenseRecord]:
        require(context, Action.VIEW_MESS)
        if not authorize(context, Action.VIEW_REPORTS, context.mess):
            member_id = context.member.id
        return self.expense_repo.get_with_filters(
            context.mess.id, member_id, category_id, start_date, end_date, status
        )

    def update_expense(self, expense_id: int, data: ExpenseUpdate, context: MessContext) -> ExpenseRecord:
        """
        Raises:
            ImmutableException: If the expense is approved and caller is not the manager
        """
        expense = self.get_expense(expense_id, context)
        require_owner_or(context, expense.member_id, Action.RECORD_OWN_EXPENSE, Action.RECORD_FOR_OTHERS)
        ensure_mutable(expense, context)

        if data.category_id is not None:
            self._get_active_category(data.category_id, context.mess.id)

        try:
            with atomic(self.db):
                for field, value in data.model_dump(exclude_unset=True).items():
                    if value is None and field != "description":
                        continue
                    setattr(expense, field, value)
                self.db.flush()
        except IntegrityError:
            raise DuplicateEntryException(
                "An expense in this category already exists for this member and date"
            )
        return expense

    def delete_expense(self, expense_id: int, context: MessContext) -> None:
        expense = self.get_expense(expense_id, context)
        require_owner_or(context, expense.member_id, Action.RECORD_OWN_EXPENSE, Action.RECORD_FOR_OTHERS)
        ensure_mutable(expense, context)

        with atomic(self.db):
            self.expense_repo.delete(expense)
        logger.info("Expense %s deleted by person %s", expense_id, context.person.id)

    def approve_expense(self, expense_id: int, context: MessContext) -> ExpenseRecord:
        """
        Raises:
            AlreadyApprovedException: If the expense is already approved
        """
        require(context, Action.APPROVE_RECORDS)
        expense = self.get_expense(expense_id, context)

        with atomic(self.db):
            expense.approve(context.person.id, self.clock.now())
        logger.info("Expense %s approved by person %s", expense.id, context.person.id)
        return expense

    def reject_expense(self, expense_id: int, context: MessContext) -> ExpenseRecord:
        require(context, Action.APPROVE_RECORDS)
        expense = self.get_expense(expense_id, context)

        with atomic(self.db):
            expense.reject(context.person.id, self.clock.now())
        return expense
