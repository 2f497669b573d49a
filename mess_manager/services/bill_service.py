import logging
from datetime import datetime, time
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from mess_manager.core.authorization import Action, require
from mess_manager.core.exceptions import NotFoundException, ValidationException
from mess_manager.core.notifications import LoggingNotifier, Notifier
from mess_manager.database import run_with_retry
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.mess_context import MessContext
from mess_manager.models.payment import PaymentStatus
from mess_manager.models.statement import MonthlyStatement, month_bounds, to_money
from mess_manager.repositories.bazar_repository import BazarRepository
from mess_manager.repositories.expense_repository import ExpenseRepository
from mess_manager.repositories.meal_repository import MealRepository
from mess_manager.repositories.member_repository import MemberRepository
from mess_manager.repositories.mess_repository import MessRepository
from mess_manager.repositories.payment_repository import PaymentRepository
from mess_manager.services.meal_service import entry_cost
from mess_manager.services.rate_service import RateService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class BillService:
    """Monthly statements derived from the ledgers; never persisted"""

    def __init__(self, db: Session, notifier: Optional[Notifier] = None):
        self.db = db
        self.notifier = notifier or LoggingNotifier()
        self.mess_repo = MessRepository(db)
        self.member_repo = MemberRepository(db)
        self.meal_repo = MealRepository(db)
        self.bazar_repo = BazarRepository(db)
        self.expense_repo = ExpenseRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.rate_service = RateService(db)

    def compute_monthly_statement(
        self, mess_id: int, member_id: int, year: int, month: int
    ) -> MonthlyStatement:
        """
        Compute one member's bill for a calendar month.

        Sums are kept exact and rounded to cents only once, on the
        returned statement.

        Args:
            mess_id: Mess ID
            member_id: Member ID within the mess
            year: Statement year
            month: Statement month (1-12)

        Returns:
            MonthlyStatement with due_amount = meal_cost + bazar_cost_assigned
            + expense_share - payments_total

        Raises:
            NotFoundException: If the mess or member doesn't exist
            ValidationException: If month is out of range
        """
        if not 1 <= month <= 12:
            raise ValidationException(f"Invalid month {month}")

        return run_with_retry(self.db, lambda: self._compute(mess_id, member_id, year, month))

    def _compute(self, mess_id: int, member_id: int, year: int, month: int) -> MonthlyStatement:
        mess = self.mess_repo.get_by_id(mess_id)
        if not mess:
            raise NotFoundException(f"Mess {mess_id} not found")
        member = self.member_repo.get_by_id_and_mess(member_id, mess_id)
        if not member:
            raise NotFoundException(f"Member {member_id} not found in this mess")

        start, end = month_bounds(year, month)
        rates = self.rate_service.meal_rates(mess)

        meals = self.meal_repo.get_with_filters(mess_id, member.id, start, end)
        meal_cost = sum((entry_cost(entry, rates) for entry in meals), ZERO)

        bazar_cost = sum(
            (
                Decimal(record.total_cost)
                for record in self.bazar_repo.get_with_filters(
                    mess_id, member.id, start, end, ApprovalStatus.APPROVED
                )
            ),
            ZERO,
        )
        expense_share = sum(
            (
                Decimal(expense.amount)
                for expense in self.expense_repo.get_with_filters(
                    mess_id, member.id, None, start, end, ApprovalStatus.APPROVED
                )
            ),
            ZERO,
        )
        payments_total = sum(
            (
                Decimal(payment.amount)
                for payment in self.payment_repo.get_with_filters(
                    mess_id, member.id, start, end, PaymentStatus.COMPLETED
                )
            ),
            ZERO,
        )

        return MonthlyStatement(
            mess_id=mess_id,
            member_id=member.id,
            year=year,
            month=month,
            meal_cost=to_money(meal_cost),
            bazar_cost_assigned=to_money(bazar_cost),
            expense_share=to_money(expense_share),
            payments_total=to_money(payments_total),
            due_amount=to_money(meal_cost + bazar_cost + expense_share - payments_total),
            total_meals=sum(entry.total_meals for entry in meals),
        )

    def statement_for(
        self, member_id: int, year: int, month: int, context: MessContext
    ) -> MonthlyStatement:
        """Members may read their own statement; reports access covers everyone's."""
        if member_id == context.member.id:
            require(context, Action.VIEW_OWN_STATEMENT)
        else:
            require(context, Action.VIEW_REPORTS)
        return self.compute_monthly_statement(context.mess.id, member_id, year, month)

    def compute_mess_statements(self, mess_id: int, year: int, month: int) -> list[MonthlyStatement]:
        """
        Statements of every member billable for the month.

        Members who left during or after the month still get their
        statement; those who left before it started do not.
        """
        start, _ = month_bounds(year, month)
        since = datetime.combine(start, time.min)
        return [
            self.compute_monthly_statement(mess_id, member.id, year, month)
            for member in self.member_repo.get_billable_members(mess_id, since)
        ]

    def publish_statements(self, year: int, month: int, context: MessContext) -> list[MonthlyStatement]:
        """
        Compute all statements of the month and send a bill_ready
        notification to each member.
        """
        require(context, Action.APPROVE_RECORDS)
        statements = self.compute_mess_statements(context.mess.id, year, month)

        for statement in statements:
            self.notifier.notify(
                "bill_ready",
                statement.member_id,
                {
                    "mess_id": statement.mess_id,
                    "year": year,
                    "month": month,
                    "due_amount": str(statement.due_amount),
                },
            )
        logger.info(
            "Published %d statements for mess %s %04d-%02d",
            len(statements), context.mess.id, year, month,
        )
        return statements
