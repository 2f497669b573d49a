"""
Read-side reports.

Every report is one call to ``group_reduce`` with a key function and a
reducer; adding a grouping means adding a key function, not a new loop.
"""

import logging
from collections.abc import Callable, Hashable, Iterable
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, TypeVar

from sqlalchemy.orm import Session

from mess_manager.core.authorization import Action, require
from mess_manager.core.clock import Clock, SystemClock
from mess_manager.core.exceptions import ValidationException
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.mess_context import MessContext
from mess_manager.models.member import MessMember
from mess_manager.models.payment import PaymentStatus
from mess_manager.models.statement import month_bounds, to_money
from mess_manager.repositories.attendance_repository import AttendanceRepository
from mess_manager.repositories.bazar_repository import BazarRepository
from mess_manager.repositories.expense_repository import ExpenseRepository
from mess_manager.repositories.meal_repository import MealRepository
from mess_manager.repositories.payment_repository import PaymentRepository
from mess_manager.services.bill_service import BillService

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

ZERO = Decimal("0")


def group_reduce(
    items: Iterable[T], key: Callable[[T], K], reducer: Callable[[list[T]], V]
) -> dict[K, V]:
    """
    Group ``items`` by ``key`` and reduce each group with ``reducer``.

    Groups keep the order in which their first item was seen.

    Example:
        group_reduce(expenses, lambda e: e.category_id, len)
    """
    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return {group_key: reducer(group) for group_key, group in groups.items()}


def count_and_total(amount: Callable[[T], Decimal]) -> Callable[[list[T]], dict]:
    """Reducer yielding {"count", "total"} for a group of money-bearing rows."""

    def reduce(group: list[T]) -> dict:
        return {
            "count": len(group),
            "total": to_money(sum((Decimal(amount(item)) for item in group), ZERO)),
        }

    return reduce


def _as_group_totals(grouped: dict) -> list[dict]:
    return [{"key": str(key), **value} for key, value in grouped.items()]


def _member_label(member: Optional[MessMember]) -> str:
    if member is None:
        return "unknown"
    if member.person is not None and member.person.name:
        return member.person.name
    return f"member {member.id}"


def previous_months(year: int, month: int, count: int) -> list[tuple[int, int]]:
    """The ``count`` months ending with (year, month), oldest first."""
    months = []
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


class ReportService:
    """Trend series and cross-member comparisons for a mess"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.meal_repo = MealRepository(db)
        self.bazar_repo = BazarRepository(db)
        self.expense_repo = ExpenseRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.attendance_repo = AttendanceRepository(db)
        self.bill_service = BillService(db)

    def _range(self, start_date: Optional[date], end_date: Optional[date]) -> tuple[date, date]:
        if start_date is None or end_date is None:
            today = self.clock.now().date()
            default_start, default_end = month_bounds(today.year, today.month)
            start_date = start_date or default_start
            end_date = end_date or default_end
        if start_date > end_date:
            raise ValidationException("start_date must not be after end_date")
        return start_date, end_date

    def expenses_by_category(
        self, context: MessContext, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        require(context, Action.VIEW_REPORTS)
        start, end = self._range(start_date, end_date)
        expenses = self.expense_repo.get_with_filters(
            context.mess.id, start_date=start, end_date=end, status=ApprovalStatus.APPROVED
        )
        return _as_group_totals(
            group_reduce(expenses, lambda e: e.category.name, count_and_total(lambda e: e.amount))
        )

    def expenses_by_member(
        self, context: MessContext, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        require(context, Action.VIEW_REPORTS)
        start, end = self._range(start_date, end_date)
        expenses = self.expense_repo.get_with_filters(
            context.mess.id, start_date=start, end_date=end, status=ApprovalStatus.APPROVED
        )
        return _as_group_totals(
            group_reduce(expenses, lambda e: _member_label(e.member), count_and_total(lambda e: e.amount))
        )

    def expenses_by_date(
        self, context: MessContext, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        require(context, Action.VIEW_REPORTS)
        start, end = self._range(start_date, end_date)
        expenses = self.expense_repo.get_with_filters(
            context.mess.id, start_date=start, end_date=end, status=ApprovalStatus.APPROVED
        )
        return _as_group_totals(
            group_reduce(
                expenses, lambda e: e.expense_date.isoformat(), count_and_total(lambda e: e.amount)
            )
        )

    def bazar_cost_by_person(
        self, context: MessContext, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        """Approved bazar spending per member on duty, largest first."""
        require(context, Action.VIEW_REPORTS)
        start, end = self._range(start_date, end_date)
        records = self.bazar_repo.get_with_filters(
            context.mess.id, start_date=start, end_date=end, status=ApprovalStatus.APPROVED
        )
        totals = _as_group_totals(
            group_reduce(
                records, lambda r: _member_label(r.assignee), count_and_total(lambda r: r.total_cost)
            )
        )
        return sorted(totals, key=lambda row: row["total"], reverse=True)

    def payments_by_method(
        self, context: MessContext, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[dict]:
        require(context, Action.VIEW_REPORTS)
        start, end = self._range(start_date, end_date)
        payments = self.payment_repo.get_with_filters(
            context.mess.id, start_date=start, end_date=end, status=PaymentStatus.COMPLETED
        )
        return _as_group_totals(
            group_reduce(payments, lambda p: p.method.value, count_and_total(lambda p: p.amount))
        )

    def meal_totals_by_date(
        self, context: MessContext, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict[date, int]:
        require(context, Action.VIEW_REPORTS)
        start, end = self._range(start_date, end_date)
        entries = self.meal_repo.get_with_filters(context.mess.id, start_date=start, end_date=end)
        return group_reduce(
            entries, lambda e: e.meal_date, lambda group: sum(e.total_meals for e in group)
        )

    def monthly_trend(self, context: MessContext, source: str = "expense", months: int = 6) -> list[dict]:
        """
        Approved spending per month for the last ``months`` months,
        including months with nothing recorded.

        Args:
            source: "expense" or "bazar"
        """
        require(context, Action.VIEW_REPORTS)
        if months < 1:
            raise ValidationException("months must be at least 1")

        today = self.clock.now().date()
        periods = previous_months(today.year, today.month, months)
        start = month_bounds(*periods[0])[0]
        end = month_bounds(*periods[-1])[1]

        if source == "expense":
            rows = self.expense_repo.get_with_filters(
                context.mess.id, start_date=start, end_date=end, status=ApprovalStatus.APPROVED
            )
            by_month = group_reduce(
                rows,
                lambda e: (e.expense_date.year, e.expense_date.month),
                lambda group: sum((Decimal(e.amount) for e in group), ZERO),
            )
        elif source == "bazar":
            rows = self.bazar_repo.get_with_filters(
                context.mess.id, start_date=start, end_date=end, status=ApprovalStatus.APPROVED
            )
            by_month = group_reduce(
                rows,
                lambda r: (r.bazar_date.year, r.bazar_date.month),
                lambda group: sum((Decimal(r.total_cost) for r in group), ZERO),
            )
        else:
            raise ValidationException(f"Unknown trend source '{source}'")

        return [
            {
                "year": year,
                "month": month,
                "label": date(year, month, 1).strftime("%b %Y"),
                "amount": to_money(by_month.get((year, month), ZERO)),
            }
            for year, month in periods
        ]

    def mess_monthly_report(self, year: int, month: int, context: MessContext) -> dict:
        """Statements of every approved member plus mess-wide totals."""
        require(context, Action.VIEW_REPORTS)
        statements = self.bill_service.compute_mess_statements(context.mess.id, year, month)

        return {
            "mess_id": context.mess.id,
            "year": year,
            "month": month,
            "statements": statements,
            "total_meals": sum(s.total_meals for s in statements),
            "total_meal_cost": sum((s.meal_cost for s in statements), Decimal("0.00")),
            "total_bazar_cost": sum((s.bazar_cost_assigned for s in statements), Decimal("0.00")),
            "total_expense": sum((s.expense_share for s in statements), Decimal("0.00")),
            "total_payments": sum((s.payments_total for s in statements), Decimal("0.00")),
            "total_due": sum((s.due_amount for s in statements), Decimal("0.00")),
        }

    def qr_usage_stats(
        self, context: MessContext, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict:
        """Token issuance and usage in a date range, broken down by purpose."""
        require(context, Action.VIEW_REPORTS)
        start, end = self._range(start_date, end_date)
        now = self.clock.now()
        tokens = self.attendance_repo.get_tokens_issued_between(
            context.mess.id, datetime.combine(start, time.min), datetime.combine(end, time.max)
        )

        by_purpose = group_reduce(
            tokens,
            lambda t: t.purpose.value,
            lambda group: {"issued": len(group), "uses": sum(t.usage_count for t in group)},
        )
        return {
            "total_issued": len(tokens),
            "total_uses": sum(t.usage_count for t in tokens),
            "active": sum(1 for t in tokens if t.is_active and not t.is_expired(now)),
            "expired": sum(1 for t in tokens if t.is_expired(now)),
            "exhausted": sum(1 for t in tokens if t.usage_count >= t.max_usage),
            "by_purpose": by_purpose,
        }
