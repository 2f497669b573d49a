"""Derived monthly statement (never persisted)."""

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round to two decimal places; only applied at the statement boundary."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


@dataclass(frozen=True)
class MonthlyStatement:
    """
    Per-member bill for one calendar month.

    due_amount = meal_cost + bazar_cost_assigned + expense_share - payments_total
    A negative due_amount is advance credit.
    """

    mess_id: int
    member_id: int
    year: int
    month: int
    meal_cost: Decimal = field(default=Decimal("0.00"))
    bazar_cost_assigned: Decimal = field(default=Decimal("0.00"))
    expense_share: Decimal = field(default=Decimal("0.00"))
    payments_total: Decimal = field(default=Decimal("0.00"))
    due_amount: Decimal = field(default=Decimal("0.00"))
    total_meals: int = 0

    @property
    def total_cost(self) -> Decimal:
        return self.meal_cost + self.bazar_cost_assigned + self.expense_share
