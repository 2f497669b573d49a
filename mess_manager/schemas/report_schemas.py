from decimal import Decimal

from pydantic import BaseModel


class MonthlyStatementResponse(BaseModel):
    model_config = {"from_attributes": True}

    mess_id: int
    member_id: int
    year: int
    month: int
    total_meals: int
    meal_cost: Decimal
    bazar_cost_assigned: Decimal
    expense_share: Decimal
    total_cost: Decimal
    payments_total: Decimal
    due_amount: Decimal


class TrendPoint(BaseModel):
    year: int
    month: int
    label: str
    amount: Decimal


class GroupTotal(BaseModel):
    key: str
    count: int
    total: Decimal


class MessMonthlyReportResponse(BaseModel):
    mess_id: int
    year: int
    month: int
    statements: list[MonthlyStatementResponse]
    total_meals: int
    total_meal_cost: Decimal
    total_bazar_cost: Decimal
    total_expense: Decimal
    total_payments: Decimal
    total_due: Decimal
