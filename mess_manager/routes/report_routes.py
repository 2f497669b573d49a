from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mess_manager.core.clock import Clock
from mess_manager.core.notifications import Notifier
from mess_manager.database import get_db
from mess_manager.dependencies import get_clock, get_mess_context, get_notifier
from mess_manager.models.mess_context import MessContext
from mess_manager.schemas.report_schemas import (
    GroupTotal,
    MessMonthlyReportResponse,
    MonthlyStatementResponse,
    TrendPoint,
)
from mess_manager.services.bill_service import BillService
from mess_manager.services.report_service import ReportService

router = APIRouter()

GROUPINGS = {
    "category": ReportService.expenses_by_category,
    "member": ReportService.expenses_by_member,
    "date": ReportService.expenses_by_date,
}


@router.get("/statements/{member_id}", response_model=MonthlyStatementResponse)
async def member_statement(
    member_id: int,
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
):
    """
    Monthly statement of a member.

    Members may read their own; staff and managers may read everyone's.
    """
    service = BillService(db)
    return service.statement_for(member_id, year, month, context)


@router.post("/statements/publish", response_model=list[MonthlyStatementResponse])
async def publish_statements(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Compute every member's statement and notify them that the bill is ready.

    - **Requires ADMIN permissions**
    """
    service = BillService(db, notifier)
    return service.publish_statements(year, month, context)


@router.get("/monthly", response_model=MessMonthlyReportResponse)
async def mess_monthly_report(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ReportService(db, clock)
    report = service.mess_monthly_report(year, month, context)
    report["statements"] = [
        MonthlyStatementResponse.model_validate(statement) for statement in report["statements"]
    ]
    return report


@router.get("/trend", response_model=list[TrendPoint])
async def monthly_trend(
    source: Literal["expense", "bazar"] = "expense",
    months: int = Query(6, ge=1, le=24),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ReportService(db, clock)
    return service.monthly_trend(context, source, months)


@router.get("/expenses", response_model=list[GroupTotal])
async def expense_breakdown(
    group_by: Literal["category", "member", "date"] = "category",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Approved expenses grouped by category, member or date."""
    service = ReportService(db, clock)
    return GROUPINGS[group_by](service, context, start_date, end_date)


@router.get("/bazar-by-person", response_model=list[GroupTotal])
async def bazar_cost_by_person(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ReportService(db, clock)
    return service.bazar_cost_by_person(context, start_date, end_date)


@router.get("/payments-by-method", response_model=list[GroupTotal])
async def payments_by_method(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ReportService(db, clock)
    return service.payments_by_method(context, start_date, end_date)


@router.get("/qr-usage")
async def qr_usage(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ReportService(db, clock)
    return service.qr_usage_stats(context, start_date, end_date)


@router.get("/meals-by-date")
async def meals_by_date(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = ReportService(db, clock)
    totals = service.meal_totals_by_date(context, start_date, end_date)
    return [{"meal_date": meal_date, "total_meals": total} for meal_date, total in totals.items()]
