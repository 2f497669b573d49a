import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from mess_manager.core.exceptions import ForbiddenException, ValidationException
from mess_manager.models import MealType, PaymentMethod, TokenPurpose
from mess_manager.schemas.bazar_schemas import BazarCreate, BazarItem
from mess_manager.schemas.ledger_schemas import ExpenseCreate, PaymentCreate
from mess_manager.schemas.meal_schemas import MealEntryCreate
from mess_manager.services.attendance_service import AttendanceService
from mess_manager.services.bazar_service import BazarService
from mess_manager.services.expense_service import ExpenseService
from mess_manager.services.meal_service import MealService
from mess_manager.services.mess_service import MessService
from mess_manager.services.payment_service import PaymentService
from mess_manager.services.report_service import (
    ReportService,
    count_and_total,
    group_reduce,
    previous_months,
)

TODAY = date(2026, 3, 15)


@pytest.fixture
def categories(db_session, clock, manager_context):
    return {c.name: c for c in ExpenseService(db_session, clock).list_categories(manager_context)}


@pytest.fixture
def add_expense(db_session, clock, manager_context, categories):
    def _add(member_id, category, amount, expense_date=TODAY, approve=True):
        service = ExpenseService(db_session, clock)
        expense = service.create_expense(
            ExpenseCreate(
                member_id=member_id,
                category_id=categories[category].id,
                amount=Decimal(amount),
                expense_date=expense_date,
            ),
            manager_context,
        )
        if approve:
            service.approve_expense(expense.id, manager_context)
        return expense

    return _add


@pytest.fixture
def add_bazar(db_session, clock, manager_context):
    def _add(assignee_id, total, bazar_date=TODAY, approve=True):
        service = BazarService(db_session, clock)
        record = service.record_purchase(
            BazarCreate(
                assignee_id=assignee_id,
                bazar_date=bazar_date,
                items=[BazarItem(name="Vegetables", quantity=Decimal("1"), unit_price=Decimal(total))],
                total_cost=Decimal(total),
            ),
            manager_context,
        )
        if approve:
            service.approve(record.id, manager_context)
        return record

    return _add


class TestGroupReduce:
    """Tests for the group_reduce primitive"""

    def test_counts_per_key(self):
        result = group_reduce(["apple", "avocado", "banana", "cherry", "blueberry"], lambda s: s[0], len)

        assert result == {"a": 2, "b": 2, "c": 1}

    def test_keeps_first_seen_order(self):
        result = group_reduce([3, 1, 3, 2, 1], lambda n: n, len)

        assert list(result) == [3, 1, 2]

    def test_empty_input(self):
        assert group_reduce([], lambda n: n, len) == {}

    def test_count_and_total_rounds_once(self):
        rows = [Decimal("0.005"), Decimal("0.005"), Decimal("1.10")]

        result = group_reduce(rows, lambda _: "all", count_and_total(lambda d: d))

        assert result == {"all": {"count": 3, "total": Decimal("1.11")}}

    def test_previous_months_wraps_year(self):
        assert previous_months(2026, 2, 4) == [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]


class TestExpenseReports:
    """Tests for expense groupings"""

    def test_by_category(self, db_session, clock, manager_context, add_expense):
        member_id = manager_context.member.id
        add_expense(member_id, "Groceries", "120.00", TODAY)
        add_expense(member_id, "Groceries", "80.50", TODAY - timedelta(days=1))
        add_expense(member_id, "Utilities", "300.00", TODAY)
        add_expense(member_id, "Rent", "999.00", TODAY, approve=False)

        report = ReportService(db_session, clock).expenses_by_category(manager_context)

        assert {row["key"]: (row["count"], row["total"]) for row in report} == {
            "Groceries": (2, Decimal("200.50")),
            "Utilities": (1, Decimal("300.00")),
        }

    def test_by_member(self, db_session, clock, manager_context, make_member, add_expense):
        karim = make_member("karim", name="Karim")
        add_expense(karim.id, "Groceries", "40.00")
        add_expense(manager_context.member.id, "Groceries", "60.00")

        report = ReportService(db_session, clock).expenses_by_member(manager_context)

        assert {row["key"]: row["total"] for row in report} == {
            "Karim": Decimal("40.00"),
            "Manager": Decimal("60.00"),
        }

    def test_date_range_filters(self, db_session, clock, manager_context, add_expense):
        add_expense(manager_context.member.id, "Groceries", "10.00", date(2026, 3, 1))
        add_expense(manager_context.member.id, "Groceries", "20.00", date(2026, 3, 10))

        report = ReportService(db_session, clock).expenses_by_date(
            manager_context, date(2026, 3, 5), date(2026, 3, 31)
        )

        assert report == [{"key": "2026-03-10", "count": 1, "total": Decimal("20.00")}]

    def test_inverted_range_rejected(self, db_session, clock, manager_context):
        with pytest.raises(ValidationException):
            ReportService(db_session, clock).expenses_by_category(
                manager_context, date(2026, 3, 31), date(2026, 3, 1)
            )


class TestBazarAndPayments:
    """Tests for bazar and payment comparisons"""

    def test_bazar_cost_by_person_sorted(self, db_session, clock, manager_context, make_member, add_bazar):
        karim = make_member("karim", name="Karim")
        add_bazar(manager_context.member.id, "150.00", date(2026, 3, 2))
        add_bazar(karim.id, "400.00", date(2026, 3, 3))
        add_bazar(karim.id, "100.00", date(2026, 3, 9))
        add_bazar(manager_context.member.id, "700.00", date(2026, 3, 10), approve=False)

        report = ReportService(db_session, clock).bazar_cost_by_person(manager_context)

        assert [(row["key"], row["count"], row["total"]) for row in report] == [
            ("Karim", 2, Decimal("500.00")),
            ("Manager", 1, Decimal("150.00")),
        ]

    def test_payments_by_method_counts_completed(self, db_session, clock, manager_context):
        service = PaymentService(db_session, clock)
        for day, method, complete in [
            (1, PaymentMethod.CASH, True),
            (2, PaymentMethod.BKASH, True),
            (3, PaymentMethod.CASH, True),
            (4, PaymentMethod.NAGAD, False),
        ]:
            payment = service.record_payment(
                PaymentCreate(amount=Decimal("100.00"), payment_date=date(2026, 3, day), method=method),
                manager_context,
            )
            if complete:
                service.complete_payment(payment.id, manager_context)

        report = ReportService(db_session, clock).payments_by_method(manager_context)

        assert {row["key"]: row["count"] for row in report} == {"cash": 2, "bkash": 1}


class TestTrendsAndSummaries:
    """Tests for monthly trend, monthly report and meal totals"""

    def test_six_month_trend_is_zero_filled(self, db_session, clock, manager_context, add_expense):
        member_id = manager_context.member.id
        add_expense(member_id, "Groceries", "100.00", date(2026, 1, 20))
        add_expense(member_id, "Groceries", "50.00", date(2026, 3, 1))
        add_expense(member_id, "Utilities", "25.00", date(2026, 3, 2))
        add_expense(member_id, "Groceries", "999.00", date(2025, 9, 30))

        trend = ReportService(db_session, clock).monthly_trend(manager_context)

        assert [row["label"] for row in trend] == [
            "Oct 2025", "Nov 2025", "Dec 2025", "Jan 2026", "Feb 2026", "Mar 2026",
        ]
        assert [row["amount"] for row in trend] == [
            Decimal("0.00"),
            Decimal("0.00"),
            Decimal("0.00"),
            Decimal("100.00"),
            Decimal("0.00"),
            Decimal("75.00"),
        ]

    def test_bazar_trend(self, db_session, clock, manager_context, add_bazar):
        add_bazar(manager_context.member.id, "320.00", date(2026, 2, 14))

        trend = ReportService(db_session, clock).monthly_trend(manager_context, source="bazar", months=2)

        assert [(row["month"], row["amount"]) for row in trend] == [(2, Decimal("320.00")), (3, Decimal("0.00"))]

    def test_unknown_trend_source(self, db_session, clock, manager_context):
        with pytest.raises(ValidationException):
            ReportService(db_session, clock).monthly_trend(manager_context, source="rent")

    def test_monthly_report_totals(
        self, db_session, clock, manager_context, make_member, context_for, add_bazar
    ):
        karim = make_member("karim", name="Karim")
        meals = MealService(db_session, clock)
        meals.record_meal(MealEntryCreate(meal_date=TODAY, breakfast=1, lunch=1, dinner=1), manager_context)
        meals.record_meal(MealEntryCreate(meal_date=TODAY, lunch=1), context_for(karim))
        add_bazar(karim.id, "200.00")

        report = ReportService(db_session, clock).mess_monthly_report(2026, 3, manager_context)

        assert len(report["statements"]) == 2
        assert report["total_meals"] == 4
        assert report["total_meal_cost"] == Decimal("180.00")
        assert report["total_bazar_cost"] == Decimal("200.00")
        assert report["total_due"] == Decimal("380.00")

    def test_monthly_report_keeps_member_who_left_this_month(
        self, db_session, clock, manager_context, make_member, context_for
    ):
        """A member removed mid-month still counts toward that month's totals"""
        karim = make_member("karim", name="Karim")
        MealService(db_session, clock).record_meal(
            MealEntryCreate(meal_date=TODAY, breakfast=1, lunch=1, dinner=1), context_for(karim)
        )
        MessService(db_session, clock).remove_member(karim.id, manager_context)

        report = ReportService(db_session, clock).mess_monthly_report(2026, 3, manager_context)

        assert karim.id in [s.member_id for s in report["statements"]]
        assert report["total_meals"] == 3
        assert report["total_meal_cost"] == Decimal("130.00")
        assert report["total_due"] == Decimal("130.00")

    def test_monthly_report_skips_member_who_left_earlier(
        self, db_session, clock, manager_context, make_member
    ):
        """Members who left before the month began get no statement for it"""
        karim = make_member("karim", name="Karim")
        now = clock.current
        clock.current = datetime(2026, 2, 20, 9, 0)
        MessService(db_session, clock).remove_member(karim.id, manager_context)
        clock.current = now

        report = ReportService(db_session, clock).mess_monthly_report(2026, 3, manager_context)

        assert karim.id not in [s.member_id for s in report["statements"]]
        assert len(report["statements"]) == 1

    def test_meal_totals_by_date(self, db_session, clock, manager_context, make_member, context_for):
        karim = make_member("karim")
        meals = MealService(db_session, clock)
        meals.record_meal(MealEntryCreate(meal_date=TODAY, breakfast=1, dinner=1), manager_context)
        meals.record_meal(MealEntryCreate(meal_date=TODAY, lunch=2), context_for(karim))

        totals = ReportService(db_session, clock).meal_totals_by_date(manager_context)

        assert totals == {TODAY: 4}

    def test_member_cannot_view_reports(self, db_session, clock, make_member, context_for):
        member = make_member("karim")

        with pytest.raises(ForbiddenException):
            ReportService(db_session, clock).monthly_trend(context_for(member))


class TestQrUsageStats:
    """Tests for ReportService.qr_usage_stats"""

    def test_usage_breakdown(self, db_session, clock, manager_context):
        attendance = AttendanceService(db_session, clock)
        member_id = manager_context.member.id
        used = attendance.issue(
            member_id, TokenPurpose.MEAL_ATTENDANCE, manager_context,
            meal_date=TODAY, meal_type=MealType.LUNCH,
        )
        attendance.consume(used)
        attendance.issue(
            member_id, TokenPurpose.MEAL_ATTENDANCE, manager_context,
            ttl=timedelta(hours=1), meal_date=TODAY, meal_type=MealType.DINNER,
        )
        attendance.issue(member_id, TokenPurpose.MESS_ACCESS, manager_context)

        clock.advance(hours=2)
        stats = ReportService(db_session, clock).qr_usage_stats(manager_context)

        assert stats["total_issued"] == 3
        assert stats["total_uses"] == 1
        assert stats["expired"] == 1
        assert stats["exhausted"] == 1
        assert stats["active"] == 1
        assert stats["by_purpose"] == {
            "meal_attendance": {"issued": 2, "uses": 1},
            "mess_access": {"issued": 1, "uses": 0},
        }
