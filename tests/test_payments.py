import pytest
from datetime import date
from decimal import Decimal

from mess_manager.core.exceptions import ForbiddenException
from mess_manager.models import MemberRole, PaymentMethod, PaymentStatus
from mess_manager.schemas.ledger_schemas import PaymentCreate
from mess_manager.schemas.mess_schemas import MessCreate
from mess_manager.services.mess_service import MessService
from mess_manager.services.payment_service import PaymentService


@pytest.fixture
def member(make_member):
    return make_member("member-1")


@pytest.fixture
def record(db_session, clock, context_for):
    def _record(member, amount, day):
        return PaymentService(db_session, clock).record_payment(
            PaymentCreate(amount=Decimal(amount), payment_date=date(2026, 3, day), method=PaymentMethod.CASH),
            context_for(member),
        )

    return _record


class TestPendingPayments:
    """Tests for PaymentService.get_pending_payments"""

    def test_lists_pending_oldest_first(self, db_session, clock, manager_context, member, record):
        later = record(member, "300.00", 10)
        earlier = record(member, "200.50", 2)
        approved = record(member, "999.00", 5)
        service = PaymentService(db_session, clock)
        service.approve_payment(approved.id, manager_context)

        pending = service.get_pending_payments(manager_context)

        assert [p.id for p in pending["payments"]] == [earlier.id, later.id]
        assert pending["total_count"] == 2
        assert pending["total_amount"] == Decimal("500.50")

    def test_member_cannot_list_pending(self, db_session, clock, member, context_for):
        with pytest.raises(ForbiddenException):
            PaymentService(db_session, clock).get_pending_payments(context_for(member))


class TestBulkApprove:
    """Tests for PaymentService.bulk_approve_payments"""

    def test_approves_all_pending(self, db_session, clock, manager, manager_context, member, record):
        first = record(member, "100.00", 1)
        second = record(member, "150.00", 2)

        result = PaymentService(db_session, clock).bulk_approve_payments(
            [first.id, second.id], manager_context
        )

        assert result["approved_count"] == 2
        assert result["skipped_count"] == 0
        assert result["failed_count"] == 0
        for payment in (first, second):
            db_session.refresh(payment)
            assert payment.status == PaymentStatus.APPROVED
            assert payment.approved_by == manager.id
            assert payment.approved_at == clock.now()

    def test_skips_approved_and_reports_unknown(self, db_session, clock, manager_context, member, record):
        """Already approved payments are skipped and unknown ids fail without aborting the batch"""
        done = record(member, "100.00", 1)
        pending = record(member, "150.00", 2)
        service = PaymentService(db_session, clock)
        service.complete_payment(done.id, manager_context)

        result = service.bulk_approve_payments([done.id, 9999, pending.id], manager_context)

        assert [(r["payment_id"], r["status"]) for r in result["results"]] == [
            (done.id, "skipped"),
            (9999, "failed"),
            (pending.id, "approved"),
        ]
        assert (result["approved_count"], result["skipped_count"], result["failed_count"]) == (1, 1, 1)
        db_session.refresh(done)
        db_session.refresh(pending)
        assert done.status == PaymentStatus.COMPLETED
        assert pending.status == PaymentStatus.APPROVED

    def test_payment_of_other_mess_is_not_found(self, db_session, clock, manager, member, record):
        payment = record(member, "100.00", 1)
        messes = MessService(db_session, clock)
        other = messes.create_mess(MessCreate(name="Blue House Mess"), manager)

        result = PaymentService(db_session, clock).bulk_approve_payments(
            [payment.id], messes.build_context(manager, other.id)
        )

        assert result["failed_count"] == 1
        db_session.refresh(payment)
        assert payment.status == PaymentStatus.PENDING

    def test_staff_cannot_bulk_approve(self, db_session, clock, make_member, context_for, member, record):
        staff = make_member("staff-1", role=MemberRole.STAFF)
        payment = record(member, "100.00", 1)

        with pytest.raises(ForbiddenException):
            PaymentService(db_session, clock).bulk_approve_payments([payment.id], context_for(staff))
