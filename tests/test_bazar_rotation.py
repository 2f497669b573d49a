import pytest
from datetime import date, timedelta
from decimal import Decimal

from mess_manager.core.exceptions import (
    AlreadyApprovedException,
    CostMismatchException,
    DuplicateEntryException,
    ForbiddenException,
    ImmutableException,
    ValidationException,
)
from mess_manager.models import ApprovalStatus, MemberRole, MemberStatus
from mess_manager.schemas.bazar_schemas import BazarCreate, BazarItem, BazarUpdate
from mess_manager.services.bazar_service import BazarService, items_total
from mess_manager.services.mess_service import MessService

ITEMS = [
    BazarItem(name="Rice", quantity=Decimal("5"), unit="kg", unit_price=Decimal("62.50")),
    BazarItem(name="Lentils", quantity=Decimal("2"), unit="kg", unit_price=Decimal("110.00")),
    BazarItem(name="Oil", quantity=Decimal("1.5"), unit="l", unit_price=Decimal("180.00")),
]


def purchase(assignee_id=None, bazar_date=date(2026, 3, 15), items=ITEMS, total=None) -> BazarCreate:
    return BazarCreate(
        assignee_id=assignee_id,
        bazar_date=bazar_date,
        items=items,
        total_cost=items_total(items) if total is None else total,
    )


class TestNextAssignee:
    """Tests for BazarService.next_assignee"""

    def test_first_assignee_is_earliest_member(self, db_session, mess, manager_context, make_member, clock):
        make_member("member-1")
        service = BazarService(db_session, clock)

        assert service.next_assignee(mess.id).id == manager_context.member.id

    def test_rotation_visits_every_member_once(self, db_session, mess, manager_context, make_member, clock):
        """N members, N purchase cycles: a cyclic permutation"""
        members = [manager_context.member] + [make_member(f"member-{i}") for i in range(3)]
        service = BazarService(db_session, clock)

        visited = []
        for day in range(len(members)):
            assignee = service.next_assignee(mess.id)
            visited.append(assignee.id)
            service.record_purchase(
                purchase(assignee.id, date(2026, 3, 1) + timedelta(days=day)), manager_context
            )

        assert sorted(visited) == sorted(m.id for m in members)
        assert visited == [m.id for m in members]
        # wraps around to the first member
        assert service.next_assignee(mess.id).id == visited[0]

    def test_departed_member_is_skipped(self, db_session, mess, manager_context, make_member, clock):
        first = make_member("member-1")
        second = make_member("member-2")
        service = BazarService(db_session, clock)
        service.record_purchase(purchase(first.id), manager_context)

        MessService(db_session, clock).remove_member(second.id, manager_context)

        # second left, so the turn wraps back to the manager
        assert service.next_assignee(mess.id).id == manager_context.member.id

    def test_last_assignee_left_continues_after_them(self, db_session, mess, manager_context, make_member, clock):
        first = make_member("member-1")
        second = make_member("member-2")
        service = BazarService(db_session, clock)
        service.record_purchase(purchase(first.id), manager_context)

        MessService(db_session, clock).remove_member(first.id, manager_context)

        assert service.next_assignee(mess.id).id == second.id

    def test_rotation_disabled_returns_none(self, db_session, mess, manager_context, clock):
        mess.auto_bazar_rotation = False
        db_session.commit()
        service = BazarService(db_session, clock)

        assert service.next_assignee(mess.id) is None

    def test_pending_members_are_not_eligible(self, db_session, mess, manager_context, make_member, clock):
        make_member("pending-1", status=MemberStatus.PENDING)
        service = BazarService(db_session, clock)
        service.record_purchase(purchase(), manager_context)

        assert service.next_assignee(mess.id).id == manager_context.member.id


class TestRecordPurchase:
    """Tests for BazarService.record_purchase"""

    def test_matching_total_succeeds(self, db_session, make_member, context_for, clock):
        member = make_member("member-1")
        service = BazarService(db_session, clock)

        record = service.record_purchase(purchase(), context_for(member))

        assert record.assignee_id == member.id
        assert record.status == ApprovalStatus.PENDING
        assert record.total_cost == Decimal("802.50")
        assert len(record.item_list) == 3

    def test_total_off_by_one_fails(self, db_session, make_member, context_for, clock):
        member = make_member("member-1")
        service = BazarService(db_session, clock)

        with pytest.raises(CostMismatchException) as exc_info:
            service.record_purchase(purchase(total=items_total(ITEMS) + Decimal("1.00")), context_for(member))

        assert exc_info.value.computed == Decimal("802.50")
        assert exc_info.value.provided == Decimal("803.50")

    def test_total_within_tolerance_succeeds(self, db_session, make_member, context_for, clock):
        member = make_member("member-1")
        service = BazarService(db_session, clock)

        record = service.record_purchase(purchase(total=Decimal("802.51")), context_for(member))

        assert record.id is not None

    def test_member_cannot_record_for_others(self, db_session, make_member, context_for, clock):
        member = make_member("member-1")
        other = make_member("member-2")
        service = BazarService(db_session, clock)

        with pytest.raises(ForbiddenException):
            service.record_purchase(purchase(other.id), context_for(member))

    def test_assignee_must_be_active(self, db_session, make_member, manager_context, clock):
        pending = make_member("pending-1", status=MemberStatus.PENDING)
        service = BazarService(db_session, clock)

        with pytest.raises(ValidationException):
            service.record_purchase(purchase(pending.id), manager_context)

    def test_same_assignee_same_day_is_duplicate(self, db_session, make_member, context_for, clock):
        member = make_member("member-1")
        service = BazarService(db_session, clock)
        service.record_purchase(purchase(), context_for(member))

        with pytest.raises(DuplicateEntryException):
            service.record_purchase(purchase(), context_for(member))


class TestApprovalAndImmutability:
    """Tests for approve / update / delete of purchases"""

    def test_approve(self, db_session, make_member, context_for, manager, manager_context, clock):
        service = BazarService(db_session, clock)
        record = service.record_purchase(purchase(), context_for(make_member("member-1")))

        approved = service.approve(record.id, manager_context)

        assert approved.status == ApprovalStatus.APPROVED
        assert approved.approved_by == manager.id
        assert approved.approved_at == clock.now()

    def test_approve_twice_fails(self, db_session, make_member, context_for, manager_context, clock):
        service = BazarService(db_session, clock)
        record = service.record_purchase(purchase(), context_for(make_member("member-1")))
        service.approve(record.id, manager_context)

        with pytest.raises(AlreadyApprovedException):
            service.approve(record.id, manager_context)

    def test_staff_cannot_approve(self, db_session, make_member, context_for, clock):
        staff = make_member("staff-1", role=MemberRole.STAFF)
        service = BazarService(db_session, clock)
        record = service.record_purchase(purchase(), context_for(staff))

        with pytest.raises(ForbiddenException):
            service.approve(record.id, context_for(staff))

    def test_update_pending_rechecks_total(self, db_session, make_member, context_for, clock):
        member = make_member("member-1")
        context = context_for(member)
        service = BazarService(db_session, clock)
        record = service.record_purchase(purchase(), context)

        with pytest.raises(CostMismatchException):
            service.update_purchase(record.id, BazarUpdate(total_cost=Decimal("10.00")), context)

        new_items = ITEMS[:1]
        updated = service.update_purchase(
            record.id, BazarUpdate(items=new_items, total_cost=Decimal("312.50")), context
        )
        assert updated.total_cost == Decimal("312.50")
        assert len(updated.item_list) == 1

    def test_approved_record_is_immutable_for_member(self, db_session, make_member, context_for, manager_context, clock):
        member = make_member("member-1")
        context = context_for(member)
        service = BazarService(db_session, clock)
        record = service.record_purchase(purchase(), context)
        service.approve(record.id, manager_context)

        with pytest.raises(ImmutableException):
            service.update_purchase(record.id, BazarUpdate(notes="changed"), context)
        with pytest.raises(ImmutableException):
            service.delete_purchase(record.id, context)

    def test_manager_can_change_approved_record(self, db_session, make_member, context_for, manager_context, clock):
        service = BazarService(db_session, clock)
        record = service.record_purchase(purchase(), context_for(make_member("member-1")))
        service.approve(record.id, manager_context)

        updated = service.update_purchase(record.id, BazarUpdate(notes="receipt checked"), manager_context)
        assert updated.notes == "receipt checked"

        service.delete_purchase(record.id, manager_context)
        assert service.list_purchases(manager_context) == []
