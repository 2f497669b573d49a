import pytest
from datetime import time
from decimal import Decimal

from mess_manager.core.authorization import Action, authorize
from mess_manager.core.exceptions import (
    DuplicateEntryException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from mess_manager.models import MealType, MemberRole, MemberStatus, Person
from mess_manager.schemas.mess_schemas import ExpenseCategoryCreate, MemberCreate, MessCreate, MessUpdate
from mess_manager.services.expense_service import ExpenseService
from mess_manager.services.mess_service import DEFAULT_EXPENSE_CATEGORIES, MessService
from mess_manager.services.rate_service import RateService


@pytest.fixture
def other_mess(db_session, clock):
    owner = Person(auth_user_id="other-owner", name="Other Owner")
    db_session.add(owner)
    db_session.commit()
    return MessService(db_session, clock).create_mess(MessCreate(name="Blue House"), owner)


class TestCreateMess:
    """Tests for MessService.create_mess"""

    def test_creator_becomes_admin_member(self, db_session, mess, manager, clock):
        members = MessService(db_session, clock).get_members(
            MessService(db_session).build_context(manager, mess.id)
        )

        assert mess.manager_id == manager.id
        assert len(members) == 1
        assert members[0].person_id == manager.id
        assert members[0].role == MemberRole.ADMIN
        assert members[0].status == MemberStatus.APPROVED

    def test_default_categories_seeded(self, db_session, manager_context, clock):
        categories = ExpenseService(db_session, clock).list_categories(manager_context)

        assert sorted(c.name for c in categories) == sorted(name for name, _ in DEFAULT_EXPENSE_CATEGORIES)
        assert all(c.is_default for c in categories)

    def test_default_cutoff(self, db_session, manager, clock, other_mess):
        assert other_mess.meal_cutoff_time == time(10, 0)
        assert other_mess.breakfast_rate == Decimal("0.00")

    def test_list_person_messes(self, db_session, manager, mess, clock):
        messes = MessService(db_session, clock).list_person_messes(manager)

        assert [(m["id"], m["role"]) for m in messes] == [(mess.id, MemberRole.ADMIN)]


class TestRateTable:
    """Tests for RateService and rate updates"""

    def test_rate_for(self, db_session, mess):
        rates = RateService(db_session)

        assert rates.rate_for(mess.id, MealType.BREAKFAST) == Decimal("30.00")
        assert rates.rate_for(mess.id, MealType.LUNCH) == Decimal("50.00")
        assert rates.rate_for(mess.id, MealType.DINNER) == Decimal("50.00")

    def test_rate_table(self, db_session, mess):
        table = RateService(db_session).rate_table(mess.id)

        assert table["total_daily"] == Decimal("130.00")
        assert len(table["categories"]) == len(DEFAULT_EXPENSE_CATEGORIES)

    def test_unknown_mess(self, db_session):
        with pytest.raises(NotFoundException):
            RateService(db_session).rate_for(9999, MealType.LUNCH)

    def test_category_rates(self, db_session, mess, manager_context, clock):
        category = ExpenseService(db_session, clock).create_category(
            ExpenseCategoryCreate(name="Gas cylinder", rate=Decimal("15.00")), manager_context
        )

        rates = RateService(db_session).category_rates(mess.id)

        assert rates[category.id] == Decimal("15.00")

    def test_duplicate_category(self, db_session, manager_context, clock):
        with pytest.raises(DuplicateEntryException):
            ExpenseService(db_session, clock).create_category(
                ExpenseCategoryCreate(name="Groceries"), manager_context
            )

    def test_update_rates(self, db_session, mess, manager_context, clock):
        MessService(db_session, clock).update_mess(MessUpdate(lunch_rate=Decimal("55.00")), manager_context)

        assert RateService(db_session).rate_for(mess.id, MealType.LUNCH) == Decimal("55.00")
        assert RateService(db_session).rate_for(mess.id, MealType.DINNER) == Decimal("50.00")

    def test_update_clears_address(self, db_session, mess, manager_context, clock):
        service = MessService(db_session, clock)
        service.update_mess(MessUpdate(address="12 Lake Road"), manager_context)

        updated = service.update_mess(MessUpdate(address=None, name=None), manager_context)

        assert updated.address is None
        assert updated.name == "Green House Mess"

    def test_member_cannot_update(self, db_session, make_member, context_for, clock):
        member = make_member("member-1")

        with pytest.raises(ForbiddenException):
            MessService(db_session, clock).update_mess(
                MessUpdate(lunch_rate=Decimal("1.00")), context_for(member)
            )


class TestMembership:
    """Tests for the membership lifecycle"""

    def test_add_member_is_pending(self, db_session, manager_context, clock):
        member = MessService(db_session, clock).add_member(
            MemberCreate(auth_user_id="new-1", name="Newcomer"), manager_context
        )

        assert member.status == MemberStatus.PENDING
        assert member.person.name == "Newcomer"
        assert not member.is_active

    def test_approve_member(self, db_session, manager_context, clock):
        service = MessService(db_session, clock)
        member = service.add_member(MemberCreate(auth_user_id="new-1"), manager_context)

        approved = service.approve_member(member.id, manager_context)

        assert approved.status == MemberStatus.APPROVED
        assert approved.approved_at == clock.now()

    def test_add_twice_is_duplicate(self, db_session, manager_context, clock):
        service = MessService(db_session, clock)
        service.add_member(MemberCreate(auth_user_id="new-1"), manager_context)

        with pytest.raises(DuplicateEntryException):
            service.add_member(MemberCreate(auth_user_id="new-1"), manager_context)

    def test_max_members(self, db_session, manager_context, clock):
        service = MessService(db_session, clock)
        service.update_mess(MessUpdate(max_members=2), manager_context)
        service.add_member(MemberCreate(auth_user_id="new-1", approve=True), manager_context)
        pending = service.add_member(MemberCreate(auth_user_id="new-2"), manager_context)

        with pytest.raises(ValidationException):
            service.add_member(MemberCreate(auth_user_id="new-3", approve=True), manager_context)
        with pytest.raises(ValidationException):
            service.approve_member(pending.id, manager_context)

    def test_member_cannot_add_members(self, db_session, make_member, context_for, clock):
        member = make_member("member-1")

        with pytest.raises(ForbiddenException):
            MessService(db_session, clock).add_member(MemberCreate(auth_user_id="new-1"), context_for(member))

    def test_remove_approved_member_marks_left(self, db_session, manager_context, make_member, clock):
        member = make_member("member-1")

        removed = MessService(db_session, clock).remove_member(member.id, manager_context)

        assert removed.status == MemberStatus.LEFT
        assert removed.left_at == clock.now()

    def test_remove_pending_member_rejects(self, db_session, manager_context, make_member, clock):
        member = make_member("member-1", status=MemberStatus.PENDING)

        removed = MessService(db_session, clock).remove_member(member.id, manager_context)

        assert removed.status == MemberStatus.REJECTED

    def test_removed_person_can_rejoin(self, db_session, manager_context, make_member, clock):
        service = MessService(db_session, clock)
        member = make_member("member-1")
        service.remove_member(member.id, manager_context)

        rejoined = service.add_member(MemberCreate(auth_user_id="member-1"), manager_context)

        assert rejoined.id != member.id
        assert rejoined.person_id == member.person_id

    def test_cannot_remove_manager(self, db_session, manager_context, make_member, context_for, clock):
        admin = make_member("admin-2", role=MemberRole.ADMIN)
        service = MessService(db_session, clock)

        with pytest.raises(ForbiddenException):
            service.remove_member(manager_context.member.id, manager_context)
        with pytest.raises(ForbiddenException):
            service.remove_member(manager_context.member.id, context_for(admin))

    def test_leave_mess(self, db_session, mess, make_member, context_for, clock):
        member = make_member("member-1")
        service = MessService(db_session, clock)

        left = service.leave_mess(context_for(member))

        assert left.status == MemberStatus.LEFT
        with pytest.raises(ForbiddenException):
            service.build_context(member.person, mess.id)

    def test_manager_cannot_leave(self, db_session, manager_context, clock):
        with pytest.raises(ForbiddenException):
            MessService(db_session, clock).leave_mess(manager_context)


class TestDeleteMess:
    """Tests for MessService.delete_mess"""

    def test_delete_with_active_members_rejected(self, db_session, manager_context, make_member, clock):
        make_member("member-1")

        with pytest.raises(ValidationException):
            MessService(db_session, clock).delete_mess(manager_context)

    def test_delete_soft_deletes(self, db_session, mess, manager, manager_context, clock):
        service = MessService(db_session, clock)

        service.delete_mess(manager_context)

        assert mess.deleted_at == clock.now()
        with pytest.raises(NotFoundException):
            service.build_context(manager, mess.id)

    def test_only_manager_deletes(self, db_session, make_member, context_for, clock):
        admin = make_member("admin-2", role=MemberRole.ADMIN)

        with pytest.raises(ForbiddenException):
            MessService(db_session, clock).delete_mess(context_for(admin))


class TestAuthorize:
    """Tests for the authorize capability check"""

    def test_role_matrix(self, make_member, context_for, manager_context):
        member = context_for(make_member("member-1"))
        staff = context_for(make_member("staff-1", role=MemberRole.STAFF))
        mess = manager_context.mess

        assert authorize(member, Action.ENTER_OWN_MEAL, mess)
        assert not authorize(member, Action.LOCK_MEALS, mess)
        assert authorize(staff, Action.LOCK_MEALS, mess)
        assert authorize(staff, Action.SCAN_TOKEN, mess)
        assert not authorize(staff, Action.UNLOCK_MEALS, mess)
        assert not authorize(staff, Action.APPROVE_RECORDS, mess)
        assert authorize(manager_context, Action.MODIFY_APPROVED, mess)

    def test_other_mess_is_denied(self, manager_context, other_mess):
        assert not authorize(manager_context, Action.VIEW_MESS, other_mess)

    def test_left_member_is_denied(self, db_session, mess, make_member, context_for, clock):
        member = make_member("member-1")
        context = context_for(member)
        MessService(db_session, clock).leave_mess(context)

        assert not authorize(context, Action.VIEW_MESS, mess)

    def test_deleted_mess_is_denied(self, db_session, mess, manager_context, clock):
        MessService(db_session, clock).delete_mess(manager_context)

        assert not authorize(manager_context, Action.VIEW_MESS, mess)
