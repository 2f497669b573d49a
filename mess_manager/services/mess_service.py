import logging

from sqlalchemy.orm import Session

from mess_manager.config import settings
from mess_manager.core.authorization import Action, require
from mess_manager.core.clock import Clock, SystemClock
from mess_manager.core.exceptions import (
    DuplicateEntryException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from mess_manager.database import atomic
from mess_manager.models.expense import ExpenseCategory
from mess_manager.models.member import MessMember, MemberStatus
from mess_manager.models.mess import Mess
from mess_manager.models.mess_context import MessContext
from mess_manager.models.person import Person
from mess_manager.models.role import MemberRole
from mess_manager.repositories.expense_repository import ExpenseRepository
from mess_manager.repositories.member_repository import MemberRepository
from mess_manager.repositories.mess_repository import MessRepository
from mess_manager.repositories.person_repository import PersonRepository
from mess_manager.schemas.mess_schemas import MessCreate, MessUpdate, MemberCreate

logger = logging.getLogger(__name__)

DEFAULT_EXPENSE_CATEGORIES = (
    ("Groceries", "Daily food items and groceries"),
    ("Utilities", "Electricity, water, gas, internet bills"),
    ("Rent", "Mess rent and maintenance"),
    ("Transportation", "Travel and commuting expenses"),
    ("Medical", "Healthcare and medical expenses"),
    ("Entertainment", "Recreation and entertainment"),
    ("Other", "Miscellaneous expenses"),
)

NULLABLE_MESS_FIELDS = frozenset({"address", "max_members"})


class MessService:
    """Service layer for mess and membership management"""

    def __init__(self, db: Session, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.mess_repo = MessRepository(db)
        self.member_repo = MemberRepository(db)
        self.person_repo = PersonRepository(db)
        self.expense_repo = ExpenseRepository(db)

    def build_context(self, person: Person, mess_id: int) -> MessContext:
        """
        Resolve the actor context of a person inside a mess.

        Raises:
            NotFoundException: If the mess doesn't exist (or was deleted)
            ForbiddenException: If the person has no active membership in it
        """
        mess = self.mess_repo.get_by_id(mess_id)
        if not mess:
            raise NotFoundException(f"Mess {mess_id} not found")

        member = self.member_repo.get_active_membership(person.id, mess.id)
        if not member:
            raise ForbiddenException("You are not an active member of this mess")

        return MessContext(person=person, mess=mess, member=member)

    def create_mess(self, data: MessCreate, person: Person) -> Mess:
        """
        Create a mess managed by ``person``.

        The creator is added as an approved ADMIN member and the default
        expense categories are seeded.
        """
        now = self.clock.now()
        with atomic(self.db):
            mess = Mess(
                name=data.name,
                address=data.address,
                manager_id=person.id,
                breakfast_rate=data.breakfast_rate,
                lunch_rate=data.lunch_rate,
                dinner_rate=data.dinner_rate,
                meal_cutoff_time=data.meal_cutoff_time or settings.DEFAULT_MEAL_CUTOFF,
                auto_bazar_rotation=data.auto_bazar_rotation,
                max_members=data.max_members,
                payment_cycle=data.payment_cycle,
            )
            self.mess_repo.create(mess)

            self.member_repo.create(
                MessMember(
                    mess_id=mess.id,
                    person_id=person.id,
                    role=MemberRole.ADMIN,
                    status=MemberStatus.APPROVED,
                    joined_at=now,
                    approved_by=person.id,
                    approved_at=now,
                )
            )

            for name, description in DEFAULT_EXPENSE_CATEGORIES:
                self.expense_repo.create_category(
                    ExpenseCategory(
                        mess_id=mess.id, name=name, description=description, is_default=True
                    )
                )

        logger.info("Mess %s created by person %s", mess.id, person.id)
        return mess

    def list_person_messes(self, person: Person) -> list[dict]:
        """
        List all messes a person belongs to with their role and status.
        """
        result = []
        for membership in self.member_repo.get_person_memberships(person.id):
            mess = self.mess_repo.get_by_id(membership.mess_id)
            if mess:
                result.append(
                    {
                        "id": mess.id,
                        "name": mess.name,
                        "member_id": membership.id,
                        "role": membership.role,
                        "status": membership.status,
                    }
                )
        return result

    def update_mess(self, data: MessUpdate, context: MessContext) -> Mess:
        """
        Update mess settings and rates (ADMIN only).

        Raises:
            ForbiddenException: If the caller cannot manage the mess
        """
        require(context, Action.MANAGE_MESS)

        mess = context.mess
        with atomic(self.db):
            for field, value in data.model_dump(exclude_unset=True).items():
                # Only address and max_members may be cleared
                if value is None and field not in NULLABLE_MESS_FIELDS:
                    continue
                setattr(mess, field, value)
        self.db.refresh(mess)
        return mess

    def delete_mess(self, context: MessContext) -> None:
        """
        Soft-delete the mess (manager only).

        Raises:
            ForbiddenException: If the caller is not the manager
            ValidationException: If members other than the manager are active
        """
        if not context.is_manager():
            raise ForbiddenException("Only the mess manager can delete the mess")

        mess = context.mess
        others_active = self.member_repo.count_active(mess.id) - (1 if context.member.is_active else 0)
        if others_active > 0:
            raise ValidationException("Cannot delete mess with active members")

        with atomic(self.db):
            mess.deleted_at = self.clock.now()
        logger.info("Mess %s deleted by person %s", mess.id, context.person.id)

    def get_members(self, context: MessContext, status: MemberStatus | None = None) -> list[MessMember]:
        require(context, Action.VIEW_MESS)
        return self.member_repo.get_mess_members(context.mess.id, status)

    def get_member(self, member_id: int, context: MessContext) -> MessMember:
        """
        Raises:
            NotFoundException: If the member is not part of this mess
        """
        member = self.member_repo.get_by_id_and_mess(member_id, context.mess.id)
        if not member:
            raise NotFoundException(f"Member {member_id} not found in this mess")
        return member

    def add_member(self, data: MemberCreate, context: MessContext) -> MessMember:
        """
        Add a person to the mess (ADMIN only).

        Raises:
            ForbiddenException: If the caller cannot manage members
            DuplicateEntryException: If the person already has a pending or
                active membership
            ValidationException: If approving would exceed max_members
        """
        require(context, Action.MANAGE_MEMBERS)
        mess = context.mess
        now = self.clock.now()

        with atomic(self.db):
            person = self.person_repo.get_or_create_by_auth_id(
                data.auth_user_id, name=data.name, email=data.email
            )
            if self.member_repo.get_open_membership(person.id, mess.id):
                raise DuplicateEntryException(
                    f"User {data.auth_user_id} is already a member of this mess"
                )

            member = MessMember(
                mess_id=mess.id,
                person_id=person.id,
                role=data.role,
                status=MemberStatus.PENDING,
                room_number=data.room_number,
                monthly_fixed_cost=data.monthly_fixed_cost,
                deposit_amount=data.deposit_amount,
                notes=data.notes,
                joined_at=now,
            )
            if data.approve:
                self._check_capacity(mess)
                member.approve(context.person.id, now)
            self.member_repo.create(member)

        logger.info("Member %s added to mess %s (%s)", member.id, mess.id, member.status.value)
        return member

    def approve_member(self, member_id: int, context: MessContext) -> MessMember:
        """Approve a pending membership (ADMIN only)."""
        require(context, Action.MANAGE_MEMBERS)
        member = self.get_member(member_id, context)

        with atomic(self.db):
            if self.member_repo.get_active_membership(member.person_id, context.mess.id):
                raise DuplicateEntryException("Person already has an active membership")
            self._check_capacity(context.mess)
            member.approve(context.person.id, self.clock.now())

        logger.info("Member %s approved in mess %s", member.id, context.mess.id)
        return member

    def reject_member(self, member_id: int, context: MessContext) -> MessMember:
        """Reject a pending membership (ADMIN only)."""
        require(context, Action.MANAGE_MEMBERS)
        member = self.get_member(member_id, context)

        with atomic(self.db):
            member.reject(context.person.id, self.clock.now())
        return member

    def leave_mess(self, context: MessContext) -> MessMember:
        """
        The caller leaves the mess.

        Raises:
            ForbiddenException: If the caller is the manager
        """
        if context.is_manager():
            raise ForbiddenException("The mess manager cannot leave the mess")

        member = context.member
        with atomic(self.db):
            member.leave(self.clock.now())
        logger.info("Member %s left mess %s", member.id, context.mess.id)
        return member

    def remove_member(self, member_id: int, context: MessContext) -> MessMember:
        """
        Remove a member from the mess (ADMIN only).

        Approved members are marked LEFT, pending ones REJECTED; the row is
        kept so financial history stays attributed.

        Raises:
            ForbiddenException: If removing the manager or yourself
            NotFoundException: If member not found
        """
        require(context, Action.MANAGE_MEMBERS)
        member = self.get_member(member_id, context)

        # Cannot remove self (check first for better error message)
        if member.id == context.member.id:
            raise ForbiddenException("Cannot remove yourself from the mess")

        if member.person_id is not None and member.person_id == context.mess.manager_id:
            raise ForbiddenException("Cannot remove mess manager")

        now = self.clock.now()
        with atomic(self.db):
            if member.status == MemberStatus.PENDING:
                member.reject(context.person.id, now)
            else:
                member.leave(now)

        logger.info("Member %s removed from mess %s", member.id, context.mess.id)
        return member

    def _check_capacity(self, mess: Mess) -> None:
        if mess.max_members is not None and self.member_repo.count_active(mess.id) >= mess.max_members:
            raise ValidationException("Mess has reached maximum member limit")
