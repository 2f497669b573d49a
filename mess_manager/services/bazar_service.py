import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mess_manager.config import settings
from mess_manager.core.authorization import Action, ensure_mutable, require, require_owner_or
from mess_manager.core.clock import Clock, SystemClock
from mess_manager.core.exceptions import (
    CostMismatchException,
    DuplicateEntryException,
    NotFoundException,
    ValidationException,
)
from mess_manager.database import atomic
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.bazar import BazarRecord
from mess_manager.models.member import MessMember, MemberStatus
from mess_manager.models.mess_context import MessContext
from mess_manager.repositories.bazar_repository import BazarRepository
from mess_manager.repositories.member_repository import MemberRepository
from mess_manager.repositories.mess_repository import MessRepository
from mess_manager.schemas.bazar_schemas import BazarCreate, BazarItem, BazarUpdate

logger = logging.getLogger(__name__)


def items_total(items: Iterable[BazarItem]) -> Decimal:
    return sum((item.quantity * item.unit_price for item in items), Decimal("0"))


def verify_total(items: list[BazarItem], total_cost: Decimal) -> None:
    """
    Raises:
        CostMismatchException: If the stated total differs from the item sum
            by more than the configured tolerance
    """
    computed = items_total(items)
    if abs(computed - total_cost) > settings.COST_TOLERANCE:
        raise CostMismatchException(computed=computed, provided=total_cost)


class BazarService:
    """Service layer for bazar duty rotation and purchases"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.bazar_repo = BazarRepository(db)
        self.member_repo = MemberRepository(db)
        self.mess_repo = MessRepository(db)

    def next_assignee(self, mess_id: int) -> Optional[MessMember]:
        """
        Member whose turn it is to do the bazar.

        Walks the rotation order (members by join time) starting after the
        assignee of the latest purchase, skipping anyone who is no longer
        approved. Departed members keep their slot so the walk can continue
        past them.

        Returns:
            The next approved member, or None when rotation is disabled or
            nobody is eligible

        Raises:
            NotFoundException: If the mess doesn't exist
        """
        mess = self.mess_repo.get_by_id(mess_id)
        if not mess:
            raise NotFoundException(f"Mess {mess_id} not found")
        if not mess.auto_bazar_rotation:
            return None

        rotation = self.member_repo.get_rotation_members(mess_id)
        eligible = [m for m in rotation if m.status == MemberStatus.APPROVED]
        if not eligible:
            return None

        last = self.bazar_repo.get_latest(mess_id)
        if last is None:
            return eligible[0]

        positions = [m.id for m in rotation]
        if last.assignee_id not in positions:
            return eligible[0]

        start = positions.index(last.assignee_id)
        for step in range(1, len(rotation) + 1):
            candidate = rotation[(start + step) % len(rotation)]
            if candidate.status == MemberStatus.APPROVED:
                return candidate
        return None

    def record_purchase(self, data: BazarCreate, context: MessContext) -> BazarRecord:
        """
        Record a purchase as pending approval.

        Args:
            data: Purchase data; assignee defaults to the caller
            context: Actor context

        Returns:
            Created bazar record

        Raises:
            ForbiddenException: If the caller may not record for that member
            NotFoundException: If the assignee is not in this mess
            ValidationException: If the assignee is not an active member
            CostMismatchException: If total_cost doesn't match the items
            DuplicateEntryException: If the assignee already has a record that day
        """
        assignee_id = data.assignee_id or context.member.id
        require_owner_or(context, assignee_id, Action.RECORD_BAZAR, Action.RECORD_FOR_OTHERS)

        assignee = self.member_repo.get_by_id_and_mess(assignee_id, context.mess.id)
        if not assignee:
            raise NotFoundException(f"Member {assignee_id} not found in this mess")
        if not assignee.is_active:
            raise ValidationException(f"Member {assignee_id} is not an active member")

        verify_total(data.items, data.total_cost)

        record = BazarRecord(
            mess_id=context.mess.id,
            assignee_id=assignee.id,
            bazar_date=data.bazar_date,
            item_list=[item.model_dump(mode="json") for item in data.items],
            total_cost=data.total_cost,
            notes=data.notes,
            status=ApprovalStatus.PENDING,
            created_by=context.person.id,
        )
        try:
            with atomic(self.db):
                self.bazar_repo.create(record)
        except IntegrityError:
            raise DuplicateEntryException("A bazar record already exists for this member and date")

        logger.info(
            "Bazar recorded: mess=%s assignee=%s date=%s total=%s",
            context.mess.id, assignee.id, data.bazar_date, data.total_cost,
        )
        return record

    def get_purchase(self, bazar_id: int, context: MessContext) -> BazarRecord:
        require(context, Action.VIEW_MESS)
        record = self.bazar_repo.get_by_id_and_mess(bazar_id, context.mess.id)
        if not record:
            raise NotFoundException(f"Bazar record {bazar_id} not found")
        return record

    def list_purchases(
        self,
        context: MessContext,
        assignee_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[ApprovalStatus] = None,
    ) -> list[BazarRecord]:
        require(context, Action.VIEW_MESS)
        return self.bazar_repo.get_with_filters(
            context.mess.id, assignee_id, start_date, end_date, status
        )

    def update_purchase(self, bazar_id: int, data: BazarUpdate, context: MessContext) -> BazarRecord:
        """
        Raises:
            ImmutableException: If the record is approved and caller is not the manager
            CostMismatchException: If the resulting total doesn't match the items
        """
        record = self.get_purchase(bazar_id, context)
        require_owner_or(context, record.assignee_id, Action.RECORD_BAZAR, Action.RECORD_FOR_OTHERS)
        ensure_mutable(record, context)

        items = data.items if data.items is not None else [BazarItem(**i) for i in record.item_list]
        total = data.total_cost if data.total_cost is not None else Decimal(record.total_cost)
        verify_total(items, total)

        try:
            with atomic(self.db):
                if data.items is not None:
                    record.item_list = [item.model_dump(mode="json") for item in data.items]
                record.total_cost = total
                if data.bazar_date is not None:
                    record.bazar_date = data.bazar_date
                if "notes" in data.model_fields_set:
                    record.notes = data.notes
                self.db.flush()
        except IntegrityError:
            raise DuplicateEntryException("A bazar record already exists for this member and date")
        return record

    def delete_purchase(self, bazar_id: int, context: MessContext) -> None:
        record = self.get_purchase(bazar_id, context)
        require_owner_or(context, record.assignee_id, Action.RECORD_BAZAR, Action.RECORD_FOR_OTHERS)
        ensure_mutable(record, context)

        with atomic(self.db):
            self.bazar_repo.delete(record)
        logger.info("Bazar record %s deleted by person %s", bazar_id, context.person.id)

    def approve(self, bazar_id: int, context: MessContext) -> BazarRecord:
        """
        Approve a pending purchase (manager only).

        Raises:
            ForbiddenException: If the caller may not approve records
            AlreadyApprovedException: If the record is already approved
        """
        require(context, Action.APPROVE_RECORDS)
        record = self.get_purchase(bazar_id, context)

        with atomic(self.db):
            record.approve(context.person.id, self.clock.now())

        logger.info("Bazar record %s approved by person %s", record.id, context.person.id)
        return record

    def reject(self, bazar_id: int, context: MessContext) -> BazarRecord:
        require(context, Action.APPROVE_RECORDS)
        record = self.get_purchase(bazar_id, context)

        with atomic(self.db):
            record.reject(context.person.id, self.clock.now())
        return record
