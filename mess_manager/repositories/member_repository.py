"""Repository for MessMember model operations."""

from datetime import datetime

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from mess_manager.models.member import MessMember, MemberStatus


class MemberRepository:
    """Repository for MessMember model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id_and_mess(self, member_id: int, mess_id: int) -> MessMember | None:
        """
        Get membership ensuring it belongs to the mess (multi-tenant safety).

        Returns None if the membership doesn't exist or belongs to another mess.
        """
        return (
            self.db.query(MessMember)
            .filter(MessMember.id == member_id, MessMember.mess_id == mess_id)
            .first()
        )

    def get_active_membership(self, person_id: int, mess_id: int) -> MessMember | None:
        """
        Get the approved, not-left membership of a person in a mess.

        Args:
            person_id: Person ID
            mess_id: Mess ID

        Returns:
            MessMember object or None if the person is not an active member
        """
        return (
            self.db.query(MessMember)
            .filter(
                MessMember.person_id == person_id,
                MessMember.mess_id == mess_id,
                MessMember.status == MemberStatus.APPROVED,
                MessMember.left_at.is_(None),
            )
            .first()
        )

    def get_open_membership(self, person_id: int, mess_id: int) -> MessMember | None:
        """Get a pending or active membership of a person in a mess."""
        return (
            self.db.query(MessMember)
            .filter(
                MessMember.person_id == person_id,
                MessMember.mess_id == mess_id,
                MessMember.status.in_((MemberStatus.PENDING, MemberStatus.APPROVED)),
            )
            .first()
        )

    def get_mess_members(
        self, mess_id: int, status: MemberStatus | None = None
    ) -> list[MessMember]:
        """
        Get memberships of a mess in stable order (join date, then id).

        Args:
            mess_id: Mess ID
            status: Optional status filter

        Returns:
            List of MessMember objects
        """
        query = self.db.query(MessMember).filter(MessMember.mess_id == mess_id)
        if status is not None:
            query = query.filter(MessMember.status == status)
        return query.order_by(MessMember.joined_at, MessMember.id).all()

    def get_rotation_members(self, mess_id: int) -> list[MessMember]:
        """
        Get members that ever took part in the bazar rotation.

        Approved and departed members in stable order; departed members keep
        their position so the rotation can continue past them.
        """
        return (
            self.db.query(MessMember)
            .filter(
                MessMember.mess_id == mess_id,
                MessMember.status.in_((MemberStatus.APPROVED, MemberStatus.LEFT)),
            )
            .order_by(MessMember.joined_at, MessMember.id)
            .all()
        )

    def get_billable_members(self, mess_id: int, since: datetime) -> list[MessMember]:
        """
        Get members that owe a statement for a period starting at ``since``.

        Approved members plus those who left on or after ``since``, in
        stable order.
        """
        return (
            self.db.query(MessMember)
            .filter(
                MessMember.mess_id == mess_id,
                or_(
                    MessMember.status == MemberStatus.APPROVED,
                    and_(
                        MessMember.status == MemberStatus.LEFT,
                        MessMember.left_at >= since,
                    ),
                ),
            )
            .order_by(MessMember.joined_at, MessMember.id)
            .all()
        )

    def count_active(self, mess_id: int) -> int:
        """Count approved, not-left members of a mess"""
        return (
            self.db.query(func.count(MessMember.id))
            .filter(
                MessMember.mess_id == mess_id,
                MessMember.status == MemberStatus.APPROVED,
                MessMember.left_at.is_(None),
            )
            .scalar()
        )

    def get_person_memberships(self, person_id: int) -> list[MessMember]:
        """Get all memberships of a person (all messes they belong to)"""
        return (
            self.db.query(MessMember)
            .filter(MessMember.person_id == person_id)
            .order_by(MessMember.mess_id)
            .all()
        )

    def create(self, member: MessMember) -> MessMember:
        """
        Add a new membership to the session.

        Caller responsible for commit.
        """
        self.db.add(member)
        self.db.flush()
        return member
