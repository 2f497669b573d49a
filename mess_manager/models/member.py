"""Mess membership model linking persons to messes with roles and status."""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import Integer, String, Numeric, DateTime, Text, ForeignKey, Enum, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mess_manager.core.exceptions import ValidationException
from mess_manager.models.base import Base, TimestampMixin
from mess_manager.models.role import MemberRole

if TYPE_CHECKING:
    from mess_manager.models.person import Person
    from mess_manager.models.mess import Mess


class MemberStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    LEFT = "left"


class MessMember(Base, TimestampMixin):
    """
    Tenant-scoped link between a Person and a Mess.

    Status changes only through approve(), reject() and leave():

        PENDING  -> APPROVED | REJECTED
        APPROVED -> LEFT

    At most one active (approved, not left) membership exists per
    (mess, person); the service layer checks this before creating a row.
    The person reference is nulled rather than cascaded so historical
    financial records keep their member.
    """

    __tablename__ = "mess_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mess_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("messes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    person_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("persons.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=MemberRole.MEMBER,
    )
    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=MemberStatus.PENDING,
    )
    room_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    monthly_fixed_cost: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=10, scale=2), nullable=True
    )
    deposit_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2), nullable=False, default=Decimal("0.00")
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    left_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships
    mess: Mapped["Mess"] = relationship("Mess", back_populates="members")
    person: Mapped["Person | None"] = relationship(
        "Person", back_populates="memberships", foreign_keys=[person_id]
    )

    __table_args__ = (
        Index("ix_mess_members_mess_status", "mess_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.APPROVED and self.left_at is None

    def approve(self, approved_by: int | None, at: datetime) -> None:
        if self.status != MemberStatus.PENDING:
            raise ValidationException(f"Cannot approve a {self.status.value} membership")
        self.status = MemberStatus.APPROVED
        self.approved_by = approved_by
        self.approved_at = at

    def reject(self, rejected_by: int | None, at: datetime) -> None:
        if self.status != MemberStatus.PENDING:
            raise ValidationException(f"Cannot reject a {self.status.value} membership")
        self.status = MemberStatus.REJECTED
        self.approved_by = rejected_by
        self.approved_at = at

    def leave(self, at: datetime) -> None:
        if self.status != MemberStatus.APPROVED:
            raise ValidationException(f"Cannot leave from a {self.status.value} membership")
        self.status = MemberStatus.LEFT
        self.left_at = at

    def __repr__(self) -> str:
        return (
            f"<MessMember(mess_id={self.mess_id}, person_id={self.person_id}, "
            f"role={self.role.value}, status={self.status.value})>"
        )
