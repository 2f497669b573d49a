from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    Integer,
    String,
    Numeric,
    Date,
    DateTime,
    Text,
    ForeignKey,
    Enum,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mess_manager.core.exceptions import AlreadyApprovedException, ValidationException
from mess_manager.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from mess_manager.models.member import MessMember


class PaymentMethod(str, PyEnum):
    CASH = "cash"
    BKASH = "bkash"
    NAGAD = "nagad"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"


class PaymentRecord(Base, TimestampMixin):
    """
    Money paid by a member towards their bill.

    Status moves forward only:

        PENDING -> APPROVED -> COMPLETED
        PENDING -> COMPLETED

    Only COMPLETED payments count towards a monthly statement.
    """

    __tablename__ = "payment_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mess_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mess_members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    transaction_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )

    member: Mapped["MessMember"] = relationship("MessMember")

    __table_args__ = (
        UniqueConstraint("mess_id", "member_id", "payment_date", name="uq_payment_member_date"),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("ix_payment_records_mess_date", "mess_id", "payment_date"),
    )

    @property
    def is_approved(self) -> bool:
        return self.status in (PaymentStatus.APPROVED, PaymentStatus.COMPLETED)

    def approve(self, approved_by: int | None, at: datetime) -> None:
        if self.status != PaymentStatus.PENDING:
            raise AlreadyApprovedException(f"Payment {self.id} is already {self.status.value}")
        self.status = PaymentStatus.APPROVED
        self.approved_by = approved_by
        self.approved_at = at

    def complete(self, approved_by: int | None, at: datetime) -> None:
        if self.status == PaymentStatus.COMPLETED:
            raise ValidationException(f"Payment {self.id} is already completed")
        if self.status == PaymentStatus.PENDING:
            self.approved_by = approved_by
            self.approved_at = at
        self.status = PaymentStatus.COMPLETED
