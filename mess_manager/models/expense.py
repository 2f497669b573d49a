from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Integer,
    String,
    Numeric,
    Boolean,
    Date,
    Text,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mess_manager.models.approval import ApprovableMixin
from mess_manager.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from mess_manager.models.mess import Mess
    from mess_manager.models.member import MessMember


class ExpenseCategory(Base, TimestampMixin):
    """Per-mess expense category with an optional default rate."""

    __tablename__ = "expense_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mess_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2), nullable=False, default=Decimal("0.00")
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    mess: Mapped["Mess"] = relationship("Mess", back_populates="expense_categories")

    __table_args__ = (
        UniqueConstraint("mess_id", "name", name="uq_expense_category_name"),
        CheckConstraint("rate >= 0", name="ck_expense_category_rate"),
    )


class ExpenseRecord(Base, ApprovableMixin, TimestampMixin):
    """
    An expense incurred by one member.

    Expenses are attributed to the member who incurred them, not pooled.
    """

    __tablename__ = "expense_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mess_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mess_members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("expense_categories.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )

    member: Mapped["MessMember"] = relationship("MessMember")
    category: Mapped["ExpenseCategory"] = relationship("ExpenseCategory")

    __table_args__ = (
        UniqueConstraint(
            "mess_id", "member_id", "category_id", "expense_date", name="uq_expense_member_category_date"
        ),
        CheckConstraint("amount > 0", name="ck_expense_amount_positive"),
        Index("ix_expense_records_mess_date", "mess_id", "expense_date"),
    )
