"""Mess model - the tenant isolation boundary."""

from datetime import datetime, time
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    String,
    Integer,
    Numeric,
    Boolean,
    Time,
    DateTime,
    Text,
    ForeignKey,
    Enum,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mess_manager.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from mess_manager.models.member import MessMember
    from mess_manager.models.expense import ExpenseCategory


class PaymentCycle(str, PyEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Mess(Base, TimestampMixin):
    """
    A shared-living group sharing meals under one manager.

    Owns its members, meal entries, bazar records, expenses, payments and
    attendance tokens; all of them are deleted with it. A mess is soft-deleted
    (deleted_at) and only when no member other than the manager is active.
    """

    __tablename__ = "messes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Rate table
    breakfast_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=8, scale=2), nullable=False, default=Decimal("0.00")
    )
    lunch_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=8, scale=2), nullable=False, default=Decimal("0.00")
    )
    dinner_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=8, scale=2), nullable=False, default=Decimal("0.00")
    )

    meal_cutoff_time: Mapped[time] = mapped_column(Time, nullable=False, default=time(10, 0))
    auto_bazar_rotation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_members: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payment_cycle: Mapped[PaymentCycle] = mapped_column(
        Enum(PaymentCycle, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=PaymentCycle.MONTHLY,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    members: Mapped[list["MessMember"]] = relationship(
        "MessMember",
        back_populates="mess",
        cascade="all, delete-orphan",
    )
    expense_categories: Mapped[list["ExpenseCategory"]] = relationship(
        "ExpenseCategory",
        back_populates="mess",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "breakfast_rate >= 0 AND lunch_rate >= 0 AND dinner_rate >= 0",
            name="ck_mess_rates_non_negative",
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def daily_meal_rate(self) -> Decimal:
        return Decimal(self.breakfast_rate) + Decimal(self.lunch_rate) + Decimal(self.dinner_rate)

    def __repr__(self) -> str:
        return f"<Mess(id={self.id}, name='{self.name}')>"
