from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    Integer,
    Date,
    DateTime,
    Text,
    JSON,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mess_manager.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from mess_manager.models.member import MessMember


class MealType(str, PyEnum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


class MealEntry(Base, TimestampMixin):
    """
    Daily meal counts of one member.

    One row per (mess, member, date), enforced by uq_meal_member_date so that
    two concurrent entries cannot both be stored. extra_items is a JSON list
    of {name, quantity, unit_price} with decimals kept as strings.

    Lifecycle: Open -> Locked via lock(); unlock() is the manager override.
    """

    __tablename__ = "meal_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mess_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mess_members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    meal_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    breakfast: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lunch: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dinner: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    extra_items: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    entered_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )
    locked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    locked_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )

    member: Mapped["MessMember"] = relationship("MessMember")

    __table_args__ = (
        UniqueConstraint("mess_id", "member_id", "meal_date", name="uq_meal_member_date"),
        CheckConstraint(
            "breakfast BETWEEN 0 AND 10 AND lunch BETWEEN 0 AND 10 AND dinner BETWEEN 0 AND 10",
            name="ck_meal_counts_range",
        ),
        Index("ix_meal_entries_mess_date", "mess_id", "meal_date"),
    )

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None

    @property
    def total_meals(self) -> int:
        return self.breakfast + self.lunch + self.dinner

    def count_for(self, meal_type: MealType) -> int:
        return getattr(self, meal_type.value)

    def extra_items_cost(self) -> Decimal:
        return sum(
            (
                Decimal(str(item["quantity"])) * Decimal(str(item["unit_price"]))
                for item in self.extra_items or []
            ),
            Decimal("0"),
        )

    def lock(self, locked_by: int | None, at: datetime) -> None:
        self.locked_at = at
        self.locked_by = locked_by

    def unlock(self) -> None:
        self.locked_at = None
        self.locked_by = None
