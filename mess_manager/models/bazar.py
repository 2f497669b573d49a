from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Integer, Numeric, Date, Text, JSON, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mess_manager.models.approval import ApprovableMixin
from mess_manager.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from mess_manager.models.member import MessMember


class BazarRecord(Base, ApprovableMixin, TimestampMixin):
    """
    A grocery purchase made by the member on bazar duty.

    item_list: JSON list of {name, quantity, unit, unit_price}; total_cost
    must equal sum(quantity * unit_price) within the configured tolerance.
    Approved records are immutable to non-managers.
    """

    __tablename__ = "bazar_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mess_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assignee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mess_members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    bazar_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    item_list: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )

    assignee: Mapped["MessMember"] = relationship("MessMember")

    __table_args__ = (
        UniqueConstraint("mess_id", "assignee_id", "bazar_date", name="uq_bazar_assignee_date"),
        Index("ix_bazar_records_mess_date", "mess_id", "bazar_date"),
    )
