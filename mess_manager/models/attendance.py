from datetime import date, datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    Text,
    JSON,
    ForeignKey,
    Enum,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mess_manager.models.approval import ApprovableMixin
from mess_manager.models.base import Base, TimestampMixin
from mess_manager.models.meal import MealType

if TYPE_CHECKING:
    from mess_manager.models.member import MessMember


class TokenPurpose(str, PyEnum):
    MEAL_ATTENDANCE = "meal_attendance"
    MESS_ACCESS = "mess_access"
    GUEST_ACCESS = "guest_access"


class AttendanceToken(Base, TimestampMixin):
    """
    Signed QR token.

    signature = HMAC(secret, subject | purpose | issued_at) where subject is
    the member id, or "guest:<name>" for guest tokens. usage_count never
    exceeds max_usage; once the token is expired, exhausted or revoked
    is_active stays False.
    """

    __tablename__ = "attendance_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    mess_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("mess_members.id", ondelete="CASCADE"), nullable=True, index=True
    )
    purpose: Mapped[TokenPurpose] = mapped_column(
        Enum(TokenPurpose, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    issued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_usage: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    signature: Mapped[str] = mapped_column(String(128), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    member: Mapped["MessMember | None"] = relationship("MessMember")

    __table_args__ = (
        CheckConstraint("usage_count <= max_usage", name="ck_token_usage_cap"),
        CheckConstraint("max_usage >= 1", name="ck_token_max_usage"),
        Index("ix_attendance_tokens_mess_purpose", "mess_id", "purpose"),
    )

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def is_exhausted(self) -> bool:
        return not self.is_active or self.usage_count >= self.max_usage


class Attendance(Base, ApprovableMixin, TimestampMixin):
    """A scanned (or manually entered) presence at one meal."""

    __tablename__ = "attendances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mess_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mess_members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    meal_type: Mapped[MealType] = mapped_column(
        Enum(MealType, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    meal_date: Mapped[date] = mapped_column(Date, nullable=False)
    scan_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    token_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("attendance_tokens.id", ondelete="SET NULL"), nullable=True
    )
    is_manual_entry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scanned_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    member: Mapped["MessMember"] = relationship("MessMember")

    __table_args__ = (
        Index("ix_attendances_member_date_type", "member_id", "meal_date", "meal_type"),
        Index("ix_attendances_mess_date", "mess_id", "meal_date"),
    )
