"""Approval state shared by bazar, expense and attendance records."""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Integer, DateTime, ForeignKey, Enum
from sqlalchemy.orm import Mapped, mapped_column

from mess_manager.core.exceptions import AlreadyApprovedException, ValidationException


class ApprovalStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovableMixin:
    """
    Status plus approval metadata.

    approve() and reject() are the only mutators of ``status``:

        PENDING -> APPROVED | REJECTED
    """

    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ApprovalStatus.PENDING,
        index=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True
    )

    @property
    def is_approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED

    def approve(self, approved_by: int | None, at: datetime) -> None:
        if self.status == ApprovalStatus.APPROVED:
            raise AlreadyApprovedException(f"{type(self).__name__} {self.id} is already approved")
        if self.status == ApprovalStatus.REJECTED:
            raise ValidationException(f"{type(self).__name__} {self.id} was rejected")
        self.status = ApprovalStatus.APPROVED
        self.approved_by = approved_by
        self.approved_at = at

    def reject(self, rejected_by: int | None, at: datetime) -> None:
        if self.status == ApprovalStatus.APPROVED:
            raise AlreadyApprovedException(f"{type(self).__name__} {self.id} is already approved")
        if self.status == ApprovalStatus.REJECTED:
            raise ValidationException(f"{type(self).__name__} {self.id} is already rejected")
        self.status = ApprovalStatus.REJECTED
        self.approved_by = rejected_by
        self.approved_at = at
