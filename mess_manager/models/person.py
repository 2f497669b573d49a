from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING

from mess_manager.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from mess_manager.models.member import MessMember


class Person(Base, TimestampMixin):
    """
    A person known to the system, identified by the auth service subject.

    Only stores the 'sub' from the JWT plus display details - no credentials.
    Auto-created on first API request with valid JWT.
    """

    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auth_user_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Memberships survive as audit references if the person is deleted
    memberships: Mapped[list["MessMember"]] = relationship(
        "MessMember",
        back_populates="person",
        foreign_keys="MessMember.person_id",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, auth_user_id='{self.auth_user_id}')>"
