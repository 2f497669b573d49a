"""Mess context for request authorization."""

from dataclasses import dataclass

from mess_manager.models.member import MessMember
from mess_manager.models.mess import Mess
from mess_manager.models.person import Person
from mess_manager.models.role import MemberRole


@dataclass
class MessContext:
    """
    Complete actor context for a core operation.

    Contains the acting person, the mess being accessed and the person's
    approved membership in it. Passed explicitly to every service call;
    nothing in the core reads the current user from a global.

    Attributes:
        person: The authenticated Person
        mess: The Mess the person is acting in
        member: The person's approved membership in this mess
    """

    person: Person
    mess: Mess
    member: MessMember

    @property
    def role(self) -> MemberRole:
        """Effective role; the mess manager always acts as ADMIN."""
        if self.is_manager():
            return MemberRole.ADMIN
        return self.member.role

    def is_manager(self) -> bool:
        """Check if the person manages this mess."""
        return self.mess.manager_id is not None and self.mess.manager_id == self.person.id

    def __repr__(self) -> str:
        return (
            f"<MessContext(person_id={self.person.id}, mess_id={self.mess.id}, "
            f"role={self.role.value})>"
        )
