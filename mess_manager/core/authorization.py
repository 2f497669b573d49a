"""
Single capability check used by every core operation.

    authorize(context, Action.LOCK_MEALS, mess) -> bool
    require(context, Action.LOCK_MEALS, mess)   # raises ForbiddenException
"""

from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from mess_manager.core.exceptions import ForbiddenException, ImmutableException
from mess_manager.models.role import MemberRole

if TYPE_CHECKING:
    from mess_manager.models.mess import Mess
    from mess_manager.models.mess_context import MessContext


class Action(str, PyEnum):
    VIEW_MESS = "view_mess"
    MANAGE_MESS = "manage_mess"
    MANAGE_MEMBERS = "manage_members"
    ENTER_OWN_MEAL = "enter_own_meal"
    ENTER_MEAL_FOR_OTHERS = "enter_meal_for_others"
    LOCK_MEALS = "lock_meals"
    UNLOCK_MEALS = "unlock_meals"
    RECORD_BAZAR = "record_bazar"
    RECORD_OWN_EXPENSE = "record_own_expense"
    RECORD_OWN_PAYMENT = "record_own_payment"
    RECORD_FOR_OTHERS = "record_for_others"
    APPROVE_RECORDS = "approve_records"
    MODIFY_APPROVED = "modify_approved"
    ISSUE_OWN_TOKEN = "issue_own_token"
    ISSUE_TOKEN_FOR_OTHERS = "issue_token_for_others"
    SCAN_TOKEN = "scan_token"
    VIEW_OWN_STATEMENT = "view_own_statement"
    VIEW_REPORTS = "view_reports"


_MEMBER_ACTIONS = frozenset(
    {
        Action.VIEW_MESS,
        Action.ENTER_OWN_MEAL,
        Action.RECORD_BAZAR,
        Action.RECORD_OWN_EXPENSE,
        Action.RECORD_OWN_PAYMENT,
        Action.ISSUE_OWN_TOKEN,
        Action.VIEW_OWN_STATEMENT,
    }
)

_STAFF_ACTIONS = _MEMBER_ACTIONS | {
    Action.ENTER_MEAL_FOR_OTHERS,
    Action.LOCK_MEALS,
    Action.RECORD_FOR_OTHERS,
    Action.SCAN_TOKEN,
    Action.VIEW_REPORTS,
}

ROLE_PERMISSIONS: dict[MemberRole, frozenset[Action]] = {
    MemberRole.MEMBER: _MEMBER_ACTIONS,
    MemberRole.STAFF: frozenset(_STAFF_ACTIONS),
    MemberRole.ADMIN: frozenset(Action),
}


def authorize(context: "MessContext", action: Action, mess: "Mess") -> bool:
    """
    Decide whether the actor may perform ``action`` in ``mess``.

    The actor must hold an active membership in that very mess and the mess
    must not be soft-deleted.
    """
    if context.mess.id != mess.id or not mess.is_active:
        return False
    if context.member.mess_id != mess.id or not context.member.is_active:
        return False
    return action in ROLE_PERMISSIONS[context.role]


def require(context: "MessContext", action: Action, mess: "Mess | None" = None) -> None:
    """Raise ForbiddenException unless authorize() allows the action."""
    target = mess if mess is not None else context.mess
    if not authorize(context, action, target):
        raise ForbiddenException(f"Not allowed to {action.value.replace('_', ' ')} in this mess")


def require_owner_or(context: "MessContext", owner_member_id: int, own_action: Action, others_action: Action) -> None:
    """Require ``own_action`` for the caller's own records, ``others_action`` otherwise."""
    require(context, own_action if owner_member_id == context.member.id else others_action)


def ensure_mutable(record, context: "MessContext") -> None:
    """
    Guard edits and deletions of approvable records.

    Approved records may only be changed by someone holding MODIFY_APPROVED.
    """
    if record.is_approved and not authorize(context, Action.MODIFY_APPROVED, context.mess):
        raise ImmutableException("Approved records can only be changed by the mess manager")
