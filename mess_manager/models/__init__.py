from mess_manager.models.base import Base
from mess_manager.models.person import Person
from mess_manager.models.mess import Mess, PaymentCycle
from mess_manager.models.role import MemberRole
from mess_manager.models.member import MessMember, MemberStatus
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.meal import MealEntry, MealType
from mess_manager.models.bazar import BazarRecord
from mess_manager.models.expense import ExpenseCategory, ExpenseRecord
from mess_manager.models.payment import PaymentRecord, PaymentMethod, PaymentStatus
from mess_manager.models.attendance import AttendanceToken, Attendance, TokenPurpose

__all__ = [
    "Base",
    "Person",
    "Mess",
    "PaymentCycle",
    "MemberRole",
    "MessMember",
    "MemberStatus",
    "ApprovalStatus",
    "MealEntry",
    "MealType",
    "BazarRecord",
    "ExpenseCategory",
    "ExpenseRecord",
    "PaymentRecord",
    "PaymentMethod",
    "PaymentStatus",
    "AttendanceToken",
    "Attendance",
    "TokenPurpose",
]
