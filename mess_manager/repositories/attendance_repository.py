"""Repository for attendance tokens and attendance records."""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.attendance import Attendance, AttendanceToken
from mess_manager.models.meal import MealType


class AttendanceRepository:
    """Repository for AttendanceToken and Attendance data access"""

    def __init__(self, db: Session):
        self.db = db

    # Tokens

    def create_token(self, token: AttendanceToken) -> AttendanceToken:
        """Add a token (caller commits)"""
        self.db.add(token)
        self.db.flush()
        return token

    def get_token(self, token_value: str, mess_id: int) -> Optional[AttendanceToken]:
        """Get token by its value, ensuring it belongs to the mess"""
        return (
            self.db.query(AttendanceToken)
            .filter(AttendanceToken.token == token_value, AttendanceToken.mess_id == mess_id)
            .first()
        )

    def get_token_by_id(self, token_id: int, mess_id: int) -> Optional[AttendanceToken]:
        return (
            self.db.query(AttendanceToken)
            .filter(AttendanceToken.id == token_id, AttendanceToken.mess_id == mess_id)
            .first()
        )

    def increment_usage(self, token_id: int, now: datetime) -> bool:
        """
        Atomically take one use of a token.

        Single conditional UPDATE; two concurrent scanners cannot both take
        the last use because the WHERE clause is evaluated by the store.

        Returns:
            True if a use was taken, False if the token is inactive, expired
            or already exhausted
        """
        result = self.db.execute(
            update(AttendanceToken)
            .where(
                AttendanceToken.id == token_id,
                AttendanceToken.is_active.is_(True),
                AttendanceToken.usage_count < AttendanceToken.max_usage,
                AttendanceToken.expires_at >= now,
            )
            .values(usage_count=AttendanceToken.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def deactivate_if_exhausted(self, token_id: int) -> bool:
        result = self.db.execute(
            update(AttendanceToken)
            .where(
                AttendanceToken.id == token_id,
                AttendanceToken.usage_count >= AttendanceToken.max_usage,
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def deactivate_for_member(self, member_id: int, mess_id: int) -> int:
        """Revoke every active token of a member; returns the number revoked"""
        result = self.db.execute(
            update(AttendanceToken)
            .where(
                AttendanceToken.member_id == member_id,
                AttendanceToken.mess_id == mess_id,
                AttendanceToken.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def deactivate_expired(self, mess_id: int, now: datetime) -> int:
        """Deactivate active tokens whose expiry has passed"""
        result = self.db.execute(
            update(AttendanceToken)
            .where(
                AttendanceToken.mess_id == mess_id,
                AttendanceToken.is_active.is_(True),
                AttendanceToken.expires_at < now,
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_tokens_issued_between(
        self, mess_id: int, start: datetime, end: datetime
    ) -> list[AttendanceToken]:
        return (
            self.db.query(AttendanceToken)
            .filter(
                AttendanceToken.mess_id == mess_id,
                AttendanceToken.issued_at >= start,
                AttendanceToken.issued_at <= end,
            )
            .order_by(AttendanceToken.issued_at, AttendanceToken.id)
            .all()
        )

    # Attendance records

    def create_attendance(self, attendance: Attendance) -> Attendance:
        self.db.add(attendance)
        self.db.flush()
        return attendance

    def get_attendance(self, attendance_id: int, mess_id: int) -> Optional[Attendance]:
        return (
            self.db.query(Attendance)
            .filter(Attendance.id == attendance_id, Attendance.mess_id == mess_id)
            .first()
        )

    def find_non_rejected(
        self, member_id: int, meal_date: date, meal_type: MealType
    ) -> Optional[Attendance]:
        """Existing pending or approved attendance for (member, date, meal type)"""
        return (
            self.db.query(Attendance)
            .filter(
                Attendance.member_id == member_id,
                Attendance.meal_date == meal_date,
                Attendance.meal_type == meal_type,
                Attendance.status != ApprovalStatus.REJECTED,
            )
            .first()
        )

    def get_attendances(
        self,
        mess_id: int,
        meal_date: Optional[date] = None,
        status: Optional[ApprovalStatus] = None,
    ) -> list[Attendance]:
        query = self.db.query(Attendance).filter(Attendance.mess_id == mess_id)
        if meal_date is not None:
            query = query.filter(Attendance.meal_date == meal_date)
        if status is not None:
            query = query.filter(Attendance.status == status)
        return query.order_by(Attendance.scan_time, Attendance.id).all()
