from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.bazar import BazarRecord


class BazarRepository:
    """Repository for BazarRecord data access"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, record: BazarRecord) -> BazarRecord:
        """Add a bazar record (caller commits)"""
        self.db.add(record)
        self.db.flush()
        return record

    def get_by_id_and_mess(self, bazar_id: int, mess_id: int) -> Optional[BazarRecord]:
        """Get bazar record by ID, ensuring it belongs to the mess"""
        return (
            self.db.query(BazarRecord)
            .filter(BazarRecord.id == bazar_id, BazarRecord.mess_id == mess_id)
            .first()
        )

    def get_latest(self, mess_id: int) -> Optional[BazarRecord]:
        """Most recent purchase by date (ties broken by id)"""
        return (
            self.db.query(BazarRecord)
            .filter(BazarRecord.mess_id == mess_id)
            .order_by(BazarRecord.bazar_date.desc(), BazarRecord.id.desc())
            .first()
        )

    def get_with_filters(
        self,
        mess_id: int,
        assignee_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[ApprovalStatus] = None,
    ) -> list[BazarRecord]:
        """
        Get bazar records of a mess with optional filters.

        Args:
            mess_id: Mess ID for isolation
            assignee_id: Optional member-on-duty filter
            start_date: Optional start date filter (inclusive)
            end_date: Optional end date filter (inclusive)
            status: Optional approval status filter

        Returns:
            Records ordered by date then id
        """
        query = self.db.query(BazarRecord).filter(BazarRecord.mess_id == mess_id)

        if assignee_id is not None:
            query = query.filter(BazarRecord.assignee_id == assignee_id)

        if start_date is not None:
            query = query.filter(BazarRecord.bazar_date >= start_date)

        if end_date is not None:
            query = query.filter(BazarRecord.bazar_date <= end_date)

        if status is not None:
            query = query.filter(BazarRecord.status == status)

        return query.order_by(BazarRecord.bazar_date, BazarRecord.id).all()

    def delete(self, record: BazarRecord) -> None:
        """Delete a bazar record (caller commits)"""
        self.db.delete(record)
        self.db.flush()
