"""Repository for Mess model operations."""

from sqlalchemy.orm import Session

from mess_manager.database import lock_for_update
from mess_manager.models.mess import Mess


class MessRepository:
    """Repository for Mess model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, mess_id: int, include_deleted: bool = False) -> Mess | None:
        """
        Get mess by ID.

        Args:
            mess_id: Mess ID
            include_deleted: Also return soft-deleted messes

        Returns:
            Mess object or None if not found
        """
        query = self.db.query(Mess).filter(Mess.id == mess_id)
        if not include_deleted:
            query = query.filter(Mess.deleted_at.is_(None))
        return query.first()

    def get_for_update(self, mess_id: int) -> Mess | None:
        """
        Get mess with a row lock.

        Used as the mess-level lock that serialises attendance scans.
        """
        return lock_for_update(
            self.db.query(Mess).filter(Mess.id == mess_id, Mess.deleted_at.is_(None))
        ).first()

    def create(self, mess: Mess) -> Mess:
        """
        Add a new mess to the session.

        Caller responsible for commit.
        """
        self.db.add(mess)
        self.db.flush()
        return mess
