from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from mess_manager.models.payment import PaymentRecord, PaymentStatus


class PaymentRepository:
    """Repository for PaymentRecord data access"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, payment: PaymentRecord) -> PaymentRecord:
        """Add a payment record (caller commits)"""
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_by_id_and_mess(self, payment_id: int, mess_id: int) -> Optional[PaymentRecord]:
        """Get payment by ID, ensuring it belongs to the mess"""
        return (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.id == payment_id, PaymentRecord.mess_id == mess_id)
            .first()
        )

    def get_with_filters(
        self,
        mess_id: int,
        member_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[PaymentStatus] = None,
    ) -> list[PaymentRecord]:
        """Get payments of a mess with optional member/date/status filters"""
        query = self.db.query(PaymentRecord).filter(PaymentRecord.mess_id == mess_id)

        if member_id is not None:
            query = query.filter(PaymentRecord.member_id == member_id)

        if start_date is not None:
            query = query.filter(PaymentRecord.payment_date >= start_date)

        if end_date is not None:
            query = query.filter(PaymentRecord.payment_date <= end_date)

        if status is not None:
            query = query.filter(PaymentRecord.status == status)

        return query.order_by(PaymentRecord.payment_date, PaymentRecord.id).all()

    def delete(self, payment: PaymentRecord) -> None:
        self.db.delete(payment)
        self.db.flush()
