import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mess_manager.core.authorization import Action, authorize, ensure_mutable, require, require_owner_or
from mess_manager.core.clock import Clock, SystemClock
from mess_manager.core.exceptions import AlreadyApprovedException, DuplicateEntryException, NotFoundException
from mess_manager.database import atomic
from mess_manager.models.mess_context import MessContext
from mess_manager.models.payment import PaymentRecord, PaymentStatus
from mess_manager.models.statement import to_money
from mess_manager.repositories.member_repository import MemberRepository
from mess_manager.repositories.payment_repository import PaymentRepository
from mess_manager.schemas.ledger_schemas import PaymentCreate, PaymentUpdate

logger = logging.getLogger(__name__)


class PaymentService:
    """Service layer for member payments"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.payment_repo = PaymentRepository(db)
        self.member_repo = MemberRepository(db)

    def record_payment(self, data: PaymentCreate, context: MessContext) -> PaymentRecord:
        """
        Record a payment as pending.

        Payments may be recorded for members who already left so that
        outstanding dues can be settled.

        Raises:
            ForbiddenException: If the caller may not record for that member
            NotFoundException: If the member is not in this mess
            DuplicateEntryException: If the member already paid on that date
        """
        member_id = data.member_id or context.member.id
        require_owner_or(context, member_id, Action.RECORD_OWN_PAYMENT, Action.RECORD_FOR_OTHERS)

        member = self.member_repo.get_by_id_and_mess(member_id, context.mess.id)
        if not member:
            raise NotFoundException(f"Member {member_id} not found in this mess")

        payment = PaymentRecord(
            mess_id=context.mess.id,
            member_id=member.id,
            amount=data.amount,
            payment_date=data.payment_date,
            method=data.method,
            transaction_ref=data.transaction_ref,
            notes=data.notes,
            status=PaymentStatus.PENDING,
            created_by=context.person.id,
        )
        try:
            with atomic(self.db):
                self.payment_repo.create(payment)
        except IntegrityError:
            raise DuplicateEntryException("A payment already exists for this member and date")

        logger.info(
            "Payment %s recorded: mess=%s member=%s amount=%s method=%s",
            payment.id, context.mess.id, member.id, data.amount, data.method.value,
        )
        return payment

    def get_payment(self, payment_id: int, context: MessContext) -> PaymentRecord:
        require(context, Action.VIEW_MESS)
        payment = self.payment_repo.get_by_id_and_mess(payment_id, context.mess.id)
        if not payment:
            raise NotFoundException(f"Payment {payment_id} not found")
        return payment

    def list_payments(
        self,
        context: MessContext,
        member_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[PaymentStatus] = None,
    ) -> list[PaymentRecord]:
        require(context, Action.VIEW_MESS)
        if not authorize(context, Action.VIEW_REPORTS, context.mess):
            member_id = context.member.id
        return self.payment_repo.get_with_filters(
            context.mess.id, member_id, start_date, end_date, status
        )

    def update_payment(self, payment_id: int, data: PaymentUpdate, context: MessContext) -> PaymentRecord:
        payment = self.get_payment(payment_id, context)
        require_owner_or(context, payment.member_id, Action.RECORD_OWN_PAYMENT, Action.RECORD_FOR_OTHERS)
        ensure_mutable(payment, context)

        try:
            with atomic(self.db):
                for field, value in data.model_dump(exclude_unset=True).items():
                    if value is None and field not in ("transaction_ref", "notes"):
                        continue
                    setattr(payment, field, value)
                self.db.flush()
        except IntegrityError:
            raise DuplicateEntryException("A payment already exists for this member and date")
        return payment

    def delete_payment(self, payment_id: int, context: MessContext) -> None:
        payment = self.get_payment(payment_id, context)
        require_owner_or(context, payment.member_id, Action.RECORD_OWN_PAYMENT, Action.RECORD_FOR_OTHERS)
        ensure_mutable(payment, context)

        with atomic(self.db):
            self.payment_repo.delete(payment)
        logger.info("Payment %s deleted by person %s", payment_id, context.person.id)

    def approve_payment(self, payment_id: int, context: MessContext) -> PaymentRecord:
        """
        Raises:
            AlreadyApprovedException: If the payment is not pending
        """
        require(context, Action.APPROVE_RECORDS)
        payment = self.get_payment(payment_id, context)

        with atomic(self.db):
            payment.approve(context.person.id, self.clock.now())
        logger.info("Payment %s approved by person %s", payment.id, context.person.id)
        return payment

    def complete_payment(self, payment_id: int, context: MessContext) -> PaymentRecord:
        """
        Mark a payment as received. Only completed payments count towards
        a member's statement.

        Raises:
            ValidationException: If the payment is already completed
        """
        require(context, Action.APPROVE_RECORDS)
        payment = self.get_payment(payment_id, context)

        with atomic(self.db):
            payment.complete(context.person.id, self.clock.now())
        logger.info("Payment %s completed by person %s", payment.id, context.person.id)
        return payment

    def get_pending_payments(self, context: MessContext) -> dict:
        """Payments awaiting approval, oldest first, with their count and total."""
        require(context, Action.APPROVE_RECORDS)
        payments = self.payment_repo.get_with_filters(
            context.mess.id, None, None, None, PaymentStatus.PENDING
        )
        return {
            "payments": payments,
            "total_count": len(payments),
            "total_amount": to_money(sum((Decimal(p.amount) for p in payments), Decimal("0"))),
        }

    def bulk_approve_payments(self, payment_ids: list[int], context: MessContext) -> dict:
        """
        Approve several payments in one transaction.

        Payments that are no longer pending are skipped and unknown ids are
        reported as failed; neither aborts the rest of the batch.

        Returns:
            Per-payment results plus approved, skipped and failed counts
        """
        require(context, Action.APPROVE_RECORDS)
        now = self.clock.now()
        results = []

        with atomic(self.db):
            for payment_id in payment_ids:
                payment = self.payment_repo.get_by_id_and_mess(payment_id, context.mess.id)
                if not payment:
                    results.append({"payment_id": payment_id, "status": "failed", "detail": "Payment not found"})
                    continue
                try:
                    payment.approve(context.person.id, now)
                except AlreadyApprovedException as e:
                    results.append({"payment_id": payment_id, "status": "skipped", "detail": str(e)})
                    continue
                results.append({"payment_id": payment_id, "status": "approved", "detail": None})

        counts = {
            status: sum(1 for r in results if r["status"] == status)
            for status in ("approved", "skipped", "failed")
        }
        logger.info(
            "Bulk approval in mess %s by person %s: %d approved, %d skipped, %d failed",
            context.mess.id, context.person.id, counts["approved"], counts["skipped"], counts["failed"],
        )
        return {
            "results": results,
            "approved_count": counts["approved"],
            "skipped_count": counts["skipped"],
            "failed_count": counts["failed"],
        }
