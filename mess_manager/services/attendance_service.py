"""
QR attendance tokens.

A token is presented as a JSON document (the QR content) carrying the token
value, its identifying fields and an HMAC signature over
``subject|purpose|issued_at``. Validation never consumes; consumption is a
single conditional update so one use cannot be taken twice.
"""

import hmac
import json
import logging
import secrets
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from mess_manager.config import settings
from mess_manager.core.authorization import Action, require, require_owner_or
from mess_manager.core.clock import Clock, SystemClock
from mess_manager.core.exceptions import (
    DuplicateEntryException,
    ExhaustedException,
    ExpiredException,
    InvalidSignatureException,
    NotFoundException,
    ValidationException,
)
from mess_manager.core.security import sign_token_payload, verify_token_signature
from mess_manager.database import atomic
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.attendance import Attendance, AttendanceToken, TokenPurpose
from mess_manager.models.meal import MealType
from mess_manager.models.mess_context import MessContext
from mess_manager.repositories.attendance_repository import AttendanceRepository
from mess_manager.repositories.member_repository import MemberRepository
from mess_manager.repositories.mess_repository import MessRepository

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("token", "mess_id", "purpose", "issued_at", "signature")


def _default_limits(purpose: TokenPurpose) -> tuple[timedelta, int]:
    if purpose == TokenPurpose.MEAL_ATTENDANCE:
        return timedelta(hours=settings.MEAL_TOKEN_TTL_HOURS), 1
    if purpose == TokenPurpose.MESS_ACCESS:
        return timedelta(hours=settings.ACCESS_TOKEN_TTL_HOURS), settings.ACCESS_TOKEN_MAX_USAGE
    return timedelta(hours=settings.GUEST_TOKEN_TTL_HOURS), 1


def signing_subject(member_id: Optional[int], guest_name: Optional[str]) -> str:
    if member_id is not None:
        return str(member_id)
    return f"guest:{guest_name}"


def to_qr_content(token: AttendanceToken) -> str:
    """Serialise a token into the document encoded in its QR image."""
    claims: dict[str, Any] = {
        "token": token.token,
        "mess_id": token.mess_id,
        "member_id": token.member_id,
        "purpose": token.purpose.value,
        "issued_at": token.issued_at.isoformat(),
    }
    claims.update(token.payload or {})
    claims["signature"] = token.signature
    return json.dumps(claims, sort_keys=True)


class AttendanceService:
    """Issue, validate and consume attendance tokens; record meal attendance"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.attendance_repo = AttendanceRepository(db)
        self.member_repo = MemberRepository(db)
        self.mess_repo = MessRepository(db)

    def _now(self) -> datetime:
        # Stored timestamps are second precision on every backend
        return self.clock.now().replace(microsecond=0)

    def _create_token(
        self,
        context: MessContext,
        member_id: Optional[int],
        purpose: TokenPurpose,
        payload: dict[str, Any],
        ttl: Optional[timedelta],
        max_usage: Optional[int],
    ) -> AttendanceToken:
        default_ttl, default_usage = _default_limits(purpose)
        if ttl is None:
            ttl = default_ttl
        if max_usage is None:
            max_usage = default_usage
        if ttl <= timedelta(0):
            raise ValidationException("Token lifetime must be positive")
        if max_usage < 1:
            raise ValidationException("max_usage must be at least 1")

        issued_at = self._now()
        signature = sign_token_payload(
            signing_subject(member_id, payload.get("guest_name")),
            purpose.value,
            issued_at.isoformat(),
        )
        token = AttendanceToken(
            token=secrets.token_urlsafe(32),
            mess_id=context.mess.id,
            member_id=member_id,
            purpose=purpose,
            issued_at=issued_at,
            expires_at=issued_at + ttl,
            usage_count=0,
            max_usage=max_usage,
            is_active=True,
            signature=signature,
            payload=payload,
        )
        with atomic(self.db):
            self.attendance_repo.create_token(token)

        logger.info(
            "Token %s issued: mess=%s member=%s purpose=%s expires=%s",
            token.id, context.mess.id, member_id, purpose.value, token.expires_at,
        )
        return token

    def issue(
        self,
        member_id: Optional[int],
        purpose: TokenPurpose,
        context: MessContext,
        ttl: Optional[timedelta] = None,
        max_usage: Optional[int] = None,
        meal_date: Optional[date] = None,
        meal_type: Optional[MealType] = None,
    ) -> AttendanceToken:
        """
        Issue a signed token for a member.

        Args:
            member_id: Member the token belongs to; defaults to the caller
            purpose: meal_attendance or mess_access
            context: Actor context
            ttl: Lifetime; defaults depend on the purpose
            max_usage: Number of uses; defaults depend on the purpose
            meal_date: Meal the token admits to (meal_attendance only)
            meal_type: Meal the token admits to (meal_attendance only)

        Raises:
            ForbiddenException: If the caller may not issue for that member
            NotFoundException: If the member is not in this mess
            ValidationException: If the member is inactive or meal fields are missing
        """
        if purpose == TokenPurpose.GUEST_ACCESS:
            raise ValidationException("Use issue_guest for guest tokens")

        member_id = member_id or context.member.id
        require_owner_or(context, member_id, Action.ISSUE_OWN_TOKEN, Action.ISSUE_TOKEN_FOR_OTHERS)

        member = self.member_repo.get_by_id_and_mess(member_id, context.mess.id)
        if not member:
            raise NotFoundException(f"Member {member_id} not found in this mess")
        if not member.is_active:
            raise ValidationException(f"Member {member_id} is not an active member")

        payload: dict[str, Any] = {}
        if purpose == TokenPurpose.MEAL_ATTENDANCE:
            if meal_date is None or meal_type is None:
                raise ValidationException("meal_date and meal_type are required for meal tokens")
            payload = {"meal_date": meal_date.isoformat(), "meal_type": meal_type.value}

        return self._create_token(context, member.id, purpose, payload, ttl, max_usage)

    def issue_guest(
        self,
        guest_name: str,
        context: MessContext,
        ttl: Optional[timedelta] = None,
        max_usage: Optional[int] = None,
    ) -> AttendanceToken:
        """Issue a guest_access token carrying a guest name instead of a member."""
        require(context, Action.ISSUE_TOKEN_FOR_OTHERS)
        if not guest_name or not guest_name.strip():
            raise ValidationException("guest_name is required for guest tokens")
        return self._create_token(
            context, None, TokenPurpose.GUEST_ACCESS, {"guest_name": guest_name.strip()}, ttl, max_usage
        )

    def validate(self, qr_content: str, mess_id: int) -> AttendanceToken:
        """
        Check a presented token without consuming it.

        Raises:
            InvalidSignatureException: If the content is malformed or the signature is wrong
            NotFoundException: If no such token exists in the mess
            ExpiredException: If the token is past its expiry
            ExhaustedException: If the token is used up or revoked
        """
        try:
            claims = json.loads(qr_content)
            if not isinstance(claims, dict):
                raise ValueError("QR content must be an object")
            missing = [name for name in REQUIRED_CLAIMS if name not in claims]
            if missing:
                raise ValueError(f"missing {', '.join(missing)}")
            subject = signing_subject(claims.get("member_id"), claims.get("guest_name"))
            valid = verify_token_signature(
                str(claims["signature"]), subject, str(claims["purpose"]), str(claims["issued_at"])
            )
        except (ValueError, TypeError) as e:
            logger.warning("Malformed token presented to mess %s: %s", mess_id, e)
            raise InvalidSignatureException("Malformed token")

        if not valid:
            logger.warning("Token with bad signature presented to mess %s", mess_id)
            raise InvalidSignatureException("Invalid token signature")

        token = self.attendance_repo.get_token(str(claims["token"]), mess_id)
        if not token:
            raise NotFoundException("Token not found")
        if not hmac.compare_digest(token.signature, str(claims["signature"])):
            logger.warning("Token %s presented with a foreign signature", token.id)
            raise InvalidSignatureException("Invalid token signature")

        if token.is_expired(self.clock.now()):
            raise ExpiredException("Token has expired")
        if token.is_exhausted:
            logger.warning("Exhausted token %s presented to mess %s", token.id, mess_id)
            raise ExhaustedException("Token has no remaining uses")
        return token

    def _take_use(self, token: AttendanceToken) -> bool:
        taken = self.attendance_repo.increment_usage(token.id, self.clock.now())
        if taken:
            self.attendance_repo.deactivate_if_exhausted(token.id)
        return taken

    def consume(self, token: AttendanceToken) -> bool:
        """
        Take one use of a token.

        Returns:
            True if a use was taken; False if the token was already exhausted,
            revoked or expired by the time of the update
        """
        with atomic(self.db):
            taken = self._take_use(token)
        self.db.refresh(token)

        if taken:
            logger.info("Token %s consumed (%d/%d)", token.id, token.usage_count, token.max_usage)
        else:
            logger.warning("Token %s could not be consumed", token.id)
        return taken

    def record_attendance(self, qr_content: str, context: MessContext) -> Attendance:
        """
        Scan a meal token and record the member's attendance as pending.

        The mess row is locked for the duration so the duplicate check and
        the token consumption are serialised with other scans.

        Raises:
            ForbiddenException: If the caller may not scan tokens
            ValidationException: If the token is not a meal_attendance token
            DuplicateEntryException: If attendance for that meal already exists
            ExhaustedException: If the last use was taken concurrently
            (plus everything validate() raises)
        """
        require(context, Action.SCAN_TOKEN)

        with atomic(self.db):
            mess = self.mess_repo.get_for_update(context.mess.id)
            if not mess:
                raise NotFoundException(f"Mess {context.mess.id} not found")

            token = self.validate(qr_content, mess.id)
            if token.purpose != TokenPurpose.MEAL_ATTENDANCE or token.member_id is None:
                raise ValidationException("Token is not a meal attendance token")

            meal_date = date.fromisoformat(token.payload["meal_date"])
            meal_type = MealType(token.payload["meal_type"])
            if self.attendance_repo.find_non_rejected(token.member_id, meal_date, meal_type):
                raise DuplicateEntryException(
                    f"Attendance already recorded for {meal_type.value} on {meal_date.isoformat()}"
                )

            if not self._take_use(token):
                raise ExhaustedException("Token has no remaining uses")

            attendance = Attendance(
                mess_id=mess.id,
                member_id=token.member_id,
                meal_type=meal_type,
                meal_date=meal_date,
                scan_time=self.clock.now(),
                token_id=token.id,
                is_manual_entry=False,
                scanned_by=context.person.id,
                status=ApprovalStatus.PENDING,
            )
            self.attendance_repo.create_attendance(attendance)

        logger.info(
            "Attendance %s recorded: member=%s %s %s",
            attendance.id, attendance.member_id, meal_date, meal_type.value,
        )
        return attendance

    def record_manual_attendance(
        self,
        member_id: int,
        meal_date: date,
        meal_type: MealType,
        context: MessContext,
        notes: Optional[str] = None,
    ) -> Attendance:
        """Manager entry of an attendance without a token; approved immediately."""
        require(context, Action.APPROVE_RECORDS)

        member = self.member_repo.get_by_id_and_mess(member_id, context.mess.id)
        if not member:
            raise NotFoundException(f"Member {member_id} not found in this mess")

        now = self.clock.now()
        with atomic(self.db):
            self.mess_repo.get_for_update(context.mess.id)
            if self.attendance_repo.find_non_rejected(member.id, meal_date, meal_type):
                raise DuplicateEntryException(
                    f"Attendance already recorded for {meal_type.value} on {meal_date.isoformat()}"
                )
            attendance = Attendance(
                mess_id=context.mess.id,
                member_id=member.id,
                meal_type=meal_type,
                meal_date=meal_date,
                scan_time=now,
                is_manual_entry=True,
                scanned_by=context.person.id,
                notes=notes,
            )
            attendance.approve(context.person.id, now)
            self.attendance_repo.create_attendance(attendance)
        return attendance

    def _get_attendance(self, attendance_id: int, context: MessContext) -> Attendance:
        attendance = self.attendance_repo.get_attendance(attendance_id, context.mess.id)
        if not attendance:
            raise NotFoundException(f"Attendance {attendance_id} not found")
        return attendance

    def approve_attendance(self, attendance_id: int, context: MessContext) -> Attendance:
        require(context, Action.APPROVE_RECORDS)
        attendance = self._get_attendance(attendance_id, context)
        with atomic(self.db):
            attendance.approve(context.person.id, self.clock.now())
        return attendance

    def reject_attendance(self, attendance_id: int, context: MessContext) -> Attendance:
        require(context, Action.APPROVE_RECORDS)
        attendance = self._get_attendance(attendance_id, context)
        with atomic(self.db):
            attendance.reject(context.person.id, self.clock.now())
        return attendance

    def list_attendance(
        self,
        context: MessContext,
        meal_date: Optional[date] = None,
        status: Optional[ApprovalStatus] = None,
    ) -> list[Attendance]:
        require(context, Action.SCAN_TOKEN)
        return self.attendance_repo.get_attendances(context.mess.id, meal_date, status)

    def revoke(self, token_id: int, context: MessContext) -> AttendanceToken:
        """Deactivate a single token; later validation reports it exhausted."""
        token = self.attendance_repo.get_token_by_id(token_id, context.mess.id)
        if not token:
            raise NotFoundException(f"Token {token_id} not found")
        if token.member_id is None:
            require(context, Action.ISSUE_TOKEN_FOR_OTHERS)
        else:
            require_owner_or(
                context, token.member_id, Action.ISSUE_OWN_TOKEN, Action.ISSUE_TOKEN_FOR_OTHERS
            )

        with atomic(self.db):
            token.is_active = False
        logger.info("Token %s revoked by person %s", token.id, context.person.id)
        return token

    def revoke_all_for_member(self, member_id: int, context: MessContext) -> int:
        require(context, Action.MANAGE_MEMBERS)
        if not self.member_repo.get_by_id_and_mess(member_id, context.mess.id):
            raise NotFoundException(f"Member {member_id} not found in this mess")

        with atomic(self.db):
            count = self.attendance_repo.deactivate_for_member(member_id, context.mess.id)
        logger.info("Revoked %d tokens of member %s", count, member_id)
        return count

    def cleanup_expired(self, context: MessContext) -> int:
        """Deactivate every token of the mess that is past its expiry."""
        require(context, Action.MANAGE_MESS)
        with atomic(self.db):
            count = self.attendance_repo.deactivate_expired(context.mess.id, self.clock.now())
        logger.info("Deactivated %d expired tokens in mess %s", count, context.mess.id)
        return count
