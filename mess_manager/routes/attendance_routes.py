from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mess_manager.core.clock import Clock
from mess_manager.database import get_db
from mess_manager.dependencies import get_clock, get_mess_context
from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.attendance import AttendanceToken, TokenPurpose
from mess_manager.models.meal import MealType
from mess_manager.models.mess_context import MessContext
from mess_manager.schemas.attendance_schemas import (
    AttendanceResponse,
    ScanRequest,
    TokenIssueRequest,
    TokenResponse,
    TokenValidationResponse,
)
from mess_manager.services.attendance_service import AttendanceService, to_qr_content

router = APIRouter()


class ManualAttendanceRequest(BaseModel):
    member_id: int = Field(..., gt=0)
    meal_date: date
    meal_type: MealType
    notes: Optional[str] = Field(None, max_length=1000)


def _token_response(token: AttendanceToken) -> dict:
    return {
        "id": token.id,
        "token": token.token,
        "mess_id": token.mess_id,
        "member_id": token.member_id,
        "purpose": token.purpose,
        "issued_at": token.issued_at,
        "expires_at": token.expires_at,
        "usage_count": token.usage_count,
        "max_usage": token.max_usage,
        "is_active": token.is_active,
        "qr_content": to_qr_content(token),
    }


@router.post("/tokens", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def issue_token(
    issue_request: TokenIssueRequest,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Issue a signed QR token.

    - Members issue their own tokens; staff may issue for others and for guests
    - The response carries the QR content to encode
    """
    service = AttendanceService(db, clock)
    ttl = timedelta(hours=issue_request.ttl_hours) if issue_request.ttl_hours is not None else None

    if issue_request.purpose == TokenPurpose.GUEST_ACCESS:
        token = service.issue_guest(
            issue_request.guest_name, context, ttl=ttl, max_usage=issue_request.max_usage
        )
    else:
        token = service.issue(
            issue_request.member_id,
            issue_request.purpose,
            context,
            ttl=ttl,
            max_usage=issue_request.max_usage,
            meal_date=issue_request.meal_date,
            meal_type=issue_request.meal_type,
        )
    return _token_response(token)


@router.post("/tokens/validate", response_model=TokenValidationResponse)
async def validate_token(
    scan_request: ScanRequest,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Check a token without using it up."""
    service = AttendanceService(db, clock)
    token = service.validate(scan_request.qr_content, context.mess.id)
    return {
        "token_id": token.id,
        "member_id": token.member_id,
        "purpose": token.purpose,
        "payload": token.payload or {},
    }


@router.post("/tokens/{token_id}/revoke", response_model=TokenResponse)
async def revoke_token(
    token_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = AttendanceService(db, clock)
    return _token_response(service.revoke(token_id, context))


@router.post("/tokens/revoke-member/{member_id}")
async def revoke_member_tokens(
    member_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = AttendanceService(db, clock)
    return {"revoked": service.revoke_all_for_member(member_id, context)}


@router.post("/tokens/cleanup")
async def cleanup_expired_tokens(
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = AttendanceService(db, clock)
    return {"deactivated": service.cleanup_expired(context)}


@router.post("/scan", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
async def scan_token(
    scan_request: ScanRequest,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Scan a meal token and record attendance.

    - **Requires STAFF or ADMIN permissions**
    - One attendance per member, date and meal
    """
    service = AttendanceService(db, clock)
    return service.record_attendance(scan_request.qr_content, context)


@router.post("/manual", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
async def manual_attendance(
    manual_request: ManualAttendanceRequest,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = AttendanceService(db, clock)
    return service.record_manual_attendance(
        manual_request.member_id,
        manual_request.meal_date,
        manual_request.meal_type,
        context,
        manual_request.notes,
    )


@router.get("", response_model=list[AttendanceResponse])
async def list_attendance(
    meal_date: Optional[date] = None,
    record_status: Optional[ApprovalStatus] = Query(None, alias="status"),
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = AttendanceService(db, clock)
    return service.list_attendance(context, meal_date, record_status)


@router.post("/{attendance_id}/approve", response_model=AttendanceResponse)
async def approve_attendance(
    attendance_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = AttendanceService(db, clock)
    return service.approve_attendance(attendance_id, context)


@router.post("/{attendance_id}/reject", response_model=AttendanceResponse)
async def reject_attendance(
    attendance_id: int,
    context: MessContext = Depends(get_mess_context),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = AttendanceService(db, clock)
    return service.reject_attendance(attendance_id, context)
