from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from mess_manager.models.approval import ApprovalStatus
from mess_manager.models.attendance import TokenPurpose
from mess_manager.models.meal import MealType


class TokenIssueRequest(BaseModel):
    """Issue a QR token for a member (or a guest)"""

    purpose: TokenPurpose
    member_id: Optional[int] = Field(None, gt=0, description="Defaults to the caller's membership")
    meal_date: Optional[date] = None
    meal_type: Optional[MealType] = None
    guest_name: Optional[str] = Field(None, min_length=1, max_length=255)
    ttl_hours: Optional[int] = Field(None, ge=1, le=24 * 31)
    max_usage: Optional[int] = Field(None, ge=1, le=10_000)

    @model_validator(mode="after")
    def check_purpose_fields(self):
        if self.purpose == TokenPurpose.MEAL_ATTENDANCE and (
            self.meal_date is None or self.meal_type is None
        ):
            raise ValueError("meal_date and meal_type are required for meal attendance tokens")
        if self.purpose == TokenPurpose.GUEST_ACCESS and not self.guest_name:
            raise ValueError("guest_name is required for guest tokens")
        return self


class TokenResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    token: str
    mess_id: int
    member_id: Optional[int]
    purpose: TokenPurpose
    issued_at: datetime
    expires_at: datetime
    usage_count: int
    max_usage: int
    is_active: bool
    qr_content: str


class ScanRequest(BaseModel):
    qr_content: str = Field(..., min_length=1)


class TokenValidationResponse(BaseModel):
    token_id: int
    member_id: Optional[int]
    purpose: TokenPurpose
    payload: dict[str, Any]


class AttendanceResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    mess_id: int
    member_id: int
    meal_type: MealType
    meal_date: date
    scan_time: datetime
    status: ApprovalStatus
    is_manual_entry: bool
