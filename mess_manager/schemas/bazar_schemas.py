from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from mess_manager.models.approval import ApprovalStatus


class BazarItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    quantity: Decimal = Field(..., gt=0)
    unit: str = Field(default="pcs", max_length=20)
    unit_price: Decimal = Field(..., ge=0)


class BazarCreate(BaseModel):
    """Schema for recording a bazar purchase"""

    assignee_id: Optional[int] = Field(
        None, gt=0, description="Member on duty; defaults to the caller's membership"
    )
    bazar_date: date
    items: list[BazarItem] = Field(..., min_length=1)
    total_cost: Decimal = Field(..., ge=0)
    notes: Optional[str] = Field(None, max_length=1000)


class BazarUpdate(BaseModel):
    bazar_date: Optional[date] = None
    items: Optional[list[BazarItem]] = Field(None, min_length=1)
    total_cost: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)


class BazarResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    mess_id: int
    assignee_id: int
    bazar_date: date
    item_list: list[BazarItem]
    total_cost: Decimal
    notes: Optional[str]
    status: ApprovalStatus
    approved_at: Optional[datetime]
    approved_by: Optional[int]
    created_at: datetime


class NextAssigneeResponse(BaseModel):
    member_id: Optional[int]
    person_id: Optional[int]
