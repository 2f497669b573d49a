from datetime import datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from mess_manager.models.member import MemberStatus
from mess_manager.models.mess import PaymentCycle
from mess_manager.models.role import MemberRole


class MessCreate(BaseModel):
    """Schema for creating a new mess"""

    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = Field(None, max_length=1000)
    breakfast_rate: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=8, decimal_places=2)
    lunch_rate: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=8, decimal_places=2)
    dinner_rate: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=8, decimal_places=2)
    meal_cutoff_time: Optional[time] = None
    auto_bazar_rotation: bool = True
    max_members: Optional[int] = Field(None, ge=1)
    payment_cycle: PaymentCycle = PaymentCycle.MONTHLY


class MessUpdate(BaseModel):
    """Update mess settings (ADMIN only)"""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, max_length=1000)
    breakfast_rate: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    lunch_rate: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    dinner_rate: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    meal_cutoff_time: Optional[time] = None
    auto_bazar_rotation: Optional[bool] = None
    max_members: Optional[int] = Field(None, ge=1)
    payment_cycle: Optional[PaymentCycle] = None


class MessResponse(BaseModel):
    """Mess details response"""

    model_config = {"from_attributes": True}

    id: int
    name: str
    address: Optional[str]
    manager_id: Optional[int]
    breakfast_rate: Decimal
    lunch_rate: Decimal
    dinner_rate: Decimal
    meal_cutoff_time: time
    auto_bazar_rotation: bool
    max_members: Optional[int]
    payment_cycle: PaymentCycle
    created_at: datetime
    updated_at: datetime


class MemberCreate(BaseModel):
    """Add a person to the mess"""

    auth_user_id: str = Field(..., min_length=1, description="Auth service subject of the person")
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    role: MemberRole = Field(default=MemberRole.MEMBER)
    room_number: Optional[str] = Field(None, max_length=50)
    monthly_fixed_cost: Optional[Decimal] = Field(None, ge=0)
    deposit_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    notes: Optional[str] = Field(None, max_length=1000)
    approve: bool = Field(default=False, description="Approve immediately instead of leaving pending")


class MemberResponse(BaseModel):
    """Membership details"""

    model_config = {"from_attributes": True}

    id: int
    mess_id: int
    person_id: Optional[int]
    role: MemberRole
    status: MemberStatus
    room_number: Optional[str]
    monthly_fixed_cost: Optional[Decimal]
    deposit_amount: Decimal
    joined_at: datetime
    left_at: Optional[datetime]
    approved_at: Optional[datetime]


class ExpenseCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    rate: Decimal = Field(default=Decimal("0.00"), ge=0)


class ExpenseCategoryResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    mess_id: int
    name: str
    description: Optional[str]
    rate: Decimal
    is_default: bool
    is_active: bool


class RateTableResponse(BaseModel):
    """Per-meal prices and category rates of a mess"""

    breakfast: Decimal
    lunch: Decimal
    dinner: Decimal
    total_daily: Decimal
    categories: dict[int, Decimal]
