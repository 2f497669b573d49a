from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ExtraItem(BaseModel):
    """An extra item eaten on top of the regular meals"""

    name: str = Field(..., min_length=1, max_length=100)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class MealCounts(BaseModel):
    breakfast: int = Field(default=0, ge=0, le=10)
    lunch: int = Field(default=0, ge=0, le=10)
    dinner: int = Field(default=0, ge=0, le=10)


class MealEntryCreate(MealCounts):
    """Schema for entering a day's meals"""

    meal_date: date
    extra_items: list[ExtraItem] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=1000)


class MealEntryUpdate(BaseModel):
    """Schema for changing an unlocked entry"""

    breakfast: Optional[int] = Field(None, ge=0, le=10)
    lunch: Optional[int] = Field(None, ge=0, le=10)
    dinner: Optional[int] = Field(None, ge=0, le=10)
    extra_items: Optional[list[ExtraItem]] = None
    notes: Optional[str] = Field(None, max_length=1000)


class MealEntryResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    mess_id: int
    member_id: int
    meal_date: date
    breakfast: int
    lunch: int
    dinner: int
    extra_items: list[ExtraItem]
    notes: Optional[str]
    locked_at: Optional[datetime]
    locked_by: Optional[int]
    created_at: datetime
    updated_at: datetime


class MealLockRequest(BaseModel):
    meal_date: date
    force: bool = False


class MealLockResponse(BaseModel):
    meal_date: date
    locked_count: int
