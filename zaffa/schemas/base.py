from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def strip_text(value: Any) -> Any:
    """Trim surrounding whitespace before length checks run."""
    if isinstance(value, str):
        return value.strip()
    return value


class TimestampedSchema(BaseModel):
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileSchema(TimestampedSchema):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    household_id: Optional[UUID]
    theme: str = Field(..., validation_alias=AliasChoices("effective_theme", "theme"))
    theme_override: bool


class PartnerSchema(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class HouseholdSchema(TimestampedSchema):
    id: UUID
    member_ids: list[UUID]
    hero_title: Optional[str]
    hero_subtitle: Optional[str]
    hero_image_url: Optional[str]


class CategorySchema(TimestampedSchema):
    id: UUID
    household_id: UUID
    parent_id: Optional[UUID]
    name: str


class ItemSchema(TimestampedSchema):
    id: UUID
    household_id: UUID
    category_id: UUID
    name: str
    min_price: float
    max_price: float
    is_purchased: bool
    final_price: Optional[float]
    priority: str


class TotalsSchema(BaseModel):
    expected_total: float
    paid_total: float
    item_count: int
    purchased_count: int

    model_config = ConfigDict(from_attributes=True)


class InvitationSchema(TimestampedSchema):
    id: UUID
    inviter_id: Optional[UUID]
    inviter_name: str
    inviter_role: str
    invitee_email: str
    household_id: UUID
    status: str


class AnalysisSchema(TimestampedSchema):
    id: UUID
    household_id: UUID
    title: str
    category_ids: list[UUID]
    is_featured: bool


class StatsSchema(BaseModel):
    total_expected: float
    total_paid: float
    total_items: int
    purchased_items: int
    progress: float

    model_config = ConfigDict(from_attributes=True)


class ActivitySchema(BaseModel):
    id: UUID
    household_id: UUID
    user_id: Optional[UUID]
    user_name: str
    action: str
    details: str
    payload: Optional[dict[str, Any]] = None
    timestamp: datetime
    reverted_at: Optional[datetime]
    revertible: bool = False
