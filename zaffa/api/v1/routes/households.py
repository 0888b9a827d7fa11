from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from zaffa.api.v1.deps.auth import get_current_user, require_household_access
from zaffa.db.session import get_session
from zaffa.models.entities import Household, User
from zaffa.schemas.base import HouseholdSchema, PartnerSchema
from zaffa.services.households import create_household_for

router = APIRouter()

HERO_TITLE_MAX = 50
HERO_SUBTITLE_MAX = 100
HERO_IMAGE_MAX_BYTES = 750 * 1024


class HouseholdDetail(HouseholdSchema):
    members: list[PartnerSchema]


class HeroSettings(BaseModel):
    hero_title: Optional[str] = Field(None, max_length=HERO_TITLE_MAX)
    hero_subtitle: Optional[str] = Field(None, max_length=HERO_SUBTITLE_MAX)
    hero_image_url: Optional[str] = Field(None, max_length=HERO_IMAGE_MAX_BYTES)


@router.post("/households/setup", response_model=HouseholdDetail, status_code=status.HTTP_201_CREATED)
def setup_household(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Household:
    if user.household_id is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already belongs to a household")
    household = create_household_for(session, user)
    session.commit()
    session.refresh(household)
    return household


@router.get("/households/{household_id}", response_model=HouseholdDetail)
def get_household(household: Household = Depends(require_household_access)) -> Household:
    return household


@router.get("/households/{household_id}/hero", response_model=HeroSettings)
def get_hero(household: Household = Depends(require_household_access)) -> HeroSettings:
    return HeroSettings(
        hero_title=household.hero_title,
        hero_subtitle=household.hero_subtitle,
        hero_image_url=household.hero_image_url,
    )


@router.put("/households/{household_id}/hero", response_model=HeroSettings)
def update_hero(
    payload: HeroSettings,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
) -> HeroSettings:
    household.hero_title = payload.hero_title.strip() if payload.hero_title else None
    household.hero_subtitle = payload.hero_subtitle.strip() if payload.hero_subtitle else None
    household.hero_image_url = payload.hero_image_url or None
    session.add(household)
    session.commit()
    return get_hero(household)
