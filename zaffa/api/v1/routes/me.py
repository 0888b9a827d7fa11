from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from zaffa.api.v1.deps.auth import get_current_user
from zaffa.db.session import get_session
from zaffa.models.entities import INVITATION_PENDING, Invitation, User
from zaffa.schemas.base import HouseholdSchema, InvitationSchema, PartnerSchema, ProfileSchema
from zaffa.services.households import can_invite_partner, partner_of

router = APIRouter()


class MeResponse(BaseModel):
    profile: ProfileSchema
    household: Optional[HouseholdSchema]
    partner: Optional[PartnerSchema]
    can_invite_partner: bool
    pending_invitations: list[InvitationSchema]


class ThemeOut(BaseModel):
    theme: str
    theme_override: bool
    role: str


class ThemeUpdate(BaseModel):
    theme: Optional[str] = Field(None, pattern="^(groom|bride)$")


def _theme_out(user: User) -> ThemeOut:
    return ThemeOut(theme=user.effective_theme, theme_override=user.theme_override, role=user.role)


@router.get("/me", response_model=MeResponse)
def read_me(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> MeResponse:
    household = user.household
    partner = partner_of(household, user)
    invitations = session.execute(
        select(Invitation)
        .where(Invitation.invitee_email == user.email, Invitation.status == INVITATION_PENDING)
        .order_by(Invitation.created_at.desc())
    ).scalars().all()
    return MeResponse(
        profile=ProfileSchema.model_validate(user),
        household=HouseholdSchema.model_validate(household) if household else None,
        partner=PartnerSchema.model_validate(partner) if partner else None,
        can_invite_partner=can_invite_partner(household),
        pending_invitations=[InvitationSchema.model_validate(invitation) for invitation in invitations],
    )


@router.get("/me/theme", response_model=ThemeOut)
def read_theme(user: User = Depends(get_current_user)) -> ThemeOut:
    return _theme_out(user)


@router.put("/me/theme", response_model=ThemeOut)
def update_theme(
    payload: ThemeUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ThemeOut:
    # A null theme goes back to following the role.
    user.theme = payload.theme
    user.theme_override = payload.theme is not None
    session.add(user)
    session.commit()
    return _theme_out(user)
