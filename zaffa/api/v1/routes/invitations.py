from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from zaffa.api.v1.deps.auth import get_current_user
from zaffa.api.v1.routes.auth import clean_email, get_user_by_email
from zaffa.db.session import get_session
from zaffa.models.entities import (
    INVITATION_ACCEPTED,
    INVITATION_DECLINED,
    INVITATION_PENDING,
    Household,
    Invitation,
    User,
)
from zaffa.observability import log_structured
from zaffa.schemas.base import InvitationSchema
from zaffa.services.activity import JOIN_HOUSEHOLD, log_activity
from zaffa.services.households import is_full

router = APIRouter()


class InvitationCreate(BaseModel):
    email: str

    @field_validator("email", mode="before")
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class InvitationList(BaseModel):
    received: list[InvitationSchema]
    sent: list[InvitationSchema]


def _conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def _get_invitation_for(session: Session, invitation_id: UUID, user: User) -> Invitation:
    invitation = session.get(Invitation, invitation_id)
    if invitation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    if invitation.invitee_email != user.email:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invitation is addressed to another user")
    return invitation


@router.post("/invitations", response_model=InvitationSchema, status_code=status.HTTP_201_CREATED)
def create_invitation(
    payload: InvitationCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Invitation:
    if payload.email == user.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot invite yourself")
    household = user.household
    if household is None:
        raise _conflict("Set up a household before inviting a partner")
    if is_full(household):
        raise _conflict("Household already has two members")
    invitee = get_user_by_email(session, payload.email)
    if invitee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No user registered with that email")
    if invitee.household is not None and len(invitee.household.members) > 1:
        raise _conflict("User already shares a household")
    duplicate = session.execute(
        select(Invitation.id).where(
            Invitation.household_id == household.id,
            Invitation.invitee_email == payload.email,
            Invitation.status == INVITATION_PENDING,
        )
    ).first()
    if duplicate:
        raise _conflict("An invitation is already pending for this user")
    invitation = Invitation(
        inviter_id=user.id,
        inviter_name=user.first_name,
        inviter_role=user.role,
        invitee_email=payload.email,
        household_id=household.id,
        status=INVITATION_PENDING,
    )
    session.add(invitation)
    session.commit()
    session.refresh(invitation)
    return invitation


@router.get("/invitations", response_model=InvitationList)
def list_invitations(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> InvitationList:
    received = session.execute(
        select(Invitation)
        .where(Invitation.invitee_email == user.email, Invitation.status == INVITATION_PENDING)
        .order_by(Invitation.created_at.desc())
    ).scalars().all()
    sent = session.execute(
        select(Invitation).where(Invitation.inviter_id == user.id).order_by(Invitation.created_at.desc())
    ).scalars().all()
    return InvitationList(
        received=[InvitationSchema.model_validate(row) for row in received],
        sent=[InvitationSchema.model_validate(row) for row in sent],
    )


@router.post("/invitations/{invitation_id}/accept", response_model=InvitationSchema)
def accept_invitation(
    invitation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Invitation:
    """Move the caller into the inviting household.

    The caller's previous household is removed with all of its data when they
    were its only member. Everything happens in one commit.
    """
    invitation = _get_invitation_for(session, invitation_id, user)
    if invitation.status != INVITATION_PENDING:
        raise _conflict("Invitation is no longer pending")
    target = session.get(Household, invitation.household_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Household not found")

    if user.household_id == target.id:
        invitation.status = INVITATION_ACCEPTED
        session.commit()
        return invitation
    if is_full(target):
        raise _conflict("Household already has two members")

    previous = user.household
    if previous is not None and len(previous.members) > 1:
        raise _conflict("You already share a household with a partner")

    user.household = target
    invitation.status = INVITATION_ACCEPTED
    session.flush()
    if previous is not None:
        session.delete(previous)
    log_activity(
        session,
        target.id,
        user,
        JOIN_HOUSEHOLD,
        f"{user.first_name} joined the household",
    )
    session.commit()
    log_structured(
        logging.INFO,
        "household_joined",
        household_id=str(target.id),
        user_id=str(user.id),
        replaced_household=str(previous.id) if previous is not None else None,
    )
    return invitation


@router.post("/invitations/{invitation_id}/decline", response_model=InvitationSchema)
def decline_invitation(
    invitation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Invitation:
    invitation = _get_invitation_for(session, invitation_id, user)
    if invitation.status != INVITATION_PENDING:
        raise _conflict("Invitation is no longer pending")
    invitation.status = INVITATION_DECLINED
    session.commit()
    return invitation
