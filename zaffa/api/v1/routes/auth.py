from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from jwt import PyJWTError
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from zaffa.db.session import get_session
from zaffa.models.entities import ROLE_GROOM, User
from zaffa.schemas.base import ProfileSchema
from zaffa.security.jwt import create_access_token, create_refresh_token, decode_token
from zaffa.security.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from zaffa.services.audit import write_audit
from zaffa.services.households import create_household_for

router = APIRouter()

ROLE_PATTERN = "^(groom|bride)$"


def clean_email(value: str) -> str:
    email = value.strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValueError("invalid email")
    return email


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()


class RegisterPayload(BaseModel):
    email: str
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    first_name: str = Field(..., min_length=1, max_length=64)
    last_name: str = Field(..., min_length=1, max_length=64)
    role: str = Field(ROLE_GROOM, pattern=ROLE_PATTERN)
    create_household: bool = True

    @field_validator("email", mode="before")
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class LoginPayload(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in_sec: int


class RefreshPayload(BaseModel):
    refresh_token: str


def _issue_tokens(user_id: UUID) -> TokenResponse:
    access_token, access_ttl = create_access_token(str(user_id))
    refresh_token, _ = create_refresh_token(str(user_id))
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in_sec=access_ttl,
    )


@router.post("/register", response_model=ProfileSchema, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterPayload,
    request: Request,
    session: Session = Depends(get_session),
) -> User:
    if get_user_by_email(session, payload.email):
        write_audit(
            event_type="auth.register",
            success=False,
            request=request,
            payload={"email": payload.email},
        )
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role=payload.role,
    )
    session.add(user)
    session.flush()
    if payload.create_household:
        create_household_for(session, user)
    write_audit(
        session=session,
        event_type="auth.register",
        actor_user_id=user.id,
        success=True,
        request=request,
        payload={"email": payload.email, "create_household": payload.create_household},
    )
    session.commit()
    session.refresh(user)
    return user


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginPayload,
    request: Request,
    session: Session = Depends(get_session),
) -> TokenResponse:
    user = get_user_by_email(session, payload.email)
    valid, new_hash = verify_password(payload.password, user.password_hash) if user else (False, None)
    if not user or not valid or not user.is_active:
        write_audit(
            event_type="auth.login",
            success=False,
            request=request,
            payload={"email": payload.email},
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if new_hash:
        user.password_hash = new_hash
    write_audit(
        session=session,
        event_type="auth.login",
        actor_user_id=user.id,
        success=True,
        request=request,
        payload={"email": payload.email},
    )
    session.commit()
    return _issue_tokens(user.id)


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    payload: RefreshPayload,
    request: Request,
    session: Session = Depends(get_session),
) -> TokenResponse:
    try:
        decoded = decode_token(payload.refresh_token)
    except PyJWTError as exc:
        write_audit(event_type="auth.refresh", success=False, request=request)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token") from exc
    user = None
    if decoded.get("token_type") == "refresh":
        try:
            user = session.get(User, UUID(str(decoded.get("sub"))))
        except ValueError:
            user = None
    if user is None or not user.is_active:
        write_audit(event_type="auth.refresh", success=False, request=request)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    write_audit(
        session=session,
        event_type="auth.refresh",
        actor_user_id=user.id,
        success=True,
        request=request,
    )
    session.commit()
    return _issue_tokens(user.id)
