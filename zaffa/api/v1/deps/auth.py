from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jwt import PyJWTError
from sqlalchemy.orm import Session

from zaffa.db.session import get_session
from zaffa.models.entities import Household, User
from zaffa.security.jwt import decode_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    try:
        payload = decode_token(token)
    except PyJWTError as exc:
        raise _unauthenticated("Invalid authentication token") from exc
    if payload.get("token_type") != "access":
        raise _unauthenticated("Access tokens only")
    subject = payload.get("sub")
    try:
        user_id = UUID(str(subject))
    except ValueError as exc:
        raise _unauthenticated("Token missing subject") from exc
    user = session.get(User, user_id)
    if user is None:
        raise _unauthenticated("User not found")
    if not user.is_active:
        raise _unauthenticated("Inactive user")
    return user


def require_household_access(
    household_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Household:
    """Resolve the household in the path, hiding households the caller is not part of."""
    household = session.get(Household, household_id)
    if household is None or user.household_id != household.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Household not found or access denied",
        )
    return household
