from __future__ import annotations

from typing import Optional, Tuple

from passlib.context import CryptContext

MIN_PASSWORD_LENGTH = 6

pwd_context = CryptContext(
    schemes=["argon2", "pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__default_rounds=120000,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> Tuple[bool, Optional[str]]:
    """Check ``password`` and return a replacement hash when the stored one is outdated."""
    return pwd_context.verify_and_update(password, hashed)
