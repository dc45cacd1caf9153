from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from dealership.app.core.settings import settings
from dealership.app.db import models

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=[settings.password_hash_scheme], deprecated="auto")


class InvalidTokenError(ValueError):
    """Raised for a bearer token that is malformed, expired or wrongly signed."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(subject: str, expires_minutes: Optional[int] = None, **claims: Any) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    to_encode: Dict[str, Any] = {**claims, "sub": subject, "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError("Invalid token") from exc


def authenticate(session: Session, email: str, password: str) -> Optional[models.User]:
    user = session.execute(select(models.User).where(models.User.email == email.lower())).scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


def create_user(
    session: Session,
    email: str,
    password: str,
    *,
    full_name: Optional[str] = None,
    is_admin: bool = False,
) -> models.User:
    user = models.User(
        email=email.lower(),
        hashed_password=hash_password(password),
        full_name=full_name,
        is_admin=is_admin,
    )
    session.add(user)
    session.flush()
    return user
