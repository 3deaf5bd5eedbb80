"""JWT issuing/verification, password hashing and FastAPI auth dependencies.

Auth is optional for the public data endpoints: ``get_optional_user_id``
returns None for anonymous callers. Favorites and history require a user;
admin endpoints require an email listed in ADMIN_EMAILS.
"""

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

import models
from config import settings
from database import get_session
from errors import AuthenticationError, PermissionDeniedError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: models.User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    claims = {"sub": str(user.id), "email": user.email, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e
    if not payload.get("sub"):
        raise AuthenticationError("Invalid token subject")
    return payload


def is_admin(user: models.User) -> bool:
    return user.email.lower() in settings.admin_emails


async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> int | None:
    """User id from a valid bearer token; None for anonymous requests.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    payload = decode_token(credentials.credentials)
    try:
        return int(payload["sub"])
    except ValueError as e:
        raise AuthenticationError("Invalid token subject") from e


async def get_current_user(
    user_id: int | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> models.User:
    if user_id is None:
        raise AuthenticationError("Authentication required")
    user = await db.get(models.User, user_id)
    if user is None:
        raise AuthenticationError("User no longer exists")
    return user


async def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if not is_admin(user):
        logger.warning("Non-admin user %s tried an admin endpoint", user.id)
        raise PermissionDeniedError()
    return user
