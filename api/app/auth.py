# auth.py

"""Bearer token authentication resolving callers to a :class:`Principal`.

Tokens are HS256 JWTs whose ``sub`` claim is the user's email. The role is
always read from the user directory, never from the token, so a role change
takes effect on the next request.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from .db import get_session
from .domain import Role
from .repos_sqlalchemy import users_repo_sql
from .schemas import Principal

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT containing the provided claims."""

    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> Principal:
    """Resolve the caller from the ``Authorization`` header or raise 401."""

    if credentials is None:
        raise _credentials_exception()
    try:
        payload = jwt.decode(
            credentials.credentials,
            get_settings().secret_key,
            algorithms=[ALGORITHM],
        )
    except jwt.PyJWTError as exc:
        logger.info("rejected bearer token: %s", exc)
        raise _credentials_exception() from exc

    email = payload.get("sub")
    if not email:
        raise _credentials_exception()
    user = await users_repo_sql.find_by_email(session, email)
    if user is None or not user.active:
        raise _credentials_exception()

    principal = Principal(user_id=user.id, email=user.email, role=Role(user.role))
    request.state.principal = principal
    return principal


def role_required(*roles: Role):
    """Dependency factory enforcing that the caller has one of ``roles``."""

    def dependency(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient privileges"
            )
        return principal

    return dependency


__all__ = [
    "ALGORITHM",
    "create_access_token",
    "get_current_principal",
    "role_required",
]
