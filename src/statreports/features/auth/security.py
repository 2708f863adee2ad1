"""Password hashing, bearer tokens and report-package guards."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from ...core.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from . import models, schemas
from . import service as auth_service

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({**data, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> schemas.TokenData:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise _credentials_exception()
    token_data = schemas.TokenData(sub=payload.get("sub"))
    if token_data.sub is None:
        logger.warning("Bearer token carries no subject")
        raise _credentials_exception()
    return token_data


async def authenticate_user(username: str, password: str) -> Optional[models.User]:
    """Returns the user when the password matches, otherwise None.

    Inactive users still authenticate here; the token endpoint refuses them.
    """
    user = await auth_service.get_user_by_username(username)
    if user is None or not verify_password(password, user.hashed_password):
        logger.info(f"Failed login for {username}")
        return None
    return user


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]) -> models.User:
    token_data = decode_access_token(token)
    user = await auth_service.get_user_by_username(username=token_data.sub)
    if user is None:
        logger.warning(f"Token subject {token_data.sub} has no user")
        raise _credentials_exception()
    return user


async def get_current_active_user(current_user: Annotated[models.User, Depends(get_current_user)]) -> models.User:
    if not current_user.is_active:
        logger.info(f"Inactive user {current_user.username} refused")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


def require_report_access(access: models.ReportAccess):
    """Builds a dependency that admits active users holding the given report package."""

    async def _dependency(current_user: Annotated[models.User, Depends(get_current_active_user)]) -> models.User:
        if not current_user.has_access(access):
            logger.info(f"User {current_user.username} denied {access.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied: {access.value.replace('_', ' ')} required",
            )
        return current_user

    return _dependency
