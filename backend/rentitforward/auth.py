from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError

from .core.config import secret_or_plain, settings

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a bearer token issued by this service."""
    payload_raw = jwt.decode(
        token,
        secret_or_plain(settings.secret_key),
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: The data to encode in the token; ``sub`` must be the user id
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    to_encode.update({"exp": expire})

    encoded_jwt = cast(
        str,
        jwt.encode(
            to_encode,
            secret_or_plain(settings.secret_key),
            algorithm=settings.algorithm,
        ),
    )
    logger.info(f"Created access token for user: {data.get('sub')}")
    return encoded_jwt


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme_optional)) -> str:
    """
    Dependency to get the current authenticated user id from the JWT token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    not_authenticated = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    invalid_credentials = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise not_authenticated
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.error(f"JWT validation error: {str(e)}")
        raise invalid_credentials

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Token payload missing 'sub' field")
        raise invalid_credentials

    logger.debug(f"Successfully validated token for user: {user_id}")
    return user_id
