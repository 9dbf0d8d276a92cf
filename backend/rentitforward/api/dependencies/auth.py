# backend/rentitforward/api/dependencies/auth.py
"""
Authentication dependencies.

The user lookup runs in a worker thread so the synchronous session never
blocks the event loop.
"""

import asyncio
import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...auth import get_current_user as auth_get_current_user
from ...models.user import User
from ...repositories.user_repository import UserRepository
from .database import get_db

logger = logging.getLogger(__name__)


async def get_current_user(
    current_user_id: str = Depends(auth_get_current_user),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from the database.

    Raises:
        HTTPException: 401 if the token refers to an unknown user
    """
    user = await asyncio.to_thread(
        UserRepository(db).get_by_id, current_user_id, False
    )
    if user is None:
        logger.warning(f"Token for unknown user {current_user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Get the current active user.

    Raises:
        HTTPException: 400 if the account is deactivated
    """
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user
