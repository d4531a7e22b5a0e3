# app/deps/manager.py
from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.errors import Forbidden
from app.models.manager_model import Manager
from app.utils.token_utils import CurrentUser, get_current_user


async def is_manager(db: AsyncSession, email: str) -> bool:
    """Allow-list lookup; emails compare case-insensitively."""
    stmt = select(Manager.id).where(func.lower(Manager.email) == (email or "").strip().lower())
    return (await db.execute(stmt)).first() is not None


async def require_manager(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> CurrentUser:
    """
    Requires a valid token whose email is on the manager allow-list.
    Raises 403 otherwise.
    """
    if not await is_manager(db, user.email):
        raise Forbidden("Manager access required")
    return user
