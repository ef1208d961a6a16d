"""
Map the authenticated principal to a users row, provisioning it on first sight.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import AuthenticatedUser
from ..models.user import User

logger = logging.getLogger(__name__)


async def find_user(db: AsyncSession, username: str):
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def ensure_author(db: AsyncSession, principal: AuthenticatedUser) -> User:
    user = await find_user(db, principal.username)
    if user is not None:
        return user

    user = User(
        username=principal.username,
        auth_subject=principal.subject,
        email=principal.email or None,
        name=principal.name or None,
    )
    try:
        async with db.begin_nested():
            db.add(user)
    except IntegrityError:
        existing = await find_user(db, principal.username)
        if existing is None:
            raise
        return existing

    logger.info("Provisioned user %s", principal.username)
    return user
