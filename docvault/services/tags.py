"""
Tag resolution — freeform names to Tag rows, creating missing ones.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.tag import Tag

logger = logging.getLogger(__name__)


async def find_tag(db: AsyncSession, name: str) -> Optional[Tag]:
    result = await db.execute(select(Tag).where(Tag.name == name))
    return result.scalar_one_or_none()


async def resolve_tag(db: AsyncSession, name: str) -> Tag:
    """
    Exact, case-sensitive lookup; creates the tag if absent.

    A concurrent request may create the same name between our lookup and our
    insert. The insert runs in a savepoint, and a unique-constraint conflict
    falls back to fetching the row the other request committed.
    """
    tag = await find_tag(db, name)
    if tag is not None:
        return tag

    tag = Tag(name=name)
    try:
        async with db.begin_nested():
            db.add(tag)
    except IntegrityError:
        logger.info("Tag %r created concurrently, reusing existing row", name)
        existing = await find_tag(db, name)
        if existing is None:
            raise
        return existing

    logger.info("Created tag %r", name)
    return tag


async def resolve_tags(db: AsyncSession, names: Iterable[str]) -> set[Tag]:
    """Resolve a collection of names. Blank and duplicate names are dropped."""
    tags = set()
    for name in dict.fromkeys(n.strip() for n in names if n and n.strip()):
        tags.add(await resolve_tag(db, name))
    return tags
