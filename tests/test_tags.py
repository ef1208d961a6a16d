"""Tests for tag resolution against the record store."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from docvault.models.tag import Tag
from docvault.services import tags as tag_service
from docvault.services.tags import resolve_tag, resolve_tags


async def _tag_count(db) -> int:
    return await db.scalar(select(func.count()).select_from(Tag))


class TestResolveTag:
    @pytest.mark.asyncio
    async def test_creates_missing_tag(self, db) -> None:
        tag = await resolve_tag(db, "finance")
        await db.commit()

        assert tag.id
        assert tag.name == "finance"
        assert await _tag_count(db) == 1

    @pytest.mark.asyncio
    async def test_reuses_existing_tag(self, db) -> None:
        first = await resolve_tag(db, "finance")
        await db.commit()
        second = await resolve_tag(db, "finance")

        assert second.id == first.id
        assert await _tag_count(db) == 1

    @pytest.mark.asyncio
    async def test_lookup_is_case_sensitive(self, db) -> None:
        lower = await resolve_tag(db, "finance")
        upper = await resolve_tag(db, "Finance")
        await db.commit()

        assert lower.id != upper.id
        assert await _tag_count(db) == 2

    @pytest.mark.asyncio
    async def test_duplicate_insert_falls_back_to_existing_row(
        self, db, session_factory, monkeypatch
    ) -> None:
        # Another request commits the tag between our lookup and our insert
        async with session_factory() as other:
            other.add(Tag(name="race"))
            await other.commit()

        real_find = tag_service.find_tag
        calls = {"n": 0}

        async def stale_first_lookup(session, name):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_find(session, name)

        monkeypatch.setattr(tag_service, "find_tag", stale_first_lookup)

        tag = await resolve_tag(db, "race")
        await db.commit()

        assert tag.name == "race"
        assert calls["n"] == 2
        assert await _tag_count(db) == 1


class TestResolveTags:
    @pytest.mark.asyncio
    async def test_dedupes_and_skips_blank(self, db) -> None:
        tags = await resolve_tags(db, ["a", "b", "a", " ", ""])
        await db.commit()

        assert sorted(t.name for t in tags) == ["a", "b"]
        assert await _tag_count(db) == 2
