"""Tests for the query engine and the question endpoint service."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from docvault.core.errors import InvalidArgument, NotFound
from docvault.core.storage import new_ref
from docvault.models.document import Document
from docvault.models.user import User
from docvault.schemas import SearchFilter
from docvault.services.query import Sort
from docvault.services.snippets import ask_question

BASE = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def add_document(db, author):
    async def _add(title: str, **kwargs) -> Document:
        fields = {
            "description": None,
            "file_ref": new_ref(".txt"),
            "content_type": "text/plain",
            "file_size": 10,
            "author_id": author.id,
            "created_at": BASE,
            "updated_at": BASE,
        }
        fields.update(kwargs)
        if fields.get("content_text") is not None:
            fields.setdefault("indexed", True)
            fields.setdefault("search_text", fields["content_text"].lower())
        doc = Document(title=title, **fields)
        db.add(doc)
        await db.commit()
        await db.refresh(doc, ["author", "tags"])
        return doc

    return _add


@pytest.fixture
async def bob(db) -> User:
    user = User(username="bob")
    db.add(user)
    await db.commit()
    return user


class TestById:
    @pytest.mark.asyncio
    async def test_unknown(self, queries, db) -> None:
        with pytest.raises(NotFound):
            await queries.by_id(db, "missing")

    @pytest.mark.asyncio
    async def test_read_through_cache(self, queries, cache, db, add_document) -> None:
        doc = await add_document("Cached", content_text="body text")

        first = await queries.by_id(db, doc.id)
        assert first.content_text == "body text"
        assert first.author_username == "alice"
        assert (await cache.get(doc.id)) == first

        # A cached entry is served without touching the record store
        await cache.put(first.model_copy(update={"title": "from cache"}))
        assert (await queries.by_id(db, doc.id)).title == "from cache"


class TestAll:
    @pytest.mark.asyncio
    async def test_paging_and_sorting(self, queries, db, add_document) -> None:
        for i in range(5):
            await add_document(f"doc-{i}", created_at=BASE + timedelta(days=i))

        page = await queries.all(db, page=0, size=2, sort=Sort("created_at", "desc"))
        assert page.total == 5
        assert page.total_pages == 3
        assert [d.title for d in page.items] == ["doc-4", "doc-3"]

        last = await queries.all(db, page=2, size=2, sort=Sort("title", "asc"))
        assert [d.title for d in last.items] == ["doc-4"]

    @pytest.mark.asyncio
    async def test_camel_case_sort_alias(self, queries, db, add_document) -> None:
        await add_document("older", created_at=BASE)
        await add_document("newer", created_at=BASE + timedelta(hours=1))
        page = await queries.all(db, sort=Sort("createdAt", "ASC"))
        assert [d.title for d in page.items] == ["older", "newer"]

    @pytest.mark.asyncio
    async def test_stable_order_on_ties(self, queries, db, add_document) -> None:
        for i in range(4):
            await add_document(f"tie-{i}")
        first = await queries.all(db, page=0, size=2, sort=Sort("created_at", "asc"))
        second = await queries.all(db, page=1, size=2, sort=Sort("created_at", "asc"))
        ids = [d.id for d in first.items + second.items]
        assert len(set(ids)) == 4

    @pytest.mark.asyncio
    async def test_invalid_sort_field(self, queries, db) -> None:
        with pytest.raises(InvalidArgument):
            await queries.all(db, sort=Sort("password", "asc"))

    @pytest.mark.asyncio
    async def test_invalid_sort_direction(self, queries, db) -> None:
        with pytest.raises(InvalidArgument):
            await queries.all(db, sort=Sort("title", "sideways"))

    @pytest.mark.asyncio
    async def test_invalid_paging(self, queries, db) -> None:
        with pytest.raises(InvalidArgument):
            await queries.all(db, page=-1)
        with pytest.raises(InvalidArgument):
            await queries.all(db, size=0)


class TestByAuthor:
    @pytest.mark.asyncio
    async def test_filters_by_author(self, queries, db, add_document, bob) -> None:
        await add_document("mine")
        await add_document("bobs", author_id=bob.id)

        page = await queries.by_author(db, "bob")
        assert [d.title for d in page.items] == ["bobs"]

    @pytest.mark.asyncio
    async def test_unknown_username(self, queries, db) -> None:
        with pytest.raises(NotFound):
            await queries.by_author(db, "nobody")


class TestStructured:
    @pytest.mark.asyncio
    async def test_empty_filter_matches_all(self, queries, db, add_document) -> None:
        await add_document("one")
        await add_document("two")
        page = await queries.structured(db, SearchFilter())
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_predicates_are_anded(self, queries, db, add_document, bob) -> None:
        await add_document("Annual Budget", content_type="application/pdf")
        await add_document("Budget draft", content_type="text/plain")
        await add_document("Budget by bob", content_type="application/pdf", author_id=bob.id)

        page = await queries.structured(
            db, SearchFilter(title="budget", content_type="application/pdf", author_id=bob.id)
        )
        assert [d.title for d in page.items] == ["Budget by bob"]

    @pytest.mark.asyncio
    async def test_title_is_case_insensitive_substring(self, queries, db, add_document) -> None:
        await add_document("Quarterly REPORT")
        page = await queries.structured(db, SearchFilter(title="report"))
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_date_range_inclusive(self, queries, db, add_document) -> None:
        await add_document("before", created_at=BASE - timedelta(days=1))
        await add_document("start", created_at=BASE)
        await add_document("end", created_at=BASE + timedelta(days=2))
        await add_document("after", created_at=BASE + timedelta(days=3))

        page = await queries.structured(
            db,
            SearchFilter(start_date=BASE, end_date=BASE + timedelta(days=2)),
            sort=Sort("created_at", "asc"),
        )
        assert [d.title for d in page.items] == ["start", "end"]

    @pytest.mark.asyncio
    async def test_open_ended_range(self, queries, db, add_document) -> None:
        await add_document("old", created_at=BASE - timedelta(days=10))
        await add_document("new", created_at=BASE + timedelta(days=10))
        page = await queries.structured(db, SearchFilter(start_date=BASE))
        assert [d.title for d in page.items] == ["new"]

    @pytest.mark.asyncio
    async def test_keyword_combined_with_filters(self, queries, db, add_document) -> None:
        await add_document("Notes", content_type="text/plain", content_text="about testing")
        await add_document("Notes", content_type="application/pdf", content_text="about testing")
        page = await queries.structured(
            db, SearchFilter(keyword="TESTING", content_type="text/plain")
        )
        assert page.total == 1


class TestByKeyword:
    @pytest.mark.asyncio
    async def test_matches_only_after_text_extracted(self, queries, db, add_document) -> None:
        doc = await add_document("Plain", description="No relevant text")
        assert (await queries.by_keyword(db, "testing")).total == 0

        doc.content_text = "...about testing..."
        doc.indexed = True
        await db.commit()
        assert (await queries.by_keyword(db, "testing")).total == 1

    @pytest.mark.asyncio
    async def test_matches_title_or_description(self, queries, db, add_document) -> None:
        await add_document("Testing plan")
        await add_document("Other", description="covers TESTING too")
        await add_document("Unrelated")
        page = await queries.by_keyword(db, "testing")
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_like_wildcards_are_literal(self, queries, db, add_document) -> None:
        await add_document("100% done")
        await add_document("100 items")
        assert (await queries.by_keyword(db, "100%")).total == 1


class TestUnprocessed:
    @pytest.mark.asyncio
    async def test_lists_only_unindexed(self, queries, db, add_document) -> None:
        await add_document("pending")
        await add_document("done", content_text="text", search_text="done text")
        docs = await queries.unprocessed(db)
        assert [d.title for d in docs] == ["pending"]


class TestAskQuestion:
    @pytest.mark.asyncio
    async def test_snippets_and_description_fallback(self, queries, db, add_document) -> None:
        long_text = "x" * 150 + " deadline " + "y" * 400
        await add_document("Plan", content_text=long_text)
        await add_document("Roadmap", description="deadline in May")

        result = await ask_question(db, queries, "deadline")

        assert result.question == "deadline"
        assert result.total_results == 2
        by_title = {s.title: s for s in result.snippets}
        assert by_title["Plan"].snippet_text.startswith("...")
        assert "deadline" in by_title["Plan"].snippet_text
        assert by_title["Roadmap"].snippet_text == "deadline in May"
        assert by_title["Plan"].author_name == "alice"

    @pytest.mark.asyncio
    async def test_at_most_five_snippets(self, queries, db, add_document) -> None:
        for i in range(7):
            await add_document(f"report {i}")
        result = await ask_question(db, queries, "report")
        assert len(result.snippets) == 5
        assert result.total_results == 7

    @pytest.mark.asyncio
    async def test_whole_question_must_match(self, queries, db, add_document) -> None:
        await add_document("budget", content_text="the budget is approved")
        result = await ask_question(db, queries, "when is the budget due")
        assert result.total_results == 0
        assert result.snippets == []
