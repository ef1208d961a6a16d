"""
Keyword-in-context snippets and the question endpoint built on them.

This is a locality window around the first hit, not a ranked extract.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas import DocumentSnippet, QAResult
from .query import QueryEngine

logger = logging.getLogger(__name__)

ELLIPSIS = "..."
MIN_TOKEN_LENGTH = 3
CONTEXT_BEFORE = 100
CONTEXT_AFTER = 300
LEAD_LENGTH = 200
QUESTION_RESULTS = 5


def find_first_match(text: str, question: str) -> int:
    """Earliest offset in text (case-insensitive) of any question token, or -1."""
    lowered = text.lower()
    best = -1
    for token in question.lower().split():
        if len(token) < MIN_TOKEN_LENGTH:
            continue
        pos = lowered.find(token)
        if pos >= 0 and (best == -1 or pos < best):
            best = pos
    return best


def extract_snippet(full_text: Optional[str], question: str) -> str:
    if not full_text:
        return ""

    pos = find_first_match(full_text, question)
    if pos == -1:
        if len(full_text) <= LEAD_LENGTH:
            return full_text
        return full_text[:LEAD_LENGTH] + ELLIPSIS

    start = max(0, pos - CONTEXT_BEFORE)
    end = min(len(full_text), pos + CONTEXT_AFTER)
    snippet = full_text[start:end]
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(full_text):
        snippet = snippet + ELLIPSIS
    return snippet


async def ask_question(db: AsyncSession, queries: QueryEngine, question: str) -> QAResult:
    """
    Keyword search with the whole question, top five hits, one snippet each.
    Documents without extracted text fall back to their description.
    """
    page = await queries.by_keyword(db, question, page=0, size=QUESTION_RESULTS)

    snippets = []
    for doc in page.items:
        if doc.content_text is not None:
            text = extract_snippet(doc.content_text, question)
        else:
            text = doc.description
        snippets.append(
            DocumentSnippet(
                document_id=doc.id,
                title=doc.title,
                snippet_text=text,
                author_name=doc.author.username if doc.author else None,
                created_at=doc.created_at,
            )
        )

    logger.info("Question answered with %d of %d matches", len(snippets), page.total)
    return QAResult(question=question, snippets=snippets, total_results=page.total)
