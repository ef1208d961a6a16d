"""Tests for principal resolution and author provisioning."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from docvault.core.auth import DEV_USER, AuthenticatedUser, get_current_user, principal_from_claims
from docvault.models.user import User
from docvault.services.authors import ensure_author


class TestPrincipal:
    @pytest.mark.asyncio
    async def test_dev_principal_when_auth0_disabled(self) -> None:
        assert await get_current_user("") == DEV_USER

    def test_username_claim(self) -> None:
        user = principal_from_claims({"sub": "auth0|1", "nickname": "carol"}, "nickname")
        assert user.username == "carol"
        assert user.subject == "auth0|1"

    def test_falls_back_to_subject(self) -> None:
        user = principal_from_claims({"sub": "auth0|1"}, "nickname")
        assert user.username == "auth0|1"


class TestEnsureAuthor:
    @pytest.mark.asyncio
    async def test_provisions_once(self, db) -> None:
        principal = AuthenticatedUser(subject="auth0|9", username="dana", email="d@x.io")

        first = await ensure_author(db, principal)
        await db.commit()
        second = await ensure_author(db, principal)

        assert first.id == second.id
        assert first.email == "d@x.io"
        assert await db.scalar(select(func.count()).select_from(User)) == 1
