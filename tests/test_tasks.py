"""Unit tests for the background task runner."""

from __future__ import annotations

import asyncio
import logging

import pytest

from docvault.core.tasks import TaskRunner


class TestTaskRunner:
    @pytest.mark.asyncio
    async def test_submit_does_not_block(self) -> None:
        runner = TaskRunner()
        gate = asyncio.Event()
        done: list[str] = []

        async def work(name: str) -> None:
            await gate.wait()
            done.append(name)

        runner.submit(work, "a")
        assert runner.pending == 1
        assert done == []

        gate.set()
        await runner.drain()
        assert done == ["a"]
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog) -> None:
        runner = TaskRunner()

        async def boom() -> None:
            raise RuntimeError("kaput")

        with caplog.at_level(logging.ERROR, logger="docvault.core.tasks"):
            runner.submit(boom, name="boom")
            await runner.drain()

        assert "kaput" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_waits_for_tasks_submitted_while_draining(self) -> None:
        runner = TaskRunner()
        done: list[str] = []

        async def child() -> None:
            done.append("child")

        async def parent() -> None:
            runner.submit(child)
            done.append("parent")

        runner.submit(parent)
        await runner.drain()
        assert sorted(done) == ["child", "parent"]
