"""Tests for the bounded processing pool."""

from __future__ import annotations

import asyncio
import threading

import pytest

from imgshare.config import Settings
from imgshare.media.errors import PipelineCancelledError
from imgshare.media.pool import ProcessingPool


def _make_pool(**overrides: object) -> ProcessingPool:
    defaults: dict[str, object] = {"max_concurrent": 2, "queue_timeout": 5.0}
    defaults.update(overrides)
    return ProcessingPool(Settings(**defaults))  # type: ignore[arg-type]


class TestProcessingPool:
    async def test_runs_function_with_cancel_event(self) -> None:
        pool = _make_pool()
        try:
            result = await pool.run(lambda event: ("done", event.is_set()))
        finally:
            pool.shutdown()
        assert result == ("done", False)
        assert pool.active_count == 0
        assert pool.queue_depth == 0

    async def test_propagates_exceptions(self) -> None:
        pool = _make_pool()

        def _fail(_: threading.Event) -> None:
            raise ValueError("bad input")

        try:
            with pytest.raises(ValueError, match="bad input"):
                await pool.run(_fail)
        finally:
            pool.shutdown()
        assert pool.active_count == 0

    async def test_timeout_sets_cancel_event(self) -> None:
        pool = _make_pool()
        seen: list[threading.Event] = []
        finished = threading.Event()

        def _slow(event: threading.Event) -> None:
            seen.append(event)
            event.wait(timeout=5)
            finished.set()

        try:
            with pytest.raises(PipelineCancelledError, match="timed out"):
                await pool.run(_slow, timeout=0.05)
            assert seen[0].is_set()
            assert await asyncio.to_thread(finished.wait, 5)
        finally:
            pool.shutdown()

    async def test_queue_timeout_when_saturated(self) -> None:
        pool = _make_pool(max_concurrent=1, queue_timeout=0.05)
        release = threading.Event()
        started = threading.Event()

        def _blocking(_: threading.Event) -> str:
            started.set()
            release.wait(timeout=5)
            return "first"

        try:
            first = asyncio.create_task(pool.run(_blocking))
            await asyncio.to_thread(started.wait, 5)
            assert pool.active_count == 1

            with pytest.raises(TimeoutError):
                await pool.run(lambda _: "second")

            release.set()
            assert await first == "first"
        finally:
            release.set()
            pool.shutdown()
        assert pool.active_count == 0

    async def test_late_result_is_discarded(self) -> None:
        pool = _make_pool()
        discarded: list[str] = []
        handed_over = threading.Event()

        def _ignores_cancel(event: threading.Event) -> str:
            event.wait(timeout=5)
            return "late"

        def _discard(result: str) -> None:
            discarded.append(result)
            handed_over.set()

        try:
            with pytest.raises(PipelineCancelledError):
                await pool.run(_ignores_cancel, timeout=0.05, discard=_discard)
            assert await asyncio.to_thread(handed_over.wait, 5)
        finally:
            pool.shutdown()
        assert discarded == ["late"]

    async def test_completed_result_not_discarded(self) -> None:
        pool = _make_pool()
        discarded: list[str] = []
        try:
            assert await pool.run(lambda _: "ok", timeout=5, discard=discarded.append) == "ok"
        finally:
            pool.shutdown()
        assert discarded == []
