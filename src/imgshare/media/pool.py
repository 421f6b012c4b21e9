"""Processing concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> MediaPipeline

Decode and transform are CPU bound and a decoded raster grows with pixel
count, so at most N uploads are in flight. Requests beyond the limit queue
for ``queue_timeout`` seconds, then get ``TimeoutError``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from imgshare.media.errors import PipelineCancelledError

if TYPE_CHECKING:
    from collections.abc import Callable
    from concurrent.futures import Future

    from imgshare.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProcessingPool:
    """Manages the semaphore and thread pool for pipeline invocations."""

    def __init__(self, settings: Settings) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="media-pipeline",
        )
        self._queue_timeout = settings.queue_timeout
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(
        self,
        func: Callable[[threading.Event], T],
        *,
        timeout: float | None = None,
        discard: Callable[[T], None] | None = None,
    ) -> T:
        """Run ``func(cancel_event)`` on the pool.

        The slot is held until the worker thread actually finishes, even
        when the caller has stopped waiting, so abandoned work still counts
        against the concurrency limit. If that work still returns a value,
        it is handed to ``discard``.

        Raises:
            TimeoutError: No slot became free within the queue timeout.
            PipelineCancelledError: ``timeout`` elapsed before ``func`` returned.
                ``cancel_event`` is set so the worker abandons its run.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._queue_timeout)
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        loop = asyncio.get_running_loop()
        cancel_event = threading.Event()
        with self._counter_lock:
            self._active_count += 1
        try:
            future = self._executor.submit(func, cancel_event)
        except BaseException:
            self._release()
            raise

        def _on_done(_: Future[T]) -> None:
            if loop.is_closed():
                self._release()
            else:
                loop.call_soon_threadsafe(self._release)

        future.add_done_callback(_on_done)

        try:
            return await asyncio.wait_for(asyncio.shield(asyncio.wrap_future(future)), timeout=timeout)
        except TimeoutError:
            cancel_event.set()
            self._discard_when_done(future, discard)
            logger.warning("Pipeline invocation exceeded %ss, cancelling", timeout)
            raise PipelineCancelledError(f"Upload processing timed out after {timeout}s") from None
        except asyncio.CancelledError:
            cancel_event.set()
            self._discard_when_done(future, discard)
            logger.info("Pipeline invocation cancelled by caller")
            raise

    @staticmethod
    def _discard_when_done(future: Future[T], discard: Callable[[T], None] | None) -> None:
        if discard is None:
            return

        def _on_done(done: Future[T]) -> None:
            if done.cancelled() or done.exception() is not None:
                return
            discard(done.result())

        future.add_done_callback(_on_done)

    def _release(self) -> None:
        self._semaphore.release()
        with self._counter_lock:
            self._active_count -= 1

    @property
    def active_count(self) -> int:
        """Number of currently running pipeline invocations."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the thread pool executor."""
        self._executor.shutdown(wait=True)
