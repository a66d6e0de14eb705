"""
Background execution: a worker pool consuming job IDs and a temp-file janitor.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from contextlib import suppress
from pathlib import Path

from .io_ffmpeg import cleanup_temp_files

logger = logging.getLogger("videodub")


class JobCanceled(Exception):
    pass


class CancellationToken:
    """Cancellation flag shared between the queue and a running job."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def canceled(self) -> bool:
        return self._event.is_set()

    def raise_if_canceled(self) -> None:
        if self._event.is_set():
            raise JobCanceled()


JobRunner = Callable[[str, CancellationToken], Awaitable[None]]
JobErrorHandler = Callable[[str, BaseException], None]
JobDroppedHandler = Callable[[str], None]


class JobQueue:
    """
    Fixed pool of asyncio workers pulling job IDs from a queue.

    Each submitted ID gets a CancellationToken that lives until its job
    finishes. ``shutdown`` drains queued and in-flight jobs before stopping
    the workers. Jobs still queued when the drain times out are handed to
    ``on_dropped``.
    """

    def __init__(
        self,
        runner: JobRunner,
        *,
        concurrency: int = 1,
        on_error: JobErrorHandler | None = None,
        on_dropped: JobDroppedHandler | None = None,
    ) -> None:
        self.runner = runner
        self.on_error = on_error
        self.on_dropped = on_dropped
        self.concurrency = max(1, int(concurrency))
        self._q: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self._tokens: dict[str, CancellationToken] = {}
        self._running: set[str] = set()

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._q.qsize()

    @property
    def running(self) -> int:
        return len(self._running)

    async def start(self) -> None:
        if self._tasks:
            return
        for _ in range(self.concurrency):
            self._tasks.append(asyncio.create_task(self._worker()))
        logger.info("JobQueue started (concurrency=%s)", self.concurrency)

    def submit(self, job_id: str) -> CancellationToken:
        token = self._tokens.setdefault(job_id, CancellationToken())
        self._q.put_nowait(job_id)
        return token

    def token(self, job_id: str) -> CancellationToken | None:
        return self._tokens.get(job_id)

    def cancel(self, job_id: str) -> bool:
        """Flag a queued or running job. False if the queue does not hold it."""
        token = self._tokens.get(job_id)
        if token is None:
            return False
        token.cancel()
        logger.info("Cancellation requested for job %s", job_id)
        return True

    async def _worker(self) -> None:
        while True:
            job_id = await self._q.get()
            token = self._tokens.setdefault(job_id, CancellationToken())
            self._running.add(job_id)
            try:
                await self.runner(job_id, token)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Job %s crashed: %s", job_id, e)
                if self.on_error is not None:
                    self.on_error(job_id, e)
            finally:
                self._running.discard(job_id)
                self._tokens.pop(job_id, None)
                self._q.task_done()

    async def stop(self) -> None:
        for t in self._tasks:
            t.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def shutdown(self, *, timeout: float = 120.0) -> None:
        """Let queued and running jobs finish, then cancel the workers."""
        if self._tasks:
            try:
                await asyncio.wait_for(self._q.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Shutdown timed out with %d queued and %d running jobs",
                    self.pending,
                    self.running,
                )
        await self.stop()
        for job_id in self._drain():
            logger.warning("Job %s dropped at shutdown", job_id)
            if self.on_dropped is not None:
                self.on_dropped(job_id)
        logger.info("JobQueue stopped")

    def _drain(self) -> list[str]:
        dropped = []
        while not self._q.empty():
            job_id = self._q.get_nowait()
            self._q.task_done()
            self._tokens.pop(job_id, None)
            dropped.append(job_id)
        return dropped


class Janitor:
    """Periodically removes stale files from the temp directory."""

    def __init__(self, temp_dir: str | Path, *, max_age: float = 3600.0, interval: float = 600.0):
        self.temp_dir = Path(temp_dir)
        self.max_age = max_age
        self.interval = interval
        self._task: asyncio.Task | None = None

    async def run_once(self) -> int:
        return await asyncio.to_thread(cleanup_temp_files, self.temp_dir, self.max_age)

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except OSError as e:
                logger.warning("Temp cleanup failed: %s", e)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
