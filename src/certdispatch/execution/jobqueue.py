"""Action queue — named jobs executed asynchronously by worker threads.

Manifesto:
    The recovery pass and any other producer only need to hand a job off
    and move on. ``JobQueue`` is a ``typing.Protocol``: ``add_job`` either
    accepts the job or raises a :class:`QueueError`, and never waits for
    the job to run.

ARCHITECTURE
────────────
::

    JobQueue (Protocol)
      ├── .add_job(job)   ─ accept or raise QueueFullError / QueueClosedError
      ├── .start()        ─ begin draining
      ├── .stop(wait)     ─ refuse new jobs, let workers finish
      └── .join(timeout)  ─ block until accepted jobs are done

    Implementations:
      LocalJobQueue   ─ bounded FIFO + worker threads   (CLI / service)
      MemoryJobQueue  ─ records jobs, runs on demand    (testing)

Tags:
    certdispatch, execution, job-queue, thread-pool
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from certdispatch.core.errors import QueueClosedError, QueueFullError
from certdispatch.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Job:
    """A named zero-argument action; raising signals failure."""

    name: str
    action: Callable[[], object]
    labels: dict[str, object] = field(default_factory=dict, compare=False)


@runtime_checkable
class JobQueue(Protocol):
    """Accepts jobs for asynchronous execution."""

    def add_job(self, job: Job) -> None:
        """Queue ``job`` without waiting for it to run.

        Raises:
            QueueFullError: the queue is at capacity
            QueueClosedError: the queue is not accepting work
        """
        ...


def run_job(job: Job) -> bool:
    """Execute one job, logging (not raising) its failure. Returns success."""
    started = time.monotonic()
    try:
        job.action()
    except Exception as e:
        logger.error(
            "job_failed",
            job=job.name,
            error=f"{type(e).__name__}: {e}",
            duration_ms=round((time.monotonic() - started) * 1000, 1),
            **job.labels,
        )
        return False
    logger.debug(
        "job_completed",
        job=job.name,
        duration_ms=round((time.monotonic() - started) * 1000, 1),
        **job.labels,
    )
    return True


@dataclass
class QueueStats:
    accepted: int = 0
    rejected: int = 0
    completed: int = 0
    failed: int = 0
    discarded: int = 0


_STOP = object()


class LocalJobQueue:
    """Bounded FIFO drained by a fixed set of worker threads.

    Example:
        >>> jobs = LocalJobQueue(max_size=100, workers=2)
        >>> jobs.start()
        >>> jobs.add_job(Job(name="RequestCertificate", action=lambda: None))
        >>> jobs.join(timeout=5)
        >>> jobs.stop()
    """

    def __init__(self, max_size: int = 100, workers: int = 2) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.max_size = max_size
        self.workers = workers
        self.stats = QueueStats()
        self._queue: queue.Queue = queue.Queue(maxsize=max_size)
        self._threads: list[threading.Thread] = []
        self._accepting = False
        self._lock = threading.Lock()

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._accepting:
                logger.warning("job_queue_already_running")
                return
            self._accepting = True
            self._threads = [
                threading.Thread(target=self._work, name=f"jobqueue-{i}", daemon=True)
                for i in range(self.workers)
            ]
        for thread in self._threads:
            thread.start()
        logger.info("job_queue_started", workers=self.workers, max_size=self.max_size)

    def stop(self, wait: bool = True, drain: bool = True) -> None:
        """Refuse new jobs and shut the workers down.

        With ``drain`` the workers finish everything already queued.
        Without it, jobs that have not started are dropped and only the
        jobs already running are waited for.
        """
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            threads = list(self._threads)
        if not drain:
            self._discard_pending()
        for _ in threads:
            self._queue.put(_STOP)
        if wait:
            for thread in threads:
                thread.join()
        logger.info(
            "job_queue_stopped",
            completed=self.stats.completed,
            failed=self.stats.failed,
            discarded=self.stats.discarded,
        )

    def _discard_pending(self) -> None:
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            self._queue.task_done()
            dropped += 1
        with self._lock:
            self.stats.discarded += dropped
        if dropped:
            logger.warning("job_queue_discarded", count=dropped)

    def join(self, timeout: float | None = None) -> bool:
        """Wait until every accepted job has run. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    @property
    def is_running(self) -> bool:
        return self._accepting

    def __len__(self) -> int:
        return self._queue.qsize()

    # -- JobQueue protocol ---------------------------------------------------

    def add_job(self, job: Job) -> None:
        with self._lock:
            if not self._accepting:
                self.stats.rejected += 1
                raise QueueClosedError("Unable to add job, job queue is not running").with_context(
                    job_name=job.name
                )
            try:
                self._queue.put_nowait(job)
            except queue.Full:
                self.stats.rejected += 1
                raise QueueFullError(
                    f"Unable to add job, job queue is full ({self.max_size})"
                ).with_context(job_name=job.name) from None
            self.stats.accepted += 1

    # -- worker --------------------------------------------------------------

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                ok = run_job(item)
                with self._lock:
                    if ok:
                        self.stats.completed += 1
                    else:
                        self.stats.failed += 1
            finally:
                self._queue.task_done()

    def __enter__(self) -> LocalJobQueue:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop(wait=True)


class MemoryJobQueue:
    """In-memory queue for tests: records jobs and runs them on demand.

    ``capacity`` and ``closed`` simulate rejection; ``fail_on`` makes the
    N-th ``add_job`` call (1-based) raise :class:`QueueFullError`.
    """

    def __init__(
        self,
        capacity: int | None = None,
        closed: bool = False,
        fail_on: set[int] | None = None,
    ) -> None:
        self.capacity = capacity
        self.closed = closed
        self.fail_on = fail_on or set()
        self.jobs: list[Job] = []
        self.attempts = 0

    def add_job(self, job: Job) -> None:
        self.attempts += 1
        if self.closed:
            raise QueueClosedError("Unable to add job, job queue is not running")
        if self.attempts in self.fail_on:
            raise QueueFullError(f"Rejected job attempt {self.attempts}")
        if self.capacity is not None and len(self.jobs) >= self.capacity:
            raise QueueFullError("Unable to add job, job queue is full")
        self.jobs.append(job)

    def run_pending(self) -> int:
        """Run and drop every recorded job. Returns how many succeeded."""
        jobs, self.jobs = self.jobs, []
        return sum(1 for job in jobs if run_job(job))

    def clear(self) -> None:
        self.jobs.clear()
        self.attempts = 0
