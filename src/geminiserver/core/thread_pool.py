"""
=============================================================================
THREAD POOL
=============================================================================

A fixed set of worker threads pulling connections off a bounded queue.

    accept loop ──submit(conn)──►  [ queue (queue_size) ]
                                        │   │   │
                                        ▼   ▼   ▼
                                    Worker-0 Worker-1 ... (min..max workers)

Each job is one whole Gemini exchange (handshake, read, handle, write,
close), so a worker owns its connection from start to finish and no
connection state is ever shared between threads.

=============================================================================
BACKPRESSURE
=============================================================================

    queue has room          → job queued, maybe one more worker started
    queue full              → submit() returns False (caller answers 44)
    job waited too long     → on_expired(...) runs instead of the job

Shutdown puts one ``None`` per worker on the queue; a worker that pulls
``None`` exits.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Job:
    """
    ``func(*args, **kwargs)`` waiting for a worker.

    Attributes:
        max_wait: Seconds the job may sit in the queue. Past that the
                  client has probably given up, so ``on_expired`` runs
                  with the same arguments instead (or nothing, if unset).
        queued_at: When the job entered the queue.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    max_wait: Optional[float] = None
    on_expired: Optional[Callable[..., Any]] = None
    queued_at: float = field(default_factory=time.monotonic)

    @property
    def waited(self) -> float:
        return time.monotonic() - self.queued_at

    @property
    def expired(self) -> bool:
        return bool(self.max_wait) and self.waited > self.max_wait


class _Counters:
    """Job outcome counts shared by all workers of one pool."""

    def __init__(self):
        self._lock = threading.Lock()
        self.completed = 0
        self.failed = 0
        self.expired = 0

    def add(self, outcome: str) -> None:
        with self._lock:
            setattr(self, outcome, getattr(self, outcome) + 1)


class Worker(threading.Thread):
    """Runs jobs from the shared queue until it receives ``None``."""

    def __init__(
        self,
        jobs: queue.Queue,
        counters: _Counters,
        worker_id: int,
        idle_timeout: float = 60.0,
    ):
        super().__init__(name=f"gemini-worker-{worker_id}", daemon=True)
        self.jobs = jobs
        self.counters = counters
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.state = WorkerState.IDLE
        self._stop_requested = threading.Event()

    def run(self):
        logger.debug(f"{self.name} started")

        while not self._stop_requested.is_set():
            try:
                job = self.jobs.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if job is None:
                    break
                self._run_job(job)
            finally:
                self.jobs.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"{self.name} stopped")

    def _run_job(self, job: Job):
        self.state = WorkerState.BUSY
        try:
            if job.expired:
                logger.warning(
                    f"Job waited {job.waited:.2f}s in queue (limit {job.max_wait}s), dropping"
                )
                self.counters.add("expired")
                if job.on_expired is not None:
                    job.on_expired(*job.args, **job.kwargs)
                return

            started = time.monotonic()
            job.func(*job.args, **job.kwargs)
            logger.debug(f"{self.name} finished job in {time.monotonic() - started:.3f}s")
            self.counters.add("completed")

        except Exception as e:
            # The worker survives; the job's own connection is already closed
            # by its context manager.
            logger.exception(f"{self.name} job failed: {e}")
            self.counters.add("failed")

        finally:
            self.state = WorkerState.IDLE

    def request_stop(self):
        self._stop_requested.set()


class ThreadPool:
    """
    Thread pool for concurrent connection handling.

        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(process_connection, args=(conn,), timeout=30)
        pool.shutdown(wait=True)

    Starts ``min_workers`` threads and grows by one (up to ``max_workers``)
    whenever a job is queued while every worker is busy. Workers are never
    retired before shutdown.
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._jobs: queue.Queue[Optional[Job]] = queue.Queue(maxsize=queue_size)
        self._counters = _Counters()
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._running = False
        self._closing = False

    def start(self):
        if self._running:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        self._closing = False
        for _ in range(self.min_workers):
            self._spawn_worker()
        self._running = True

    def _spawn_worker(self) -> Optional[Worker]:
        """Start one more worker, or return None when at max_workers."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return None
            worker = Worker(
                self._jobs,
                self._counters,
                worker_id=len(self._workers),
                idle_timeout=self.idle_timeout,
            )
            self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        timeout: Optional[float] = None,
        on_expired: Optional[Callable[..., Any]] = None,
        block: bool = False,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)`` for a worker.

        Args:
            timeout: Longest time the job may wait in the queue.
            on_expired: Called with the same arguments instead of ``func``
                        when the job waited longer than ``timeout``.
            block: Wait up to ``queue_timeout`` for room instead of
                   rejecting straight away.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool isn't running.
        """
        if not self._running:
            raise RuntimeError("Thread pool not started")
        if self._closing:
            raise RuntimeError("Thread pool is shutting down")

        job = Job(func, args, kwargs or {}, max_wait=timeout, on_expired=on_expired)
        try:
            self._jobs.put(job, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        if self.idle_workers == 0 and not self._jobs.empty():
            if self._spawn_worker() is not None:
                logger.debug(f"All workers busy, grew pool to {len(self._workers)}")
        return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Args:
            wait: Let queued jobs run first.
            timeout: Stop waiting for the queue after this many seconds.
        """
        if not self._running:
            return

        logger.info("Shutting down thread pool...")
        self._closing = True

        if wait:
            self._drain(timeout)

        for worker in self._workers:
            worker.request_stop()
            try:
                self._jobs.put_nowait(None)
            except queue.Full:
                pass  # request_stop() is seen within idle_timeout

        for worker in self._workers:
            worker.join(timeout=2.0)

        self._workers.clear()
        self._running = False
        logger.info("Thread pool stopped")

    def _drain(self, timeout: Optional[float]):
        if not timeout:
            self._jobs.join()
            return

        deadline = time.monotonic() + timeout
        while not self._jobs.empty():
            if time.monotonic() > deadline:
                logger.warning(f"{self._jobs.qsize()} queued jobs left after {timeout}s, stopping anyway")
                return
            time.sleep(0.1)

    # =========================================================================
    # MONITORING
    # =========================================================================

    def _count(self, state: WorkerState) -> int:
        return sum(1 for w in self._workers if w.state == state)

    @property
    def busy_workers(self) -> int:
        return self._count(WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return self._count(WorkerState.IDLE)

    @property
    def stats(self) -> dict:
        """Worker and job counts, logged at shutdown."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self._jobs.qsize(),
                "completed": self._counters.completed,
                "failed": self._counters.failed,
                "expired": self._counters.expired,
            },
        }
