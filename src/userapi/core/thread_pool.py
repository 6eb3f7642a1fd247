"""
=============================================================================
WORKER THREAD POOL
=============================================================================

The accept loop never serves a connection itself. It wraps the work in a
Job and drops it on a bounded queue; worker threads take jobs off the
other end.

    accept loop ──submit()──► [ job | job | job ]   (at most queue_size)
                                   │     │     │
                                   ▼     ▼     ▼
                              worker-0 worker-1 ...  (min_workers..max_workers)

Serving a user request is mostly waiting: on the client socket, then on a
MongoDB round trip. Both release the GIL, so plain threads are enough.

Back-pressure:

    - queue full      → submit() returns False, the server sends 503
    - job went stale  → dropped unrun, its on_expired callback runs instead

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

# Put on the queue once per worker at shutdown.
_STOP = None


@dataclass
class Job:
    """
    func(*args, **kwargs), plus the moment it stops being worth running.

    on_expired runs in its place when the job is dropped, so whatever the
    job owned (a client socket) still gets released.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    expires_at: Optional[float] = None
    on_expired: Optional[Callable[[], Any]] = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at


class _Worker(threading.Thread):

    def __init__(self, jobs: "queue.Queue[Optional[Job]]", number: int, poll_interval: float):
        super().__init__(name=f"userapi-worker-{number}", daemon=True)
        self.jobs = jobs
        self.poll_interval = poll_interval
        self.busy = False
        self._stopping = threading.Event()

    def run(self):
        while not self._stopping.is_set():
            try:
                job = self.jobs.get(timeout=self.poll_interval)
            except queue.Empty:
                continue

            try:
                if job is _STOP:
                    return
                self._run_job(job)
            finally:
                self.jobs.task_done()

    def _run_job(self, job: Job):
        if job.expired(time.monotonic()):
            logger.warning(f"{self.name}: dropping job that sat in the queue too long")
            if job.on_expired is not None:
                self._call(job.on_expired)
            return

        self.busy = True
        try:
            self._call(job.func, *job.args, **job.kwargs)
        finally:
            self.busy = False

    def _call(self, func: Callable[..., Any], *args, **kwargs):
        try:
            func(*args, **kwargs)
        except Exception:
            # Never let one bad connection take a worker down with it.
            logger.exception(f"{self.name}: job raised")

    def stop(self):
        self._stopping.set()


class ThreadPool:
    """
    Starts with min_workers threads and adds one each time a job is queued
    while every existing worker is busy, up to max_workers. Workers are not
    retired while the pool runs.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()
        if not pool.submit(serve, args=(conn,), timeout=30.0):
            reject(conn)
        ...
        pool.shutdown(wait=True, timeout=30.0)
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
        self.max_queue_size = queue_size
        # How long an idle worker blocks on the queue before rechecking its
        # stop flag.
        self.idle_timeout = idle_timeout

        self._jobs: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[_Worker] = []
        self._lock = threading.Lock()
        self._spawned = 0
        self._accepting = False

    def start(self):
        with self._lock:
            if self._accepting:
                return
            for _ in range(self.min_workers):
                self._spawn()
            self._accepting = True
        logger.info(f"Thread pool started with {self.min_workers} workers (max {self.max_workers})")

    def _spawn(self):
        # Needs self._lock.
        worker = _Worker(self._jobs, self._spawned, self.idle_timeout)
        self._spawned += 1
        self._workers.append(worker)
        worker.start()

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        on_expired: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """
        Queue func(*args, **kwargs) without blocking.

        Args:
            timeout: Seconds the job may wait in the queue before it is
                     dropped unrun. None waits forever.
            on_expired: Called by the worker instead of func when the job
                        is dropped.

        Returns:
            False if the queue is full, True otherwise.

        Raises:
            RuntimeError: start() was not called, or shutdown() was.
        """
        if not self._accepting:
            raise RuntimeError("Thread pool is not accepting work")

        expires_at = time.monotonic() + timeout if timeout is not None else None
        try:
            self._jobs.put_nowait(Job(func, args, kwargs or {}, expires_at, on_expired))
        except queue.Full:
            return False

        with self._lock:
            saturated = self.busy_workers == len(self._workers) and self._jobs.qsize() > 0
            if saturated and len(self._workers) < self.max_workers:
                self._spawn()
                logger.debug(f"Thread pool grew to {len(self._workers)} workers")
        return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Refuse new work and stop every worker.

        With wait=True, queued and running jobs get up to timeout seconds
        (forever if None) to finish first. Calling this twice is harmless.
        """
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False

        if wait:
            deadline = time.monotonic() + timeout if timeout is not None else None
            while self._jobs.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Thread pool: jobs still running at shutdown timeout")
                    break
                time.sleep(0.05)

        with self._lock:
            workers, self._workers = self._workers, []

        for worker in workers:
            worker.stop()
            try:
                self._jobs.put_nowait(_STOP)
            except queue.Full:
                pass  # stop() alone ends the worker within idle_timeout
        for worker in workers:
            worker.join(timeout=2.0)

        logger.info("Thread pool stopped")

    @property
    def busy_workers(self) -> int:
        return sum(1 for worker in self._workers if worker.busy)

    @property
    def queue_size(self) -> int:
        """Jobs waiting for a worker right now."""
        return self._jobs.qsize()

    @property
    def worker_count(self) -> int:
        return len(self._workers)
