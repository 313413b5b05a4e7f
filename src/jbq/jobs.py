from __future__ import annotations

import logging
import queue
import threading
from typing import Any

from .models import Job, JobHandler

_LOGGER = logging.getLogger("dexiq.jbq.jobs")


class JobQueue:
    """FIFO of token jobs with one handler per job kind.

    Jobs run on background workers after ``start`` or inline through
    ``run_pending``. A handler exception is logged and the job is dropped;
    nothing is retried.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[Job | None] = queue.Queue()
        self._handlers: dict[str, JobHandler] = {}
        self._workers: list[threading.Thread] = []
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self.completed = 0
        self.failed = 0

    def register(self, kind: str, handler: JobHandler) -> None:
        with self._lock:
            self._handlers[kind] = handler

    def enqueue(self, kind: str, token_id: int, payload: dict[str, Any] | None = None) -> Job:
        with self._lock:
            if kind not in self._handlers:
                raise ValueError(f"JBQ_UNKNOWN_JOB_KIND: {kind}")
        job = Job(kind=kind, token_id=token_id, payload=dict(payload or {}))
        self._queue.put(job)
        _LOGGER.debug("job enqueued id=%s kind=%s token_id=%s", job.job_id, kind, token_id)
        return job

    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return any(worker.is_alive() for worker in self._workers)

    def start(self, workers: int = 2) -> None:
        if self.running:
            return
        self._stop.clear()
        self._workers = [
            threading.Thread(target=self._worker_loop, name=f"jbq-worker-{index}", daemon=True)
            for index in range(max(1, workers))
        ]
        for worker in self._workers:
            worker.start()
        _LOGGER.info("job workers started count=%s", len(self._workers))

    def stop(self, timeout: float = 5.0) -> None:
        if not self._workers:
            return
        self._stop.set()
        for _ in self._workers:
            self._queue.put(None)
        for worker in self._workers:
            worker.join(timeout=timeout)
        self._workers = []
        _LOGGER.info("job workers stopped")

    def run_pending(self, max_jobs: int | None = None) -> int:
        """Run queued jobs on the calling thread, including jobs enqueued by
        the handlers themselves. Returns the number of jobs executed."""
        executed = 0
        while max_jobs is None or executed < max_jobs:
            try:
                job = self._queue.get_nowait()
            except queue.Empty:
                break
            if job is None:
                continue
            self._execute(job)
            executed += 1
        return executed

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            job = self._queue.get()
            if job is None:
                break
            self._execute(job)

    def _execute(self, job: Job) -> None:
        with self._lock:
            handler = self._handlers.get(job.kind)
        if handler is None:
            _LOGGER.error("no handler for job id=%s kind=%s", job.job_id, job.kind)
            return
        try:
            handler(job)
        except Exception:
            with self._lock:
                self.failed += 1
            _LOGGER.exception("job failed id=%s kind=%s token_id=%s", job.job_id, job.kind, job.token_id)
            return
        with self._lock:
            self.completed += 1
