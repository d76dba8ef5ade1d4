"""Job broker contract and an in-process implementation.

A durable broker lives outside this package; anything with the JobQueue
methods can drive CompilationService and make_worker(). InMemoryJobQueue
backs the CLI and the tests.
"""

import itertools
import logging
import threading
from collections import deque
from typing import Callable, Protocol

from . import jobs
from .errors import JobNotFoundError
from .models import Job, JobState

logger = logging.getLogger(__name__)

JobCallback = Callable[[str, dict], object]


class JobQueue(Protocol):
    def submit(self, payload: dict) -> str: ...

    def consume(self, callback: JobCallback) -> None: ...

    def set_progress(self, job_id: str, percent: int) -> None: ...

    def complete(self, job_id: str, result: dict) -> None: ...

    def fail(self, job_id: str, error: str) -> None: ...

    def status(self, job_id: str) -> dict: ...


class InMemoryJobQueue:
    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._pending: deque[str] = deque()
        self._lock = threading.Lock()
        self._available = threading.Condition(self._lock)
        self._ids = itertools.count(1)
        self._threads: list[threading.Thread] = []
        self._closed = False

    # ── Producer side ─────────────────────────────────────────────

    def submit(self, payload: dict) -> str:
        with self._lock:
            job_id = str(next(self._ids))
            self._jobs[job_id] = Job(job_id=job_id, payload=payload)
            self._pending.append(job_id)
            self._available.notify()
        return job_id

    def status(self, job_id) -> dict:
        with self._lock:
            return self._get(job_id).snapshot()

    def get(self, job_id) -> Job:
        with self._lock:
            return self._get(job_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    # ── Worker side ───────────────────────────────────────────────

    def set_progress(self, job_id, percent: int) -> None:
        with self._lock:
            jobs.set_progress(self._get(job_id), percent)

    def complete(self, job_id, result: dict) -> None:
        with self._lock:
            job = jobs.transition(self._get(job_id), JobState.COMPLETED)
            job.result = result

    def fail(self, job_id, error: str) -> None:
        with self._lock:
            job = jobs.transition(self._get(job_id), JobState.FAILED)
            job.error = error

    def process_next(self, callback: JobCallback) -> bool:
        """Run the oldest waiting job on the calling thread.

        Returns False if nothing was waiting.
        """
        job = self._claim(block=False)
        if job is None:
            return False
        self._dispatch(job, callback)
        return True

    def drain(self, callback: JobCallback) -> int:
        count = 0
        while self.process_next(callback):
            count += 1
        return count

    def consume(self, callback: JobCallback, workers: int = 1) -> None:
        """Start background worker threads that run callback per job."""
        for n in range(workers):
            thread = threading.Thread(
                target=self._worker_loop, args=(callback,),
                name=f"clipreel-worker-{n}", daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
            self._available.notify_all()
        if wait:
            for thread in self._threads:
                thread.join()
        self._threads.clear()

    # ── Internals ─────────────────────────────────────────────────

    def _get(self, job_id) -> Job:
        try:
            return self._jobs[str(job_id)]
        except KeyError:
            raise JobNotFoundError(str(job_id)) from None

    def _claim(self, block: bool) -> Job | None:
        with self._lock:
            while not self._pending:
                if not block or self._closed:
                    return None
                self._available.wait()
            job = self._jobs[self._pending.popleft()]
            jobs.transition(job, JobState.ACTIVE)
            return job

    def _dispatch(self, job: Job, callback: JobCallback) -> None:
        try:
            callback(job.job_id, job.payload)
        except Exception as exc:
            logger.exception("Worker raised for job %s", job.job_id)
            with self._lock:
                if job.state is JobState.ACTIVE:
                    jobs.transition(job, JobState.FAILED)
                    job.error = jobs.describe_failure(exc)
            return
        with self._lock:
            if job.state is JobState.ACTIVE:
                # Callback returned without reporting an outcome.
                jobs.transition(job, JobState.FAILED)
                job.error = "Worker finished without reporting a result"

    def _worker_loop(self, callback: JobCallback) -> None:
        while True:
            job = self._claim(block=True)
            if job is None:
                return
            self._dispatch(job, callback)
