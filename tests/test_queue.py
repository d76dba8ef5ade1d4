"""Tests for the in-process job queue."""

import threading

import pytest

from clipreel.errors import InvalidStateTransitionError, JobNotFoundError
from clipreel.models import JobState
from clipreel.queue import InMemoryJobQueue


class TestInMemoryJobQueue:
    def test_job_is_active_during_callback(self):
        queue = InMemoryJobQueue()
        job_id = queue.submit({"clips": ["a"]})
        seen = []

        def callback(jid, payload):
            seen.append(queue.status(jid)["state"])
            queue.complete(jid, {"ok": True})

        assert queue.process_next(callback)
        assert seen == ["active"]
        assert queue.status(job_id) == {"state": "completed", "progress": 100, "result": {"ok": True}}

    def test_fifo_and_empty(self):
        queue = InMemoryJobQueue()
        first, second = queue.submit({"n": 1}), queue.submit({"n": 2})
        order = []

        def callback(jid, payload):
            order.append(payload["n"])
            queue.complete(jid, {})

        assert queue.drain(callback) == 2
        assert order == [1, 2]
        assert first != second
        assert not queue.process_next(callback)

    def test_progress_through_queue(self):
        queue = InMemoryJobQueue()

        def callback(jid, payload):
            queue.set_progress(jid, 40)
            queue.set_progress(jid, 30)
            assert queue.status(jid)["progress"] == 40
            queue.fail(jid, "boom")

        job_id = queue.submit({})
        queue.process_next(callback)
        assert queue.status(job_id) == {"state": "failed", "progress": 40, "error": "boom"}

    def test_raising_callback_fails_job(self):
        queue = InMemoryJobQueue()
        job_id = queue.submit({})

        def callback(jid, payload):
            raise RuntimeError("worker crashed")

        queue.process_next(callback)
        assert queue.status(job_id)["error"] == "worker crashed"

    def test_silent_callback_fails_job(self):
        queue = InMemoryJobQueue()
        job_id = queue.submit({})
        queue.process_next(lambda jid, payload: None)
        assert queue.status(job_id)["state"] == "failed"

    def test_terminal_job_cannot_complete_again(self):
        queue = InMemoryJobQueue()
        job_id = queue.submit({})
        queue.process_next(lambda jid, payload: queue.fail(jid, "x"))
        with pytest.raises(InvalidStateTransitionError):
            queue.complete(job_id, {})

    def test_unknown_job(self):
        with pytest.raises(JobNotFoundError, match="Job not found: 9"):
            InMemoryJobQueue().status("9")

    def test_background_workers(self):
        queue = InMemoryJobQueue()
        done = threading.Event()
        finished = []

        def callback(jid, payload):
            queue.complete(jid, {})
            finished.append(jid)
            if len(finished) == 3:
                done.set()

        queue.consume(callback, workers=2)
        ids = [queue.submit({}) for _ in range(3)]
        assert done.wait(timeout=5)
        queue.close()
        assert all(queue.get(i).state is JobState.COMPLETED for i in ids)
