"""
Tests for the job queue and temp-file janitor.
"""

import asyncio
import os
import time

from videodub.worker import CancellationToken, Janitor, JobCanceled, JobQueue


def test_queue_runs_jobs_with_bounded_concurrency():
    seen = []
    active = 0
    peak = 0

    async def runner(job_id, token):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        seen.append(job_id)
        active -= 1

    async def go():
        queue = JobQueue(runner, concurrency=2)
        await queue.start()
        for i in range(5):
            queue.submit(f"job-{i}")
        await queue.shutdown(timeout=5)
        return queue

    queue = asyncio.run(go())
    assert sorted(seen) == [f"job-{i}" for i in range(5)]
    assert peak == 2
    assert not queue.started
    assert queue.token("job-0") is None


def test_crashing_job_reports_and_worker_survives():
    errors = []
    done = []

    async def runner(job_id, token):
        if job_id == "bad":
            raise RuntimeError("boom")
        done.append(job_id)

    async def go():
        queue = JobQueue(runner, on_error=lambda job_id, exc: errors.append((job_id, str(exc))))
        await queue.start()
        queue.submit("bad")
        queue.submit("good")
        await queue.shutdown(timeout=5)

    asyncio.run(go())
    assert errors == [("bad", "boom")]
    assert done == ["good"]


def test_cancel_sets_the_job_token():
    async def go():
        queue = JobQueue(lambda job_id, token: asyncio.sleep(0))
        token = queue.submit("a")
        assert queue.cancel("a")
        assert not queue.cancel("unknown")
        return token

    token = asyncio.run(go())
    assert token.canceled


def test_token_raises_once_canceled():
    token = CancellationToken()
    token.raise_if_canceled()
    token.cancel()
    try:
        token.raise_if_canceled()
    except JobCanceled:
        pass
    else:
        raise AssertionError("expected JobCanceled")


def test_janitor_run_once(tmp_path):
    stale = tmp_path / "stale.wav"
    stale.write_bytes(b"x")
    past = time.time() - 10_000
    os.utime(stale, (past, past))
    (tmp_path / "fresh.wav").write_bytes(b"y")

    removed = asyncio.run(Janitor(tmp_path, max_age=3600).run_once())
    assert removed == 1
    assert [p.name for p in tmp_path.iterdir()] == ["fresh.wav"]


def test_timed_out_shutdown_reports_queued_jobs():
    dropped = []
    started = []

    async def runner(job_id, token):
        started.append(job_id)
        await asyncio.sleep(10)

    async def go():
        queue = JobQueue(runner, on_dropped=dropped.append)
        await queue.start()
        for job_id in ("a", "b", "c"):
            queue.submit(job_id)
        await asyncio.sleep(0.01)
        await queue.shutdown(timeout=0.05)
        return queue

    queue = asyncio.run(go())
    assert started == ["a"]
    assert dropped == ["b", "c"]
    assert queue.pending == 0
    assert queue.token("b") is None
