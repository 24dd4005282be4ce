# tests/unit/pipeline/test_job.py — v1
"""Tests for pipeline/job.py — job state and report."""

from __future__ import annotations

import asyncio

import pytest

from docview.pipeline.job import ConversionJob


class TestConversionJob:
    def test_priority_passes(self):
        job = ConversionJob(generation=1, resolution=100, priority_pages=[2, 7])
        job.enqueue_priority()
        assert [p.pages for p in job.queue] == [[2], [7]]
        assert all(p.priority for p in job.queue)

    def test_active_states(self):
        job = ConversionJob(generation=1, resolution=100)
        assert job.active
        job.status = "running"
        assert job.active
        job.finish("succeeded")
        assert not job.active

    def test_finish_is_idempotent(self):
        job = ConversionJob(generation=1, resolution=100)
        job.rendered += [3, 1, 3]
        first = job.finish("succeeded")
        second = job.finish("failed")
        assert first is second
        assert first.status == "succeeded"
        assert first.pages_rendered == [1, 3]

    def test_cancel_sticks(self):
        job = ConversionJob(generation=1, resolution=100)
        job.cancel()
        assert job.finish("succeeded").status == "cancelled"

    @pytest.mark.asyncio
    async def test_wait(self):
        job = ConversionJob(generation=4, resolution=100)
        waiter = asyncio.ensure_future(job.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        job.finish("failed")
        report = await waiter
        assert report.generation == 4
        assert report.status == "failed"
        assert job.finished
