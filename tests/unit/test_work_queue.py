# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from kurral_core.pipeline.constants import RUN_COMPLETED
from kurral_core.pipeline.orchestrator import PipelineOutcome
from kurral_core.pipeline.work_queue import PipelineWorkQueue
from kurral_core.runtime_config import EngineRuntimeConfig
from kurral_core.schema.content import ProcessingStatus
from kurral_core.store.memory import InMemoryPipelineStore
from tests.fixtures.oracle_fakes import make_post


def _orchestrator(run) -> MagicMock:
    orch = MagicMock()
    orch.runtime = EngineRuntimeConfig()
    orch.store = InMemoryPipelineStore()
    orch.run = AsyncMock(side_effect=run)
    return orch


async def _completed(item_id: str, *, force: bool = False) -> PipelineOutcome:
    await asyncio.sleep(0)
    return PipelineOutcome(item_id=item_id, status=RUN_COMPLETED)


@pytest.mark.asyncio
class TestWorkQueue:
    async def test_duplicate_submit_is_dropped(self):
        queue = PipelineWorkQueue(_orchestrator(_completed), workers=2)
        assert queue.submit("post-1") is True
        assert queue.submit("post-1", force=True) is False
        assert queue.is_pending("post-1")

        outcomes = await queue.drain()

        assert list(outcomes) == ["post-1"]
        assert queue.orchestrator.run.await_count == 1
        assert not queue.is_pending("post-1")
        assert not queue.running

    async def test_item_can_be_resubmitted_after_its_run(self):
        queue = PipelineWorkQueue(_orchestrator(_completed), workers=1)
        queue.submit("post-1")
        await queue.drain()

        assert queue.submit("post-1", force=True) is True
        await queue.drain()
        assert queue.orchestrator.run.await_count == 2
        queue.orchestrator.run.assert_awaited_with("post-1", force=True)

    async def test_worker_survives_failing_run(self):
        async def run(item_id, *, force=False):
            if item_id == "bad":
                raise RuntimeError("boom")
            return await _completed(item_id)

        queue = PipelineWorkQueue(_orchestrator(run), workers=1)
        queue.submit("bad")
        queue.submit("good")

        outcomes = await queue.drain()

        assert set(outcomes) == {"good"}
        assert outcomes["good"].completed
        assert not queue.is_pending("bad")

    async def test_submit_pending_reposts(self):
        orch = _orchestrator(_completed)
        orch.store.put_item(make_post("orig-1", processing_status=ProcessingStatus.COMPLETED))
        orch.store.put_item(make_post("rp-1", text="", repost_of_id="orig-1", awaiting_original=True))
        queue = PipelineWorkQueue(orch)

        assert queue.submit_pending_reposts() == 1
        assert queue.worker_count == orch.runtime.pipeline.queue_workers
        await queue.drain()
        orch.run.assert_awaited_once_with("rp-1", force=False)
