# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.

"""
In-process work queue for pipeline runs.

An item id is accepted at most once while it is queued or in flight, so a
burst of triggers for the same item (new comments, repost resolution) turns
into a single run. Cross-process exclusion is the store's run claim.
"""

from __future__ import annotations

import asyncio
import logging

from kurral_core.pipeline.orchestrator import PipelineOrchestrator, PipelineOutcome
from kurral_core.pipeline.reposts import ready_pending_reposts

logger = logging.getLogger(__name__)


class PipelineWorkQueue:
    def __init__(self, orchestrator: PipelineOrchestrator, *, workers: int | None = None):
        self.orchestrator = orchestrator
        self.worker_count = max(1, workers or orchestrator.runtime.pipeline.queue_workers)
        self._queue: asyncio.Queue[tuple[str, bool]] = asyncio.Queue()
        self._pending: set[str] = set()
        self._workers: list[asyncio.Task] = []
        self.outcomes: dict[str, PipelineOutcome] = {}

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def is_pending(self, item_id: str) -> bool:
        return item_id in self._pending

    def submit(self, item_id: str, *, force: bool = False) -> bool:
        """Queue an item; returns False when it is already queued or running."""
        if item_id in self._pending:
            logger.debug("[WorkQueue] %s already pending; dropping duplicate", item_id)
            return False
        self._pending.add(item_id)
        self._queue.put_nowait((item_id, force))
        return True

    def submit_pending_reposts(self, limit: int | None = None) -> int:
        limit = limit or self.orchestrator.runtime.pipeline.pending_repost_batch
        ready = ready_pending_reposts(self.orchestrator.store, limit=limit)
        return sum(1 for repost in ready if self.submit(repost.id))

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"kurral-worker-{n}")
            for n in range(self.worker_count)
        ]
        logger.info("[WorkQueue] Started %d workers", self.worker_count)

    async def join(self) -> None:
        await self._queue.join()

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("[WorkQueue] Stopped")

    async def drain(self) -> dict[str, PipelineOutcome]:
        """Run everything queued so far and stop the workers."""
        self.start()
        await self.join()
        await self.stop()
        return self.outcomes

    async def _worker(self, n: int) -> None:
        while True:
            item_id, force = await self._queue.get()
            try:
                self.outcomes[item_id] = await self.orchestrator.run(item_id, force=force)
            except Exception as e:
                logger.exception("[WorkQueue] worker %d: run for %s failed: %s", n, item_id, e)
            finally:
                self._pending.discard(item_id)
                self._queue.task_done()
