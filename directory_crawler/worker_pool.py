"""
Chunked worker pool that drains the work queue.

Each chunk fans out to at most `concurrency_limit` extraction tasks which are
all joined before the next chunk is drawn. Workers only return outcomes; the
pool applies every state change (output row, checkpoint, queue) itself, so
the shared state never needs a lock.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from .config import CrawlerConfig
from .extractor import Extractor
from .models import Checkpoint, EntityRef, ExtractedRecord, Found, PoolStats
from .output_sink import CsvOutputSink
from .resilience.checkpoint_store import CheckpointStore
from .resilience.retry_handler import RetryHandler
from .resilience.work_queue import WorkQueue


logger = logging.getLogger(__name__)


class WorkerPool:
    """Drains a WorkQueue through an Extractor into the output sink."""

    def __init__(
        self,
        queue: WorkQueue,
        extractor: Extractor,
        sink: CsvOutputSink,
        checkpoint_store: CheckpointStore,
        config: Optional[CrawlerConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.queue = queue
        self.extractor = extractor
        self.sink = sink
        self.checkpoint_store = checkpoint_store
        self.config = config or CrawlerConfig()
        self._sleep = sleep
        self.retry_handler = RetryHandler(config=self.config.retry, sleep=sleep)

    async def run_to_empty(self, checkpoint: Checkpoint, max_chunks: Optional[int] = None) -> PoolStats:
        """
        Process chunks until the queue is empty.

        Args:
            checkpoint: Current checkpoint, updated in place and persisted
            max_chunks: Stop after this many chunks (one drain cycle per chunk)

        Returns:
            PoolStats for this call
        """
        stats = PoolStats()

        while self.queue:
            if max_chunks is not None and stats.chunks >= max_chunks:
                break
            chunk_stats = await self.run_chunk(checkpoint)
            stats.add(chunk_stats)

        return stats

    async def run_chunk(self, checkpoint: Checkpoint) -> PoolStats:
        """Draw one chunk, extract it concurrently and apply the results."""
        stats = PoolStats(chunks=1)
        chunk = self.queue.dequeue_chunk(self.config.concurrency_limit)

        pending: List[EntityRef] = []
        for ref in chunk:
            # Can happen when the queue file predates a later checkpoint save
            if checkpoint.is_processed(ref.name):
                self.queue.ack(ref)
                stats.skipped += 1
            else:
                pending.append(ref)

        if not pending:
            return stats

        results = await asyncio.gather(*(self._process(ref) for ref in pending))

        failed: List[EntityRef] = []
        for ref, (success, outcome) in zip(pending, results):
            if success:
                self._complete(checkpoint, ref, outcome)
                stats.completed += 1
            else:
                logger.error("Giving up on %s for this cycle: %s", ref.name, outcome)
                failed.append(ref)

        if failed:
            self.queue.requeue_front(failed)
            stats.failed += len(failed)

        if failed and len(failed) == len(pending):
            logger.warning(
                "Whole chunk of %d failed, cooling down for %.0fs",
                len(pending), self.config.chunk_cooldown
            )
            await self._sleep(self.config.chunk_cooldown)

        return stats

    async def _process(self, ref: EntityRef) -> Tuple[bool, Any]:
        return await self.retry_handler.execute_with_retry(
            self.extractor.extract, ref, label=ref.name
        )

    def _complete(self, checkpoint: Checkpoint, ref: EntityRef, outcome: Any):
        homepage = ""
        if isinstance(outcome, Found):
            homepage = outcome.fields.get('homepage_url', "") or ""

        # Row first, then checkpoint: a name is only marked once its row is on disk
        self.sink.append_record(ExtractedRecord(
            source_tab_url=ref.source_tab_url,
            name=ref.name,
            homepage_url=homepage,
        ))
        checkpoint.mark_processed(ref.name)
        self.checkpoint_store.save(checkpoint)
        self.queue.ack(ref)

        logger.info("Saved %s %s", ref.name, homepage or "(no homepage)")
