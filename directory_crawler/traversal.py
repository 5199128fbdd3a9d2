"""
Traversal controller: walks tabs and their listing pages, feeds the work
queue, drains it through the worker pool and advances the checkpoint.

State machine::

    AT_TAB(i) -> AT_PAGE(tab, url) -> ... -> AT_TAB(i + 1) -> ... -> DONE

Checkpoint and queue files are removed only on DONE; their presence means a
crawl is unfinished and the next run resumes it.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from .config import CrawlerConfig
from .errors import NavigationError
from .extractor import ListingPage, ListingSource
from .models import Checkpoint, CrawlResult, PoolStats, Tab
from .output_sink import CsvOutputSink
from .resilience.checkpoint_store import CheckpointStore
from .resilience.work_queue import WorkQueue
from .utils import next_page_url, now_iso, page_index
from .worker_pool import WorkerPool


logger = logging.getLogger(__name__)


class TraversalController:
    """Main orchestrator that drives a resumable crawl."""

    def __init__(
        self,
        listing_source: ListingSource,
        pool: WorkerPool,
        queue: WorkQueue,
        checkpoint_store: CheckpointStore,
        sink: CsvOutputSink,
        config: Optional[CrawlerConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.listing_source = listing_source
        self.pool = pool
        self.queue = queue
        self.checkpoint_store = checkpoint_store
        self.sink = sink
        self.config = config or CrawlerConfig()
        self._sleep = sleep
        self._stopped = False
        self._started_at: Optional[str] = None

        self.stats = PoolStats()
        self.pages_visited = 0
        self.total_discovered = 0
        self.tabs: List[Tab] = []

    def stop(self):
        """Stop after the current page; everything done so far is persisted."""
        logger.info("Stop requested, finishing current page")
        self._stopped = True

    async def run(self) -> CrawlResult:
        """
        Run (or resume) the crawl until every tab is exhausted.

        Returns:
            CrawlResult with statistics and status
        """
        self._stopped = False
        self._started_at = now_iso()

        self.sink.ensure_header_exists()
        checkpoint = self._load_or_create_checkpoint()

        restored = self.queue.load()
        if restored:
            logger.info("Resuming %d queued entities from the previous run", restored)
            self.stats.add(await self.pool.run_to_empty(checkpoint))

        tabs = await self._with_page_retry(self.listing_source.list_tabs)
        if tabs is None:
            return self._create_result(finished=False)
        if not tabs:
            # Zero tabs is never DONE; state files stay
            logger.warning("No tabs found at %s; keeping state for the next run", self.config.base_url)
            return self._create_result(finished=False)

        self.tabs = tabs
        logger.info("Found %d tabs", len(self.tabs))

        start_index = self._resume_index(checkpoint)
        for index in range(start_index, len(self.tabs)):
            if self._stopped:
                break
            tab = self.tabs[index]
            resuming = index == start_index and checkpoint.last_tab_url == tab.url
            await self._crawl_tab(index, tab, checkpoint, resuming)

        finished = not self._stopped
        if finished:
            # DONE: the only place state files are removed
            self.checkpoint_store.clear()
            self.queue.clear()
            logger.info("Crawl complete, %d entities processed", checkpoint.total_processed)

        return self._create_result(finished=finished)

    def _load_or_create_checkpoint(self) -> Checkpoint:
        checkpoint = self.checkpoint_store.load()
        if checkpoint is None:
            logger.info("No checkpoint found, starting a fresh crawl")
            return self.checkpoint_store.create_new()

        logger.info(
            "Resuming crawl: %d processed, last tab %s, last page %s",
            checkpoint.total_processed, checkpoint.last_tab_url, checkpoint.last_page_url
        )
        return checkpoint

    def _resume_index(self, checkpoint: Checkpoint) -> int:
        if not checkpoint.last_tab_url:
            return 0
        for index, tab in enumerate(self.tabs):
            if tab.url == checkpoint.last_tab_url:
                return index
        logger.warning("Saved tab %s no longer listed, starting from the first tab", checkpoint.last_tab_url)
        return 0

    async def _crawl_tab(self, index: int, tab: Tab, checkpoint: Checkpoint, resuming: bool):
        if resuming and checkpoint.last_page_url:
            url = checkpoint.last_page_url
            logger.info("[Tab %d/%d] %s: resuming at %s", index + 1, len(self.tabs), tab.label, url)
        else:
            url = tab.url
            # Tab transition: the saved page only applied to the previous tab
            checkpoint.last_tab_url = tab.url
            checkpoint.last_page_url = None
            self.checkpoint_store.save(checkpoint)
            logger.info("[Tab %d/%d] %s", index + 1, len(self.tabs), tab.label)

        while not self._stopped:
            listing = await self._with_page_retry(self.listing_source.fetch_listing, url, tab.url)
            if listing is None:
                break
            if not listing.found:
                logger.info("  %s not found, end of tab %s", url, tab.label)
                break
            if not listing.refs:
                logger.info("  %s lists no entities, end of tab %s", url, tab.label)
                break

            await self._crawl_page(listing, tab, checkpoint)
            url = next_page_url(url, tab.url)

    async def _crawl_page(self, listing: ListingPage, tab: Tab, checkpoint: Checkpoint):
        page_no = page_index(listing.url, tab.url)
        self.pages_visited += 1
        self.total_discovered += len(listing.refs)

        added = self.queue.enqueue(listing.refs, checkpoint.processed_names)
        logger.info("  [Page %d] found %d entities, %d new", page_no, len(listing.refs), added)

        page_stats = await self.pool.run_to_empty(checkpoint)
        self.stats.add(page_stats)

        checkpoint.last_tab_url = tab.url
        checkpoint.last_page_url = listing.url
        self.checkpoint_store.save(checkpoint)

        logger.info(
            "  Page %d done: %d saved, %d skipped, %d failed attempts, %d total processed",
            page_no, page_stats.completed, page_stats.skipped, page_stats.failed, checkpoint.total_processed
        )

    async def _with_page_retry(self, func, *args):
        """
        Retry a page-level load until it succeeds; a whole-page failure is
        assumed transient. Returns None if a stop is requested meanwhile.
        """
        while not self._stopped:
            try:
                return await func(*args)
            except NavigationError as e:
                if self._stopped:
                    logger.info("Page load failed (%s), not retrying after stop", e)
                    break
                logger.warning("Page load failed (%s), retrying in %.0fs", e, self.config.page_cooldown)
                await self._sleep(self.config.page_cooldown)
        return None

    def _create_result(self, finished: bool) -> CrawlResult:
        """Create CrawlResult with calculated fields."""
        completed_at = now_iso()

        duration = 0.0
        if self._started_at:
            start = datetime.fromisoformat(self._started_at)
            end = datetime.fromisoformat(completed_at)
            duration = (end - start).total_seconds()

        records_per_hour = 0.0
        if duration > 0:
            records_per_hour = self.stats.completed / (duration / 3600)

        return CrawlResult(
            success=True,
            finished=finished,
            started_at=self._started_at or completed_at,
            completed_at=completed_at,
            tabs_total=len(self.tabs),
            pages_visited=self.pages_visited,
            total_discovered=self.total_discovered,
            total_completed=self.stats.completed,
            total_skipped=self.stats.skipped,
            total_failed=self.stats.failed,
            duration_seconds=duration,
            records_per_hour=records_per_hour
        )
