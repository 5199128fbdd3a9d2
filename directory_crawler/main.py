"""
Entry point for the directory crawler.

Usage:
    directory-crawler          # start, or resume an unfinished crawl

Configuration comes from CRAWLER_* environment variables or a .env file in
the working directory (see config.Settings). Press Ctrl+C to stop; progress
is saved after every entity, so the next run picks up where this one left.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from .browser import SeleniumBaseBrowser
from .config import CrawlerConfig, Settings
from .errors import BrowserLaunchError, CrawlerError
from .extractor import BrowserListingSource, SelectorExtractor
from .models import CrawlResult
from .output_sink import CsvOutputSink
from .resilience.checkpoint_store import CheckpointStore
from .resilience.work_queue import WorkQueue
from .traversal import TraversalController
from .worker_pool import WorkerPool


logger = logging.getLogger(__name__)


def build_controller(config: CrawlerConfig, browser) -> TraversalController:
    """Wire the crawl components around a browser."""
    checkpoint_store = CheckpointStore(config.state_dir)
    queue = WorkQueue(config.state_dir)
    sink = CsvOutputSink(config.output_csv)
    pool = WorkerPool(
        queue=queue,
        extractor=SelectorExtractor(browser, config),
        sink=sink,
        checkpoint_store=checkpoint_store,
        config=config,
    )
    return TraversalController(
        listing_source=BrowserListingSource(browser, config),
        pool=pool,
        queue=queue,
        checkpoint_store=checkpoint_store,
        sink=sink,
        config=config,
    )


async def run_crawl(config: CrawlerConfig) -> Optional[CrawlResult]:
    """
    Launch the browser and run the crawl.

    Raises:
        BrowserLaunchError: if the browser cannot be started
    """
    # One driver per concurrent extraction plus one for listing pages
    browser = SeleniumBaseBrowser(
        pool_size=config.concurrency_limit + 1,
        headless=config.headless,
        settle_delay=config.settle_delay,
        request_timeout=config.request_timeout,
    )
    await browser.start()

    controller = build_controller(config, browser)

    loop = asyncio.get_running_loop()
    if hasattr(signal, 'SIGTERM') and sys.platform != 'win32':
        loop.add_signal_handler(signal.SIGTERM, controller.stop)

    try:
        return await controller.run()
    except BrowserLaunchError as e:
        # Past startup a relaunch failure is recoverable: state is on disk
        logger.error("Browser failed mid-crawl (%s); run again to resume", e)
        return None
    finally:
        await controller.listing_source.close()
        await browser.close()


def print_summary(result: CrawlResult):
    print("\n" + "=" * 60)
    print("CRAWL COMPLETE" if result.finished else "CRAWL STOPPED (run again to resume)")
    print("=" * 60)
    print(f"Duration:    {result.duration_seconds / 60:.1f} minutes")
    print(f"Tabs:        {result.tabs_total}")
    print(f"Pages:       {result.pages_visited}")
    print(f"Discovered:  {result.total_discovered}")
    print(f"Completed:   {result.total_completed}")
    print(f"Skipped:     {result.total_skipped}")
    print(f"Failed:      {result.total_failed} attempts (requeued)")
    print(f"Speed:       {result.records_per_hour:.1f} records/hour")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description='Resumable crawler for paginated company directories',
        epilog='Settings are read from CRAWLER_* environment variables or .env',
    )
    parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = settings.to_config()

    print(f"Crawling {config.base_url} -> {config.output_csv}")
    print("Press Ctrl+C to stop (progress is saved automatically)\n")

    try:
        result = asyncio.run(run_crawl(config))
    except BrowserLaunchError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        print("\nStopped. Run again to resume.")
        return 0
    except (CrawlerError, OSError):
        # State on disk is only ever written after a durable step
        logger.exception("Crawl aborted; progress is saved, run again to resume")
        return 0

    if result is not None:
        print_summary(result)
    return 0


if __name__ == '__main__':
    sys.exit(main())
