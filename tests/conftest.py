"""Pytest configuration and shared fakes."""

import asyncio
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Union

import pytest

from directory_crawler.browser import Response
from directory_crawler.config import CrawlerConfig, RetryConfig
from directory_crawler.errors import NavigationError
from directory_crawler.extractor import ListingPage
from directory_crawler.models import EntityRef, ExtractionError, Found, NotFound, Tab
from directory_crawler.output_sink import CsvOutputSink
from directory_crawler.resilience.checkpoint_store import CheckpointStore
from directory_crawler.resilience.work_queue import WorkQueue
from directory_crawler.traversal import TraversalController
from directory_crawler.worker_pool import WorkerPool


BASE = "https://directory.test/companies"


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)
        await asyncio.sleep(0)


class FakeListingSource:
    """
    Listing pages keyed by URL. A URL missing from `pages` is a 404.
    `failures[url]` makes the first N loads of that URL raise NavigationError.
    """

    def __init__(
        self,
        tabs: List[Tab],
        pages: Dict[str, List[str]],
        failures: Optional[Dict[str, int]] = None,
        on_fetch: Optional[Callable[[str], None]] = None
    ):
        self.tabs = tabs
        self.pages = pages
        self.failures = dict(failures or {})
        self.on_fetch = on_fetch
        self.visited: List[str] = []
        self.closed = False

    async def list_tabs(self) -> List[Tab]:
        return list(self.tabs)

    async def fetch_listing(self, url: str, source_tab_url: str) -> ListingPage:
        self.visited.append(url)
        if self.on_fetch:
            self.on_fetch(url)
        if self.failures.get(url, 0) > 0:
            self.failures[url] -= 1
            raise NavigationError(url, "connection reset")
        if url not in self.pages:
            return ListingPage(url=url, found=False, refs=[])
        refs = [
            EntityRef(name=name, detail_url=f"https://directory.test/org/{name}", source_tab_url=source_tab_url)
            for name in self.pages[url]
        ]
        return ListingPage(url=url, found=True, refs=refs)

    async def close(self):
        self.closed = True


Behavior = Union[Found, NotFound, ExtractionError, BaseException]


class FakeExtractor:
    """
    Returns scripted outcomes per entity name. A list is consumed one item per
    call (the last item repeats); exceptions in the script are raised.
    """

    def __init__(self, script: Optional[Dict[str, Union[Behavior, List[Behavior]]]] = None, delay: float = 0.0):
        self.script = script or {}
        self.delay = delay
        self.calls: Dict[str, int] = defaultdict(int)
        self.active = 0
        self.max_active = 0

    async def extract(self, ref: EntityRef):
        self.calls[ref.name] += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            behavior = self.script.get(ref.name, Found({'homepage_url': f"https://{ref.name}.example"}))
            if isinstance(behavior, list):
                index = min(self.calls[ref.name] - 1, len(behavior) - 1)
                behavior = behavior[index]
            if isinstance(behavior, BaseException):
                raise behavior
            return behavior
        finally:
            self.active -= 1


class FakeElement:
    def __init__(self, attrs: Optional[Dict[str, str]] = None, text: str = ""):
        self._attrs = attrs or {}
        self._text = text

    def attribute(self, name: str) -> Optional[str]:
        return self._attrs.get(name)

    def text(self) -> str:
        return self._text


class FakePage:
    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser
        self.url = ""
        self.closed = False
        self.waited: List[str] = []

    async def goto(self, url: str, wait_until: str = "networkidle2") -> Response:
        self.browser.navigations.append(url)
        if url in self.browser.errors:
            raise NavigationError(url, self.browser.errors[url])
        self.url = url
        self.waited = []
        status = 200 if url in self.browser.dom else 404
        return Response(url=url, status=status)

    async def query_selector(self, selector: str, timeout: float = 10.0):
        self.waited.append(selector)
        elements = self.browser.dom.get(self.url, {}).get(selector, [])
        return elements[0] if elements else None

    async def query_all(self, selector: str):
        if self.url in self.browser.late and selector not in self.waited:
            return []
        return list(self.browser.dom.get(self.url, {}).get(selector, []))

    async def close(self):
        self.closed = True


class FakeBrowser:
    """
    `dom[url][selector]` lists the elements on that page; unknown URLs are 404.
    On URLs in `late` the elements only show up once a page has waited for
    their selector with query_selector.
    """

    def __init__(
        self,
        dom: Optional[Dict[str, Dict[str, List[FakeElement]]]] = None,
        errors: Optional[Dict[str, str]] = None,
        late: Optional[List[str]] = None
    ):
        self.dom = dom or {}
        self.errors = errors or {}
        self.late = set(late or [])
        self.pages: List[FakePage] = []
        self.navigations: List[str] = []

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def close(self):
        pass


@pytest.fixture
def config(tmp_path):
    return CrawlerConfig(
        base_url=BASE,
        concurrency_limit=5,
        chunk_cooldown=30.0,
        page_cooldown=30.0,
        state_dir=str(tmp_path / "state"),
        output_csv=str(tmp_path / "output.csv"),
        retry=RetryConfig(max_retries=3, retry_delay=30.0),
    )


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def make_crawler(config, sleeper):
    """Factory wiring a TraversalController around fakes, sharing one state dir."""

    def _make(listing_source, extractor, crawl_config: Optional[CrawlerConfig] = None):
        cfg = crawl_config or config
        checkpoint_store = CheckpointStore(cfg.state_dir)
        queue = WorkQueue(cfg.state_dir)
        sink = CsvOutputSink(cfg.output_csv)
        pool = WorkerPool(queue, extractor, sink, checkpoint_store, cfg, sleep=sleeper)
        return TraversalController(
            listing_source, pool, queue, checkpoint_store, sink, cfg, sleep=sleeper
        )

    return _make
