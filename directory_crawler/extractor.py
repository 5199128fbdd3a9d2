"""
Site-specific extraction rules.

`SelectorExtractor` reads the homepage link from an entity's detail page;
`BrowserListingSource` enumerates tabs and reads entity links off listing
pages. Both only need the `Browser` protocol, so the pipeline can be driven
by any rendering engine (or a fake in tests).
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol

from .browser import Browser, Page
from .config import CrawlerConfig
from .errors import NavigationError
from .models import EntityRef, ExtractionError, ExtractionOutcome, Found, NotFound, Tab


class Extractor(Protocol):
    async def extract(self, ref: EntityRef) -> ExtractionOutcome: ...


@dataclass
class ListingPage:
    """Entity links read from one listing page; `found` is False on a 404."""
    url: str
    found: bool
    refs: List[EntityRef]


class ListingSource(Protocol):
    async def list_tabs(self) -> List[Tab]: ...

    async def fetch_listing(self, url: str, source_tab_url: str) -> ListingPage: ...

    async def close(self): ...


class SelectorExtractor:
    """Opens the detail page in its own page and reads the homepage link."""

    def __init__(self, browser: Browser, config: Optional[CrawlerConfig] = None):
        self.browser = browser
        self.config = config or CrawlerConfig()

    async def extract(self, ref: EntityRef) -> ExtractionOutcome:
        page = await self.browser.new_page()
        try:
            response = await page.goto(ref.detail_url, wait_until=self.config.wait_until)
            if response.not_found:
                return ExtractionError(f"detail page not found: {ref.detail_url}")

            link = await page.query_selector(
                self.config.selectors.homepage_link,
                timeout=self.config.selector_timeout
            )
            if link is None:
                return NotFound("homepage link not present")

            homepage = link.attribute('href') or ""
            if not homepage:
                return NotFound("homepage link has no href")
            return Found({'homepage_url': homepage})
        except NavigationError as e:
            return ExtractionError(str(e))
        finally:
            await page.close()


class BrowserListingSource:
    """Reads tabs and listing pages through one long-lived page."""

    def __init__(self, browser: Browser, config: Optional[CrawlerConfig] = None):
        self.browser = browser
        self.config = config or CrawlerConfig()
        self._page: Optional[Page] = None

    async def list_tabs(self) -> List[Tab]:
        """
        Enumerate the directory's category tabs from the base URL.

        Raises:
            NavigationError: if the base page cannot be loaded or lists no tabs
        """
        page = await self._get_page()
        response = await self._goto(page, self.config.base_url)
        if response.not_found:
            raise NavigationError(self.config.base_url, "base URL returned 404")

        await page.query_selector(self.config.selectors.tab_links, timeout=self.config.selector_timeout)

        tabs: List[Tab] = []
        seen = set()
        for link in await page.query_all(self.config.selectors.tab_links):
            url = link.attribute('href')
            if not url or url in seen:
                continue
            seen.add(url)
            tabs.append(Tab(url=url, label=link.text()))
        if not tabs:
            # A challenge page or partial render; retried like any failed load
            raise NavigationError(self.config.base_url, "no tab links found")
        return tabs

    async def fetch_listing(self, url: str, source_tab_url: str) -> ListingPage:
        """
        Load one listing page and collect its entity links.

        Raises:
            NavigationError: if the page fails for any reason other than 404
        """
        page = await self._get_page()
        response = await self._goto(page, url)
        if response.not_found:
            return ListingPage(url=url, found=False, refs=[])

        # Wait for the list to render; if it never does the page counts as empty
        await page.query_selector(
            self.config.selectors.entity_links,
            timeout=self.config.selector_timeout
        )
        refs: List[EntityRef] = []
        for link in await page.query_all(self.config.selectors.entity_links):
            name = link.text()
            detail_url = link.attribute('href')
            if not name or not detail_url:
                continue
            refs.append(EntityRef(name=name, detail_url=detail_url, source_tab_url=source_tab_url))
        return ListingPage(url=url, found=True, refs=refs)

    async def close(self):
        if self._page is not None:
            await self._page.close()
            self._page = None

    async def _get_page(self) -> Page:
        if self._page is None:
            self._page = await self.browser.new_page()
        return self._page

    async def _goto(self, page: Page, url: str):
        try:
            return await page.goto(url, wait_until=self.config.wait_until)
        except NavigationError:
            # Start the retry on a fresh page in case the driver died
            await self.close()
            raise
