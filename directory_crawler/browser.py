"""
Page-rendering capability used by the crawler, and its SeleniumBase
implementation.

The crawler only relies on the small `Browser` / `Page` / `Element` protocol
below. `SeleniumBaseBrowser` keeps a bounded pool of undetected-Chrome
drivers so several detail pages can be open at the same time; blocking
driver calls are pushed to worker threads.
"""

import asyncio
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, Tag
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from seleniumbase import Driver

from .errors import BrowserLaunchError, NavigationError


logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# Attributes the DOM exposes as absolute URLs
_URL_ATTRIBUTES = ('href', 'src')


@dataclass
class Response:
    url: str
    status: int

    @property
    def not_found(self) -> bool:
        return self.status == 404


class Element(Protocol):
    def attribute(self, name: str) -> Optional[str]: ...

    def text(self) -> str: ...


class Page(Protocol):
    async def goto(self, url: str, wait_until: str = "networkidle2") -> Response: ...

    async def query_selector(self, selector: str, timeout: float = 10.0) -> Optional[Element]: ...

    async def query_all(self, selector: str) -> List[Element]: ...

    async def close(self): ...


class Browser(Protocol):
    async def new_page(self) -> Page: ...

    async def close(self): ...


class SoupElement:
    """Element snapshot backed by a BeautifulSoup tag."""

    def __init__(self, tag: Tag, base_url: str):
        self._tag = tag
        self._base_url = base_url

    def attribute(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            value = " ".join(value)
        if name in _URL_ATTRIBUTES and value:
            return urljoin(self._base_url, value)
        return value

    def text(self) -> str:
        return self._tag.get_text(strip=True)


class SeleniumBasePage:
    """One checked-out driver, used as an independent page."""

    def __init__(self, browser: "SeleniumBaseBrowser", driver):
        self._browser = browser
        self._driver = driver
        self._url = ""
        self._closed = False

    async def goto(self, url: str, wait_until: str = "networkidle2") -> Response:
        """
        Navigate to `url`.

        The HTTP status comes from a lightweight probe since WebDriver does
        not expose it; a 404 is returned without rendering the page.
        """
        status = await asyncio.to_thread(self._browser.probe_status, url)
        if status == 404:
            self._url = url
            return Response(url=url, status=status)
        if status >= 500:
            raise NavigationError(url, f"HTTP {status}")

        try:
            await asyncio.to_thread(self._driver.get, url)
        except WebDriverException as e:
            self._browser.mark_broken(self._driver)
            raise NavigationError(url, f"driver error: {e.msg or e}") from e

        # No network-idle signal in WebDriver; give client-side rendering a moment
        if wait_until == "networkidle2" and self._browser.settle_delay > 0:
            await asyncio.sleep(self._browser.settle_delay)

        self._url = await asyncio.to_thread(lambda: self._driver.current_url)
        return Response(url=self._url, status=status)

    async def query_selector(self, selector: str, timeout: float = 10.0) -> Optional[SoupElement]:
        """Wait up to `timeout` seconds for `selector`, None if it never shows up."""
        try:
            await asyncio.to_thread(self._wait_for, selector, timeout)
        except TimeoutException:
            return None
        except WebDriverException as e:
            raise NavigationError(self._url, f"driver error: {e.msg or e}") from e

        soup = await self._soup()
        tag = soup.select_one(selector)
        if tag is None:
            return None
        return SoupElement(tag, self._url)

    async def query_all(self, selector: str) -> List[SoupElement]:
        soup = await self._soup()
        return [SoupElement(tag, self._url) for tag in soup.select(selector)]

    async def close(self):
        if self._closed:
            return
        self._closed = True
        self._browser.release(self._driver)

    def _wait_for(self, selector: str, timeout: float):
        WebDriverWait(self._driver, timeout).until(
            EC.presence_of_element_located((By.CSS_SELECTOR, selector))
        )

    async def _soup(self) -> BeautifulSoup:
        try:
            html = await asyncio.to_thread(lambda: self._driver.page_source)
        except WebDriverException as e:
            raise NavigationError(self._url, f"driver error: {e.msg or e}") from e
        return BeautifulSoup(html, 'html.parser')


class SeleniumBaseBrowser:
    """Pool of SeleniumBase drivers handed out as pages."""

    def __init__(
        self,
        pool_size: int = 6,
        headless: bool = True,
        settle_delay: float = 2.0,
        request_timeout: float = 30.0
    ):
        """
        Args:
            pool_size: Maximum number of drivers open at once
            headless: Run Chrome without a window
            settle_delay: Seconds to wait after navigation for rendering
            request_timeout: Timeout for the status probe
        """
        self.pool_size = max(1, pool_size)
        self.headless = headless
        self.settle_delay = settle_delay
        self.request_timeout = request_timeout
        self._idle: "asyncio.Queue" = asyncio.Queue()
        self._all: list = []
        self._broken: set = set()
        self._launching = 0
        self._session = requests.Session()
        self._session.headers.update(_DEFAULT_HEADERS)

    async def start(self):
        """Launch the first driver so a broken browser install fails fast."""
        driver = await self._launch()
        self._idle.put_nowait(driver)

    async def new_page(self) -> SeleniumBasePage:
        driver = await self._acquire()
        return SeleniumBasePage(self, driver)

    def release(self, driver):
        if id(driver) in self._broken:
            self._broken.discard(id(driver))
            self._quit(driver)
            return
        self._idle.put_nowait(driver)

    def mark_broken(self, driver):
        self._broken.add(id(driver))

    def probe_status(self, url: str) -> int:
        """HEAD the URL (GET if HEAD is refused) and return the status code."""
        try:
            response = self._session.head(url, timeout=self.request_timeout, allow_redirects=True)
            if response.status_code in (403, 405):
                response = self._session.get(url, timeout=self.request_timeout, allow_redirects=True, stream=True)
                response.close()
            return response.status_code
        except requests.RequestException as e:
            raise NavigationError(url, f"request failed: {e}") from e

    async def close(self):
        drivers = list(self._all)
        self._all.clear()
        for driver in drivers:
            await asyncio.to_thread(self._quit_quietly, driver)
        self._session.close()

    async def _acquire(self):
        while True:
            try:
                driver = self._idle.get_nowait()
            except asyncio.QueueEmpty:
                break
            if await asyncio.to_thread(self._is_alive, driver):
                return driver
            logger.warning("Browser connection lost, restarting driver")
            self._quit(driver)

        if len(self._all) + self._launching < self.pool_size:
            return await self._launch()

        driver = await self._idle.get()
        if await asyncio.to_thread(self._is_alive, driver):
            return driver
        self._quit(driver)
        return await self._launch()

    async def _launch(self):
        self._launching += 1
        try:
            driver = await asyncio.to_thread(self._init_driver)
        except Exception as e:
            raise BrowserLaunchError(f"Could not start browser: {e}") from e
        finally:
            self._launching -= 1
        self._all.append(driver)
        return driver

    def _init_driver(self):
        """Initialize SeleniumBase Driver with UC mode"""
        logger.info("Initializing browser (headless=%s)", self.headless)

        if sys.platform.startswith('linux'):
            # Snap-packaged Chromium does not work with UC mode
            os.environ['SNAP_NAME'] = ''
            os.environ['SNAP'] = ''
            os.environ['SNAP_INSTANCE_NAME'] = ''

        start = time.monotonic()
        driver = Driver(uc=True, headless=self.headless)
        logger.debug("Browser ready in %.1fs", time.monotonic() - start)
        return driver

    @staticmethod
    def _is_alive(driver) -> bool:
        try:
            driver.current_url
            return True
        except (ConnectionRefusedError, OSError, AttributeError, WebDriverException):
            return False

    def _quit(self, driver):
        if driver in self._all:
            self._all.remove(driver)
        self._quit_quietly(driver)

    @staticmethod
    def _quit_quietly(driver):
        try:
            driver.quit()
        except Exception as e:
            logger.debug("Error closing driver: %s", e)
