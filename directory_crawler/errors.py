"""
Exception types raised by the crawler.
"""


class CrawlerError(Exception):
    """Base class for crawler errors."""


class NavigationError(CrawlerError):
    """A page could not be loaded (network error, driver failure, bad status)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class BrowserLaunchError(CrawlerError):
    """The rendering engine could not be started."""


class StateFileError(CrawlerError):
    """Crawl state could not be written to disk."""
