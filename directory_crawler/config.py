"""
Configuration for the directory crawler.

Plain dataclasses carry the knobs through the code; `Settings` reads
overrides from the environment (prefix ``CRAWLER_``) or a ``.env`` file.
"""

from dataclasses import dataclass, field

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "https://theorg.com/companies"


@dataclass
class RetryConfig:
    """Configuration for per-entity retry behavior."""
    max_retries: int = 3
    retry_delay: float = 30.0


@dataclass
class SelectorConfig:
    """CSS selectors for the target directory's markup."""
    tab_links: str = 'li.sc-2d41e6a8-5.kiuOtN > a'
    entity_links: str = 'li.sc-2d41e6a8-7.EuiIB > a'
    homepage_link: str = 'a.sc-6de434d-3.fxxeMP[title="View the website"]'


@dataclass
class CrawlerConfig:
    """Main configuration for the crawler."""
    base_url: str = DEFAULT_BASE_URL

    # Concurrency and pacing
    concurrency_limit: int = 5
    chunk_cooldown: float = 30.0
    page_cooldown: float = 30.0

    # Browser settings
    headless: bool = True
    wait_until: str = "networkidle2"
    settle_delay: float = 2.0
    selector_timeout: float = 10.0
    request_timeout: float = 30.0

    # Persistence
    state_dir: str = "crawler_state"
    output_csv: str = "output.csv"

    retry: RetryConfig = field(default_factory=RetryConfig)
    selectors: SelectorConfig = field(default_factory=SelectorConfig)


class Settings(BaseSettings):
    """Environment overrides for CrawlerConfig."""

    model_config = SettingsConfigDict(
        env_prefix="CRAWLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = DEFAULT_BASE_URL
    concurrency_limit: int = 5
    max_retries: int = 3
    retry_delay: float = 30.0
    chunk_cooldown: float = 30.0
    page_cooldown: float = 30.0
    headless: bool = True
    wait_until: str = "networkidle2"
    settle_delay: float = 2.0
    selector_timeout: float = 10.0
    request_timeout: float = 30.0
    state_dir: str = "crawler_state"
    output_csv: str = "output.csv"
    tab_links_selector: str = SelectorConfig.tab_links
    entity_links_selector: str = SelectorConfig.entity_links
    homepage_link_selector: str = SelectorConfig.homepage_link
    log_level: str = "INFO"

    def to_config(self) -> CrawlerConfig:
        """Build a CrawlerConfig from these settings."""
        return CrawlerConfig(
            base_url=self.base_url,
            concurrency_limit=max(1, self.concurrency_limit),
            chunk_cooldown=self.chunk_cooldown,
            page_cooldown=self.page_cooldown,
            headless=self.headless,
            wait_until=self.wait_until,
            settle_delay=self.settle_delay,
            selector_timeout=self.selector_timeout,
            request_timeout=self.request_timeout,
            state_dir=self.state_dir,
            output_csv=self.output_csv,
            retry=RetryConfig(
                max_retries=max(1, self.max_retries),
                retry_delay=self.retry_delay,
            ),
            selectors=SelectorConfig(
                tab_links=self.tab_links_selector,
                entity_links=self.entity_links_selector,
                homepage_link=self.homepage_link_selector,
            ),
        )
