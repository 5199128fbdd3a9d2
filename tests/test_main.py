import pytest

from directory_crawler import main as main_module
from directory_crawler.config import SelectorConfig, Settings
from directory_crawler.errors import BrowserLaunchError, StateFileError


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("CRAWLER_CONCURRENCY_LIMIT", "3")
    monkeypatch.setenv("CRAWLER_MAX_RETRIES", "4")
    monkeypatch.setenv("CRAWLER_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("CRAWLER_HEADLESS", "false")

    config = Settings().to_config()

    assert config.concurrency_limit == 3
    assert config.retry.max_retries == 4
    assert config.retry.retry_delay == 30.0
    assert config.state_dir == str(tmp_path / "state")
    assert config.headless is False
    assert config.base_url == "https://theorg.com/companies"


def test_settings_override_selectors_and_wait(monkeypatch):
    monkeypatch.setenv("CRAWLER_WAIT_UNTIL", "load")
    monkeypatch.setenv("CRAWLER_ENTITY_LINKS_SELECTOR", "ul.companies > li > a")

    config = Settings().to_config()

    assert config.wait_until == "load"
    assert config.selectors.entity_links == "ul.companies > li > a"
    assert config.selectors.tab_links == SelectorConfig().tab_links
    assert config.selectors.homepage_link == SelectorConfig().homepage_link


def test_settings_read_dotenv_from_working_directory(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text("CRAWLER_OUTPUT_CSV=companies.csv\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    assert Settings().to_config().output_csv == "companies.csv"


def test_browser_launch_failure_exits_non_zero(monkeypatch):
    async def failing(config):
        raise BrowserLaunchError("chrome not found")

    monkeypatch.setattr(main_module, "run_crawl", failing)

    assert main_module.main([]) == 1


def test_recoverable_crawl_error_exits_zero(monkeypatch):
    async def crashing(config):
        raise StateFileError("disk full")

    monkeypatch.setattr(main_module, "run_crawl", crashing)

    assert main_module.main([]) == 0


def test_unexpected_error_is_not_swallowed(monkeypatch):
    async def broken(config):
        raise TypeError("list_tabs() takes 1 positional argument but 2 were given")

    monkeypatch.setattr(main_module, "run_crawl", broken)

    with pytest.raises(TypeError):
        main_module.main([])


def test_interrupted_crawl_exits_zero(monkeypatch):
    async def stopped(config):
        return None

    monkeypatch.setattr(main_module, "run_crawl", stopped)

    assert main_module.main([]) == 0
