from bs4 import BeautifulSoup

from directory_crawler.browser import Response, SeleniumBaseBrowser, SoupElement


SAMPLE_HTML = """
<ul>
  <li class="tab"><a href="/companies/a" aria-disabled="true">  A </a></li>
  <li class="tab"><a href="https://other.test/companies/b" class="x y">B</a></li>
</ul>
"""


def elements():
    soup = BeautifulSoup(SAMPLE_HTML, "html.parser")
    return [SoupElement(tag, "https://directory.test/companies") for tag in soup.select("li.tab > a")]


def test_soup_element_resolves_links_like_the_dom():
    first, second = elements()

    assert first.attribute("href") == "https://directory.test/companies/a"
    assert second.attribute("href") == "https://other.test/companies/b"
    assert first.text() == "A"


def test_soup_element_plain_attributes():
    first, second = elements()

    assert first.attribute("aria-disabled") == "true"
    assert second.attribute("class") == "x y"
    assert first.attribute("title") is None


def test_response_not_found():
    assert Response("https://directory.test/companies/a-9", 404).not_found
    assert not Response("https://directory.test/companies/a", 200).not_found


def test_pool_size_is_at_least_one():
    browser = SeleniumBaseBrowser(pool_size=0)
    assert browser.pool_size == 1
