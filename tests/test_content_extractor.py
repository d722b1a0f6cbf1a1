from __future__ import annotations

import pytest

from newsrss.core.errors import BrowserError, ExtractionFailed, FetchFailed
from newsrss.models import ContentSource, ExtractionResult, ScrapingMode, WorkItem
from newsrss.processing.content import ContentExtractor
from newsrss.scrapers.article_fetcher import HttpArticleFetcher
from newsrss.scrapers.article_fetcher_config import ArticleFetcherConfig

VIETNAMESE_120 = ("Thị trường chứng khoán Việt Nam khởi sắc " * 4)[:120]


class _FetchResult:
    def __init__(self, text: str) -> None:
        self.text = text


class _Http:
    def __init__(self, text: str | None = None, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    def fetch(self, url: str, selector: str | None = None) -> _FetchResult:
        self.calls.append((url, selector))
        if self.error is not None:
            raise self.error
        return _FetchResult(self.text or "")


class _Browser:
    def __init__(self, text: str | None = None, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    def extract_content(self, url: str, selector: str | None = None) -> str:
        self.calls.append((url, selector))
        if self.error is not None:
            raise self.error
        return self.text or ""


def _failing_http() -> _Http:
    return _Http(error=FetchFailed("https://x.test/a", "http_403", "blocked:http_403"))


def test_extraction_result_length_matches_normalized_text() -> None:
    result = ExtractionResult(text="  a   b \n c ", source=ContentSource.SCRAPED_HTTP)
    assert result.text == "a b c"
    assert result.length == len(result.text) == 5


def test_http_tier_success() -> None:
    http = _Http(text="y" * 50)
    engine = ContentExtractor(http_fetcher=http)

    result = engine.extract("https://x.test/a", ".body", ScrapingMode.HTTP)

    assert result.source is ContentSource.SCRAPED_HTTP
    assert result.text == "y" * 50
    assert http.calls == [("https://x.test/a", ".body")]


def test_minimum_viable_length_boundary() -> None:
    accepted = ContentExtractor(http_fetcher=_Http(text="a" * 20)).extract("https://x.test/a")
    assert accepted.source is ContentSource.SCRAPED_HTTP
    assert accepted.length == 20

    with pytest.raises(ExtractionFailed):
        ContentExtractor(http_fetcher=_Http(text="a" * 19)).extract("https://x.test/a")


def test_fallback_prefers_content_over_description() -> None:
    engine = ContentExtractor(http_fetcher=_failing_http())

    result = engine.extract(
        "https://x.test/a",
        fallback_content="c" * 150,
        fallback_description="d" * 80,
    )

    assert result.source is ContentSource.FEED_CONTENT
    assert result.text == "c" * 150


def test_fallback_uses_description_when_content_short() -> None:
    engine = ContentExtractor(http_fetcher=_failing_http())

    result = engine.extract(
        "https://x.test/a",
        fallback_content="c" * 40,
        fallback_description="d" * 80,
    )

    assert result.source is ContentSource.FEED_DESCRIPTION


def test_fallback_any_content_when_description_short() -> None:
    engine = ContentExtractor(http_fetcher=_failing_http())

    result = engine.extract(
        "https://x.test/a",
        fallback_content="c" * 40,
        fallback_description="d" * 30,
    )

    assert result.source is ContentSource.FEED_CONTENT
    assert result.length == 40


def test_short_primary_text_falls_back_to_feed() -> None:
    engine = ContentExtractor(http_fetcher=_Http(text="too short"))
    result = engine.extract("https://x.test/a", fallback_description="d" * 60)
    assert result.source is ContentSource.FEED_DESCRIPTION


def test_all_tiers_exhausted_raises_with_reasons() -> None:
    engine = ContentExtractor(http_fetcher=_failing_http())

    with pytest.raises(ExtractionFailed) as excinfo:
        engine.extract("https://x.test/a", fallback_content="   ", fallback_description="short")

    assert excinfo.value.url == "https://x.test/a"
    assert any("scraped_http" in r for r in excinfo.value.reasons)


def test_browser_mode_skips_http_tier() -> None:
    http = _Http(text="h" * 100)
    browser = _Browser(text="b" * 100)
    engine = ContentExtractor(http_fetcher=http, browser_scraper=browser)

    result = engine.extract("https://x.test/a", ".detail", ScrapingMode.BROWSER)

    assert result.source is ContentSource.SCRAPED_BROWSER
    assert http.calls == []
    assert browser.calls == [("https://x.test/a", ".detail")]


def test_browser_mode_without_browser_uses_feed_text() -> None:
    engine = ContentExtractor(http_fetcher=_Http(text="h" * 100))
    result = engine.extract("https://x.test/a", scraping_mode=ScrapingMode.BROWSER, fallback_content="c" * 120)
    assert result.source is ContentSource.FEED_CONTENT


def test_http_failure_escalates_to_browser_when_available() -> None:
    browser = _Browser(text="b" * 100)
    engine = ContentExtractor(http_fetcher=_failing_http(), browser_scraper=browser)

    result = engine.extract("https://x.test/a", ".body")

    assert result.source is ContentSource.SCRAPED_BROWSER


def test_http_failure_no_escalation_when_disabled() -> None:
    browser = _Browser(text="b" * 100)
    engine = ContentExtractor(http_fetcher=_failing_http(), browser_scraper=browser, escalate_to_browser=False)

    result = engine.extract("https://x.test/a", fallback_content="c" * 120)

    assert result.source is ContentSource.FEED_CONTENT
    assert browser.calls == []


def test_browser_failure_falls_back_to_feed() -> None:
    engine = ContentExtractor(
        http_fetcher=_Http(),
        browser_scraper=_Browser(error=BrowserError("chrome down")),
    )
    result = engine.extract("https://x.test/a", scraping_mode=ScrapingMode.BROWSER, fallback_description="d" * 70)
    assert result.source is ContentSource.FEED_DESCRIPTION


def test_extract_item_passes_work_item_fields() -> None:
    http = _Http(error=FetchFailed("u", "timeout"))
    engine = ContentExtractor(http_fetcher=http)
    item = WorkItem(
        url="https://x.test/a",
        feed_name="Feed",
        category="news",
        title="Title",
        selector=".body",
        fallback_content="c" * 110,
    )

    result = engine.extract_item(item)

    assert http.calls == [("https://x.test/a", ".body")]
    assert result.source is ContentSource.FEED_CONTENT


# -----------------------------
# End-to-end with the real HTTP tier and a fake session
# -----------------------------
class _Response:
    def __init__(self, status_code: int, text: str) -> None:
        self.status_code = status_code
        self.text = text
        self.headers = {"Content-Type": "text/html"}
        self.url = "https://x.test/a"


class _Session:
    def __init__(self, response: _Response) -> None:
        self.response = response
        self.calls = 0

    def get(self, url: str, **kwargs) -> _Response:
        self.calls += 1
        return self.response


def _http_engine(response: _Response, sleeps: list[float]) -> tuple[ContentExtractor, _Session]:
    session = _Session(response)
    fetcher = HttpArticleFetcher(config=ArticleFetcherConfig(), session=session, sleep=sleeps.append)
    return ContentExtractor(http_fetcher=fetcher), session


def test_scenario_selector_match_via_http() -> None:
    body = "z" * 50
    engine, _ = _http_engine(_Response(200, f"<html><body><div class='body'>{body}</div></body></html>"), [])

    result = engine.extract("https://x.test/a", ".body", ScrapingMode.HTTP)

    assert result.text == body
    assert result.source is ContentSource.SCRAPED_HTTP


def test_scenario_http_403_falls_back_to_vietnamese_feed_content() -> None:
    sleeps: list[float] = []
    engine, session = _http_engine(_Response(403, "<h1>403 Forbidden</h1>"), sleeps)

    result = engine.extract(
        "https://x.test/a",
        ".body",
        ScrapingMode.HTTP,
        fallback_content=VIETNAMESE_120,
    )

    assert len(VIETNAMESE_120) == 120
    assert result.source is ContentSource.FEED_CONTENT
    assert result.text == VIETNAMESE_120.strip()
    assert session.calls == 3
    assert sleeps == [2.0, 4.0]
