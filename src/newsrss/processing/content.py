from __future__ import annotations

import logging
from typing import Optional

from newsrss.core.constants import (
    FALLBACK_CONTENT_PREFERRED_CHARS,
    FALLBACK_DESCRIPTION_PREFERRED_CHARS,
    MIN_TEXT_CHARS,
)
from newsrss.core.errors import ExtractionFailed, NewsRssError
from newsrss.models import ContentSource, ExtractionResult, ScrapingMode, WorkItem
from newsrss.processing.types import BrowserScraperLike, HttpFetcherLike
from newsrss.utils.common import clean_text_ws

logger = logging.getLogger(__name__)


class ContentExtractor:
    """Resolves a work item to article text: primary scrape tier, then feed-supplied text."""

    def __init__(
        self,
        *,
        http_fetcher: HttpFetcherLike,
        browser_scraper: Optional[BrowserScraperLike] = None,
        escalate_to_browser: bool = True,
        min_text_chars: int = MIN_TEXT_CHARS,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._http = http_fetcher
        self._browser = browser_scraper
        self._escalate = escalate_to_browser
        self._min_chars = min_text_chars
        self._log = log or logger

    def is_viable(self, text: Optional[str]) -> bool:
        return len(clean_text_ws(text or "")) >= self._min_chars

    def extract(
        self,
        url: str,
        selector: Optional[str] = None,
        scraping_mode: ScrapingMode = ScrapingMode.HTTP,
        *,
        fallback_content: Optional[str] = None,
        fallback_description: Optional[str] = None,
    ) -> ExtractionResult:
        reasons: list[str] = []

        for source, fetch in self._scrape_tiers(scraping_mode):
            try:
                text = fetch(url, selector)
            except NewsRssError as exc:
                reasons.append(f"{source.value}:{exc}")
                self._log.warning("tier_failed: url=%s tier=%s error=%s", url, source.value, exc)
                continue
            except Exception as exc:
                reasons.append(f"{source.value}:{type(exc).__name__}")
                self._log.exception("tier_crashed: url=%s tier=%s", url, source.value)
                continue
            if self.is_viable(text):
                return ExtractionResult(text=text, source=source)
            reasons.append(f"{source.value}:too_short({len(clean_text_ws(text or ''))})")
            self._log.info("tier_too_short: url=%s tier=%s", url, source.value)

        result = self._from_feed(fallback_content, fallback_description)
        if result is not None:
            self._log.info("feed_fallback: url=%s source=%s chars=%s", url, result.source.value, result.length)
            return result

        raise ExtractionFailed(url, reasons)

    def extract_item(self, item: WorkItem) -> ExtractionResult:
        return self.extract(
            item.url,
            item.selector,
            item.scraping_mode,
            fallback_content=item.fallback_content,
            fallback_description=item.fallback_description,
        )

    def _scrape_tiers(self, mode: ScrapingMode):
        if mode is ScrapingMode.BROWSER:
            if self._browser is None:
                self._log.warning("browser_tier_unavailable: no CHROME_URL configured")
                return []
            return [(ContentSource.SCRAPED_BROWSER, self._browser.extract_content)]

        tiers = [(ContentSource.SCRAPED_HTTP, self._fetch_http)]
        if self._escalate and self._browser is not None:
            tiers.append((ContentSource.SCRAPED_BROWSER, self._browser.extract_content))
        return tiers

    def _fetch_http(self, url: str, selector: Optional[str]) -> str:
        return self._http.fetch(url, selector).text

    def _from_feed(
        self,
        fallback_content: Optional[str],
        fallback_description: Optional[str],
    ) -> Optional[ExtractionResult]:
        content = clean_text_ws(fallback_content or "")
        description = clean_text_ws(fallback_description or "")

        if len(content) >= FALLBACK_CONTENT_PREFERRED_CHARS:
            return ExtractionResult(text=content, source=ContentSource.FEED_CONTENT)
        if len(description) >= FALLBACK_DESCRIPTION_PREFERRED_CHARS:
            return ExtractionResult(text=description, source=ContentSource.FEED_DESCRIPTION)
        if content and self.is_viable(content):
            return ExtractionResult(text=content, source=ContentSource.FEED_CONTENT)
        return None
