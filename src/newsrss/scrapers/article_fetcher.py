from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests
import trafilatura

from newsrss.core.constants import DEFAULT_CONTENT_SELECTORS
from newsrss.core.errors import FetchFailed
from newsrss.scrapers.article_fetcher_config import ArticleFetcherConfig
from newsrss.scrapers.article_fetcher_utils import (
    detect_block_hint,
    extract_main_text_heuristic,
    has_access_denial,
    is_textual_content_type,
    make_soup,
    probe_selectors,
    select_text,
)
from newsrss.utils.common import clean_text, retry_with_backoff

logger = logging.getLogger(__name__)


# -----------------------------
# Public return types
# -----------------------------
@dataclass(frozen=True)
class FetchMeta:
    requested_url: str
    final_url: str
    status: int
    html_len: int
    extractor: str  # "selector" | "default:<selector>" | "trafilatura" | "heuristic" | "none"
    attempts: int


@dataclass(frozen=True)
class FetchResult:
    text: str
    meta: FetchMeta


class TextExtractor:
    """Selector-first extraction with trafilatura and a density heuristic behind it."""

    def __init__(self, default_selectors=DEFAULT_CONTENT_SELECTORS) -> None:
        self._default_selectors = tuple(default_selectors)

    def extract(self, url: str, html: str, selector: Optional[str] = None) -> tuple[str, str]:
        soup = make_soup(html)
        if selector:
            text = select_text(soup, selector)
            if text:
                return text, "selector"

        text, matched = probe_selectors(soup, self._default_selectors)
        if text:
            return text, f"default:{matched}"

        text = self._extract_with_trafilatura(url, html)
        if text:
            return text, "trafilatura"

        text = extract_main_text_heuristic(soup)
        return text, "heuristic" if text else "none"

    @staticmethod
    def _extract_with_trafilatura(url: str, html: str) -> str:
        extracted = trafilatura.extract(
            html,
            url=url,
            include_comments=False,
            include_tables=False,
        )
        return clean_text(extracted or "")


# -----------------------------
# HTTP tier
# -----------------------------
class HttpArticleFetcher:
    def __init__(
        self,
        config: Optional[ArticleFetcherConfig] = None,
        log: Optional[logging.Logger] = None,
        session: Optional[requests.Session] = None,
        extractor: Optional[TextExtractor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or ArticleFetcherConfig()
        self._log = log or logger
        self._session = session or requests.Session()
        if hasattr(self._session, "max_redirects"):
            self._session.max_redirects = self._config.max_redirects
        self._extractor = extractor or TextExtractor()
        self._sleep = sleep

    def fetch(self, url: str, selector: Optional[str] = None) -> FetchResult:
        """Fetch and extract with bounded retries. Raises FetchFailed after the last attempt."""
        self._log.info("fetch_start: %s", url)
        return retry_with_backoff(
            lambda attempt: self._fetch_once(url, selector, attempt),
            attempts=self._config.max_attempts,
            base_delay_sec=self._config.backoff_base_sec,
            retry_on=(FetchFailed,),
            sleep=self._sleep,
            log=self._log,
            label="http_fetch",
        )

    def _make_headers(self) -> dict[str, str]:
        user_agent = random.choice(self._config.user_agents) if self._config.user_agents else "Mozilla/5.0"
        return {
            "User-Agent": user_agent,
            "Accept": self._config.accept,
            "Accept-Language": self._config.accept_language,
            "Cache-Control": "no-cache",
        }

    def _fetch_once(self, url: str, selector: Optional[str], attempt: int) -> FetchResult:
        try:
            resp = self._session.get(
                url,
                headers=self._make_headers(),
                timeout=self._config.timeout_sec,
                allow_redirects=True,
            )
        except requests.Timeout as exc:
            raise FetchFailed(url, "timeout", str(exc)) from exc
        except requests.RequestException as exc:
            raise FetchFailed(url, type(exc).__name__, str(exc)) from exc

        status = int(resp.status_code)
        headers = dict(resp.headers or {})
        body = resp.text or ""
        if status >= 400:
            hint = detect_block_hint(headers, status)
            raise FetchFailed(url, f"http_{status}", hint)
        if has_access_denial(body):
            raise FetchFailed(url, "access_denied", detect_block_hint(headers, status))

        content_type = headers.get("Content-Type") or headers.get("content-type") or ""
        if not is_textual_content_type(content_type):
            raise FetchFailed(url, "non_textual_content_type", content_type)

        text, extractor = self._extractor.extract(url, body, selector)
        text = text[: self._config.max_chars]
        final_url = getattr(resp, "url", None) or url
        self._log.info(
            "fetch_done: url=%s status=%s extractor=%s chars=%s attempt=%s",
            final_url,
            status,
            extractor,
            len(text),
            attempt,
        )
        return FetchResult(
            text=text,
            meta=FetchMeta(
                requested_url=url,
                final_url=final_url,
                status=status,
                html_len=len(body),
                extractor=extractor,
                attempts=attempt,
            ),
        )
