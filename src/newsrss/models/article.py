from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NotRequired, TypedDict

from newsrss.core.errors import ConfigError
from newsrss.utils.common import clean_text_ws, parse_datetime_utc


class ScrapingMode(str, Enum):
    HTTP = "http"
    BROWSER = "browser"

    @classmethod
    def parse(cls, value: Any) -> "ScrapingMode":
        """Accept the YAML forms: 1/2, "1"/"2", "http", "chrome"/"browser"."""
        if value is None or value == "":
            return cls.HTTP
        if isinstance(value, cls):
            return value
        raw = str(value).strip().lower()
        if raw in {"1", "http"}:
            return cls.HTTP
        if raw in {"2", "chrome", "browser"}:
            return cls.BROWSER
        raise ConfigError(f"unknown scraping_mode: {value!r}")


class Language(str, Enum):
    VI = "vi"
    EN = "en"

    @classmethod
    def parse(cls, value: Any) -> "Language":
        if value is None or value == "":
            return cls.VI
        if isinstance(value, cls):
            return value
        raw = str(value).strip().lower()
        if raw in {"vi", "vietnamese", "vn"}:
            return cls.VI
        if raw in {"en", "english"}:
            return cls.EN
        raise ConfigError(f"unknown language: {value!r}")


class ContentSource(str, Enum):
    SCRAPED_HTTP = "scraped_http"
    SCRAPED_BROWSER = "scraped_browser"
    FEED_CONTENT = "feed_content"
    FEED_DESCRIPTION = "feed_description"


class WorkItemPayload(TypedDict):
    url: str
    feedName: str
    category: str
    title: str
    scrapingMode: str
    language: str
    selector: NotRequired[str | None]
    fallbackContent: NotRequired[str | None]
    fallbackDescription: NotRequired[str | None]
    publishedAt: NotRequired[str | None]


@dataclass(frozen=True)
class WorkItem:
    url: str
    feed_name: str
    category: str
    title: str
    selector: str | None = None
    scraping_mode: ScrapingMode = ScrapingMode.HTTP
    language: Language = Language.VI
    fallback_content: str | None = None
    fallback_description: str | None = None
    published_at: datetime.datetime | None = None

    def to_payload(self) -> WorkItemPayload:
        return {
            "url": self.url,
            "feedName": self.feed_name,
            "category": self.category,
            "title": self.title,
            "selector": self.selector,
            "scrapingMode": self.scraping_mode.value,
            "language": self.language.value,
            "fallbackContent": self.fallback_content,
            "fallbackDescription": self.fallback_description,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "WorkItem":
        """Build from a queue envelope. Raises KeyError/ValueError on malformed input."""
        url = str(payload["url"]).strip()
        if not url:
            raise ValueError("work item without url")
        published_raw = payload.get("publishedAt")
        return cls(
            url=url,
            feed_name=str(payload.get("feedName") or ""),
            category=str(payload.get("category") or ""),
            title=str(payload.get("title") or ""),
            selector=payload.get("selector") or None,
            scraping_mode=ScrapingMode(payload.get("scrapingMode") or ScrapingMode.HTTP.value),
            language=Language(payload.get("language") or Language.VI.value),
            fallback_content=payload.get("fallbackContent") or None,
            fallback_description=payload.get("fallbackDescription") or None,
            published_at=parse_datetime_utc(published_raw) if published_raw else None,
        )


@dataclass(frozen=True)
class ExtractionResult:
    text: str
    source: ContentSource
    length: int = field(init=False)

    def __post_init__(self) -> None:
        normalized = clean_text_ws(self.text)
        object.__setattr__(self, "text", normalized)
        object.__setattr__(self, "length", len(normalized))


@dataclass(frozen=True)
class SummaryResult:
    summary: str
    keywords: tuple[str, ...]


@dataclass
class PersistedArticle:
    url: str
    feed_name: str
    category: str
    title: str
    content: str
    summary: str
    keywords: list[str]
    published_at: datetime.datetime
    processed_at: datetime.datetime
    notification_sent: bool = False
