from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import feedparser

from newsrss.core.config import FeedConfig, RssProcessingConfig
from newsrss.core.constants import FALLBACK_CONTENT_PREFERRED_CHARS
from newsrss.core.errors import QueueError
from newsrss.models import FeedPolicy, WorkItem
from newsrss.processing.dedupe import DedupeGate
from newsrss.processing.types import JobQueueLike, NowFunc
from newsrss.scrapers.article_fetcher_utils import html_to_text
from newsrss.utils.common import clean_text, parse_datetime_utc, utc_now

logger = logging.getLogger(__name__)

ParseFunc = Callable[[str], Any]


@dataclass
class SweepStats:
    feeds: int = 0
    failed_feeds: int = 0
    entries: int = 0
    enqueued: int = 0
    skipped_existing: int = 0
    skipped_not_today: int = 0
    skipped_no_url: int = 0


def entry_published_at(entry: Any) -> Optional[datetime.datetime]:
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime.datetime(*parsed[:6], tzinfo=datetime.timezone.utc)
    for key in ("published", "updated", "pubDate"):
        value = entry.get(key)
        if value:
            dt = parse_datetime_utc(str(value))
            if dt:
                return dt
    return None


def entry_content(entry: Any) -> str:
    blocks = entry.get("content") or []
    parts = [html_to_text(str(block.get("value") or "")) for block in blocks if isinstance(block, dict)]
    return " ".join(p for p in parts if p).strip()


def entry_description(entry: Any) -> str:
    return html_to_text(str(entry.get("summary") or entry.get("description") or ""))


def choose_feed_text(content: str, description: str) -> tuple[Optional[str], Optional[str]]:
    """(fallback_content, fallback_description) for a feed entry.

    Encoded content longer than 100 chars wins. Otherwise the description, long
    or short, is promoted to content; short encoded content is kept only when the
    entry has no description at all.
    """
    if len(content) > FALLBACK_CONTENT_PREFERRED_CHARS:
        best = content
    else:
        best = description or content
    return best or None, description or None


def build_work_item(entry: Any, feed: FeedConfig, policy: FeedPolicy) -> Optional[WorkItem]:
    url = str(entry.get("link") or entry.get("id") or "").strip()
    if not url:
        return None
    content, description = choose_feed_text(entry_content(entry), entry_description(entry))
    return WorkItem(
        url=url,
        feed_name=feed.name,
        category=feed.category,
        title=clean_text(str(entry.get("title") or "")) or "No Title",
        selector=policy.selector,
        scraping_mode=policy.scraping_mode,
        language=policy.language,
        fallback_content=content,
        fallback_description=description,
        published_at=entry_published_at(entry),
    )


class FeedSweeper:
    """One discovery pass: every feed in order, every entry in order, enqueue what is new."""

    def __init__(
        self,
        *,
        queue: JobQueueLike,
        gate: DedupeGate,
        parse_feed: ParseFunc = feedparser.parse,
        now_provider: NowFunc = utc_now,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._queue = queue
        self._gate = gate
        self._parse_feed = parse_feed
        self._now = now_provider
        self._log = log or logger

    def sweep(self, feeds: list[FeedConfig], rss: RssProcessingConfig) -> SweepStats:
        stats = SweepStats()
        tz = self._zone(rss.timezone)
        for feed in feeds:
            if not feed.enabled:
                continue
            stats.feeds += 1
            try:
                self._sweep_feed(feed, feed.policy(rss), tz, stats)
            except QueueError:
                raise
            except Exception:
                stats.failed_feeds += 1
                self._log.exception("feed_failed: name=%s url=%s", feed.name, feed.url)
        self._log.info(
            "sweep_done: feeds=%s failed=%s entries=%s enqueued=%s existing=%s not_today=%s",
            stats.feeds,
            stats.failed_feeds,
            stats.entries,
            stats.enqueued,
            stats.skipped_existing,
            stats.skipped_not_today,
        )
        return stats

    def _sweep_feed(self, feed: FeedConfig, policy: FeedPolicy, tz: datetime.tzinfo, stats: SweepStats) -> None:
        parsed = self._parse_feed(feed.url)
        entries = list(getattr(parsed, "entries", None) or [])
        if not entries and getattr(parsed, "bozo", False):
            self._log.warning("feed_parse_error: name=%s error=%s", feed.name, getattr(parsed, "bozo_exception", "?"))
        if policy.max_articles_per_feed:
            entries = entries[: policy.max_articles_per_feed]
        self._log.info("feed_loaded: name=%s entries=%s", feed.name, len(entries))

        today = self._now().astimezone(tz).date()
        for entry in entries:
            stats.entries += 1
            item = build_work_item(entry, feed, policy)
            if item is None:
                stats.skipped_no_url += 1
                continue
            if policy.today_only and not self._is_today(item.published_at, today, tz):
                stats.skipped_not_today += 1
                continue
            if self._gate.exists(item.url):
                stats.skipped_existing += 1
                continue
            self._queue.enqueue(item)
            stats.enqueued += 1

    @staticmethod
    def _is_today(published_at: Optional[datetime.datetime], today: datetime.date, tz: datetime.tzinfo) -> bool:
        if published_at is None:
            return False
        return published_at.astimezone(tz).date() == today

    def _zone(self, name: str) -> datetime.tzinfo:
        try:
            return ZoneInfo(name or "UTC")
        except (ZoneInfoNotFoundError, ValueError):
            self._log.warning("unknown_timezone: %s, using UTC", name)
            return datetime.timezone.utc
