from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .article import Language, ScrapingMode


@dataclass(frozen=True)
class FeedPolicy:
    """Per-feed knobs resolved from the feed entry and the global rss_processing section."""

    today_only: bool = False
    max_articles_per_feed: int | None = None
    scraping_mode: ScrapingMode = ScrapingMode.HTTP
    language: Language = Language.VI
    selector: str | None = None


@dataclass(frozen=True)
class IntervalSchedule:
    minutes: int


@dataclass(frozen=True)
class CronSchedule:
    expression: str
    timezone: str = "UTC"


@dataclass(frozen=True)
class ManualSchedule:
    pass


ScheduleMode = Union[IntervalSchedule, CronSchedule, ManualSchedule]
