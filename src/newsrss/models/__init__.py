"""Typed models for work items, extraction results and feed policy."""

from .article import (
    ContentSource,
    ExtractionResult,
    Language,
    PersistedArticle,
    ScrapingMode,
    SummaryResult,
    WorkItem,
)
from .policy import CronSchedule, FeedPolicy, IntervalSchedule, ManualSchedule, ScheduleMode

__all__ = [
    "ContentSource",
    "CronSchedule",
    "ExtractionResult",
    "FeedPolicy",
    "IntervalSchedule",
    "Language",
    "ManualSchedule",
    "PersistedArticle",
    "ScheduleMode",
    "ScrapingMode",
    "SummaryResult",
    "WorkItem",
]
