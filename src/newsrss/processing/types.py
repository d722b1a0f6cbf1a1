from __future__ import annotations

import datetime
from typing import Callable, Optional, Protocol

from newsrss.models import Language, PersistedArticle, SummaryResult, WorkItem

SleepFunc = Callable[[float], None]
NowFunc = Callable[[], datetime.datetime]


class FetchResultLike(Protocol):
    text: str


class HttpFetcherLike(Protocol):
    def fetch(self, url: str, selector: Optional[str] = None) -> FetchResultLike: ...


class BrowserScraperLike(Protocol):
    def extract_content(self, url: str, selector: Optional[str] = None) -> str: ...


class ArticleStoreLike(Protocol):
    def exists(self, url: str) -> bool: ...

    def insert_if_absent(self, article: PersistedArticle) -> bool: ...

    def mark_notified(self, url: str) -> None: ...


class JobQueueLike(Protocol):
    def enqueue(self, item: WorkItem) -> None: ...

    def dequeue(self) -> Optional[WorkItem]: ...


class SummarizerLike(Protocol):
    def summarize(self, content: str, title: str, language: Language) -> SummaryResult: ...


class NotifierLike(Protocol):
    def notify(
        self,
        title: str,
        summary: str,
        keywords: list[str],
        url: str,
        category: str,
        language: Language = Language.VI,
    ) -> bool: ...
