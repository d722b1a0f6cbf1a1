from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from newsrss.core.config import HTTP_BROWSER_ESCALATION, AppConfig
from newsrss.core.errors import AIError, ConfigError, ExtractionFailed, NotificationError
from newsrss.export.discord_notifier import DiscordNotifier
from newsrss.models import PersistedArticle, WorkItem
from newsrss.processing.content import ContentExtractor
from newsrss.processing.dedupe import DedupeGate
from newsrss.processing.llm_client import build_default_summarizer
from newsrss.processing.types import ArticleStoreLike, NotifierLike, NowFunc, SummarizerLike
from newsrss.scrapers.article_fetcher import HttpArticleFetcher
from newsrss.scrapers.chrome_client import create_chrome_scraper
from newsrss.utils.common import utc_now

logger = logging.getLogger(__name__)


class JobOutcome(str, Enum):
    DONE = "done"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_NO_CONTENT = "skipped_no_content"
    SKIPPED_AI_FAILED = "skipped_ai_failed"
    LOST_RACE = "lost_race"
    NOT_NOTIFIED = "not_notified"
    FAILED = "failed"


class ArticlePipeline:
    """Runs one dequeued work item to a terminal outcome.

    dedupe re-check -> extract -> summarize -> insert-if-absent -> notify -> mark notified.
    Extraction and AI failures are skips; the insert decides which worker owns a URL,
    so a duplicate that slipped past the pre-check is dropped before notification.
    """

    def __init__(
        self,
        *,
        store: ArticleStoreLike,
        extractor: ContentExtractor,
        summarizer: SummarizerLike,
        notifier: NotifierLike,
        gate: Optional[DedupeGate] = None,
        now_provider: NowFunc = utc_now,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._gate = gate or DedupeGate(store)
        self._extractor = extractor
        self._summarizer = summarizer
        self._notifier = notifier
        self._now = now_provider
        self._log = log or logger

    def process(self, item: WorkItem) -> JobOutcome:
        try:
            return self._process(item)
        except Exception:
            self._log.exception("job_failed: url=%s feed=%s", item.url, item.feed_name)
            return JobOutcome.FAILED

    def _process(self, item: WorkItem) -> JobOutcome:
        if self._gate.exists(item.url):
            self._log.info("job_skip_duplicate: url=%s", item.url)
            return JobOutcome.SKIPPED_DUPLICATE

        try:
            extraction = self._extractor.extract_item(item)
        except ExtractionFailed as exc:
            self._log.warning("job_skip_no_content: url=%s reasons=%s", item.url, "; ".join(exc.reasons))
            return JobOutcome.SKIPPED_NO_CONTENT
        self._log.info(
            "job_extracted: url=%s source=%s chars=%s",
            item.url,
            extraction.source.value,
            extraction.length,
        )

        try:
            summary = self._summarizer.summarize(extraction.text, item.title, item.language)
        except AIError as exc:
            self._log.warning("job_skip_ai_failed: url=%s error=%s", item.url, exc)
            return JobOutcome.SKIPPED_AI_FAILED

        processed_at = self._now()
        article = PersistedArticle(
            url=item.url,
            feed_name=item.feed_name,
            category=item.category,
            title=item.title,
            content=extraction.text,
            summary=summary.summary,
            keywords=list(summary.keywords),
            published_at=item.published_at or processed_at,
            processed_at=processed_at,
        )
        if not self._gate.try_reserve(article):
            return JobOutcome.LOST_RACE

        try:
            sent = self._notifier.notify(
                item.title,
                summary.summary,
                list(summary.keywords),
                item.url,
                item.category,
                item.language,
            )
        except NotificationError as exc:
            self._log.error("job_notify_failed: url=%s error=%s", item.url, exc)
            return JobOutcome.NOT_NOTIFIED
        if not sent:
            return JobOutcome.NOT_NOTIFIED

        self._store.mark_notified(item.url)
        self._log.info("job_done: url=%s", item.url)
        return JobOutcome.DONE


def build_default_extractor(
    chrome_url: str = "",
    *,
    require_browser: bool = False,
    log: Optional[logging.Logger] = None,
) -> ContentExtractor:
    """HTTP tier always; browser tier when a Chrome endpoint is configured (probed up front)."""
    browser = None
    if chrome_url:
        try:
            browser = create_chrome_scraper(chrome_url, log=log)
        except ConfigError:
            if require_browser:
                raise
            (log or logger).warning("chrome_unavailable: url=%s browser tier disabled", chrome_url)
    elif require_browser:
        raise ConfigError("a feed uses browser scraping but no CHROME_URL is configured")
    return ContentExtractor(
        http_fetcher=HttpArticleFetcher(log=log),
        browser_scraper=browser,
        escalate_to_browser=HTTP_BROWSER_ESCALATION,
        log=log,
    )


def build_default_pipeline(
    app_config: AppConfig,
    *,
    store: ArticleStoreLike,
    log: Optional[logging.Logger] = None,
) -> ArticlePipeline:
    return ArticlePipeline(
        store=store,
        extractor=build_default_extractor(
            app_config.chrome_url(),
            require_browser=app_config.needs_browser,
            log=log,
        ),
        summarizer=build_default_summarizer(app_config.summary_prompt),
        notifier=DiscordNotifier(app_config.discord, log=log),
        log=log,
    )
