from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from newsrss.core import config as cfg
from newsrss.core.errors import BrowserError, ConfigError, NewsRssError, QueueError
from newsrss.processing.dedupe import DedupeGate
from newsrss.processing.discovery import FeedSweeper
from newsrss.processing.pipeline import build_default_pipeline
from newsrss.processing.scheduler import Scheduler, WorkerLoop, run_worker_pool, ticks_for
from newsrss.scrapers.chrome_client import ChromeControlClient
from newsrss.storage.article_store import SqlArticleStore
from newsrss.storage.job_queue import RedisJobQueue

logger = logging.getLogger("newsrss")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _base_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--config", default=None, help="YAML config path (default: $NEWSRSS_CONFIG)")
    parser.add_argument("--verbose", action="store_true", help="enable DEBUG logging")
    return parser


def producer_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser("Sweep RSS feeds and enqueue new articles.")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        app_config = cfg.load_app_config(args.config)
        queue = RedisJobQueue.from_url(cfg.require_env("REDIS_URL"))
        queue.ping()
        store = SqlArticleStore.from_url(cfg.DATABASE_URL)
        ticks = ticks_for(app_config.schedule)
    except (ConfigError, QueueError, SQLAlchemyError) as exc:
        logger.error("startup_failed: %s", exc)
        return 2

    if not app_config.rss_processing.enabled:
        logger.warning("rss_processing disabled in config; nothing to do")
        return 0

    sweeper = FeedSweeper(queue=queue, gate=DedupeGate(store))

    def _sweep() -> None:
        sweeper.sweep(app_config.enabled_feeds, app_config.rss_processing)

    logger.info("producer_start: feeds=%s schedule=%s", len(app_config.enabled_feeds), app_config.schedule)
    scheduler = Scheduler(ticks)
    try:
        scheduler.run(_sweep, max_ticks=1 if args.once else None)
    except KeyboardInterrupt:
        logger.info("producer_stopped")
    return 0


def worker_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser("Process queued articles: extract, summarize, store, notify.")
    parser.add_argument("--once", action="store_true", help="process at most one queued item and exit")
    parser.add_argument("--concurrency", type=int, default=cfg.WORKER_CONCURRENCY, help="worker loops in this process")
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        app_config = cfg.load_app_config(args.config)
        redis_url = cfg.require_env("REDIS_URL")
        cfg.require_env("OPENAI_API_KEY")
        store = SqlArticleStore.from_url(cfg.DATABASE_URL)
        RedisJobQueue.from_url(redis_url).ping()
        build_default_pipeline(app_config, store=store)  # probes Chrome and the API key
    except (ConfigError, QueueError, SQLAlchemyError) as exc:
        logger.error("startup_failed: %s", exc)
        return 2

    def _make_loop() -> WorkerLoop:
        return WorkerLoop(
            RedisJobQueue.from_url(redis_url),
            build_default_pipeline(app_config, store=store),
            poll_interval_sec=cfg.WORKER_POLL_INTERVAL_SEC,
        )

    logger.info("worker_start: concurrency=%s poll=%.1fs", args.concurrency, cfg.WORKER_POLL_INTERVAL_SEC)
    try:
        if args.once:
            _make_loop().run_once()
        else:
            run_worker_pool(_make_loop, args.concurrency)
    except ConfigError as exc:
        logger.error("worker_start_failed: %s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("worker_stopped")
    return 0


def check_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _base_parser("Validate config and connectivity (Redis, database, Chrome).")
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    failures = 0
    try:
        app_config = cfg.load_app_config(args.config)
        logger.info("config_ok: feeds=%s schedule=%s", len(app_config.enabled_feeds), app_config.schedule)
    except ConfigError as exc:
        logger.error("config_invalid: %s", exc)
        return 2

    try:
        RedisJobQueue.from_url(cfg.require_env("REDIS_URL")).ping()
        logger.info("redis_ok")
    except NewsRssError as exc:
        failures += 1
        logger.error("redis_failed: %s", exc)

    try:
        SqlArticleStore.from_url(cfg.DATABASE_URL).count()
        logger.info("database_ok: %s", cfg.DATABASE_URL.split("@")[-1])
    except (NewsRssError, SQLAlchemyError, OSError) as exc:
        failures += 1
        logger.error("database_failed: %s", exc)

    chrome_url = app_config.chrome_url()
    if chrome_url:
        try:
            info = ChromeControlClient(chrome_url).version()
            logger.info("chrome_ok: %s", info.get("Browser", "?"))
        except BrowserError as exc:
            failures += 1
            logger.error("chrome_failed: %s", exc)
    elif app_config.needs_browser:
        failures += 1
        logger.error("chrome_missing: a feed uses browser scraping but CHROME_URL is not set")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(worker_main())
