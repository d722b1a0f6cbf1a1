from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from newsrss.core.errors import ConfigError
from newsrss.models import (
    CronSchedule,
    FeedPolicy,
    IntervalSchedule,
    Language,
    ManualSchedule,
    ScheduleMode,
    ScrapingMode,
)

REPO_ROOT = Path(__file__).resolve().parents[3]
load_dotenv(dotenv_path=REPO_ROOT / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _as_bool(value: Any, default: bool) -> bool:
    """YAML or env flag; quoted "false"/"no"/"0" are false like their unquoted forms."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raw = str(value).strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    return _as_bool(os.getenv(name), default)


# ==========================================
# Environment
# ==========================================

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/newsrss.db")
CHROME_URL = os.getenv("CHROME_URL", "")
CONFIG_PATH = os.getenv("NEWSRSS_CONFIG", str(REPO_ROOT / "config" / "config.yaml"))
WORKER_POLL_INTERVAL_SEC = _env_float("WORKER_POLL_INTERVAL_SEC", 5.0)
WORKER_CONCURRENCY = _env_int("WORKER_CONCURRENCY", 1)
HTTP_BROWSER_ESCALATION = _env_bool("HTTP_BROWSER_ESCALATION", True)


def require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(f"missing required environment variable: {name}")
    return value


# ==========================================
# YAML config
# ==========================================


@dataclass(frozen=True)
class RssProcessingConfig:
    enabled: bool = True
    today_only: bool = False
    max_articles_per_feed: int | None = None
    chrome_url: str | None = None
    timezone: str = "UTC"


@dataclass(frozen=True)
class FeedConfig:
    name: str
    url: str
    category: str = "general"
    css_selector: str | None = None
    scraping_mode: ScrapingMode = ScrapingMode.HTTP
    language: Language = Language.VI
    enabled: bool = True
    max_articles: int | None = None

    def policy(self, rss: RssProcessingConfig) -> FeedPolicy:
        cap = self.max_articles if self.max_articles is not None else rss.max_articles_per_feed
        return FeedPolicy(
            today_only=rss.today_only,
            max_articles_per_feed=cap,
            scraping_mode=self.scraping_mode,
            language=self.language,
            selector=self.css_selector,
        )


@dataclass(frozen=True)
class DiscordConfig:
    default_webhook_url: str | None = None
    category_webhooks: dict[str, str] = field(default_factory=dict)

    def webhook_for(self, category: str) -> str | None:
        return self.category_webhooks.get(category) or self.default_webhook_url


@dataclass(frozen=True)
class AppConfig:
    feeds: list[FeedConfig]
    rss_processing: RssProcessingConfig = field(default_factory=RssProcessingConfig)
    schedule: ScheduleMode = field(default_factory=ManualSchedule)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    summary_prompt: str | None = None

    @property
    def enabled_feeds(self) -> list[FeedConfig]:
        return [feed for feed in self.feeds if feed.enabled]

    @property
    def needs_browser(self) -> bool:
        return any(feed.scraping_mode is ScrapingMode.BROWSER for feed in self.enabled_feeds)

    def chrome_url(self) -> str:
        return CHROME_URL or self.rss_processing.chrome_url or ""


def _optional_int(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if parsed <= 0:
        return None
    return parsed


def parse_schedule(data: dict[str, Any] | None) -> ScheduleMode:
    """Resolve the scheduling section into Interval | Cron | Manual; unknown modes are rejected here."""
    if not data:
        return ManualSchedule()
    mode = str(data.get("mode") or "manual").strip().lower()
    if mode == "interval":
        minutes = _optional_int(data.get("interval_minutes", data.get("minutes")), "interval_minutes")
        if minutes is None:
            raise ConfigError("interval schedule requires a positive interval_minutes")
        return IntervalSchedule(minutes=minutes)
    if mode == "cron":
        expression = str(data.get("cron_expression") or data.get("expression") or "").strip()
        if not expression:
            raise ConfigError("cron schedule requires cron_expression")
        timezone = str(data.get("timezone") or "UTC").strip()
        return CronSchedule(expression=expression, timezone=timezone)
    if mode == "manual":
        return ManualSchedule()
    raise ConfigError(f"unknown scheduling mode: {mode!r}")


def parse_feed(data: dict[str, Any]) -> FeedConfig:
    name = str(data.get("name") or "").strip()
    url = str(data.get("url") or "").strip()
    if not name or not url:
        raise ConfigError(f"feed requires name and url: {data!r}")
    selector = data.get("css_selector") or data.get("selector") or None
    return FeedConfig(
        name=name,
        url=url,
        category=str(data.get("category") or "general").strip(),
        css_selector=str(selector).strip() if selector else None,
        scraping_mode=ScrapingMode.parse(data.get("scraping_mode")),
        language=Language.parse(data.get("language")),
        enabled=_as_bool(data.get("enabled"), True),
        max_articles=_optional_int(data.get("max_articles"), "max_articles"),
    )


def parse_app_config(data: dict[str, Any]) -> AppConfig:
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    feeds_raw = data.get("rss_feeds") or data.get("feeds") or []
    if not isinstance(feeds_raw, list):
        raise ConfigError("rss_feeds must be a list")
    feeds = [parse_feed(item or {}) for item in feeds_raw]

    scheduling = data.get("scheduling") or {}
    rss_raw = data.get("rss_processing") or {}
    # Older configs kept the processing knobs next to the scheduling mode.
    if not rss_raw and isinstance(scheduling, dict):
        rss_raw = scheduling
    rss = RssProcessingConfig(
        enabled=_as_bool(rss_raw.get("enabled"), True),
        today_only=_as_bool(rss_raw.get("today_only"), False),
        max_articles_per_feed=_optional_int(rss_raw.get("max_articles_per_feed"), "max_articles_per_feed"),
        chrome_url=rss_raw.get("chrome_url") or None,
        timezone=str(rss_raw.get("timezone") or scheduling.get("timezone") or "UTC"),
    )

    discord_raw = data.get("discord") or {}
    webhooks = discord_raw.get("webhooks") or {}
    discord = DiscordConfig(
        default_webhook_url=discord_raw.get("default_webhook_url") or webhooks.get("default") or None,
        category_webhooks={
            str(k): str(v) for k, v in (discord_raw.get("category_webhooks") or webhooks).items() if v and k != "default"
        },
    )

    ai_raw = data.get("ai_summarization") or {}
    return AppConfig(
        feeds=feeds,
        rss_processing=rss,
        schedule=parse_schedule(scheduling),
        discord=discord,
        summary_prompt=ai_raw.get("summary_prompt") or None,
    )


def load_app_config(path: str | os.PathLike[str] | None = None) -> AppConfig:
    config_path = Path(path or CONFIG_PATH)
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc
    return parse_app_config(data)
