from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Tuple

from newsrss.core.config import _env_float, _env_int
from newsrss.core.constants import HTTP_ACCEPT, HTTP_ACCEPT_LANGUAGE, MIN_TEXT_CHARS

DEFAULT_USER_AGENTS: Tuple[str, ...] = (
    # Chrome 120 (Windows)
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
    # Chrome 121 (macOS)
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36",
    # Safari 17 (macOS)
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6_4) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
)


@dataclass(frozen=True)
class ArticleFetcherConfig:
    timeout_sec: float = _env_float("HTTP_FETCH_TIMEOUT_SEC", 10.0)
    max_redirects: int = _env_int("HTTP_FETCH_MAX_REDIRECTS", 5)
    max_attempts: int = _env_int("HTTP_FETCH_MAX_ATTEMPTS", 3)
    backoff_base_sec: float = _env_float("HTTP_FETCH_BACKOFF_SEC", 2.0)
    max_chars: int = _env_int("HTTP_FETCH_MAX_CHARS", 20000)
    accept: str = HTTP_ACCEPT
    accept_language: str = os.getenv("HTTP_FETCH_ACCEPT_LANGUAGE", HTTP_ACCEPT_LANGUAGE)
    user_agents: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_USER_AGENTS)


@dataclass(frozen=True)
class ChromeClientConfig:
    chrome_url: str = os.getenv("CHROME_URL", "")
    control_timeout_sec: float = _env_float("CHROME_CONTROL_TIMEOUT_SEC", 10.0)
    command_timeout_sec: float = _env_float("CHROME_COMMAND_TIMEOUT_SEC", 30.0)
    load_timeout_sec: float = _env_float("CHROME_LOAD_TIMEOUT_SEC", 30.0)
    settle_ms: int = _env_int("CHROME_SETTLE_MS", 2000)
    max_attempts: int = _env_int("CHROME_MAX_ATTEMPTS", 3)
    backoff_base_sec: float = _env_float("CHROME_BACKOFF_SEC", 2.0)
    min_text_chars: int = MIN_TEXT_CHARS
