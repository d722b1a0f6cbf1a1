from __future__ import annotations

import datetime
import email.utils
import html
import logging
import re
import time
from typing import Callable, Iterable, TypeVar

_WS_RE = re.compile(r"\s+")  # collapse runs of whitespace
_TAG_RE = re.compile(r"<[^>]+>")
_QUOTE_CHARS = "\"'“”‘’«»`"

T = TypeVar("T")

logger = logging.getLogger(__name__)


def clean_text(s: str) -> str:
    """Unescape entities, drop stray tags and normalize whitespace."""
    if not s:
        return ""
    s = html.unescape(s)
    s = s.replace("\u00a0", " ")
    s = _TAG_RE.sub(" ", s)
    return _WS_RE.sub(" ", s).strip()


def clean_text_ws(text: str) -> str:
    return _WS_RE.sub(" ", (text or "").strip())


def strip_quotes(text: str) -> str:
    s = (text or "").strip()
    while len(s) >= 1 and s[0] in _QUOTE_CHARS:
        s = s[1:].lstrip()
    while len(s) >= 1 and s[-1] in _QUOTE_CHARS:
        s = s[:-1].rstrip()
    return s


def truncate(text: str | None, limit: int) -> str:
    s = text or ""
    return s if len(s) <= limit else s[:limit]


def dedupe_keep_order(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        key = value.lower()
        if not value or key in seen:
            continue
        seen.add(key)
        out.append(value)
    return out


def parse_datetime_utc(value: str, *, default_tz: datetime.tzinfo | None = None) -> datetime.datetime | None:
    if not value:
        return None
    try:
        dt = datetime.datetime.fromisoformat(value)
    except (TypeError, ValueError):
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_tz or datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def backoff_delays(attempts: int, base_delay_sec: float) -> list[float]:
    """Sleeps between attempts: base, 2*base, 4*base, ... (none after the last)."""
    return [base_delay_sec * (2 ** (attempt - 1)) for attempt in range(1, max(1, attempts))]


def retry_with_backoff(
    func: Callable[[int], T],
    *,
    attempts: int = 3,
    base_delay_sec: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    log: logging.Logger | None = None,
    label: str = "operation",
) -> T:
    """Call func(attempt) until it succeeds; re-raise the last error when attempts run out."""
    log = log or logger
    delays = backoff_delays(attempts, base_delay_sec)
    for attempt, delay in enumerate(delays, start=1):
        try:
            return func(attempt)
        except retry_on as exc:
            log.info("%s_retry: attempt=%s delay=%.1fs error=%s", label, attempt, delay, exc)
            sleep(delay)
    final = len(delays) + 1
    try:
        return func(final)
    except retry_on as exc:
        log.warning("%s_failed: attempts=%s error=%s", label, final, exc)
        raise
