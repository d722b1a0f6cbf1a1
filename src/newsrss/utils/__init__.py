from .common import (
    backoff_delays,
    clean_text,
    clean_text_ws,
    dedupe_keep_order,
    parse_datetime_utc,
    retry_with_backoff,
    strip_quotes,
    truncate,
    utc_now,
)

__all__ = [
    "backoff_delays",
    "clean_text",
    "clean_text_ws",
    "dedupe_keep_order",
    "parse_datetime_utc",
    "retry_with_backoff",
    "strip_quotes",
    "truncate",
    "utc_now",
]
