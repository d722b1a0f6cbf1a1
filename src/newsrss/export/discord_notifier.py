from __future__ import annotations

import datetime
import logging
from typing import Any, Optional

import requests

from newsrss.core.config import DiscordConfig, _env_float
from newsrss.core.constants import (
    DISCORD_DESCRIPTION_MAX_CHARS,
    DISCORD_EMBED_COLOR,
    DISCORD_FIELD_MAX_CHARS,
    DISCORD_TITLE_MAX_CHARS,
    NO_KEYWORDS_LABEL,
)
from newsrss.core.errors import NotificationError
from newsrss.models import Language
from newsrss.utils.common import utc_now

logger = logging.getLogger(__name__)

DISCORD_TIMEOUT_SEC = _env_float("DISCORD_TIMEOUT_SEC", 10.0)


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def format_discord_message(
    title: str,
    summary: str,
    keywords: list[str],
    url: str,
    *,
    language: Language = Language.VI,
    timestamp: Optional[datetime.datetime] = None,
) -> dict[str, Any]:
    keyword_text = ", ".join(keywords) if keywords else NO_KEYWORDS_LABEL[language.value]
    when = timestamp or utc_now()
    return {
        "embeds": [
            {
                "title": _clip(title or url, DISCORD_TITLE_MAX_CHARS),
                "url": url,
                "description": _clip(f'"{summary}"', DISCORD_DESCRIPTION_MAX_CHARS),
                "color": DISCORD_EMBED_COLOR,
                "fields": [
                    {
                        "name": "Keywords",
                        "value": _clip(keyword_text, DISCORD_FIELD_MAX_CHARS),
                        "inline": False,
                    }
                ],
                "timestamp": when.isoformat(),
            }
        ]
    }


class DiscordNotifier:
    def __init__(
        self,
        config: DiscordConfig,
        *,
        session: Optional[requests.Session] = None,
        timeout_sec: float = DISCORD_TIMEOUT_SEC,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._timeout = timeout_sec
        self._log = log or logger

    def notify(
        self,
        title: str,
        summary: str,
        keywords: list[str],
        url: str,
        category: str,
        language: Language = Language.VI,
    ) -> bool:
        """Post one embed. Returns False when no webhook is configured; raises NotificationError on HTTP failure."""
        webhook = self._config.webhook_for(category)
        if not webhook:
            self._log.warning("discord_no_webhook: category=%s url=%s", category, url)
            return False

        payload = format_discord_message(title, summary, keywords, url, language=language)
        try:
            resp = self._session.post(webhook, json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise NotificationError(f"discord post failed: {exc}") from exc
        if resp.status_code >= 400:
            raise NotificationError(f"discord returned {resp.status_code}: {(resp.text or '')[:200]}")
        self._log.info("discord_sent: category=%s url=%s", category, url)
        return True
