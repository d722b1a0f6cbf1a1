from __future__ import annotations

import logging
from typing import Optional

from newsrss.models import PersistedArticle
from newsrss.processing.types import ArticleStoreLike

logger = logging.getLogger(__name__)


class DedupeGate:
    """Cheap existence pre-check plus the atomic insert that actually decides ownership.

    ``exists`` is a point-in-time read and races with other workers. Only
    ``try_reserve`` is authoritative: the first insert for a URL wins and every
    later one reports ``False``.
    """

    def __init__(self, store: ArticleStoreLike, log: Optional[logging.Logger] = None) -> None:
        self._store = store
        self._log = log or logger

    def exists(self, url: str) -> bool:
        return self._store.exists(url)

    def try_reserve(self, article: PersistedArticle) -> bool:
        inserted = self._store.insert_if_absent(article)
        if not inserted:
            self._log.info("dedupe_conflict: url=%s already stored", article.url)
        return inserted
