from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError

from newsrss.core.constants import MAX_CATEGORY_CHARS, MAX_FEED_NAME_CHARS, MAX_TITLE_CHARS
from newsrss.core.errors import ConfigError, StoreError
from newsrss.models import PersistedArticle
from newsrss.utils.common import truncate, utc_now

logger = logging.getLogger(__name__)

metadata = MetaData()

articles_table = Table(
    "articles",
    metadata,
    Column("article_url", Text, primary_key=True),
    Column("feed_name", String(MAX_FEED_NAME_CHARS), nullable=False),
    Column("category", String(MAX_CATEGORY_CHARS), nullable=False),
    Column("title", String(MAX_TITLE_CHARS), nullable=False),
    Column("content", Text, nullable=False),
    Column("summary", Text, nullable=False),
    Column("keywords", Text, nullable=False),
    Column("published_at", DateTime(timezone=True), nullable=False),
    Column("processed_at", DateTime(timezone=True), nullable=False),
    Column("notification_sent", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
)


def _row_values(article: PersistedArticle) -> dict[str, Any]:
    return {
        "article_url": article.url,
        "feed_name": truncate(article.feed_name, MAX_FEED_NAME_CHARS),
        "category": truncate(article.category, MAX_CATEGORY_CHARS),
        "title": truncate(article.title, MAX_TITLE_CHARS),
        "content": article.content,
        "summary": article.summary,
        "keywords": ", ".join(article.keywords),
        "published_at": article.published_at,
        "processed_at": article.processed_at,
        "notification_sent": bool(article.notification_sent),
    }


class SqlArticleStore:
    """Article identity store; insert-if-absent is the single arbiter of duplicates."""

    def __init__(self, engine: Engine, log: Optional[logging.Logger] = None) -> None:
        dialect = engine.dialect.name
        if dialect not in {"postgresql", "sqlite"}:
            raise ConfigError(f"unsupported database dialect: {dialect}")
        self._engine = engine
        self._dialect = dialect
        self._log = log or logger

    @classmethod
    def from_url(cls, database_url: str, log: Optional[logging.Logger] = None) -> "SqlArticleStore":
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        store = cls(create_engine(url, pool_pre_ping=True), log=log)
        store.ensure_schema()
        return store

    def ensure_schema(self) -> None:
        metadata.create_all(self._engine)

    def exists(self, url: str) -> bool:
        stmt = select(articles_table.c.article_url).where(articles_table.c.article_url == url)
        try:
            with self._engine.connect() as conn:
                return conn.execute(stmt.limit(1)).first() is not None
        except SQLAlchemyError as exc:
            raise StoreError(f"exists check failed: {exc}") from exc

    def insert_if_absent(self, article: PersistedArticle) -> bool:
        values = _row_values(article)
        insert_fn = pg_insert if self._dialect == "postgresql" else sqlite_insert
        stmt = insert_fn(articles_table).values(**values).on_conflict_do_nothing(index_elements=["article_url"])
        try:
            with self._engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"insert failed: {exc}") from exc
        inserted = (result.rowcount or 0) > 0
        self._log.debug("article_insert: url=%s inserted=%s", article.url, inserted)
        return inserted

    def mark_notified(self, url: str) -> None:
        stmt = (
            update(articles_table)
            .where(articles_table.c.article_url == url)
            .where(articles_table.c.notification_sent.is_(False))
            .values(notification_sent=True, updated_at=utc_now())
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"mark_notified failed: {exc}") from exc

    def get(self, url: str) -> Optional[dict[str, Any]]:
        stmt = select(articles_table).where(articles_table.c.article_url == url)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def count(self) -> int:
        with self._engine.connect() as conn:
            return int(conn.execute(select(func.count()).select_from(articles_table)).scalar_one())


class InMemoryArticleStore:
    def __init__(self) -> None:
        self._rows: dict[str, PersistedArticle] = {}
        self._lock = threading.Lock()

    def exists(self, url: str) -> bool:
        with self._lock:
            return url in self._rows

    def insert_if_absent(self, article: PersistedArticle) -> bool:
        with self._lock:
            if article.url in self._rows:
                return False
            self._rows[article.url] = article
            return True

    def mark_notified(self, url: str) -> None:
        with self._lock:
            row = self._rows.get(url)
            if row is not None:
                row.notification_sent = True

    def get(self, url: str) -> Optional[PersistedArticle]:
        with self._lock:
            return self._rows.get(url)

    def count(self) -> int:
        with self._lock:
            return len(self._rows)
