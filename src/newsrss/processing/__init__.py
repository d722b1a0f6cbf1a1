"""Extraction, summarization and the per-item pipeline."""

__all__ = [
    "content",
    "dedupe",
    "discovery",
    "llm_client",
    "parsing",
    "pipeline",
    "scheduler",
    "types",
]
