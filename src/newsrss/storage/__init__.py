"""Durable state: the article identity store and the work queue."""

__all__ = ["article_store", "job_queue"]
