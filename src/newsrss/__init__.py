"""RSS ingestion worker: dedupe, full-text extraction, AI summary and notification."""

__version__ = "0.4.0"
