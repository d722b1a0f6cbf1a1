from __future__ import annotations


class NewsRssError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigError(NewsRssError):
    """Missing or invalid configuration. Fatal at startup."""


class ExtractionFailed(NewsRssError):
    """Every content tier was exhausted without usable text."""

    def __init__(self, url: str, reasons: list[str] | None = None) -> None:
        self.url = url
        self.reasons = list(reasons or [])
        detail = "; ".join(self.reasons) if self.reasons else "no usable content"
        super().__init__(f"extraction failed for {url}: {detail}")


class FetchFailed(NewsRssError):
    """A single HTTP fetch attempt failed (network error, block page, bad status)."""

    def __init__(self, url: str, kind: str, message: str = "") -> None:
        self.url = url
        self.kind = kind
        self.message = message
        super().__init__(f"{kind}: {message}" if message else kind)


class BrowserError(NewsRssError):
    """Remote browser tier failure."""


class TabError(BrowserError):
    """Tab lifecycle call against the control endpoint failed."""


class CommandError(BrowserError):
    """The browser answered a protocol command with an error object."""

    def __init__(self, method: str, error: object) -> None:
        self.method = method
        self.error = error
        super().__init__(f"{method} failed: {error}")


class CommandTimeout(BrowserError):
    """No matching response arrived for a protocol command in time."""

    def __init__(self, method: str, timeout_sec: float) -> None:
        self.method = method
        self.timeout_sec = timeout_sec
        super().__init__(f"command timeout after {timeout_sec:.1f}s: {method}")


class QueueError(NewsRssError):
    """Job queue operation failed."""


class AIError(NewsRssError):
    """The model call failed after retries."""


class NotificationError(NewsRssError):
    """Notification delivery failed."""


class StoreError(NewsRssError):
    """Article store operation failed."""
