"""Minimal Chrome DevTools Protocol client.

Tabs are created and closed through the HTTP control endpoint
(``/json/new``, ``/json/close/{id}``, ``/json/version``); page commands go over
the tab's websocket as ``{id, method, params}`` envelopes. Each extraction
attempt owns one throwaway tab, released on every exit path by ``open_tab``.
"""

from __future__ import annotations

import itertools
import json
import logging
import socket
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Sequence

import requests
import websocket

from newsrss.core.constants import BROWSER_DEFAULT_SELECTOR_MIN_CHARS, DEFAULT_CONTENT_SELECTORS
from newsrss.core.errors import BrowserError, CommandError, CommandTimeout, ConfigError, TabError
from newsrss.scrapers.article_fetcher_config import ChromeClientConfig
from newsrss.scrapers.article_fetcher_utils import html_to_text
from newsrss.utils.common import retry_with_backoff

logger = logging.getLogger(__name__)

LOAD_EVENT = "Page.loadEventFired"
REQUIRED_DOMAINS = ("Runtime", "Page", "DOM")


@dataclass(frozen=True)
class ChromeTab:
    id: str
    websocket_url: str
    url: str = ""


# -----------------------------
# HTTP control endpoint
# -----------------------------
class ChromeControlClient:
    def __init__(
        self,
        chrome_url: str,
        timeout_sec: float = 10.0,
        session: Optional[requests.Session] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._base = chrome_url.rstrip("/")
        self._timeout = timeout_sec
        self._session = session or requests.Session()
        self._log = log or logger

    @property
    def base_url(self) -> str:
        return self._base

    def version(self) -> dict[str, Any]:
        """Capability probe; raises BrowserError when the endpoint is unreachable."""
        try:
            resp = self._session.get(f"{self._base}/json/version", timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise BrowserError(f"chrome version probe failed at {self._base}: {exc}") from exc
        if not isinstance(data, dict):
            raise BrowserError(f"unexpected /json/version payload: {data!r}")
        return data

    def create_tab(self) -> ChromeTab:
        try:
            resp = self._session.put(f"{self._base}/json/new?about:blank", timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise TabError(f"create tab failed: {exc}") from exc
        tab_id = str(data.get("id") or "")
        ws_url = str(data.get("webSocketDebuggerUrl") or "")
        if not tab_id or not ws_url:
            raise TabError(f"tab descriptor missing id/webSocketDebuggerUrl: {data!r}")
        self._log.debug("tab_created: id=%s", tab_id)
        return ChromeTab(id=tab_id, websocket_url=ws_url, url=str(data.get("url") or ""))

    def close_tab(self, tab_id: str) -> None:
        """Best effort; failures are logged, never raised."""
        try:
            resp = self._session.post(f"{self._base}/json/close/{tab_id}", timeout=self._timeout)
            if resp.status_code >= 400:
                self._log.debug("tab_close_status: id=%s status=%s", tab_id, resp.status_code)
        except requests.RequestException as exc:
            self._log.debug("tab_close_failed: id=%s error=%s", tab_id, exc)

    def close(self) -> None:
        self._session.close()


# -----------------------------
# Websocket command channel
# -----------------------------
class DevToolsConnection:
    def __init__(
        self,
        ws: Any,
        command_timeout_sec: float = 30.0,
        log: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ws = ws
        self._timeout = command_timeout_sec
        self._log = log or logger
        self._clock = clock
        self._ids = itertools.count(1)
        self._seen_events: set[str] = set()
        self._closed = False

    @classmethod
    def connect(
        cls,
        websocket_url: str,
        command_timeout_sec: float = 30.0,
        log: Optional[logging.Logger] = None,
    ) -> "DevToolsConnection":
        try:
            ws = websocket.create_connection(
                websocket_url,
                timeout=command_timeout_sec,
                suppress_origin=True,
            )
        except (websocket.WebSocketException, OSError) as exc:
            raise BrowserError(f"websocket connect failed: {exc}") from exc
        return cls(ws, command_timeout_sec=command_timeout_sec, log=log)

    def send_command(self, method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        cmd_id = next(self._ids)
        envelope = {"id": cmd_id, "method": method, "params": params or {}}
        try:
            self._ws.send(json.dumps(envelope))
        except (websocket.WebSocketException, OSError) as exc:
            raise BrowserError(f"send failed for {method}: {exc}") from exc

        deadline = self._clock() + self._timeout
        while True:
            message = self._recv_until(deadline)
            if message is None:
                raise CommandTimeout(method, self._timeout)
            if message.get("id") == cmd_id:
                if "error" in message:
                    raise CommandError(method, message["error"])
                result = message.get("result")
                return result if isinstance(result, dict) else {}
            self._observe(message)

    def wait_for_event(self, event: str, timeout_sec: float) -> bool:
        """True if the event arrived (now or earlier) before timeout; never raises on expiry."""
        if event in self._seen_events:
            return True
        deadline = self._clock() + timeout_sec
        while True:
            try:
                message = self._recv_until(deadline)
            except BrowserError as exc:
                self._log.debug("event_wait_aborted: event=%s error=%s", event, exc)
                return False
            if message is None:
                return False
            self._observe(message)
            if event in self._seen_events:
                return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._ws.close()
        except (websocket.WebSocketException, OSError) as exc:
            self._log.debug("websocket_close_failed: %s", exc)

    def _observe(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        if isinstance(method, str):
            self._seen_events.add(method)

    def _recv_until(self, deadline: float) -> Optional[dict[str, Any]]:
        """Next JSON object from the socket, or None once the deadline passes."""
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return None
            self._ws.settimeout(remaining)
            try:
                raw = self._ws.recv()
            except (websocket.WebSocketTimeoutException, socket.timeout):
                return None
            except (websocket.WebSocketException, OSError) as exc:
                raise BrowserError(f"websocket receive failed: {exc}") from exc
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8", errors="replace")
            try:
                message = json.loads(raw)
            except ValueError:
                continue
            if isinstance(message, dict):
                return message


# -----------------------------
# Session ownership
# -----------------------------
class SessionState(str, Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    FAILED = "failed"


class BrowserSession:
    """Lazily probed control handle; invalidate() forces the next acquire() to reconnect."""

    def __init__(
        self,
        chrome_url: str,
        control_factory: Optional[Callable[[str], ChromeControlClient]] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._chrome_url = chrome_url
        self._factory = control_factory or (lambda url: ChromeControlClient(url))
        self._log = log or logger
        self._lock = threading.Lock()
        self._control: Optional[ChromeControlClient] = None
        self.state = SessionState.UNCONNECTED

    def acquire(self) -> ChromeControlClient:
        with self._lock:
            if self._control is not None and self.state is SessionState.CONNECTED:
                return self._control
            control = self._factory(self._chrome_url)
            try:
                info = control.version()
            except BrowserError:
                self.state = SessionState.FAILED
                raise
            self._log.info("chrome_connected: url=%s browser=%s", self._chrome_url, info.get("Browser", "?"))
            self._control = control
            self.state = SessionState.CONNECTED
            return control

    def invalidate(self) -> None:
        with self._lock:
            control, self._control = self._control, None
            self.state = SessionState.FAILED
        if control is not None:
            control.close()
        self._log.warning("chrome_session_invalidated: url=%s", self._chrome_url)


# -----------------------------
# Browser tier
# -----------------------------
class ChromeScraper:
    def __init__(
        self,
        session: BrowserSession,
        config: Optional[ChromeClientConfig] = None,
        log: Optional[logging.Logger] = None,
        connector: Optional[Callable[[str], DevToolsConnection]] = None,
        sleep: Callable[[float], None] = time.sleep,
        default_selectors: Sequence[str] = DEFAULT_CONTENT_SELECTORS,
    ) -> None:
        self._session = session
        self._config = config or ChromeClientConfig()
        self._log = log or logger
        self._connector = connector or (
            lambda url: DevToolsConnection.connect(url, self._config.command_timeout_sec, log=self._log)
        )
        self._sleep = sleep
        self._default_selectors = tuple(default_selectors)

    @contextmanager
    def open_tab(self) -> Iterator[DevToolsConnection]:
        control = self._session.acquire()
        tab = control.create_tab()
        conn: Optional[DevToolsConnection] = None
        try:
            conn = self._connector(tab.websocket_url)
            yield conn
        finally:
            if conn is not None:
                conn.close()
            control.close_tab(tab.id)

    def extract_content(self, url: str, selector: Optional[str] = None) -> str:
        """Browser-rendered article text. Raises BrowserError after the last attempt."""
        try:
            return retry_with_backoff(
                lambda attempt: self._extract_once(url, selector),
                attempts=self._config.max_attempts,
                base_delay_sec=self._config.backoff_base_sec,
                retry_on=(BrowserError,),
                sleep=self._sleep,
                log=self._log,
                label="chrome_extract",
            )
        except BrowserError:
            self._session.invalidate()
            raise

    def _extract_once(self, url: str, selector: Optional[str]) -> str:
        with self.open_tab() as conn:
            for domain in REQUIRED_DOMAINS:
                conn.send_command(f"{domain}.enable")

            nav = conn.send_command("Page.navigate", {"url": url})
            if nav.get("errorText"):
                raise BrowserError(f"navigation failed: {nav['errorText']}")

            if not conn.wait_for_event(LOAD_EVENT, self._config.load_timeout_sec):
                self._log.warning("chrome_load_timeout: url=%s proceeding with partial content", url)
            if self._config.settle_ms > 0:
                self._sleep(self._config.settle_ms / 1000.0)

            text = self._extract_from_page(conn, selector)
            if len(text) < self._config.min_text_chars:
                raise BrowserError(f"content too short ({len(text)} chars) for {url}")
            self._log.info("chrome_extract_done: url=%s chars=%s", url, len(text))
            return text

    def _extract_from_page(self, conn: DevToolsConnection, selector: Optional[str]) -> str:
        document = conn.send_command("DOM.getDocument", {"depth": 1})
        root_id = (document.get("root") or {}).get("nodeId")
        if root_id is None:
            raise BrowserError("DOM.getDocument returned no root node")

        if selector:
            text = self._selector_text(conn, root_id, selector)
            if len(text) >= self._config.min_text_chars:
                return text
            self._log.debug("chrome_selector_miss: selector=%s chars=%s", selector, len(text))

        for candidate in self._default_selectors:
            text = self._selector_text(conn, root_id, candidate)
            if len(text) > BROWSER_DEFAULT_SELECTOR_MIN_CHARS:
                self._log.debug("chrome_default_selector: %s", candidate)
                return text
        return ""

    def _selector_text(self, conn: DevToolsConnection, root_id: int, selector: str) -> str:
        try:
            found = conn.send_command("DOM.querySelector", {"nodeId": root_id, "selector": selector})
            node_id = found.get("nodeId")
            if not node_id:
                return ""
            outer = conn.send_command("DOM.getOuterHTML", {"nodeId": node_id})
        except CommandError as exc:
            self._log.debug("chrome_selector_error: selector=%s error=%s", selector, exc)
            return ""
        return html_to_text(str(outer.get("outerHTML") or ""))


def create_chrome_scraper(
    chrome_url: str,
    config: Optional[ChromeClientConfig] = None,
    log: Optional[logging.Logger] = None,
) -> ChromeScraper:
    """Build a scraper and validate connectivity up front; unreachable endpoints are fatal."""
    if not chrome_url:
        raise ConfigError("CHROME_URL is required for browser scraping")
    config = config or ChromeClientConfig(chrome_url=chrome_url)
    session = BrowserSession(
        chrome_url,
        control_factory=lambda url: ChromeControlClient(url, timeout_sec=config.control_timeout_sec, log=log),
        log=log,
    )
    try:
        session.acquire()
    except BrowserError as exc:
        raise ConfigError(str(exc)) from exc
    return ChromeScraper(session, config=config, log=log)
