from __future__ import annotations

import json
from collections import deque
from typing import Callable

import pytest
import websocket

from newsrss.core.errors import BrowserError, CommandError, CommandTimeout
from newsrss.scrapers.article_fetcher_config import ChromeClientConfig
from newsrss.scrapers.chrome_client import (
    BrowserSession,
    ChromeScraper,
    ChromeTab,
    DevToolsConnection,
    SessionState,
)

ARTICLE_TEXT = "Giá vàng hôm nay tăng mạnh sau khi ngân hàng trung ương công bố chính sách mới. " * 2


class _FakeWebSocket:
    """Answers each command synchronously from a handler; an empty inbox behaves like a recv timeout."""

    def __init__(self, handler: Callable[[dict], list[dict]]) -> None:
        self._handler = handler
        self.inbox: deque[str] = deque()
        self.sent: list[dict] = []
        self.closed = 0

    def send(self, data: str) -> None:
        msg = json.loads(data)
        self.sent.append(msg)
        for reply in self._handler(msg):
            self.inbox.append(json.dumps(reply))

    def settimeout(self, timeout: float) -> None:
        self.timeout = timeout

    def recv(self) -> str:
        if not self.inbox:
            raise websocket.WebSocketTimeoutException("timed out")
        return self.inbox.popleft()

    def close(self) -> None:
        self.closed += 1

    @property
    def methods(self) -> list[str]:
        return [m["method"] for m in self.sent]


class _FakeControl:
    def __init__(self, *, fail_version: bool = False) -> None:
        self.fail_version = fail_version
        self.created: list[str] = []
        self.closed_tabs: list[str] = []
        self.closed = 0

    def version(self) -> dict:
        if self.fail_version:
            raise BrowserError("connection refused")
        return {"Browser": "HeadlessChrome/120.0"}

    def create_tab(self) -> ChromeTab:
        tab_id = f"tab-{len(self.created) + 1}"
        self.created.append(tab_id)
        return ChromeTab(id=tab_id, websocket_url=f"ws://chrome.test/devtools/page/{tab_id}")

    def close_tab(self, tab_id: str) -> None:
        self.closed_tabs.append(tab_id)

    def close(self) -> None:
        self.closed += 1


def _page_handler(markup_by_selector: dict[str, str], *, load_event: bool = True, hang_on: str = "") -> Callable:
    selectors = list(markup_by_selector)

    def handle(msg: dict) -> list[dict]:
        method, mid = msg["method"], msg["id"]
        if method == hang_on:
            return []
        if method == "Page.navigate":
            replies = [
                {"method": "Page.frameStartedLoading", "params": {}},
                {"id": mid + 1000, "result": {"stale": True}},
                {"id": mid, "result": {"frameId": "F1"}},
            ]
            if load_event:
                replies.append({"method": "Page.loadEventFired", "params": {"timestamp": 1.0}})
            return replies
        if method == "DOM.getDocument":
            return [{"id": mid, "result": {"root": {"nodeId": 1}}}]
        if method == "DOM.querySelector":
            sel = msg["params"]["selector"]
            node_id = 10 + selectors.index(sel) if sel in markup_by_selector else 0
            return [{"id": mid, "result": {"nodeId": node_id}}]
        if method == "DOM.getOuterHTML":
            return [{"id": mid, "result": {"outerHTML": markup_by_selector[selectors[msg["params"]["nodeId"] - 10]]}}]
        return [{"id": mid, "result": {}}]

    return handle


def _scraper(control: _FakeControl, handler: Callable, sleeps: list[float], sockets: list[_FakeWebSocket], **cfg):
    session = BrowserSession("http://chrome.test:9222", control_factory=lambda url: control)
    config = ChromeClientConfig(
        chrome_url="http://chrome.test:9222",
        command_timeout_sec=5.0,
        load_timeout_sec=1.0,
        settle_ms=cfg.pop("settle_ms", 0),
        **cfg,
    )

    def _connect(url: str) -> DevToolsConnection:
        ws = _FakeWebSocket(handler)
        sockets.append(ws)
        return DevToolsConnection(ws, command_timeout_sec=config.command_timeout_sec)

    return ChromeScraper(session, config=config, connector=_connect, sleep=sleeps.append), session


def test_extract_content_with_caller_selector_and_cleanup() -> None:
    control = _FakeControl()
    sockets: list[_FakeWebSocket] = []
    handler = _page_handler({".detail": f"<div class='detail'><p>{ARTICLE_TEXT}</p><script>x()</script></div>"})
    scraper, session = _scraper(control, handler, [], sockets)

    text = scraper.extract_content("https://x.test/a", ".detail")

    assert text == ARTICLE_TEXT.strip()
    assert control.created == ["tab-1"]
    assert control.closed_tabs == ["tab-1"]
    assert sockets[0].closed == 1
    assert sockets[0].methods[:4] == ["Runtime.enable", "Page.enable", "DOM.enable", "Page.navigate"]
    assert session.state is SessionState.CONNECTED


def test_command_ids_are_monotonic_and_unmatched_replies_ignored() -> None:
    sockets: list[_FakeWebSocket] = []
    handler = _page_handler({".detail": f"<p>{ARTICLE_TEXT}</p>"})
    scraper, _ = _scraper(_FakeControl(), handler, [], sockets)

    scraper.extract_content("https://x.test/a", ".detail")

    ids = [m["id"] for m in sockets[0].sent]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_missing_load_event_is_not_fatal() -> None:
    sockets: list[_FakeWebSocket] = []
    handler = _page_handler({".detail": f"<p>{ARTICLE_TEXT}</p>"}, load_event=False)
    scraper, _ = _scraper(_FakeControl(), handler, [], sockets)

    assert scraper.extract_content("https://x.test/a", ".detail") == ARTICLE_TEXT.strip()


def test_settle_delay_applied_after_navigation() -> None:
    sleeps: list[float] = []
    handler = _page_handler({".detail": f"<p>{ARTICLE_TEXT}</p>"})
    scraper, _ = _scraper(_FakeControl(), handler, sleeps, [], settle_ms=2000)

    scraper.extract_content("https://x.test/a", ".detail")

    assert sleeps == [2.0]


def test_default_selectors_used_when_caller_selector_missing() -> None:
    handler = _page_handler({"article": f"<article><h1>Tiêu đề</h1><p>{ARTICLE_TEXT}</p></article>"})
    scraper, _ = _scraper(_FakeControl(), handler, [], [])

    text = scraper.extract_content("https://x.test/a", ".not-there")

    assert text.startswith("Tiêu đề Giá vàng")


def test_command_timeout_retries_and_always_closes_tabs() -> None:
    control = _FakeControl()
    sockets: list[_FakeWebSocket] = []
    sleeps: list[float] = []
    handler = _page_handler({".detail": f"<p>{ARTICLE_TEXT}</p>"}, hang_on="DOM.getDocument")
    scraper, session = _scraper(control, handler, sleeps, sockets)

    with pytest.raises(CommandTimeout):
        scraper.extract_content("https://x.test/a", ".detail")

    assert control.created == ["tab-1", "tab-2", "tab-3"]
    assert control.closed_tabs == control.created
    assert [ws.closed for ws in sockets] == [1, 1, 1]
    assert sleeps == [2.0, 4.0]
    assert session.state is SessionState.FAILED
    assert control.closed == 1


def test_tab_closed_once_when_websocket_connect_fails() -> None:
    control = _FakeControl()
    session = BrowserSession("http://chrome.test:9222", control_factory=lambda url: control)

    def _refuse(url: str) -> DevToolsConnection:
        raise BrowserError("websocket connect failed")

    scraper = ChromeScraper(
        session,
        config=ChromeClientConfig(chrome_url="http://chrome.test:9222", settle_ms=0, max_attempts=1),
        connector=_refuse,
        sleep=lambda s: None,
    )

    with pytest.raises(BrowserError):
        scraper.extract_content("https://x.test/a")

    assert control.created == ["tab-1"]
    assert control.closed_tabs == ["tab-1"]


def test_short_content_counts_as_failed_attempt() -> None:
    control = _FakeControl()
    handler = _page_handler({".detail": "<p>quá ngắn</p>"})
    scraper, _ = _scraper(control, handler, [], [], max_attempts=2)

    with pytest.raises(BrowserError, match="too short"):
        scraper.extract_content("https://x.test/a", ".detail")
    assert control.closed_tabs == ["tab-1", "tab-2"]


def test_session_reconnects_after_invalidate() -> None:
    controls: list[_FakeControl] = []

    def _factory(url: str) -> _FakeControl:
        controls.append(_FakeControl())
        return controls[-1]

    session = BrowserSession("http://chrome.test:9222", control_factory=_factory)
    first = session.acquire()
    assert session.acquire() is first

    session.invalidate()
    assert session.state is SessionState.FAILED
    assert first.closed == 1

    second = session.acquire()
    assert second is not first
    assert session.state is SessionState.CONNECTED


def test_session_version_check_failure_marks_failed() -> None:
    session = BrowserSession("http://chrome.test:9222", control_factory=lambda url: _FakeControl(fail_version=True))
    with pytest.raises(BrowserError):
        session.acquire()
    assert session.state is SessionState.FAILED


def test_send_command_error_reply_raises_command_error() -> None:
    ws = _FakeWebSocket(lambda msg: [{"id": msg["id"], "error": {"code": -32000, "message": "No node"}}])
    conn = DevToolsConnection(ws, command_timeout_sec=1.0)

    with pytest.raises(CommandError) as excinfo:
        conn.send_command("DOM.getOuterHTML", {"nodeId": 99})
    assert excinfo.value.method == "DOM.getOuterHTML"


def test_send_command_without_reply_times_out() -> None:
    conn = DevToolsConnection(_FakeWebSocket(lambda msg: []), command_timeout_sec=0.5)
    with pytest.raises(CommandTimeout):
        conn.send_command("Page.enable")


def test_event_seen_during_command_satisfies_later_wait() -> None:
    def handler(msg: dict) -> list[dict]:
        return [{"method": "Page.loadEventFired", "params": {}}, {"id": msg["id"], "result": {}}]

    conn = DevToolsConnection(_FakeWebSocket(handler), command_timeout_sec=1.0)
    conn.send_command("Page.navigate", {"url": "https://x.test/a"})
    assert conn.wait_for_event("Page.loadEventFired", 0.1) is True
    assert conn.wait_for_event("Page.domContentEventFired", 0.1) is False
