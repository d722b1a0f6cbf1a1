from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable, Optional

import requests

from newsrss.core.config import _env_float, _env_int
from newsrss.core.constants import SUMMARY_PROMPTS, SYSTEM_PROMPTS
from newsrss.core.errors import AIError, ConfigError
from newsrss.models import Language, SummaryResult
from newsrss.processing.parsing import SummaryParser
from newsrss.utils.common import clean_text_ws

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_TEXT_MODEL = os.getenv("OPENAI_TEXT_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT_SEC = _env_float("OPENAI_TIMEOUT_SEC", 60.0)
OPENAI_MAX_RETRIES = _env_int("OPENAI_MAX_RETRIES", 2)
OPENAI_RETRY_BACKOFF_SEC = _env_float("OPENAI_RETRY_BACKOFF_SEC", 2.0)
AI_TEMPERATURE = _env_float("AI_TEMPERATURE", 0.3)
AI_MAX_TOKENS = _env_int("AI_MAX_TOKENS", 300)
AI_INPUT_MAX_CHARS = _env_int("AI_INPUT_MAX_CHARS", 8000)

_RETRY_STATUSES = {429, 500, 502, 503, 504}


def _extract_chat_text(payload: dict[str, Any]) -> str:
    try:
        return str(payload["choices"][0]["message"]["content"] or "").strip()
    except (KeyError, IndexError, TypeError):
        return ""


class ChatCompletionClient:
    """OpenAI-compatible /chat/completions over plain REST."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = OPENAI_BASE_URL,
        model: str = OPENAI_TEXT_MODEL,
        timeout_sec: float = OPENAI_TIMEOUT_SEC,
        max_retries: int = OPENAI_MAX_RETRIES,
        backoff_sec: float = OPENAI_RETRY_BACKOFF_SEC,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        log: Optional[logging.Logger] = None,
    ) -> None:
        if not api_key:
            raise ConfigError("OPENAI_API_KEY is required")
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._model = model
        self._timeout = timeout_sec
        self._max_attempts = max(1, max_retries + 1)
        self._backoff = backoff_sec
        self._session = session or requests.Session()
        self._sleep = sleep
        self._log = log or logger

    @property
    def model(self) -> str:
        return self._model

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = AI_TEMPERATURE,
        max_tokens: int = AI_MAX_TOKENS,
    ) -> str:
        request_payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        last_err = ""
        for attempt in range(1, self._max_attempts + 1):
            try:
                resp = self._session.post(self._url, headers=headers, json=request_payload, timeout=self._timeout)
            except requests.RequestException as e:
                last_err = f"{type(e).__name__}: {e}"
                if attempt < self._max_attempts:
                    self._backoff_sleep(attempt, last_err)
                    continue
                break

            if not resp.ok:
                last_err = f"{resp.status_code} {clean_text_ws(resp.text)[:200]}"
                if resp.status_code in _RETRY_STATUSES and attempt < self._max_attempts:
                    self._backoff_sleep(attempt, last_err)
                    continue
                break

            try:
                data = resp.json()
            except ValueError:
                last_err = "response is not JSON"
                if attempt < self._max_attempts:
                    self._backoff_sleep(attempt, last_err)
                    continue
                break

            text = _extract_chat_text(data)
            if text:
                return text
            last_err = "empty completion"
            if attempt < self._max_attempts:
                self._backoff_sleep(attempt, last_err)
                continue

        raise AIError(f"chat completion failed: {last_err}")

    def _backoff_sleep(self, attempt: int, reason: str) -> None:
        delay = self._backoff * (2 ** (attempt - 1))
        self._log.info("ai_retry: attempt=%s delay=%.1fs reason=%s", attempt, delay, reason)
        self._sleep(delay)


class OpenAICompatibleSummarizer:
    def __init__(
        self,
        client: ChatCompletionClient,
        *,
        summary_prompt: Optional[str] = None,
        parser: Optional[SummaryParser] = None,
        max_input_chars: int = AI_INPUT_MAX_CHARS,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._summary_prompt = summary_prompt
        self._parser = parser or SummaryParser()
        self._max_input_chars = max_input_chars
        self._log = log or logger

    def build_prompts(self, content: str, language: Language) -> tuple[str, str]:
        lang = language.value
        template = self._summary_prompt or SUMMARY_PROMPTS.get(lang, SUMMARY_PROMPTS["vi"])
        body = clean_text_ws(content)[: self._max_input_chars]
        return SYSTEM_PROMPTS.get(lang, SYSTEM_PROMPTS["vi"]), template.replace("{{content}}", body)

    def summarize(self, content: str, title: str, language: Language = Language.VI) -> SummaryResult:
        system_prompt, user_prompt = self.build_prompts(content, language)
        raw = self._client.complete(system_prompt, user_prompt)
        result = self._parser.parse(raw, title, language)
        self._log.info(
            "ai_summary_done: model=%s summary_chars=%s keywords=%s",
            self._client.model,
            len(result.summary),
            len(result.keywords),
        )
        return result


def build_default_summarizer(summary_prompt: Optional[str] = None) -> OpenAICompatibleSummarizer:
    client = ChatCompletionClient(os.getenv("OPENAI_API_KEY", "").strip())
    return OpenAICompatibleSummarizer(client, summary_prompt=summary_prompt)
