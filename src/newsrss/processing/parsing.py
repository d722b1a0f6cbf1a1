from __future__ import annotations

import re
from typing import Optional

from newsrss.core.constants import (
    COMMA_KEYWORD_LIMIT,
    FALLBACK_KEYWORDS,
    FALLBACK_SUMMARY_TEMPLATES,
    MAX_KEYWORDS,
)
from newsrss.models import Language, SummaryResult
from newsrss.utils.common import clean_text_ws, dedupe_keep_order, strip_quotes

_LABEL_PREFIX = r"[\*\#\s]*"
_SUMMARY_LABEL = rf"{_LABEL_PREFIX}(?:SUMMARY|TÓM TẮT|TOM TAT)[\*\s]*:[\*\s]*"
_KEYWORDS_LABEL = rf"{_LABEL_PREFIX}(?:KEYWORDS|TỪ KHÓA|TỪ KHOÁ|TU KHOA)[\*\s]*:[\*\s]*"

_SUMMARY_RE = re.compile(
    rf"{_SUMMARY_LABEL}(.+?)(?=(?:{_KEYWORDS_LABEL})|\Z)",
    flags=re.IGNORECASE | re.DOTALL,
)
_KEYWORDS_RE = re.compile(rf"{_KEYWORDS_LABEL}(.+?)(?:\n\s*\n|\Z)", flags=re.IGNORECASE | re.DOTALL)
_ANY_LABEL_RE = re.compile(rf"^(?:{_SUMMARY_LABEL}|{_KEYWORDS_LABEL})", flags=re.IGNORECASE)

_VIETNAMESE_RE = re.compile(
    r"[àáạảãâầấậẩẫăằắặẳẵèéẹẻẽêềếệểễìíịỉĩòóọỏõôồốộổỗơờớợởỡùúụủũưừứựửữỳýỵỷỹđ]",
    flags=re.IGNORECASE,
)
_ASCII_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'\-]*")
_TITLE_WORD_RE = re.compile(r"[^\W\d_][\w\-]*", flags=re.UNICODE)

SUMMARY_MIN_TAGGED_CHARS = 20
SUMMARY_MIN_CHARS = 10
LINE_SCAN_MIN_CHARS = 30
KEYWORD_MIN_CHARS = 2
KEYWORD_MAX_CHARS = 29


class SummaryParser:
    """Turns a free-form model answer into a (summary, keywords) pair. Never raises."""

    def parse(self, raw: Optional[str], title: str, language: Language = Language.VI) -> SummaryResult:
        text = (raw or "").replace("\r\n", "\n").strip()
        lang = language.value if isinstance(language, Language) else str(language or "vi")

        summary, keywords = self._tagged_fields(text)
        if len(summary) < SUMMARY_MIN_TAGGED_CHARS:
            summary = self._scan_lines(text, lang) or summary
        if len(summary) < SUMMARY_MIN_CHARS:
            summary = self._synthetic_summary(title, lang)

        if not keywords:
            keywords = self._comma_line_keywords(text)
        if not keywords:
            keywords = self._title_keywords(title)
        if not keywords:
            keywords = list(FALLBACK_KEYWORDS.get(lang, FALLBACK_KEYWORDS["vi"]))

        return SummaryResult(summary=summary, keywords=tuple(keywords[:MAX_KEYWORDS]))

    # -----------------------------
    # Strategies
    # -----------------------------
    def _tagged_fields(self, text: str) -> tuple[str, list[str]]:
        if not text:
            return "", []
        summary = ""
        match = _SUMMARY_RE.search(text)
        if match:
            summary = self._clean_summary(match.group(1))
        keywords: list[str] = []
        match = _KEYWORDS_RE.search(text)
        if match:
            keywords = self._clean_keywords(re.split(r"[,\n;]", match.group(1)))
        return summary, keywords

    def _scan_lines(self, text: str, lang: str) -> str:
        for line in text.split("\n"):
            candidate = line.strip()
            if len(candidate) <= LINE_SCAN_MIN_CHARS or _ANY_LABEL_RE.match(candidate):
                continue
            if lang == Language.EN.value:
                ok = self._looks_like_english_sentence(candidate)
            else:
                ok = bool(_VIETNAMESE_RE.search(candidate))
            if ok:
                return self._clean_summary(candidate)
        return ""

    @staticmethod
    def _looks_like_english_sentence(line: str) -> bool:
        letters = [c for c in line if c.isalpha()]
        if not letters:
            return False
        ascii_ratio = sum(1 for c in letters if c.isascii()) / len(letters)
        return ascii_ratio >= 0.9 and len(_ASCII_WORD_RE.findall(line)) >= 5

    @staticmethod
    def _synthetic_summary(title: str, lang: str) -> str:
        template = FALLBACK_SUMMARY_TEMPLATES.get(lang, FALLBACK_SUMMARY_TEMPLATES["vi"])
        return template.format(title=clean_text_ws(title))

    def _comma_line_keywords(self, text: str) -> list[str]:
        for line in text.split("\n"):
            if "," not in line:
                continue
            body = _ANY_LABEL_RE.sub("", line.strip())
            tokens = [strip_quotes(t.strip(" []-*•")) for t in body.split(",")]
            plausible = [t for t in tokens if KEYWORD_MIN_CHARS <= len(t) <= KEYWORD_MAX_CHARS]
            if len(plausible) >= 2:
                return dedupe_keep_order(plausible)[:COMMA_KEYWORD_LIMIT]
        return []

    @staticmethod
    def _title_keywords(title: str) -> list[str]:
        words = _TITLE_WORD_RE.findall(clean_text_ws(title))
        picked = [w for w in words if len(w) > 3 and w[0].isupper()]
        return dedupe_keep_order(picked)[:COMMA_KEYWORD_LIMIT]

    # -----------------------------
    # Cleanup
    # -----------------------------
    @staticmethod
    def _clean_summary(value: str) -> str:
        return strip_quotes(clean_text_ws(value.strip("[] \n")))

    @staticmethod
    def _clean_keywords(parts) -> list[str]:
        out: list[str] = []
        for part in parts:
            token = strip_quotes(clean_text_ws(part).strip(" []-*•."))
            if token and len(token) <= 60:
                out.append(token)
        return dedupe_keep_order(out)


def parse_summary_response(raw: Optional[str], title: str, language: Language = Language.VI) -> SummaryResult:
    return _DEFAULT_PARSER.parse(raw, title, language)


_DEFAULT_PARSER = SummaryParser()
