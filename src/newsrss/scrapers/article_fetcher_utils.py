from __future__ import annotations

import math
from typing import Mapping, Sequence

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from newsrss.core.constants import ACCESS_DENIAL_MARKERS, BLOCK_STATUS_CODES, DEFAULT_CONTENT_SELECTORS
from newsrss.utils.common import clean_text, clean_text_ws

_NOISE_TAGS = ["script", "style", "noscript", "iframe", "form", "template", "svg"]


def make_soup(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(_NOISE_TAGS):
        tag.decompose()
    return soup


def html_to_text(markup: str) -> str:
    """Small HTML-to-text pass: drop script/style, join text nodes, normalize whitespace."""
    if not markup:
        return ""
    if "<" not in markup:
        return clean_text(markup)
    soup = make_soup(markup)
    return clean_text_ws(soup.get_text(" "))


def select_text(soup: BeautifulSoup, selector: str) -> str:
    """Text of every element matching selector, joined in document order."""
    try:
        nodes = soup.select(selector)
    except SelectorSyntaxError:
        return ""
    parts = [clean_text_ws(node.get_text(" ")) for node in nodes]
    return clean_text_ws(" ".join(p for p in parts if p))


def probe_selectors(
    soup: BeautifulSoup,
    selectors: Sequence[str] = DEFAULT_CONTENT_SELECTORS,
    min_chars: int = 1,
) -> tuple[str, str]:
    """First selector whose first match has at least min_chars of text -> (text, selector)."""
    for selector in selectors:
        try:
            node = soup.select_one(selector)
        except SelectorSyntaxError:
            continue
        if node is None:
            continue
        text = clean_text_ws(node.get_text(" "))
        if len(text) >= max(1, min_chars):
            return text, selector
    return "", ""


def has_access_denial(body: str, markers: Sequence[str] = ACCESS_DENIAL_MARKERS) -> bool:
    if not body:
        return False
    return any(marker in body for marker in markers)


def detect_block_hint(headers: Mapping[str, str], status: int) -> str:
    lowered = {str(k).lower(): str(v) for k, v in (headers or {}).items()}
    server_header = (lowered.get("server") or "").lower()
    if "cloudflare" in server_header or "cf-ray" in lowered:
        return "blocked:cloudflare"
    if "akamai" in server_header:
        return "blocked:akamai"
    if "incapsula" in server_header or "imperva" in server_header:
        return "blocked:imperva"
    if status in BLOCK_STATUS_CODES:
        return f"blocked:http_{status}"
    return ""


def is_textual_content_type(content_type: str) -> bool:
    ct = (content_type or "").lower()
    if not ct:
        return True
    if any(x in ct for x in ["text/javascript", "application/javascript", "text/css"]):
        return False
    return any(x in ct for x in ["text/", "application/xml", "application/xhtml+xml"])


def text_quality_score(tag) -> float:
    text = clean_text_ws(tag.get_text(" "))
    if not text:
        return -1.0

    length = len(text)
    if length < 120:
        return -1.0

    link_text_len = sum(len(clean_text_ws(a.get_text(" "))) for a in tag.find_all("a"))
    link_ratio = link_text_len / max(1, length)
    punct = sum(text.count(c) for c in [".", "?", "!", "…"])
    punct_density = punct / max(1, length)

    score = math.log(length)
    score += min(0.8, punct_density * 50)
    score -= link_ratio * 3.5
    if link_ratio > 0.35:
        score -= 2.0
    return score


def extract_main_text_heuristic(soup: BeautifulSoup) -> str:
    """Densest text block with few links; last resort when no selector matched."""
    for tag in soup.find_all(["header", "nav", "footer", "aside"]):
        tag.decompose()

    candidates = []
    for tag_name in ["article", "main", "section", "div"]:
        for tag in soup.find_all(tag_name):
            score = text_quality_score(tag)
            if score > 0:
                candidates.append((score, tag))

    if not candidates:
        return ""
    candidates.sort(key=lambda x: x[0], reverse=True)
    return clean_text_ws(candidates[0][1].get_text(" "))
