from __future__ import annotations

MIN_TEXT_CHARS = 20  # shorter extraction results are unusable
FALLBACK_CONTENT_PREFERRED_CHARS = 100
FALLBACK_DESCRIPTION_PREFERRED_CHARS = 50
BROWSER_DEFAULT_SELECTOR_MIN_CHARS = 50

DEFAULT_CONTENT_SELECTORS: tuple[str, ...] = (
    "article",
    ".article-content",
    ".post-content",
    ".entry-content",
    ".story-body",
    ".content",
    "main",
)

ACCESS_DENIAL_MARKERS: tuple[str, ...] = (
    "Access Denied",
    "403 Forbidden",
    "Attention Required! | Cloudflare",
    "cf-browser-verification",
    "Request unsuccessful. Incapsula incident",
)

BLOCK_STATUS_CODES = frozenset({401, 403, 429})

HTTP_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
HTTP_ACCEPT_LANGUAGE = "en-US,en;q=0.9,vi;q=0.8"

QUEUE_NAME = "newsrss:jobs"

# Column limits of the articles table
MAX_FEED_NAME_CHARS = 100
MAX_CATEGORY_CHARS = 100
MAX_TITLE_CHARS = 500

MAX_KEYWORDS = 8
COMMA_KEYWORD_LIMIT = 5

SUMMARY_PROMPTS = {
    "vi": (
        "Tóm tắt bài báo sau bằng tiếng Việt trong 2-3 câu, sau đó liệt kê 5 từ khóa:\n\n"
        "Bài báo: {{content}}\n\n"
        "Trả lời theo định dạng:\n"
        "SUMMARY: [tóm tắt bằng tiếng Việt]\n"
        "KEYWORDS: [từ khóa 1], [từ khóa 2], [từ khóa 3], [từ khóa 4], [từ khóa 5]"
    ),
    "en": (
        "Summarize the following article in English in 2-3 sentences, then list 5 keywords:\n\n"
        "Article: {{content}}\n\n"
        "Answer in this format:\n"
        "SUMMARY: [summary in English]\n"
        "KEYWORDS: [keyword 1], [keyword 2], [keyword 3], [keyword 4], [keyword 5]"
    ),
}

SYSTEM_PROMPTS = {
    "vi": "Bạn là trợ lý AI. Luôn trả lời bằng tiếng Việt theo đúng định dạng yêu cầu.",
    "en": "You are an AI assistant. Always answer in English using exactly the requested format.",
}

FALLBACK_SUMMARY_TEMPLATES = {
    "vi": 'Bài báo "{title}" đề cập đến các vấn đề quan trọng và cung cấp thông tin hữu ích cho người đọc.',
    "en": 'The article "{title}" covers noteworthy developments and offers useful information for readers.',
}

FALLBACK_KEYWORDS = {
    "vi": ("Tin tức", "Thông tin", "Báo chí"),
    "en": ("News", "Information", "Press"),
}

NO_KEYWORDS_LABEL = {
    "vi": "Không có",
    "en": "None",
}

DISCORD_EMBED_COLOR = 0x0099FF
DISCORD_TITLE_MAX_CHARS = 256
DISCORD_DESCRIPTION_MAX_CHARS = 4096
DISCORD_FIELD_MAX_CHARS = 1024
