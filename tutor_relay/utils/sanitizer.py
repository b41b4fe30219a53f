"""Input sanitization and HTML stripping utilities.

Provides:
- sanitize_text(): Trim, drop ASCII control characters, and bound user text.
- sanitize_web_content(): Reduce third-party web content to plain text
  before it is folded into a system prompt.
"""
from __future__ import annotations

import re

from markupsafe import Markup

# 0x00-0x1F and 0x7F
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_SCRIPT_STYLE_RE = re.compile(
    r"<\s*(script|style)\b[^>]*>.*?(<\s*/\s*\1\s*>|$)",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^>]*>")
_UNCLOSED_TAG_RE = re.compile(r"<[^>]*$")
_DANGEROUS_SCHEME_RE = re.compile(r"(?:javascript|data)\s*:", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_text(text: str, max_length: int) -> str:
    """Sanitize a user-supplied string.

    Applies the following transformations:
    1. Strip leading/trailing whitespace
    2. Remove ASCII control characters (0x00-0x1F, 0x7F)
    3. Truncate to ``max_length``

    Newlines and tabs are control characters too, so multi-line input is
    joined into a single line.

    Args:
        text: Raw input string.
        max_length: Hard upper bound on the result length.

    Returns:
        Sanitized string, possibly empty.

    Examples:
        >>> sanitize_text("  hi\\x00 there  ", 100)
        'hi there'
    """
    text = _CONTROL_CHARS_RE.sub("", text.strip())
    return text.strip()[:max_length]


def strip_html(text: str | None) -> str:
    """Remove script/style blocks and all HTML tags from a string.

    Markup entities are unescaped by ``striptags``, so the tag pass runs
    again afterwards to catch tags that were smuggled in as ``&lt;...&gt;``.

    Examples:
        >>> strip_html("<p>Hello <b>world</b></p>")
        'Hello world'
        >>> strip_html(None)
        ''
    """
    if not text:
        return ""
    clean = _SCRIPT_STYLE_RE.sub(" ", text)
    clean = Markup(clean).striptags()
    clean = _SCRIPT_STYLE_RE.sub(" ", clean)
    clean = _TAG_RE.sub(" ", clean)
    clean = _UNCLOSED_TAG_RE.sub(" ", clean)
    return _WHITESPACE_RE.sub(" ", clean).strip()


def sanitize_web_content(text: str | None, max_length: int | None = None) -> str:
    """Sanitize a search-result field before it reaches the model.

    Strips script/style blocks, HTML tags, ``javascript:`` and ``data:``
    schemes, and collapses whitespace.

    Args:
        text: Raw title / markdown / description from a search result.
        max_length: Optional bound applied after cleaning.

    Returns:
        Plain text safe to embed in a system prompt.
    """
    clean = strip_html(text)
    # Removing a scheme can splice a new one together ("javajavascript:script:")
    while _DANGEROUS_SCHEME_RE.search(clean):
        clean = _DANGEROUS_SCHEME_RE.sub("", clean)
    clean = _WHITESPACE_RE.sub(" ", clean).strip()
    if max_length is not None:
        clean = clean[:max_length].rstrip()
    return clean
