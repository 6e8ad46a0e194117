"""Text normalization utilities for story submissions and tags.

This module handles three small normalization concerns:

1. **Markup stripping** -- submitted titles and bodies are plain text; any
   HTML is removed with bleach before a story is stored.
2. **Derived text fields** -- word counts and the short snippet shown in
   place of a locked story's body.
3. **Tag names** -- case-insensitive canonical names plus a readable
   display name.
"""

from __future__ import annotations

import html
import re

import bleach

SNIPPET_WORDS = 25
SNIPPET_MAX_CHARS = 150
TAG_NAME_MAX_CHARS = 30
TAG_DISPLAY_MAX_CHARS = 50

_WHITESPACE = re.compile(r"\s+")


def sanitize_text(text: str) -> str:
    """Strip all HTML tags and surrounding whitespace from user text."""
    cleaned = bleach.clean(text, tags=set(), attributes={}, strip=True)
    # bleach escapes entities; stored text is plain, not HTML.
    return html.unescape(cleaned).strip()


def count_words(text: str | None) -> int:
    if not text or not text.strip():
        return 0
    return len(_WHITESPACE.split(text.strip()))


def build_snippet(text: str | None) -> str | None:
    """First 25 words of ``text`` with a trailing ellipsis when truncated.

    Returns None for empty text.  The result never exceeds 150 characters.
    """
    if not text or not text.strip():
        return None
    words = _WHITESPACE.split(text.strip())
    snippet = " ".join(words[:SNIPPET_WORDS])
    if len(words) > SNIPPET_WORDS:
        snippet += "..."
    if len(snippet) > SNIPPET_MAX_CHARS:
        snippet = snippet[: SNIPPET_MAX_CHARS - 3].rstrip() + "..."
    return snippet


def normalize_tag_name(name: str) -> str:
    """Canonical tag name: trimmed, lower-cased, inner whitespace collapsed."""
    normalized = _WHITESPACE.sub(" ", name.strip().lower())
    return normalized[:TAG_NAME_MAX_CHARS].strip()


def tag_display_name(name: str) -> str:
    """Readable form of a raw tag, e.g. ``"street  art"`` -> ``"Street Art"``."""
    collapsed = _WHITESPACE.sub(" ", name.strip())
    display = " ".join(word[:1].upper() + word[1:] for word in collapsed.split(" "))
    return display[:TAG_DISPLAY_MAX_CHARS].strip()
