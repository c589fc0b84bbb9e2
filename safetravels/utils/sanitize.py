"""
safetravels/utils/sanitize.py — Free-text sanitization
Markup is removed, not escaped: the stored comment is plain text.
"""
from __future__ import annotations

import html
import re

import bleach

# Elements whose content is code, not prose — dropped together with the body
_CODE_BLOCK_RE = re.compile(
    r"<\s*(script|style|iframe|object|embed|noscript|template)\b[^>]*>.*?<\s*/\s*\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
# Unclosed opener swallows the rest of the text
_CODE_OPEN_RE = re.compile(
    r"<\s*(script|style|iframe|object|embed|noscript|template)\b.*",
    re.IGNORECASE | re.DOTALL,
)
_TAG_LIKE_RE = re.compile(r"<\s*/?\s*[a-zA-Z!?][^<>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def _strip_once(text: str) -> str:
    text = _CODE_BLOCK_RE.sub("", text)
    text = _CODE_OPEN_RE.sub("", text)
    text = bleach.clean(text, tags=[], attributes={}, strip=True, strip_comments=True)
    # bleach escapes what is left; the stored value is plain text
    text = html.unescape(text)
    text = _CODE_BLOCK_RE.sub("", text)
    return _TAG_LIKE_RE.sub("", text)


def sanitize_text(text: str) -> str:
    """
    Strip all markup and tag-like sequences from `text`, keeping the plain text.
    Runs until stable so entity-encoded markup cannot survive decoding.
    """
    text = _CONTROL_RE.sub("", text or "")
    for _ in range(5):
        cleaned = _strip_once(text)
        if cleaned == text:
            break
        text = cleaned
    else:
        # Still changing after repeated passes: drop any angle brackets left
        text = text.replace("<", "").replace(">", "")
    return text.strip()
