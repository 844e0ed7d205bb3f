"""
Input Sanitizer - Clean free text before it is stored or sent
=============================================================

Notes, names and messages typed by users end up in emails, push payloads
and the web dashboard. Markup and script fragments are removed here so
every channel can treat the text as plain.

Usage:
    from immigration_backend.sanitize import sanitize_message
    clean_note = sanitize_message(raw_note)
"""

import re
from typing import List, Optional

MAX_MESSAGE_LENGTH = 1000
MAX_INPUT_LENGTH = 255

# Patterns removed from free text (compiled for efficiency)
STRIP_PATTERNS: List[re.Pattern] = [
    re.compile(r'<script\b[^>]*>.*?</script\s*>', re.IGNORECASE | re.DOTALL),
    re.compile(r'<[^>]*>'),                       # Any remaining tag
    re.compile(r'javascript\s*:', re.IGNORECASE),  # javascript: URLs
    re.compile(r'\bon\w+\s*=', re.IGNORECASE),    # onclick= / onerror= ...
]

# Control characters except \t, \n, \r
CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


def _strip(text: str) -> str:
    for pattern in STRIP_PATTERNS:
        text = pattern.sub('', text)
    return CONTROL_CHARS.sub('', text)


def sanitize_message(text: Optional[str], max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """
    Clean a multi-line message (case notes, notification bodies).

    Line breaks are preserved. Text longer than `max_length` is cut and
    suffixed with "...".
    """
    if not text:
        return ""

    cleaned = _strip(text).strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length - 3].rstrip() + "..."
    return cleaned


def sanitize_user_input(text: Optional[str], max_length: int = MAX_INPUT_LENGTH) -> str:
    """Clean a single-line value (names, titles); whitespace is collapsed."""
    if not text:
        return ""

    cleaned = re.sub(r'\s+', ' ', _strip(text)).strip()
    return cleaned[:max_length]
