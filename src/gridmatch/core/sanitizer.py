"""Text sanitization for inbound client payloads and display names.

Every move payload passes through sanitize_text before it is decoded, and
display names are cleaned before they are echoed to other players.
"""

import re

# Control chars to strip (keep \t=0x09, \n=0x0a, \r=0x0d)
_CONTROL_RE = re.compile(
    r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]"
)

# Zero-width and BOM characters
_ZERO_WIDTH_RE = re.compile(
    r"[\u200b\u200c\u200d\u2060\ufeff\u00ad]"
)

_MAX_NAME_CHARS = 64


def sanitize_text(text: str) -> str:
    """Strip control characters and zero-width chars. Preserves normal unicode."""
    text = _CONTROL_RE.sub("", text)
    text = _ZERO_WIDTH_RE.sub("", text)
    return text


def sanitize_name(name: str) -> str:
    """Clean a display name: sanitized, single-line, trimmed, bounded."""
    name = sanitize_text(name).replace("\n", " ").replace("\r", " ").replace("\t", " ")
    return name.strip()[:_MAX_NAME_CHARS]
