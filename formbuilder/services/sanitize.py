"""HTML stripping for user-supplied strings."""

import re
from typing import Any

_TAG_RE = re.compile(r"<[^>]*>")
_JS_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)
_INLINE_HANDLER_RE = re.compile(r"""on\w+\s*=\s*["'][^"']*["']""", re.IGNORECASE)
# Control characters except tab, newline and carriage return
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_string(value: str) -> str:
    """Remove tags, ``javascript:`` schemes, inline handlers and control chars."""
    value = _TAG_RE.sub("", value)
    value = _JS_SCHEME_RE.sub("", value)
    value = _INLINE_HANDLER_RE.sub("", value)
    value = _CONTROL_RE.sub("", value)
    return value.strip()


def sanitize_optional(value: str | None) -> str | None:
    if value is None:
        return None
    return sanitize_string(value)


def sanitize_value(value: Any) -> Any:
    """Sanitise a submitted value: strings and strings inside lists.

    Numbers, booleans, None and objects pass through unchanged.
    """
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, list):
        return [sanitize_string(item) if isinstance(item, str) else item for item in value]
    return value
