"""Escaping helpers for user-supplied text inserted into HTML."""

import re
from typing import Any

_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
    ("/", "&#x2F;"),
)

_DANGEROUS_ATTRIBUTE_RE = re.compile(r"javascript:|data:|vbscript:|on\w+=", re.IGNORECASE)


def sanitize_string(value: str) -> str:
    """Escape ``& < > " ' /``. Ampersand goes first so escapes are not doubled."""
    if not value:
        return ""
    for char, entity in _ESCAPES:
        value = value.replace(char, entity)
    return value


def sanitize(value: Any) -> Any:
    """Recursively escape every string inside lists, tuples and dict values.

    Dict keys and non-string scalars are returned unchanged.
    """
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, list):
        return [sanitize(item) for item in value]
    if isinstance(value, tuple):
        return tuple(sanitize(item) for item in value)
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    return value


def safe_attribute(value: str) -> str:
    """Strip script-bearing schemes and inline handlers from an attribute value."""
    if not value:
        return ""
    return _DANGEROUS_ATTRIBUTE_RE.sub("", value)
