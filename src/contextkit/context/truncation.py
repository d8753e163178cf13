"""Size-bounded truncation with a visible marker."""

from __future__ import annotations


def truncation_marker(label: str, original: int, kept: int) -> str:
    return f"\n... ({label} truncated from {original} chars to {kept} chars due to size limit)"


def kept_length(text: str, limit: int, label: str) -> int:
    """How many characters of `text` survive ``truncate_with_marker(text, limit, label)``."""
    if limit <= 0:
        return 0
    if len(text) <= limit:
        return len(text)
    # A marker computed for `limit` is at least as long as one for any smaller kept size.
    return max(0, limit - len(truncation_marker(label, len(text), limit)))


def truncate_with_marker(text: str, limit: int, label: str) -> str:
    """Cut `text` to at most `limit` characters, marker included.

    Text that already fits is returned unchanged. When the limit is too small
    to hold the marker, the marker itself is clipped.
    """
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    kept = kept_length(text, limit, label)
    marker = truncation_marker(label, len(text), kept)
    if kept == 0:
        return marker[:limit]
    return text[:kept] + marker
