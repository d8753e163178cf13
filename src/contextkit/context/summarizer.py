"""Shrinking file content to a per-file character budget.

Two strategies, tried in order:

1. Symbol-aware collapse. Bodies of top-level symbols are replaced by their
   first line and a short note, except for the symbol the user is working
   in, which stays intact.
2. Head/tail collapse. Keep the start and end of the text and drop the
   middle.

The result never exceeds ``max_chars``.
"""

from __future__ import annotations

from collections.abc import Sequence

from contextkit.symbols.models import ActiveSymbolInfo, DocumentSymbol

# Share of the budget kept from the start of the file in a head/tail collapse.
HEAD_RATIO = 0.7


def _collapse_symbols(
    lines: list[str],
    symbols: Sequence[DocumentSymbol],
    keep_line: int | None,
) -> str:
    """Replace non-active top-level bodies (more than 2 lines) with a one-line note."""
    drop: dict[int, int] = {}  # first dropped line -> last dropped line, zero-based
    for sym in symbols:
        start, end = sym.range.start.line, min(sym.range.end.line, len(lines) - 1)
        if end - start < 2:
            continue
        if keep_line is not None and start <= keep_line <= end:
            continue
        drop[start + 1] = end

    out: list[str] = []
    i = 0
    while i < len(lines):
        if i in drop:
            end = drop[i]
            indent = len(lines[i]) - len(lines[i].lstrip())
            out.append(f"{' ' * indent}... ({end - i + 1} lines collapsed)")
            i = end + 1
            continue
        out.append(lines[i])
        i += 1
    return "\n".join(out)


def _head_tail(text: str, max_chars: int) -> str:
    omitted_note = f"\n... ({len(text)} chars, middle omitted) ...\n"
    room = max_chars - len(omitted_note)
    if room <= 0:
        return text[:max_chars]
    head = int(room * HEAD_RATIO)
    tail = room - head
    return text[:head] + omitted_note + (text[-tail:] if tail else "")


def summarize_content(
    content: str,
    max_chars: int,
    symbols: Sequence[DocumentSymbol] | None = None,
    active_symbol: ActiveSymbolInfo | None = None,
) -> str:
    """Fit `content` into `max_chars`, preferring to keep structure."""
    if max_chars <= 0:
        return ""
    if len(content) <= max_chars:
        return content

    text = content
    if symbols:
        keep_line = None
        if active_symbol is not None and active_symbol.full_range is not None:
            keep_line = active_symbol.full_range.start.line
        text = _collapse_symbols(content.splitlines(), symbols, keep_line)
        if len(text) <= max_chars:
            return text
    return _head_tail(text, max_chars)
