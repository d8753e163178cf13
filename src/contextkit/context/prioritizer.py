"""Ordering of selected files for the content section.

This is a second weighting pass, separate from heuristic ranking: it only
decides which of the already-selected files get their content in first
when the budget is tight.
"""

from __future__ import annotations

from contextkit.context.models import AssemblyInputs
from contextkit.graph.dependencies import RelationType
from contextkit.selection import FileSelection

_CONTENT_WEIGHTS: dict[str, float] = {
    "active_file": 1000,
    "active_range": 200,
    "symbol_related": 500,
    RelationType.RUNTIME.value: 100,
    RelationType.TYPE.value: 50,
    RelationType.UNKNOWN.value: 20,
    "has_dependents": 80,
    "many_symbols": 50,
    "historical_same_topic": 2000,
    "historical_other_topic": 200,
}


def content_priority(path: str, inputs: AssemblyInputs) -> float:
    score = 0.0
    symbol = inputs.active_symbol

    if path == inputs.active_file or (symbol is not None and symbol.file_path == path):
        score += _CONTENT_WEIGHTS["active_file"]
        if symbol is not None and symbol.full_range is not None and symbol.file_path == path:
            score += _CONTENT_WEIGHTS["active_range"]

    if symbol is not None and path in symbol.related_paths() - {symbol.file_path}:
        score += _CONTENT_WEIGHTS["symbol_related"]

    for dep in inputs.dependencies.get(path, []):
        score += _CONTENT_WEIGHTS[dep.relation_type.value]

    if inputs.reverse_dependencies.get(path):
        score += _CONTENT_WEIGHTS["has_dependents"]

    if len(inputs.document_symbols.get(path, [])) > inputs.budget.max_symbol_entries_per_file / 2:
        score += _CONTENT_WEIGHTS["many_symbols"]

    topic = inputs.current_topic.lower()
    for hist in inputs.historical_files:
        if hist.path == path:
            same = bool(topic) and hist.topic.lower() == topic
            score += _CONTENT_WEIGHTS["historical_same_topic" if same else "historical_other_topic"]
            break

    return score


def order_for_content(inputs: AssemblyInputs) -> list[FileSelection]:
    """Active file first, then by priority (highest first), then by path."""
    scored = [(sel, content_priority(sel.path, inputs)) for sel in inputs.selections]
    scored.sort(key=lambda pair: (pair[0].path != inputs.active_file, -pair[1], pair[0].path))
    return [sel for sel, _ in scored]
