"""File selections and the normalization applied to model-chosen paths."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

logger = logging.getLogger("contextkit.selection")

_LINE_RANGE_RE = re.compile(r"^(.+):(\d+)(?:-(\d+))?$")


@dataclass(frozen=True)
class FileSelection:
    """A file to include, optionally restricted to 1-indexed inclusive lines."""

    path: str
    start_line: int | None = None
    end_line: int | None = None

    @property
    def is_whole_file(self) -> bool:
        return self.start_line is None

    def __str__(self) -> str:
        if self.is_whole_file:
            return self.path
        if self.start_line == self.end_line:
            return f"{self.path}:{self.start_line}"
        return f"{self.path}:{self.start_line}-{self.end_line}"


def parse_line_range(value: str) -> FileSelection:
    """Parse ``path``, ``path:line`` or ``path:start-end``.

    A reversed range is swapped; line numbers below 1 are clamped to 1.
    """
    match = _LINE_RANGE_RE.match(value)
    if not match:
        return FileSelection(path=value)
    path, start, end = match.group(1), int(match.group(2)), match.group(3)
    end_line = int(end) if end is not None else start
    start, end_line = max(1, start), max(1, end_line)
    if end_line < start:
        start, end_line = end_line, start
    return FileSelection(path=path, start_line=start, end_line=end_line)


def merge_selections(selections: Iterable[FileSelection]) -> list[FileSelection]:
    """Collapse selections of the same path by range union.

    A whole-file selection absorbs any ranges for the same path. Output keeps
    first-seen path order.
    """
    merged: dict[str, FileSelection] = {}
    for sel in selections:
        current = merged.get(sel.path)
        if current is None:
            merged[sel.path] = sel
        elif current.is_whole_file or sel.is_whole_file:
            merged[sel.path] = FileSelection(path=sel.path)
        else:
            merged[sel.path] = FileSelection(
                path=sel.path,
                start_line=min(current.start_line, sel.start_line),
                end_line=max(current.end_line, sel.end_line),
            )
    return list(merged.values())


def clean_path(raw: str, workspace_root: str = "") -> str:
    """Strip quotes, whitespace and ``./``; use forward slashes; relativize under the root."""
    path = raw.strip().strip("'\"`").strip().replace("\\", "/")
    root = workspace_root.replace("\\", "/").rstrip("/")
    if root and path.startswith(root + "/"):
        path = path[len(root) + 1 :]
    while path.startswith("./"):
        path = path[2:]
    return path


def normalize_selected_paths(
    raw_paths: Sequence[object],
    candidate_paths: Iterable[str],
    active_file: str | None = None,
    workspace_root: str = "",
) -> list[FileSelection]:
    """Turn model output into validated, merged selections.

    Each entry may carry a line range. Entries that are not strings or that do
    not match a candidate (case-insensitively) are dropped. The active file is
    always present as a whole-file selection, placed first if it was missing.
    """
    canonical = {p.lower(): p for p in candidate_paths}
    parsed: list[FileSelection] = []
    for raw in raw_paths:
        if not isinstance(raw, str) or not raw.strip():
            logger.debug("Dropping non-string selection entry: %r", raw)
            continue
        sel = parse_line_range(clean_path(raw, workspace_root))
        path = canonical.get(sel.path.lower())
        if path is None:
            logger.debug("Dropping unknown path from selection: %s", sel.path)
            continue
        parsed.append(FileSelection(path=path, start_line=sel.start_line, end_line=sel.end_line))

    selections = merge_selections(parsed)
    return ensure_active_file(selections, active_file)


def ensure_active_file(selections: list[FileSelection], active_file: str | None) -> list[FileSelection]:
    if not active_file:
        return selections
    if any(sel.path == active_file for sel in selections):
        return selections
    return [FileSelection(path=active_file)] + list(selections)


_MENTION_RE = re.compile(r"[\w./\\~-]+")


def paths_mentioned(request: str, candidate_paths: Iterable[str], workspace_root: str = "") -> list[str]:
    """Candidate paths that appear verbatim in `request`, in order of mention."""
    canonical = {p.lower(): p for p in candidate_paths}
    found: list[str] = []
    for token in _MENTION_RE.findall(request):
        cleaned = clean_path(token.rstrip(".,:;"), workspace_root)
        path = canonical.get(cleaned.lower())
        if path is not None and path not in found:
            found.append(path)
    return found
