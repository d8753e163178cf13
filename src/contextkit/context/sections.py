"""The sections of an assembled context, in render order.

Every section gets the number of characters still available and must not
return more than that. Sections that have nothing to say return empty text.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from contextkit.cancellation import CancellationToken, is_cancelled
from contextkit.context.models import AssemblyInputs, ChangeType
from contextkit.context.prioritizer import order_for_content
from contextkit.context.summarizer import summarize_content
from contextkit.context.tree import ascii_tree
from contextkit.context.truncation import kept_length, truncate_with_marker
from contextkit.selection import FileSelection
from contextkit.symbols.models import CallHierarchyCall, DocumentSymbol, Location
from contextkit.workspace.ignore import file_extension, is_binary_path

logger = logging.getLogger("contextkit.context")

MAX_IMPORTS_SHOWN = 10
MAX_REFERENCED_TYPES = 30
MAX_REFERENCED_TYPE_CHARS = 10_000
MAX_CALLS_SHOWN = 5

NO_CONTENT_NOTE = "\n(No file content included due to size limits or errors)"


@dataclass
class SectionResult:
    text: str = ""
    truncated: bool = False
    included_paths: list[str] = field(default_factory=list)
    skipped: int = 0


class ContextSection(ABC):
    """One block of the assembled context."""

    title: str = ""

    @abstractmethod
    async def render(
        self,
        inputs: AssemblyInputs,
        remaining: int,
        token: CancellationToken | None = None,
    ) -> SectionResult:
        """Render at most `remaining` characters."""
        ...

    def _fit(self, text: str, limit: int) -> SectionResult:
        cut = truncate_with_marker(text, limit, self.title)
        if cut != text:
            logger.info("%s truncated from %d to %d chars", self.title, len(text), len(cut))
        return SectionResult(text=cut, truncated=cut != text)


# ----------------------------------------------------------------------
# Structure and manifests
# ----------------------------------------------------------------------


class FileStructureSection(ContextSection):
    title = "File structure"

    async def render(self, inputs, remaining, token=None):
        if not inputs.selections:
            return SectionResult()
        tree = ascii_tree(inputs.selected_paths, inputs.workspace_name)
        return self._fit(f"File Structure:\n{tree}\n\n", remaining)


class RecentChangesSection(ContextSection):
    title = "Recent changes"

    async def render(self, inputs, remaining, token=None):
        if not inputs.recent_changes:
            return SectionResult()
        parts = ["*** Recent Project Changes (During Current Session) ***\n"]
        for change in inputs.recent_changes:
            stamp = f" at {change.timestamp.isoformat()}" if change.timestamp else ""
            parts.append(f"--- File {change.change_type.value.upper()}: {change.file_path}{stamp} ---\n")
            if change.summary:
                parts.append(f"{change.summary}\n")
            parts.append("\n")
        return self._fit("".join(parts), remaining)


class ExistingPathsSection(ContextSection):
    title = "Existing paths"

    async def render(self, inputs, remaining, token=None):
        paths = inputs.candidate_paths or inputs.selected_paths
        if not paths:
            return SectionResult()
        limit = inputs.budget.max_existing_paths
        lines = ["Existing Relative File Paths:"]
        lines.extend(f"- {p}" for p in paths[:limit])
        if len(paths) > limit:
            lines.append(f"... ({len(paths) - limit} additional paths omitted due to limit)")
        return self._fit("\n".join(lines) + "\n\n", remaining)


class ChangedPathsSection(ContextSection):
    title = "Modified/Created paths"

    async def render(self, inputs, remaining, token=None):
        changed = sorted(
            {
                c.file_path
                for c in inputs.recent_changes
                if c.change_type in (ChangeType.CREATED, ChangeType.MODIFIED)
            }
        )
        if not changed:
            return SectionResult()
        body = "\n".join(f"- {p}" for p in changed)
        text = (
            "--- Modified/Created File Paths ---\n"
            f"{body}\n"
            "--- End Modified/Created File Paths ---\n\n"
        )
        return self._fit(text, remaining)


# ----------------------------------------------------------------------
# Symbols
# ----------------------------------------------------------------------


def _flatten(symbols: list[DocumentSymbol], depth: int = 0) -> list[tuple[int, DocumentSymbol]]:
    flat: list[tuple[int, DocumentSymbol]] = []
    for sym in symbols:
        flat.append((depth, sym))
        flat.extend(_flatten(sym.children, depth + 1))
    return flat


class SymbolInfoSection(ContextSection):
    title = "Symbol information"

    async def render(self, inputs, remaining, token=None):
        per_file = inputs.budget.max_symbol_entries_per_file
        parts: list[str] = []
        for path in inputs.selected_paths:
            symbols = inputs.document_symbols.get(path)
            if not symbols:
                continue
            entries = _flatten(symbols)
            parts.append(f"--- File: {path} ---\n")
            for depth, sym in entries[:per_file]:
                detail = f" (Detail: {sym.detail})" if sym.detail else ""
                parts.append(
                    f"{'  ' * depth}- [{sym.kind}] {sym.name} (Line {sym.range.start_line}){detail}\n"
                )
            if len(entries) > per_file:
                parts.append(f"... ({len(entries) - per_file} more symbols omitted for this file)\n")
            parts.append("\n")
        if not parts:
            return SectionResult()
        text = "Symbol Information:\n" + "".join(parts)
        return self._fit(text, min(inputs.budget.max_symbol_chars, remaining))


def _locations(locations: list[Location]) -> str:
    if not locations:
        return "None"
    return ", ".join(f"{loc.path}:{loc.range.start_line}" for loc in locations)


def _calls(calls: list[CallHierarchyCall]) -> str:
    if not calls:
        return "    None\n"
    lines = []
    for call in calls[:MAX_CALLS_SHOWN]:
        item = call.item
        line = call.from_ranges[0].start_line if call.from_ranges else item.range.start_line
        detail = f" (Detail: {item.detail})" if item.detail else ""
        lines.append(f"    - {item.name} ({item.path}:{line}){detail}\n")
    if len(calls) > MAX_CALLS_SHOWN:
        lines.append(f"    ... ({len(calls) - MAX_CALLS_SHOWN} more)\n")
    return "".join(lines)


class ActiveSymbolSection(ContextSection):
    title = "Active symbol detail"

    async def render(self, inputs, remaining, token=None):
        symbol = inputs.active_symbol
        if symbol is None or not symbol.name:
            return SectionResult()

        parts = [
            f"Active Symbol Detail: {symbol.name}\n",
            f"  Kind: {symbol.kind}\n",
            f"  File: {symbol.file_path}\n",
            f"  Detail: {symbol.detail or 'N/A'}\n",
        ]
        if symbol.full_range is not None:
            parts.append(
                f"  Full Range: Lines {symbol.full_range.start_line}-{symbol.full_range.end_line}\n"
            )
        parts.append(f"  Definitions: {_locations(symbol.definitions)}\n")
        parts.append(f"  Type Definitions: {_locations(symbol.type_definitions)}\n")
        parts.append(f"  Implementations: {_locations(symbol.implementations)}\n")
        if symbol.children_hierarchy:
            parts.append(f"  Children Hierarchy:\n{symbol.children_hierarchy}\n")

        referenced = symbol.referenced_type_definitions
        if referenced:
            parts.append("  Referenced Type Definitions:\n")
            for count, (path, snippets) in enumerate(referenced.items()):
                if count >= MAX_REFERENCED_TYPES:
                    parts.append(
                        f"    ... ({len(referenced) - count} more referenced types omitted)\n"
                    )
                    break
                content = truncate_with_marker(
                    "\n".join(snippets), MAX_REFERENCED_TYPE_CHARS, "Referenced type"
                )
                parts.append(f"    File: {path}\n    Content:\n```\n{content}\n```\n")

        parts.append("  Incoming Calls:\n" + _calls(symbol.incoming_calls))
        parts.append("  Outgoing Calls:\n" + _calls(symbol.outgoing_calls))
        parts.append("\n")
        return self._fit(
            "".join(parts), min(inputs.budget.max_active_symbol_detail_chars, remaining)
        )


# ----------------------------------------------------------------------
# File contents
# ----------------------------------------------------------------------


def _skip_note(count: int) -> str:
    return f"\n... (Content from {count} more files omitted due to total size limit)"


def _summary_marker(original: int, kept: int) -> str:
    return f"\n[... content summarized from {original} chars to {kept} chars]"


class FileContentSection(ContextSection):
    title = "File contents"
    header = "File Contents (partial):\n"

    async def render(self, inputs, remaining, token=None):
        ordered = order_for_content(inputs)
        if not ordered:
            return SectionResult()

        reserve = max(len(NO_CONTENT_NOTE), len(_skip_note(len(ordered))))
        if remaining < len(self.header) + reserve:
            result = self._fit(self.header + NO_CONTENT_NOTE, remaining)
            result.skipped = len(ordered)
            result.truncated = True
            return result

        room = remaining - len(self.header) - reserve
        parts: list[str] = []
        included: list[str] = []
        skipped = 0
        truncated = False

        for index, sel in enumerate(ordered):
            if is_cancelled(token):
                break
            used = sum(len(p) for p in parts)
            if used >= room:
                skipped = len(ordered) - index
                break
            block = await self._file_block(sel, inputs)
            if used + len(block) > room:
                label = f"Content of {sel.path}"
                # a cut file must keep its header, some content and the whole marker
                if kept_length(block, room - used, label) > len(self._file_header(sel)):
                    parts.append(truncate_with_marker(block, room - used, label))
                    included.append(sel.path)
                    skipped = len(ordered) - index - 1
                else:
                    skipped = len(ordered) - index
                truncated = True
                logger.info("Context budget reached at %s; %d file(s) skipped", sel.path, skipped)
                break
            parts.append(block)
            included.append(sel.path)

        if not included:
            footer = NO_CONTENT_NOTE
        elif skipped:
            footer = _skip_note(skipped)
        else:
            footer = ""
        return SectionResult(
            text=self.header + "".join(parts) + footer,
            truncated=truncated,
            included_paths=included,
            skipped=skipped,
        )

    @staticmethod
    def _file_header(sel: FileSelection) -> str:
        range_note = "" if sel.is_whole_file else f" (Lines {sel.start_line}-{sel.end_line})"
        return f"--- File: {sel.path}{range_note} ---\n"

    async def _file_block(self, sel: FileSelection, inputs: AssemblyInputs) -> str:
        return self._file_header(sel) + self._imports_line(sel.path, inputs) + await self._body(sel, inputs) + "\n\n"

    @staticmethod
    def _imports_line(path: str, inputs: AssemblyInputs) -> str:
        deps = inputs.dependencies.get(path, [])
        if not deps:
            return "Imports: none\n"
        shown = ", ".join(f"'{d.path}'" for d in deps[:MAX_IMPORTS_SHOWN])
        more = f" (and {len(deps) - MAX_IMPORTS_SHOWN} more)" if len(deps) > MAX_IMPORTS_SHOWN else ""
        return f"Imports: {shown}{more}\n"

    async def _body(self, sel: FileSelection, inputs: AssemblyInputs) -> str:
        if is_binary_path(sel.path):
            return f"[Binary file ({file_extension(sel.path)}) content omitted]"

        absolute = inputs.fs.join(inputs.workspace_root, sel.path)
        try:
            raw = await inputs.fs.read(absolute)
        except OSError as e:
            logger.warning("Could not read %s: %s", sel.path, e)
            return f"[Error reading file: {e}]"
        text = raw.decode("utf-8", errors="replace")

        if not sel.is_whole_file:
            lines = text.splitlines()
            text = "\n".join(lines[sel.start_line - 1 : sel.end_line])

        cap = inputs.budget.max_per_file_chars
        if len(text) <= cap:
            return text

        is_active = inputs.active_file == sel.path
        symbol = inputs.active_symbol if is_active else None
        # Symbol ranges refer to the whole file, so ranged selections skip the collapse.
        symbols = inputs.document_symbols.get(sel.path) if sel.is_whole_file else None
        budget = max(0, cap - len(_summary_marker(len(text), cap)))
        body = summarize_content(text, budget, symbols, symbol)
        return body + _summary_marker(len(text), len(body))


DEFAULT_SECTIONS: tuple[type[ContextSection], ...] = (
    FileStructureSection,
    RecentChangesSection,
    ExistingPathsSection,
    ChangedPathsSection,
    SymbolInfoSection,
    ActiveSymbolSection,
    FileContentSection,
)


def default_sections() -> list[ContextSection]:
    return [cls() for cls in DEFAULT_SECTIONS]
