"""Prompts for agentic file selection."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from contextkit.context.truncation import truncate_with_marker
from contextkit.symbols.models import ActiveSymbolInfo

ERROR_KEYWORDS = re.compile(
    r"\b(error|bug|fix|issue|exception|crash|fail|broken|undefined|null|cannot|warning|problem)",
    re.IGNORECASE,
)

MAX_SELECTED_TEXT_CHARS = 200
MAX_DIAGNOSTICS_CHARS = 2000
MAX_SUMMARY_CHARS = 200
MAX_SYMBOL_ENTRIES = 10


def needs_investigation(request: str, always_investigate: bool = False) -> bool:
    return always_investigate or bool(ERROR_KEYWORDS.search(request))


def get_system_prompt(project_name: str = "") -> str:
    """System prompt for the tool-calling selection loop."""
    project_str = f" in the '{project_name}' workspace" if project_name else ""

    return f"""You select the files a coding assistant needs to answer a request{project_str}.

## Tools
- `run_terminal_command`: run one read-only command (grep, find, git log, cat, head, ...) from the workspace root.
- `finish_selection`: return the final list of relevant files. Call it exactly once, when you are done.

## Rules
- Prefer a few precise files over many loosely related ones.
- Paths must be workspace-relative and must come from the listed files or from command output.
- Add a line range ("path:10-40") when only part of a large file matters.
- Commands that redirect, chain (&&, ;) or substitute are rejected. Use pipes instead.
- You have a small number of turns. Do not repeat a command you already ran.
"""


def top_level_entries(paths: Iterable[str]) -> list[str]:
    """First path segment of every candidate, directories marked with a slash."""
    entries: set[str] = set()
    for path in paths:
        head, sep, _ = path.partition("/")
        entries.add(f"{head}/" if sep else head)
    return sorted(entries)


def _symbol_block(symbol: ActiveSymbolInfo) -> str:
    lines = [f"Active symbol: {symbol.name} ({symbol.kind})"]
    if symbol.detail:
        lines.append(f"  Signature: {symbol.detail}")

    def add(label: str, values: list[str]) -> None:
        if values:
            lines.append(f"  {label}:")
            lines.extend(f"    - {v}" for v in values[:MAX_SYMBOL_ENTRIES])

    add("Definitions", [loc.describe() for loc in symbol.definitions])
    add("Implementations", [loc.describe() for loc in symbol.implementations])
    add("Incoming calls", [f"{c.item.name} ({c.item.path})" for c in symbol.incoming_calls])
    add("Outgoing calls", [f"{c.item.name} ({c.item.path})" for c in symbol.outgoing_calls])
    add("Referenced types", sorted(symbol.referenced_type_definitions))
    return "\n".join(lines)


def build_selection_prompt(
    request: str,
    candidate_paths: list[str],
    preselected: list[str],
    active_file: str | None = None,
    selected_text: str = "",
    active_symbol: ActiveSymbolInfo | None = None,
    diagnostics: str = "",
    file_summaries: Mapping[str, str] | None = None,
    always_investigate: bool = False,
    max_chars: int = 60_000,
) -> str:
    """User prompt for the tool-calling loop."""
    sections = [f"## Request\n{request}"]

    if preselected:
        sections.append(
            "## Pre-selected by heuristics\n" + "\n".join(f"- {p}" for p in preselected)
        )
    if active_file:
        sections.append(f"## Active file\n{active_file}")
    if selected_text:
        snippet = selected_text[:MAX_SELECTED_TEXT_CHARS]
        more = "..." if len(selected_text) > MAX_SELECTED_TEXT_CHARS else ""
        sections.append(f"## Selected text\n{snippet}{more}")
    if active_symbol is not None:
        sections.append("## Symbol under cursor\n" + _symbol_block(active_symbol))
    if diagnostics:
        sections.append("## Diagnostics\n" + diagnostics[:MAX_DIAGNOSTICS_CHARS])

    if needs_investigation(request, always_investigate):
        sections.append(
            "## Instructions\nThis request needs investigation. Run at least one command to "
            "locate the relevant code before calling finish_selection."
        )
    else:
        sections.append(
            "## Instructions\nInvestigate only if the listing is not enough, then call "
            "finish_selection."
        )

    if always_investigate:
        listing = "\n".join(top_level_entries(candidate_paths))
        sections.append(
            "## Workspace top level\n"
            f"{listing}\n\n({len(candidate_paths)} files in total; use commands to explore.)"
        )
    else:
        summaries = file_summaries or {}
        rows = []
        for path in candidate_paths:
            summary = summaries.get(path, "")
            rows.append(f"- {path}" + (f": {summary[:MAX_SUMMARY_CHARS]}" if summary else ""))
        sections.append("## Workspace files\n" + "\n".join(rows))

    return truncate_with_marker("\n\n".join(sections), max_chars, "Prompt")


def build_legacy_prompt(
    request: str,
    candidate_paths: list[str],
    preselected: list[str],
    active_file: str | None = None,
    file_summaries: Mapping[str, str] | None = None,
    max_chars: int = 60_000,
) -> str:
    """Single-shot prompt for models without tool calling."""
    summaries = file_summaries or {}
    rows = [
        f"- {p}" + (f": {summaries[p][:MAX_SUMMARY_CHARS]}" if summaries.get(p) else "")
        for p in candidate_paths
    ]
    parts = [
        "Select the files needed to answer the request below. Respond with ONLY a JSON "
        'array of workspace-relative paths, e.g. ["src/a.py", "src/b.py:10-40"].',
        f"Request: {request}",
    ]
    if active_file:
        parts.append(f"Active file: {active_file}")
    if preselected:
        parts.append("Pre-selected: " + ", ".join(preselected))
    parts.append("Files:\n" + "\n".join(rows))
    return truncate_with_marker("\n\n".join(parts), max_chars, "Prompt")
