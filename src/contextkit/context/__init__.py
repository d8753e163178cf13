"""Budgeted context assembly.

Renders a prompt from the selected files and the signals gathered around
them (file tree, recent changes, symbols, dependencies) within a hard
character budget.

Usage:
    from contextkit.context import AssemblyInputs, ContextAssembler

    assembled = await ContextAssembler().assemble(inputs)
    print(assembled.text)
"""

from contextkit.context.assembler import ContextAssembler, context_header
from contextkit.context.models import (
    AssembledContext,
    AssemblyInputs,
    ChangeType,
    FileChangeEntry,
    HistoricalFile,
)
from contextkit.context.summarizer import summarize_content
from contextkit.context.truncation import truncate_with_marker

__all__ = [
    "AssembledContext",
    "AssemblyInputs",
    "ChangeType",
    "ContextAssembler",
    "FileChangeEntry",
    "HistoricalFile",
    "context_header",
    "summarize_content",
    "truncate_with_marker",
]
