"""Data models for budgeted context assembly."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from contextkit.config import ContextBudget
from contextkit.graph.dependencies import DependencyRelation
from contextkit.selection import FileSelection
from contextkit.symbols.models import ActiveSymbolInfo, DocumentSymbol
from contextkit.workspace.filesystem import FileSystem


class ChangeType(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class FileChangeEntry(BaseModel):
    """A file touched earlier in the current session."""

    file_path: str
    change_type: ChangeType
    summary: str = ""
    timestamp: datetime | None = None


class HistoricalFile(BaseModel):
    """A file that was relevant to an earlier request, tagged with that request's topic."""

    path: str
    topic: str = ""


class AssembledContext(BaseModel):
    """The final prompt text plus what went into it."""

    text: str
    included_paths: list[str] = Field(default_factory=list)
    skipped_for_size: int = 0
    truncated_sections: list[str] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def size(self) -> int:
        return len(self.text)


@dataclass
class AssemblyInputs:
    """Everything the assembler renders. Paths are workspace-relative."""

    workspace_name: str
    workspace_root: str
    selections: list[FileSelection]
    fs: FileSystem
    budget: ContextBudget = field(default_factory=ContextBudget)
    candidate_paths: list[str] = field(default_factory=list)
    recent_changes: list[FileChangeEntry] = field(default_factory=list)
    dependencies: Mapping[str, list[DependencyRelation]] = field(default_factory=dict)
    reverse_dependencies: Mapping[str, list[str]] = field(default_factory=dict)
    document_symbols: Mapping[str, list[DocumentSymbol]] = field(default_factory=dict)
    active_symbol: ActiveSymbolInfo | None = None
    active_file: str | None = None
    historical_files: list[HistoricalFile] = field(default_factory=list)
    current_topic: str = ""

    @property
    def selected_paths(self) -> list[str]:
        return [s.path for s in self.selections]
