"""Data models for symbol information supplied by a language service."""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel, Field, field_validator


class Position(BaseModel):
    """Zero-based line/character position."""

    line: int
    character: int = 0


class Range(BaseModel):
    start: Position
    end: Position

    @classmethod
    def from_lines(cls, start_line: int, end_line: int) -> Range:
        """Build a range from 1-indexed inclusive line numbers."""
        return cls(start=Position(line=start_line - 1), end=Position(line=end_line - 1))

    @property
    def start_line(self) -> int:
        return self.start.line + 1

    @property
    def end_line(self) -> int:
        return self.end.line + 1

    def contains_line(self, line: int) -> bool:
        """`line` is zero-based, like ``Position.line``."""
        return self.start.line <= line <= self.end.line


class Location(BaseModel):
    """A range in a workspace-relative file."""

    path: str
    range: Range

    def describe(self) -> str:
        return f"{self.path}:{self.range.start_line}-{self.range.end_line}"


class DocumentSymbol(BaseModel):
    name: str
    kind: str
    range: Range
    detail: str = ""
    children: list[DocumentSymbol] = Field(default_factory=list)


class CallHierarchyItem(BaseModel):
    name: str
    kind: str = "function"
    path: str
    range: Range
    detail: str = ""


class CallHierarchyCall(BaseModel):
    """An incoming or outgoing call; ``item`` is the other end."""

    item: CallHierarchyItem
    from_ranges: list[Range] = Field(default_factory=list)


def _as_location_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class ActiveSymbolInfo(BaseModel):
    """Everything known about the symbol under the cursor.

    Definition, type-definition and implementation lookups may return one
    location or many; they are always stored as lists.
    """

    name: str
    kind: str
    detail: str = ""
    file_path: str
    full_range: Range | None = None
    children_hierarchy: str = ""
    definitions: list[Location] = Field(default_factory=list)
    type_definitions: list[Location] = Field(default_factory=list)
    implementations: list[Location] = Field(default_factory=list)
    # path -> source snippets of types the symbol refers to
    referenced_type_definitions: dict[str, list[str]] = Field(default_factory=dict)
    incoming_calls: list[CallHierarchyCall] = Field(default_factory=list)
    outgoing_calls: list[CallHierarchyCall] = Field(default_factory=list)

    @field_validator("definitions", "type_definitions", "implementations", mode="before")
    @classmethod
    def _normalize_locations(cls, value: Any) -> Any:
        return _as_location_list(value)

    def definition_paths(self) -> set[str]:
        return {loc.path for loc in self.definitions}

    def type_definition_paths(self) -> set[str]:
        return {loc.path for loc in self.type_definitions}

    def implementation_paths(self) -> set[str]:
        return {loc.path for loc in self.implementations}

    def call_hierarchy_paths(self) -> set[str]:
        return {c.item.path for c in self.incoming_calls + self.outgoing_calls}

    def related_paths(self) -> set[str]:
        """Every file this symbol touches, including its own."""
        paths = {self.file_path}
        paths |= self.definition_paths()
        paths |= self.type_definition_paths()
        paths |= self.implementation_paths()
        paths |= self.call_hierarchy_paths()
        paths |= set(self.referenced_type_definitions)
        return paths


class SymbolProvider(Protocol):
    """Language-service collaborator. Paths are workspace-relative."""

    async def document_symbols(self, path: str) -> list[DocumentSymbol]: ...

    async def active_symbol(self, path: str, line: int, character: int = 0) -> ActiveSymbolInfo | None: ...

    async def file_imports(self, path: str) -> list[str]: ...
