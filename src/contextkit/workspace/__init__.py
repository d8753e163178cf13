"""Workspace access: filesystem capability, ignore rules and the tree scanner."""

from contextkit.workspace.filesystem import (
    DirEntry,
    FileStat,
    FileSystem,
    FileType,
    LocalFileSystem,
    MemoryFileSystem,
)
from contextkit.workspace.scanner import CandidateFile, ScanResult, WorkspaceScanner

__all__ = [
    "CandidateFile",
    "DirEntry",
    "FileStat",
    "FileSystem",
    "FileType",
    "LocalFileSystem",
    "MemoryFileSystem",
    "ScanResult",
    "WorkspaceScanner",
]
