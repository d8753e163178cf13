"""Minimal filesystem capability consumed by the scanner and the assembler.

Everything that touches the workspace goes through ``FileSystem`` so hosts
can supply their own (an editor's virtual filesystem, a remote tree) and tests
can use ``MemoryFileSystem``.
"""

from __future__ import annotations

import asyncio
import os
import posixpath
import stat as stat_module
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class FileType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


@dataclass(frozen=True)
class DirEntry:
    name: str
    type: FileType


@dataclass(frozen=True)
class FileStat:
    size: int
    type: FileType


@runtime_checkable
class FileSystem(Protocol):
    """List, stat and read, all asynchronous. Errors surface as ``OSError``."""

    async def list_dir(self, path: str) -> list[DirEntry]: ...

    async def stat(self, path: str) -> FileStat: ...

    async def read(self, path: str) -> bytes: ...

    def join(self, base: str, name: str) -> str: ...


def _mode_to_type(mode: int) -> FileType:
    if stat_module.S_ISDIR(mode):
        return FileType.DIRECTORY
    if stat_module.S_ISREG(mode):
        return FileType.FILE
    if stat_module.S_ISLNK(mode):
        return FileType.SYMLINK
    return FileType.OTHER


class LocalFileSystem:
    """The host's real filesystem. Blocking calls run in worker threads."""

    async def list_dir(self, path: str) -> list[DirEntry]:
        return await asyncio.to_thread(self._list_dir_sync, path)

    async def stat(self, path: str) -> FileStat:
        st = await asyncio.to_thread(os.stat, path)
        return FileStat(size=st.st_size, type=_mode_to_type(st.st_mode))

    async def read(self, path: str) -> bytes:
        return await asyncio.to_thread(self._read_sync, path)

    def join(self, base: str, name: str) -> str:
        return os.path.join(base, name)

    @staticmethod
    def _list_dir_sync(path: str) -> list[DirEntry]:
        entries = []
        with os.scandir(path) as it:
            for entry in it:
                if entry.is_symlink():
                    kind = FileType.SYMLINK
                elif entry.is_dir(follow_symlinks=False):
                    kind = FileType.DIRECTORY
                elif entry.is_file(follow_symlinks=False):
                    kind = FileType.FILE
                else:
                    kind = FileType.OTHER
                entries.append(DirEntry(name=entry.name, type=kind))
        return entries

    @staticmethod
    def _read_sync(path: str) -> bytes:
        with open(path, "rb") as f:
            return f.read()


class MemoryFileSystem:
    """An in-memory tree keyed by POSIX paths.

    Directories are implied by the files beneath them. Paths listed in
    ``unreadable`` raise ``PermissionError`` on any access.
    """

    def __init__(self, files: dict[str, str | bytes] | None = None) -> None:
        self._files: dict[str, bytes] = {}
        self.unreadable: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        for path, content in (files or {}).items():
            self.write(path, content)

    def write(self, path: str, content: str | bytes) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        self._files[self._norm(path)] = data

    def remove(self, path: str) -> None:
        self._files.pop(self._norm(path), None)

    def join(self, base: str, name: str) -> str:
        return posixpath.join(base, name)

    async def list_dir(self, path: str) -> list[DirEntry]:
        path = self._norm(path)
        self.calls.append(("list_dir", path))
        self._check_readable(path)
        if not self._is_dir(path):
            raise FileNotFoundError(path)
        prefix = path.rstrip("/") + "/"
        seen: dict[str, FileType] = {}
        for file_path in self._files:
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            head, sep, _ = rest.partition("/")
            seen[head] = FileType.DIRECTORY if sep else FileType.FILE
        return [DirEntry(name=n, type=t) for n, t in sorted(seen.items())]

    async def stat(self, path: str) -> FileStat:
        path = self._norm(path)
        self.calls.append(("stat", path))
        self._check_readable(path)
        if path in self._files:
            return FileStat(size=len(self._files[path]), type=FileType.FILE)
        if self._is_dir(path):
            return FileStat(size=0, type=FileType.DIRECTORY)
        raise FileNotFoundError(path)

    async def read(self, path: str) -> bytes:
        path = self._norm(path)
        self.calls.append(("read", path))
        self._check_readable(path)
        try:
            return self._files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def _is_dir(self, path: str) -> bool:
        prefix = path.rstrip("/") + "/"
        return any(p.startswith(prefix) for p in self._files)

    def _check_readable(self, path: str) -> None:
        if path in self.unreadable:
            raise PermissionError(path)

    @staticmethod
    def _norm(path: str) -> str:
        normalized = posixpath.normpath("/" + path.replace("\\", "/").lstrip("/"))
        return normalized
