"""Ignore rules and the relevant-file allow-list used while scanning."""

from __future__ import annotations

import fnmatch
import logging
import posixpath
from collections.abc import Iterable

import pathspec

from contextkit.workspace.filesystem import FileSystem

logger = logging.getLogger("contextkit.ignore")

DENIED_DIRECTORIES = [
    ".git",
    ".hg",
    ".svn",
    ".contextkit",
    "node_modules",
    "bower_components",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".next",
    ".nuxt",
    ".cache",
    ".idea",
    ".vscode",
    "dist",
    "build",
    "out",
    "target",
    "coverage",
    ".gradle",
]

DENIED_FILE_PATTERNS = [
    "*.pyc",
    "*.pyo",
    "*.so",
    "*.dylib",
    "*.dll",
    "*.exe",
    "*.class",
    "*.jar",
    "*.o",
    "*.a",
    "*.min.js",
    "*.min.css",
    "*.map",
    "*.lock",
    "*.log",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    ".DS_Store",
]

BINARY_FILE_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff", ".psd",
        ".mp3", ".mp4", ".wav", ".ogg", ".avi", ".mov", ".webm", ".flac",
        ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".exe", ".dll", ".so", ".dylib", ".bin", ".o", ".a", ".class", ".jar",
        ".pyc", ".pyo", ".wasm", ".woff", ".woff2", ".ttf", ".otf", ".eot",
        ".sqlite", ".db",
    }
)


def file_extension(path: str) -> str:
    return posixpath.splitext(path)[1].lower()


def is_binary_path(path: str) -> bool:
    return file_extension(path) in BINARY_FILE_EXTENSIONS


def matches_allow_list(rel_path: str, allow_list: Iterable[str]) -> bool:
    """True if the file's name or suffix appears in the allow-list.

    Entries starting with a dot are suffixes (".py", ".env.example"); anything
    else is an exact filename ("Dockerfile").
    """
    name = posixpath.basename(rel_path)
    lower = name.lower()
    for entry in allow_list:
        if entry.startswith("."):
            if lower.endswith(entry.lower()) or lower == entry.lower():
                return True
        elif name == entry:
            return True
    return False


class IgnoreRules:
    """Deny-lists plus gitignore-style patterns, matched on relative paths."""

    def __init__(self, patterns: Iterable[str] = (), gitignore_lines: Iterable[str] = ()) -> None:
        self._denied_dirs = set(DENIED_DIRECTORIES)
        self._denied_files = list(DENIED_FILE_PATTERNS)
        lines = [line for line in patterns if line.strip()]
        lines.extend(gitignore_lines)
        self._spec = pathspec.GitIgnoreSpec.from_lines(lines)

    @classmethod
    async def load(
        cls,
        fs: FileSystem,
        root: str,
        patterns: Iterable[str] = (),
        respect_gitignore: bool = True,
    ) -> IgnoreRules:
        """Build rules for `root`, reading its ``.gitignore`` if asked to."""
        gitignore_lines: list[str] = []
        if respect_gitignore:
            try:
                raw = await fs.read(fs.join(root, ".gitignore"))
                gitignore_lines = raw.decode("utf-8", errors="replace").splitlines()
            except OSError:
                logger.debug("No readable .gitignore under %s", root)
        return cls(patterns=patterns, gitignore_lines=gitignore_lines)

    def ignores_dir(self, rel_path: str) -> bool:
        name = posixpath.basename(rel_path)
        if name in self._denied_dirs:
            return True
        return self._spec.match_file(rel_path.rstrip("/") + "/")

    def ignores_file(self, rel_path: str) -> bool:
        name = posixpath.basename(rel_path)
        if any(fnmatch.fnmatch(name, pattern) for pattern in self._denied_files):
            return True
        if is_binary_path(name):
            return True
        return self._spec.match_file(rel_path)
