"""Bounded-concurrency workspace scanner.

Walks the tree through a ``FileSystem``, pruning ignored directories before
descending and ignored or non-allow-listed files before stat'ing them.
Complete results are cached per workspace root and scan options; the ``on_files_*`` hooks
drop that entry as soon as the host reports a structural change.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass, field

from contextkit.cache import CacheStats, TTLCache
from contextkit.cancellation import CancellationToken, is_cancelled
from contextkit.config import ScannerConfig
from contextkit.exceptions import ScanIOError
from contextkit.workspace.filesystem import FileSystem, FileType
from contextkit.workspace.ignore import IgnoreRules, matches_allow_list

logger = logging.getLogger("contextkit.scanner")


@dataclass(frozen=True)
class CandidateFile:
    """A file eligible for context. Identity is the relative ``path``."""

    path: str
    absolute_id: str
    size_bytes: int


@dataclass
class ScanResult:
    root: str
    files: list[CandidateFile] = field(default_factory=list)
    scan_time_ms: float = 0.0
    from_cache: bool = False
    workspace_available: bool = True
    skipped: int = 0
    cancelled: bool = False

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def __len__(self) -> int:
        return len(self.files)


def scan_cache_key(root: str, config: ScannerConfig) -> str:
    """Cache key for a scan of `root` under the options that shape its result."""
    options = config.model_dump_json(
        include={"exclude_patterns", "respect_gitignore", "extension_allow_list", "max_file_size_bytes"}
    )
    return f"{root}#{hashlib.sha256(options.encode()).hexdigest()[:16]}"


class _ScanState:
    def __init__(self, limit: int) -> None:
        self.semaphore = asyncio.Semaphore(max(1, limit))
        self.files: list[CandidateFile] = []
        self.skipped = 0


class WorkspaceScanner:
    """Enumerates candidate files under a workspace root."""

    def __init__(
        self,
        fs: FileSystem,
        config: ScannerConfig | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self.fs = fs
        self.config = config or ScannerConfig()
        self.cache: TTLCache = cache if cache is not None else TTLCache(
            "scan", self.config.cache_ttl_seconds
        )

    async def scan(
        self,
        root: str,
        config: ScannerConfig | None = None,
        token: CancellationToken | None = None,
    ) -> ScanResult:
        """Scan `root` and return its candidate files sorted by path.

        An unreadable root yields an empty result with
        ``workspace_available=False``. A cancelled scan returns what it found
        so far and is not cached.
        """
        config = config or self.config
        start = time.perf_counter()

        if config.use_cache:
            cached = self.cache.get(scan_cache_key(root, config))
            if cached is not None:
                logger.debug("Scan cache hit for %s (%d files)", root, len(cached))
                return ScanResult(root=root, files=list(cached), from_cache=True)

        try:
            root_stat = await self.fs.stat(root)
        except OSError as e:
            logger.warning("Workspace root %s is not readable: %s", root, e)
            return ScanResult(root=root, workspace_available=False)
        if root_stat.type != FileType.DIRECTORY:
            logger.warning("Workspace root %s is not a directory", root)
            return ScanResult(root=root, workspace_available=False)

        rules = await IgnoreRules.load(
            self.fs, root, config.exclude_patterns, config.respect_gitignore
        )
        state = _ScanState(config.concurrency_limit)
        await self._scan_dir(root, "", rules, config, state, token)

        files = sorted(state.files, key=lambda f: f.path)
        elapsed = (time.perf_counter() - start) * 1000
        cancelled = is_cancelled(token)
        result = ScanResult(
            root=root,
            files=files,
            scan_time_ms=elapsed,
            skipped=state.skipped,
            cancelled=cancelled,
        )

        if cancelled:
            logger.info("Scan of %s cancelled after %d files", root, len(files))
        else:
            logger.info(
                "Scanned %s: %d files in %.1fms (%d skipped)",
                root, len(files), elapsed, state.skipped,
            )
            if config.use_cache:
                self.cache.set(
                    scan_cache_key(root, config), files, ttl=config.cache_ttl_seconds, scope=root
                )
        return result

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    async def _scan_dir(
        self,
        abs_dir: str,
        rel_dir: str,
        rules: IgnoreRules,
        config: ScannerConfig,
        state: _ScanState,
        token: CancellationToken | None,
    ) -> None:
        if is_cancelled(token):
            return

        try:
            async with state.semaphore:
                entries = await self.fs.list_dir(abs_dir)
        except OSError as e:
            err = ScanIOError(rel_dir or ".", str(e))
            logger.error("Skipping directory: %s", err)
            state.skipped += 1
            return

        tasks = []
        for entry in entries:
            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            abs_path = self.fs.join(abs_dir, entry.name)
            if entry.type == FileType.DIRECTORY:
                if rules.ignores_dir(rel_path):
                    continue
                tasks.append(self._scan_dir(abs_path, rel_path, rules, config, state, token))
            elif entry.type in (FileType.FILE, FileType.SYMLINK):
                if rules.ignores_file(rel_path):
                    continue
                if not matches_allow_list(rel_path, config.extension_allow_list):
                    continue
                tasks.append(self._stat_file(abs_path, rel_path, config, state, token))

        if tasks:
            await asyncio.gather(*tasks)

    async def _stat_file(
        self,
        abs_path: str,
        rel_path: str,
        config: ScannerConfig,
        state: _ScanState,
        token: CancellationToken | None,
    ) -> None:
        if is_cancelled(token):
            return
        try:
            async with state.semaphore:
                st = await self.fs.stat(abs_path)
        except OSError as e:
            logger.warning("Skipping %s: %s", rel_path, e)
            state.skipped += 1
            return
        if st.type != FileType.FILE:
            return
        if st.size > config.max_file_size_bytes:
            logger.debug("Skipping %s: %d bytes exceeds size cap", rel_path, st.size)
            return
        state.files.append(CandidateFile(path=rel_path, absolute_id=abs_path, size_bytes=st.size))

    # ------------------------------------------------------------------
    # Cache control
    # ------------------------------------------------------------------

    def invalidate(self, root: str | None = None) -> int:
        """Clear cached scans for `root`, or all of them."""
        return self.cache.clear(root)

    def on_files_created(self, root: str, paths: list[str] | None = None) -> None:
        logger.debug("Files created under %s: %s", root, paths)
        self.invalidate(root)

    def on_files_deleted(self, root: str, paths: list[str] | None = None) -> None:
        logger.debug("Files deleted under %s: %s", root, paths)
        self.invalidate(root)

    def on_files_renamed(self, root: str, paths: list[tuple[str, str]] | None = None) -> None:
        logger.debug("Files renamed under %s: %s", root, paths)
        self.invalidate(root)

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()
