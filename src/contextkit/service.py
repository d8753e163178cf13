"""End-to-end context building for one workspace.

``ContextService`` wires the pipeline together:

    scan -> dependencies -> symbols -> heuristic ranking
         -> agentic selection -> assembly

and owns the session caches. Hosts notify it of structural changes through
the ``on_files_*`` hooks.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import time
from dataclasses import dataclass, field

from contextkit.agent.controller import (
    SelectionController,
    SelectionRequest,
    SelectionStatus,
    StatusSink,
)
from contextkit.cache import CacheService
from contextkit.cancellation import CancellationToken, is_cancelled
from contextkit.config import ContextBudget, ProjectConfig
from contextkit.context import (
    AssemblyInputs,
    ContextAssembler,
    FileChangeEntry,
    HistoricalFile,
)
from contextkit.graph.dependencies import (
    DependencyProvider,
    DependencyRelation,
    ImportGraphBuilder,
    reverse_dependencies,
)
from contextkit.llm.base import LLMProvider
from contextkit.sandbox.executor import CommandSandbox
from contextkit.scoring.relevance import RelevanceScorer, ScoringSignals
from contextkit.selection import (
    FileSelection,
    clean_path,
    ensure_active_file,
    merge_selections,
    paths_mentioned,
)
from contextkit.symbols.models import ActiveSymbolInfo, DocumentSymbol, SymbolProvider
from contextkit.symbols.python_symbols import PythonSymbolProvider
from contextkit.workspace.filesystem import FileSystem, LocalFileSystem
from contextkit.workspace.scanner import ScanResult, WorkspaceScanner

logger = logging.getLogger("contextkit.service")

NO_WORKSPACE = "[No workspace folder open]"
NO_FILES = "[No relevant files found in workspace]"
NO_SELECTION = "[No relevant files selected for context.]"


@dataclass
class EditorContext:
    """What the host editor knows about the user's focus.

    ``line`` and ``character`` are zero-based, like editor positions.
    """

    active_file: str | None = None
    line: int | None = None
    character: int = 0
    selected_text: str = ""
    diagnostics: str = ""


@dataclass
class BuildOptions:
    operation_id: str | None = None
    force_recalculate: bool = False
    use_smart_selection: bool = True
    recent_changes: list[FileChangeEntry] = field(default_factory=list)
    historical_files: list[HistoricalFile] = field(default_factory=list)
    file_summaries: dict[str, str] = field(default_factory=dict)
    budget: ContextBudget | None = None


@dataclass
class PerformanceMetrics:
    scan_time_ms: float = 0.0
    dependency_build_time_ms: float = 0.0
    selection_time_ms: float = 0.0
    assembly_time_ms: float = 0.0
    total_time_ms: float = 0.0
    candidate_count: int = 0
    processed_count: int = 0

    def to_dict(self) -> dict:
        return {k: round(v, 1) if isinstance(v, float) else v for k, v in self.__dict__.items()}


@dataclass
class BuildContextResult:
    context_string: str
    relevant_files: list[str] = field(default_factory=list)
    included_paths: list[str] = field(default_factory=list)
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    selection_status: SelectionStatus | None = None


def _ms_since(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class ContextService:
    """Builds the project context for requests against one workspace root."""

    def __init__(
        self,
        root: str,
        config: ProjectConfig | None = None,
        fs: FileSystem | None = None,
        llm: LLMProvider | None = None,
        symbols: SymbolProvider | None = None,
        dependencies: DependencyProvider | None = None,
        cache: CacheService | None = None,
        status: StatusSink | None = None,
        on_turn=None,
    ) -> None:
        self.root = root
        self.config = config or ProjectConfig()
        self.fs = fs or LocalFileSystem()
        self.llm = llm
        self.symbols = symbols
        self.dependencies = dependencies
        self.status = status
        self.cache = cache or CacheService(
            scan_ttl=self.config.scanner.cache_ttl_seconds,
            selection_ttl=self.config.selection.cache_ttl_seconds,
        )
        self.scanner = WorkspaceScanner(self.fs, self.config.scanner, self.cache.scan)
        self.scorer = RelevanceScorer(self.config.scoring)
        self.sandbox = CommandSandbox(self.config.sandbox)
        self.selector = (
            SelectionController(
                llm,
                self.sandbox,
                self.config.selection,
                cache=self.cache.selection,
                on_turn=on_turn,
                status=status,
                max_tokens=self.config.llm.max_tokens,
                temperature=self.config.llm.temperature,
            )
            if llm is not None
            else None
        )
        self.assembler = ContextAssembler()
        self._dependency_cache: tuple[tuple[str, ...], dict[str, list[DependencyRelation]]] | None = None
        self._last_operation_id: str | None = None

    @classmethod
    def for_workspace(
        cls,
        root: str,
        config: ProjectConfig | None = None,
        llm: LLMProvider | None = None,
        status: StatusSink | None = None,
        on_turn=None,
    ) -> ContextService:
        """Service over the local disk with the built-in Python symbol and import providers."""
        config = config or ProjectConfig()
        fs = LocalFileSystem()
        limit = config.scanner.concurrency_limit
        return cls(
            root,
            config,
            fs=fs,
            llm=llm,
            symbols=PythonSymbolProvider(fs, root, concurrency_limit=limit),
            dependencies=ImportGraphBuilder(fs, concurrency_limit=limit),
            status=status,
            on_turn=on_turn,
        )

    @property
    def workspace_name(self) -> str:
        return posixpath.basename(self.root.replace("\\", "/").rstrip("/")) or self.root

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def build_project_context(
        self,
        request: str,
        editor: EditorContext | None = None,
        options: BuildOptions | None = None,
        token: CancellationToken | None = None,
    ) -> BuildContextResult:
        """Run the whole pipeline and return the prompt text with metrics.

        Missing workspace, empty scans and empty selections produce sentinel
        strings rather than errors.
        """
        editor = editor or EditorContext()
        options = options or BuildOptions()
        metrics = PerformanceMetrics()
        total_start = time.perf_counter()

        self._begin_operation(options)

        scan = await self.scanner.scan(self.root, token=token)
        metrics.scan_time_ms = scan.scan_time_ms
        metrics.candidate_count = len(scan.files)
        if not scan.workspace_available:
            return self._sentinel(NO_WORKSPACE, metrics, total_start)
        if not scan.files:
            return self._sentinel(NO_FILES, metrics, total_start)

        candidate_paths = scan.paths
        active_file = clean_path(editor.active_file, self.root) if editor.active_file else None
        self._sync_symbol_paths(scan)

        dep_start = time.perf_counter()
        forward = await self._dependency_map(scan, token)
        reverse = reverse_dependencies(forward)
        metrics.dependency_build_time_ms = _ms_since(dep_start)

        active_symbol = await self._active_symbol(active_file, editor)

        signals = ScoringSignals.from_active_symbol(active_file, active_symbol, forward, reverse)
        heuristic = self.scorer.rank(scan.files, signals, token)

        selection_start = time.perf_counter()
        selections, status = await self._select(
            request, editor, options, active_file, active_symbol, candidate_paths, heuristic, token
        )
        mentioned = [FileSelection(path=p) for p in paths_mentioned(request, candidate_paths, self.root)]
        selections = merge_selections(list(selections) + mentioned)

        allowed = set(candidate_paths)
        if active_file:
            allowed.add(active_file)
        selections = [s for s in selections if s.path in allowed]
        metrics.selection_time_ms = _ms_since(selection_start)
        if not selections:
            return self._sentinel(NO_SELECTION, metrics, total_start)

        document_symbols = await self._document_symbols([s.path for s in selections], token)

        assembly_start = time.perf_counter()
        inputs = AssemblyInputs(
            workspace_name=self.workspace_name,
            workspace_root=self.root,
            selections=selections,
            fs=self.fs,
            budget=options.budget or self.config.budget,
            candidate_paths=candidate_paths,
            recent_changes=options.recent_changes,
            dependencies=forward,
            reverse_dependencies=reverse,
            document_symbols=document_symbols,
            active_symbol=active_symbol,
            active_file=active_file,
            historical_files=options.historical_files,
            current_topic=request,
        )
        assembled = await self.assembler.assemble(inputs, token)
        metrics.assembly_time_ms = _ms_since(assembly_start)
        metrics.processed_count = len(assembled.included_paths)
        metrics.total_time_ms = _ms_since(total_start)

        logger.info(
            "Context built: %d selected, %d included, %d chars, %.1fms",
            len(selections), metrics.processed_count, len(assembled.text), metrics.total_time_ms,
        )
        self._post(
            f"Context ready: {metrics.processed_count} file(s), {len(assembled.text):,} chars "
            f"in {metrics.total_time_ms:.0f}ms"
        )
        return BuildContextResult(
            context_string=assembled.text,
            relevant_files=[s.path for s in selections],
            included_paths=assembled.included_paths,
            metrics=metrics,
            selection_status=status,
        )

    def _begin_operation(self, options: BuildOptions) -> None:
        new_operation = (
            options.operation_id is not None and options.operation_id != self._last_operation_id
        )
        if new_operation or options.force_recalculate:
            removed = self.cache.selection.clear(self.root)
            logger.debug("Cleared %d cached selection(s) for new operation", removed)
        if options.operation_id is not None:
            self._last_operation_id = options.operation_id

    def _sync_symbol_paths(self, scan: ScanResult) -> None:
        if isinstance(self.symbols, PythonSymbolProvider):
            if not scan.from_cache or not self.symbols.paths:
                self.symbols.reset(scan.paths)

    async def _dependency_map(
        self, scan: ScanResult, token: CancellationToken | None
    ) -> dict[str, list[DependencyRelation]]:
        if self.dependencies is None:
            return {}
        fingerprint = tuple(scan.paths)
        if self._dependency_cache is not None and self._dependency_cache[0] == fingerprint:
            return self._dependency_cache[1]
        forward = await self.dependencies.build(scan.files, token)
        if not is_cancelled(token):
            self._dependency_cache = (fingerprint, forward)
        return forward

    async def _active_symbol(
        self, active_file: str | None, editor: EditorContext
    ) -> ActiveSymbolInfo | None:
        if self.symbols is None or not active_file or editor.line is None:
            return None
        try:
            return await self.symbols.active_symbol(active_file, editor.line, editor.character)
        except Exception as e:
            logger.warning("Active symbol lookup failed for %s: %s", active_file, e)
            return None

    async def _select(
        self,
        request: str,
        editor: EditorContext,
        options: BuildOptions,
        active_file: str | None,
        active_symbol: ActiveSymbolInfo | None,
        candidate_paths: list[str],
        heuristic: list[FileSelection],
        token: CancellationToken | None,
    ) -> tuple[list[FileSelection], SelectionStatus | None]:
        smart = (
            self.selector is not None
            and self.config.selection.enabled
            and options.use_smart_selection
            and bool(request.strip())
        )
        if not smart:
            return ensure_active_file(heuristic, active_file), None

        outcome = await self.selector.select(
            SelectionRequest(
                request=request,
                workspace_root=self.root,
                candidate_paths=candidate_paths,
                preselected=[s.path for s in heuristic],
                active_file=active_file,
                selected_text=editor.selected_text,
                active_symbol=active_symbol,
                diagnostics=editor.diagnostics,
                file_summaries=options.file_summaries,
                project_name=self.config.name or self.workspace_name,
            ),
            token,
            use_cache=self.config.selection.use_cache,
        )
        logger.info("Selection %s with %d file(s)", outcome.status.value, len(outcome.selections))
        return outcome.selections, outcome.status

    async def _document_symbols(
        self, paths: list[str], token: CancellationToken | None
    ) -> dict[str, list[DocumentSymbol]]:
        if self.symbols is None:
            return {}
        semaphore = asyncio.Semaphore(max(1, self.config.scanner.concurrency_limit))
        result: dict[str, list[DocumentSymbol]] = {}

        async def fetch(path: str) -> None:
            if is_cancelled(token):
                return
            async with semaphore:
                try:
                    symbols = await self.symbols.document_symbols(path)
                except Exception as e:
                    logger.warning("Document symbols failed for %s: %s", path, e)
                    return
            if symbols:
                result[path] = symbols

        await asyncio.gather(*(fetch(p) for p in paths))
        return {p: result[p] for p in paths if p in result}

    def _sentinel(self, text: str, metrics: PerformanceMetrics, start: float) -> BuildContextResult:
        metrics.total_time_ms = _ms_since(start)
        logger.info("Context build ended early: %s", text)
        self._post(text, is_error=text == NO_WORKSPACE)
        return BuildContextResult(context_string=text, metrics=metrics)

    def _post(self, message: str, is_error: bool = False) -> None:
        if self.status is not None:
            self.status.post_status(message, is_error=is_error)

    # ------------------------------------------------------------------
    # Cache control
    # ------------------------------------------------------------------

    def on_files_created(self, paths: list[str] | None = None) -> None:
        self.scanner.on_files_created(self.root, paths)
        self._invalidate_derived()

    def on_files_deleted(self, paths: list[str] | None = None) -> None:
        self.scanner.on_files_deleted(self.root, paths)
        self._invalidate_derived()

    def on_files_renamed(self, paths: list[tuple[str, str]] | None = None) -> None:
        self.scanner.on_files_renamed(self.root, paths)
        self._invalidate_derived()

    def _invalidate_derived(self) -> None:
        self.cache.selection.clear(self.root)
        self._dependency_cache = None
        if isinstance(self.symbols, PythonSymbolProvider):
            self.symbols.reset()

    def clear_caches(self) -> None:
        self.cache.clear()
        self._dependency_cache = None
        if isinstance(self.symbols, PythonSymbolProvider):
            self.symbols.reset()

    def cache_stats(self) -> dict:
        return {name: stats.to_dict() for name, stats in self.cache.stats().items()}

    def close(self) -> None:
        self.cache.close()
        self._dependency_cache = None
