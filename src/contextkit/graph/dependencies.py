"""File-level import graph.

The scorer and the assembler only need ``path -> [DependencyRelation]``.
``ImportGraphBuilder`` produces that map for Python and JavaScript/TypeScript
sources by reading imports and resolving them against the candidate set;
hosts with a richer language service can supply their own
``DependencyProvider``.
"""

from __future__ import annotations

import ast
import asyncio
import logging
import posixpath
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import networkx as nx

from contextkit.cancellation import CancellationToken, is_cancelled
from contextkit.workspace.filesystem import FileSystem
from contextkit.workspace.scanner import CandidateFile

logger = logging.getLogger("contextkit.graph")


class RelationType(str, Enum):
    RUNTIME = "runtime"
    TYPE = "type"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DependencyRelation:
    path: str
    relation_type: RelationType = RelationType.UNKNOWN


DependencyMap = Mapping[str, Sequence[DependencyRelation]]


class DependencyProvider(Protocol):
    async def build(
        self, files: Sequence[CandidateFile], token: CancellationToken | None = None
    ) -> dict[str, list[DependencyRelation]]: ...


def reverse_dependencies(forward: DependencyMap) -> dict[str, list[str]]:
    """Invert a forward map: target -> sorted importers."""
    reverse: dict[str, set[str]] = {}
    for source, relations in forward.items():
        for rel in relations:
            reverse.setdefault(rel.path, set()).add(source)
    return {target: sorted(sources) for target, sources in reverse.items()}


_PY_SUFFIXES = (".py", ".pyi")
_JS_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".vue", ".svelte")
_JS_RESOLVE_EXTS = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs", ".cjs", ".vue", ".svelte")

_JS_IMPORT_RE = re.compile(
    r"""(?:^|[\s;])(?:import|export)\s+(type\s+)?(?:[\w*{}\s,$]+?\s+from\s+)?['"]([^'"\n]+)['"]""",
    re.MULTILINE,
)
_JS_CALL_RE = re.compile(r"""\b(?:require|import)\s*\(\s*['"]([^'"\n]+)['"]\s*\)""")


class ImportGraphBuilder:
    """Builds a file-level dependency graph with networkx.

    Nodes are relative paths; an edge ``a -> b`` means ``a`` imports ``b``
    and carries a ``relation`` attribute.
    """

    def __init__(self, fs: FileSystem, concurrency_limit: int = 15) -> None:
        self.fs = fs
        self.concurrency_limit = concurrency_limit
        self.graph = nx.DiGraph()

    async def build(
        self, files: Sequence[CandidateFile], token: CancellationToken | None = None
    ) -> dict[str, list[DependencyRelation]]:
        self.graph = nx.DiGraph()
        by_path = {f.path: f for f in files}
        module_index = _build_module_index(by_path)
        semaphore = asyncio.Semaphore(max(1, self.concurrency_limit))

        for f in files:
            self.graph.add_node(f.path)

        async def process(candidate: CandidateFile) -> None:
            if is_cancelled(token):
                return
            if not candidate.path.endswith(_PY_SUFFIXES + _JS_SUFFIXES):
                return
            try:
                async with semaphore:
                    raw = await self.fs.read(candidate.absolute_id)
            except OSError as e:
                logger.warning("Cannot read %s for imports: %s", candidate.path, e)
                return
            source = raw.decode("utf-8", errors="replace")
            if candidate.path.endswith(_PY_SUFFIXES):
                edges = _python_imports(candidate.path, source, module_index)
            else:
                edges = _js_imports(candidate.path, source, by_path)
            for target, relation in edges:
                if target == candidate.path:
                    continue
                existing = self.graph.get_edge_data(candidate.path, target)
                if existing and existing["relation"] == RelationType.RUNTIME:
                    continue
                self.graph.add_edge(candidate.path, target, relation=relation)

        await asyncio.gather(*(process(f) for f in files))
        logger.info(
            "Dependency graph: %d files, %d edges",
            self.graph.number_of_nodes(), self.graph.number_of_edges(),
        )
        return self.forward_map()

    def forward_map(self) -> dict[str, list[DependencyRelation]]:
        forward: dict[str, list[DependencyRelation]] = {}
        for source in sorted(self.graph.nodes):
            targets = sorted(self.graph.successors(source))
            if targets:
                forward[source] = [
                    DependencyRelation(t, self.graph.edges[source, t]["relation"]) for t in targets
                ]
        return forward

    def reverse_map(self) -> dict[str, list[str]]:
        return {
            node: sorted(self.graph.predecessors(node))
            for node in sorted(self.graph.nodes)
            if self.graph.in_degree(node) > 0
        }


# ----------------------------------------------------------------------
# Python
# ----------------------------------------------------------------------


def _build_module_index(by_path: Mapping[str, CandidateFile]) -> dict[str, str]:
    """Map every dotted-name suffix of each Python file to its path."""
    index: dict[str, str] = {}
    for path in sorted(by_path, key=lambda p: (p.count("/"), p)):
        if not path.endswith(_PY_SUFFIXES):
            continue
        parts = posixpath.splitext(path)[0].split("/")
        if parts[-1] == "__init__":
            parts = parts[:-1]
        for i in range(len(parts)):
            index.setdefault(".".join(parts[i:]), path)
    return index


def _python_imports(
    path: str, source: str, module_index: Mapping[str, str]
) -> list[tuple[str, RelationType]]:
    try:
        tree = ast.parse(source, filename=path)
    except SyntaxError as e:
        logger.debug("Skipping imports of %s: %s", path, e)
        return []

    type_only = _type_checking_nodes(tree)
    package_parts = path.split("/")[:-1]
    edges: list[tuple[str, RelationType]] = []

    for node in ast.walk(tree):
        relation = RelationType.TYPE if id(node) in type_only else RelationType.RUNTIME
        if isinstance(node, ast.Import):
            for alias in node.names:
                target = module_index.get(alias.name)
                if target:
                    edges.append((target, relation))
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                if node.level - 1 > len(package_parts):
                    continue
                base = package_parts[: len(package_parts) - (node.level - 1)]
                module = ".".join(base + (node.module.split(".") if node.module else []))
            else:
                module = node.module or ""
            for alias in node.names:
                target = module_index.get(f"{module}.{alias.name}" if module else alias.name)
                if target is None and module:
                    target = module_index.get(module)
                if target:
                    edges.append((target, relation))
    return edges


def _type_checking_nodes(tree: ast.Module) -> set[int]:
    """ids of import nodes nested under ``if TYPE_CHECKING:``."""
    found: set[int] = set()
    for node in ast.walk(tree):
        if not isinstance(node, ast.If):
            continue
        test = node.test
        name = test.id if isinstance(test, ast.Name) else getattr(test, "attr", "")
        if name != "TYPE_CHECKING":
            continue
        for child in node.body:
            for sub in ast.walk(child):
                if isinstance(sub, (ast.Import, ast.ImportFrom)):
                    found.add(id(sub))
    return found


# ----------------------------------------------------------------------
# JavaScript / TypeScript
# ----------------------------------------------------------------------


def _js_imports(
    path: str, source: str, by_path: Mapping[str, CandidateFile]
) -> list[tuple[str, RelationType]]:
    edges: list[tuple[str, RelationType]] = []
    for match in _JS_IMPORT_RE.finditer(source):
        relation = RelationType.TYPE if match.group(1) else RelationType.RUNTIME
        target = _resolve_js(path, match.group(2), by_path)
        if target:
            edges.append((target, relation))
    for match in _JS_CALL_RE.finditer(source):
        target = _resolve_js(path, match.group(1), by_path)
        if target:
            edges.append((target, RelationType.RUNTIME))
    return edges


def _resolve_js(path: str, specifier: str, by_path: Mapping[str, CandidateFile]) -> str | None:
    if not specifier.startswith("."):
        return None  # package import
    base = posixpath.normpath(posixpath.join(posixpath.dirname(path), specifier))
    if base.startswith(".."):
        return None
    candidates = [base]
    candidates.extend(base + ext for ext in _JS_RESOLVE_EXTS)
    candidates.extend(f"{base}/index{ext}" for ext in _JS_RESOLVE_EXTS)
    for candidate in candidates:
        if candidate in by_path:
            return candidate
    return None
