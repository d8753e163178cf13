"""Python symbol provider using the built-in ast module. Always available, no extra deps."""

from __future__ import annotations

import ast
import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from contextkit.symbols.models import (
    ActiveSymbolInfo,
    CallHierarchyCall,
    CallHierarchyItem,
    DocumentSymbol,
    Location,
    Range,
)
from contextkit.workspace.filesystem import FileSystem

logger = logging.getLogger("contextkit.symbols")

_DefNode = ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef

MAX_TYPE_SNIPPET_LINES = 40


@dataclass
class _ParsedFile:
    path: str
    tree: ast.Module
    lines: list[str]
    imports: list[str] = field(default_factory=list)


def _node_range(node: ast.AST) -> Range:
    start = getattr(node, "lineno", 1)
    end = getattr(node, "end_lineno", None) or start
    return Range.from_lines(start, end)


def _kind(node: _DefNode, in_class: bool) -> str:
    if isinstance(node, ast.ClassDef):
        return "class"
    return "method" if in_class else "function"


def _signature(node: _DefNode, lines: list[str]) -> str:
    """Source text of the definition header, up to the colon that opens the body."""
    start = node.lineno - 1
    sig_lines = []
    for i in range(start, min(start + 10, len(lines))):
        sig_lines.append(lines[i].strip())
        text = " ".join(sig_lines)
        if text.rstrip().endswith(":") and text.count("(") <= text.count(")"):
            break
    return " ".join(sig_lines)


def _called_name(call: ast.Call) -> str:
    if isinstance(call.func, ast.Name):
        return call.func.id
    if isinstance(call.func, ast.Attribute):
        return call.func.attr
    return ""


def _annotation_names(node: ast.AST) -> set[str]:
    names: set[str] = set()
    for sub in ast.walk(node):
        if isinstance(sub, ast.Name):
            names.add(sub.id)
        elif isinstance(sub, ast.Attribute):
            names.add(sub.attr)
        elif isinstance(sub, ast.Constant) and isinstance(sub.value, str):
            names.add(sub.value)  # string annotations
    return names


class PythonSymbolProvider:
    """Answers symbol queries for the Python files of a workspace.

    ``paths`` is the set of workspace-relative files searched for call
    hierarchy and implementation lookups (normally the scanner output).
    """

    def __init__(
        self,
        fs: FileSystem,
        root: str,
        paths: Iterable[str] = (),
        concurrency_limit: int = 15,
    ) -> None:
        self.fs = fs
        self.root = root
        self.paths = sorted(p for p in paths if p.endswith(".py"))
        self._semaphore = asyncio.Semaphore(max(1, concurrency_limit))
        self._parsed: dict[str, _ParsedFile | None] = {}
        self._index: dict[str, list[tuple[str, _DefNode, str]]] | None = None

    def reset(self, paths: Iterable[str] | None = None) -> None:
        """Forget parsed files, e.g. after the workspace changed."""
        if paths is not None:
            self.paths = sorted(p for p in paths if p.endswith(".py"))
        self._parsed.clear()
        self._index = None

    async def document_symbols(self, path: str) -> list[DocumentSymbol]:
        parsed = await self._parse(path)
        if parsed is None:
            return []
        return self._symbols_for(parsed.tree.body, parsed.lines, in_class=False)

    async def file_imports(self, path: str) -> list[str]:
        parsed = await self._parse(path)
        return list(parsed.imports) if parsed else []

    async def active_symbol(self, path: str, line: int, character: int = 0) -> ActiveSymbolInfo | None:
        """Describe the innermost class or function enclosing zero-based `line`."""
        parsed = await self._parse(path)
        if parsed is None:
            return None

        node, in_class = self._enclosing(parsed.tree, line + 1)
        if node is None:
            return None

        index = await self._definition_index()
        full_range = _node_range(node)
        info = ActiveSymbolInfo(
            name=node.name,
            kind=_kind(node, in_class),
            detail=_signature(node, parsed.lines),
            file_path=path,
            full_range=full_range,
            children_hierarchy=self._hierarchy(node),
            definitions=Location(path=path, range=full_range),
        )

        if isinstance(node, ast.ClassDef):
            info.implementations = [
                Location(path=p, range=_node_range(n))
                for p, n, _ in self._all_definitions(index)
                if isinstance(n, ast.ClassDef)
                and any(node.name in _annotation_names(base) for base in n.bases)
            ]
        else:
            type_names = set()
            if node.returns is not None:
                type_names |= _annotation_names(node.returns)
            for arg in node.args.args + node.args.kwonlyargs:
                if arg.annotation is not None:
                    type_names |= _annotation_names(arg.annotation)
            for type_name in sorted(type_names):
                for p, n, _ in index.get(type_name, []):
                    if not isinstance(n, ast.ClassDef):
                        continue
                    info.type_definitions.append(Location(path=p, range=_node_range(n)))
                    snippet = await self._snippet(p, n)
                    info.referenced_type_definitions.setdefault(p, []).append(snippet)

        info.outgoing_calls = self._outgoing_calls(node, path, index)
        info.incoming_calls = self._incoming_calls(node.name, path, full_range, index)
        return info

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    async def _parse(self, path: str) -> _ParsedFile | None:
        if not path.endswith((".py", ".pyi")):
            return None
        if path in self._parsed:
            return self._parsed[path]

        parsed: _ParsedFile | None = None
        try:
            async with self._semaphore:
                raw = await self.fs.read(self.fs.join(self.root, path))
            source = raw.decode("utf-8", errors="replace")
            tree = ast.parse(source, filename=path)
            parsed = _ParsedFile(path=path, tree=tree, lines=source.splitlines())
            parsed.imports = self._imports(tree)
        except OSError as e:
            logger.warning("Cannot read %s for symbols: %s", path, e)
        except SyntaxError as e:
            logger.debug("Cannot parse %s: %s", path, e)
        self._parsed[path] = parsed
        return parsed

    @staticmethod
    def _imports(tree: ast.Module) -> list[str]:
        imports: list[str] = []
        for node in tree.body:
            if isinstance(node, ast.Import):
                imports.extend(alias.name for alias in node.names)
            elif isinstance(node, ast.ImportFrom):
                module = "." * node.level + (node.module or "")
                imports.append(module)
        return list(dict.fromkeys(imports))

    def _symbols_for(self, body: list[ast.stmt], lines: list[str], in_class: bool) -> list[DocumentSymbol]:
        symbols = []
        for node in body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                children = (
                    self._symbols_for(node.body, lines, in_class=True)
                    if isinstance(node, ast.ClassDef)
                    else []
                )
                symbols.append(
                    DocumentSymbol(
                        name=node.name,
                        kind=_kind(node, in_class),
                        range=_node_range(node),
                        detail=_signature(node, lines),
                        children=children,
                    )
                )
            elif isinstance(node, ast.Assign) and not in_class:
                for target in node.targets:
                    if isinstance(target, ast.Name):
                        kind = "constant" if target.id.isupper() else "variable"
                        symbols.append(DocumentSymbol(name=target.id, kind=kind, range=_node_range(node)))
        return symbols

    @staticmethod
    def _enclosing(tree: ast.Module, lineno: int) -> tuple[_DefNode | None, bool]:
        best: _DefNode | None = None
        best_in_class = False

        def visit(body: list[ast.stmt], in_class: bool) -> None:
            nonlocal best, best_in_class
            for node in body:
                if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                    continue
                end = node.end_lineno or node.lineno
                if node.lineno <= lineno <= end:
                    best, best_in_class = node, in_class
                    visit(node.body, isinstance(node, ast.ClassDef))

        visit(tree.body, False)
        return best, best_in_class

    @staticmethod
    def _hierarchy(node: _DefNode, depth: int = 0) -> str:
        lines = [f"{'  ' * depth}{node.name}"]
        for child in node.body:
            if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                lines.append(PythonSymbolProvider._hierarchy(child, depth + 1))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Cross-file lookups
    # ------------------------------------------------------------------

    async def _definition_index(self) -> dict[str, list[tuple[str, _DefNode, str]]]:
        """name -> [(path, node, enclosing class name)] for every indexed file."""
        if self._index is not None:
            return self._index
        parsed_files = await asyncio.gather(*(self._parse(p) for p in self.paths))
        index: dict[str, list[tuple[str, _DefNode, str]]] = {}
        for parsed in parsed_files:
            if parsed is None:
                continue
            for node in parsed.tree.body:
                if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                    index.setdefault(node.name, []).append((parsed.path, node, ""))
                if isinstance(node, ast.ClassDef):
                    for child in node.body:
                        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                            index.setdefault(child.name, []).append((parsed.path, child, node.name))
        self._index = index
        return index

    @staticmethod
    def _all_definitions(index: dict[str, list[tuple[str, _DefNode, str]]]):
        for name in sorted(index):
            yield from index[name]

    def _outgoing_calls(
        self, node: _DefNode, path: str, index: dict[str, list[tuple[str, _DefNode, str]]]
    ) -> list[CallHierarchyCall]:
        calls: dict[tuple[str, str], CallHierarchyCall] = {}
        for sub in ast.walk(node):
            if not isinstance(sub, ast.Call):
                continue
            name = _called_name(sub)
            for target_path, target, _ in index.get(name, []):
                if target is node:
                    continue
                key = (target_path, target.name)
                if key not in calls:
                    calls[key] = CallHierarchyCall(
                        item=CallHierarchyItem(
                            name=target.name,
                            kind=_kind(target, False),
                            path=target_path,
                            range=_node_range(target),
                        )
                    )
                calls[key].from_ranges.append(_node_range(sub))
        return [calls[k] for k in sorted(calls)]

    def _incoming_calls(
        self,
        name: str,
        path: str,
        own_range: Range,
        index: dict[str, list[tuple[str, _DefNode, str]]],
    ) -> list[CallHierarchyCall]:
        incoming = []
        for caller_path, caller, owner in self._all_definitions(index):
            if isinstance(caller, ast.ClassDef):
                continue
            if caller_path == path and _node_range(caller) == own_range:
                continue
            ranges = [
                _node_range(sub)
                for sub in ast.walk(caller)
                if isinstance(sub, ast.Call) and _called_name(sub) == name
            ]
            if ranges:
                incoming.append(
                    CallHierarchyCall(
                        item=CallHierarchyItem(
                            name=f"{owner}.{caller.name}" if owner else caller.name,
                            kind="method" if owner else "function",
                            path=caller_path,
                            range=_node_range(caller),
                        ),
                        from_ranges=ranges,
                    )
                )
        return incoming

    async def _snippet(self, path: str, node: _DefNode) -> str:
        parsed = await self._parse(path)
        if parsed is None:
            return ""
        end = min(node.end_lineno or node.lineno, node.lineno - 1 + MAX_TYPE_SNIPPET_LINES)
        return "\n".join(parsed.lines[node.lineno - 1 : end])
