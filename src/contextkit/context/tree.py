"""ASCII rendering of a set of workspace paths."""

from __future__ import annotations

from collections.abc import Iterable


def _insert(tree: dict, parts: list[str]) -> None:
    node = tree
    for part in parts[:-1]:
        child = node.setdefault(part, {})
        if child is None:
            # A file and a directory share a name; the directory wins.
            child = node[part] = {}
        node = child
    node.setdefault(parts[-1], None)


def _render(node: dict, prefix: str, lines: list[str]) -> None:
    # Directories first, then files, each alphabetically.
    names = sorted(node, key=lambda n: (node[n] is None, n))
    for i, name in enumerate(names):
        last = i == len(names) - 1
        child = node[name]
        lines.append(f"{prefix}{'└── ' if last else '├── '}{name}{'/' if child is not None else ''}")
        if child is not None:
            _render(child, prefix + ("    " if last else "│   "), lines)


def ascii_tree(paths: Iterable[str], root_name: str) -> str:
    """Render `paths` as a tree under `root_name`.

    >>> print(ascii_tree(["src/a.py", "README.md"], "ws"))
    ws/
    ├── src/
    │   └── a.py
    └── README.md
    """
    tree: dict = {}
    for path in paths:
        parts = [p for p in path.replace("\\", "/").split("/") if p and p != "."]
        if parts:
            _insert(tree, parts)
    lines = [f"{root_name}/"]
    _render(tree, "", lines)
    return "\n".join(lines)
