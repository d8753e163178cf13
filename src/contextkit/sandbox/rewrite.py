"""Pure rewriting of validated commands before execution.

Recursive ``grep`` and ``find`` get exclusion rules for dependency, build
and VCS directories and for binary files; ``ls -R`` becomes ``git ls-files``
when the working directory is under version control. Flag detection is a
best-effort token scan, so any segment it cannot classify is returned
unchanged.
"""

from __future__ import annotations

import re
import shlex

from contextkit.exceptions import CommandDenied
from contextkit.sandbox.exclusions import EXCLUDED_DIRS, EXCLUDED_EXTENSIONS, EXCLUDED_FILES
from contextkit.sandbox.policy import split_pipeline

_RECURSIVE_GREP_FLAG = re.compile(r"^-[A-Za-z]*[rR][A-Za-z]*$")
_RECURSIVE_LS_FLAG = re.compile(r"^-[A-Za-z1]*R[A-Za-z1]*$")
_FIND_PRINT_ACTIONS = ("-print", "-print0", "-printf", "-ls", "-fls")


def grep_exclusion_flags() -> str:
    dirs = " ".join(f"--exclude-dir='{d}'" for d in EXCLUDED_DIRS)
    files = " ".join(f"--exclude='{e}'" for e in EXCLUDED_EXTENSIONS + EXCLUDED_FILES)
    return f"--binary-files=without-match {dirs} {files}"


def find_prune_clause() -> str:
    paths = " -o ".join(f"-path '*/{d}'" for d in EXCLUDED_DIRS)
    return f"\\( {paths} \\) -prune -o"


def rewrite_command(command: str, vcs_listing: bool = True) -> str:
    """Rewrite every pipeline segment of an already validated command."""
    try:
        segments = split_pipeline(command)
    except CommandDenied:
        return command
    return " | ".join(rewrite_segment(s, vcs_listing) for s in segments)


def rewrite_segment(segment: str, vcs_listing: bool = True) -> str:
    segment = segment.strip()
    try:
        tokens = shlex.split(segment)
    except ValueError:
        return segment
    if not tokens:
        return segment

    verb = tokens[0]
    if verb == "grep":
        return _rewrite_grep(segment, tokens)
    if verb == "find":
        return _rewrite_find(segment)
    if verb == "ls" and vcs_listing:
        return _rewrite_ls(segment, tokens)
    return segment


def _rewrite_grep(segment: str, tokens: list[str]) -> str:
    recursive = any(
        _RECURSIVE_GREP_FLAG.match(t) or t in ("--recursive", "--dereference-recursive")
        for t in tokens[1:]
    )
    if not recursive or any(t.startswith("--exclude-dir") for t in tokens):
        return segment
    return f"grep {grep_exclusion_flags()}{segment[len('grep'):]}"


def _rewrite_find(segment: str) -> str:
    # Whitespace split keeps the original quoting of each word intact.
    parts = segment.split()
    if "-prune" in parts:
        return segment
    for i, part in enumerate(parts[:-1]):
        if part in ("-not", "!") and parts[i + 1] in ("-path", "-wholename"):
            return segment

    start = next(
        (i for i, p in enumerate(parts[1:], start=1) if p.startswith(("-", "(", "\\(", "!"))),
        len(parts),
    )
    search_paths = parts[1:start] or ["."]
    predicates = parts[start:]

    if any(p in ("-o", "-or") for p in predicates):
        predicates = ["\\(", *predicates, "\\)"]
    if not any(p in _FIND_PRINT_ACTIONS for p in predicates):
        predicates.append("-print")
    return " ".join(["find", *search_paths, find_prune_clause(), *predicates])


def _rewrite_ls(segment: str, tokens: list[str]) -> str:
    recursive = any(_RECURSIVE_LS_FLAG.match(t) or t == "--recursive" for t in tokens[1:])
    if not recursive:
        return segment
    operands = [t for t in tokens[1:] if not t.startswith("-")]
    if not operands:
        return "git ls-files"
    return "git ls-files -- " + " ".join(shlex.quote(o) for o in operands)
