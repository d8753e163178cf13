"""Validation rules for investigation commands.

A command is accepted only if every pipeline segment starts with an
allow-listed, read-only verb and passes that verb's extra rules. Nothing here
executes anything.
"""

from __future__ import annotations

import re
import shlex

from contextkit.exceptions import CommandDenied

ALLOWED_COMMANDS = frozenset(
    {
        "ls", "find", "grep", "cat", "git", "sed", "head", "tail", "wc", "file",
        "xargs", "less", "more", "nl", "stat", "du", "df", "diff", "pwd", "id",
        "whoami", "strings", "date", "sha256sum", "md5sum", "sort", "uniq",
        "realpath", "readlink", "tr", "awk",
    }
)

READ_ONLY_GIT_SUBCOMMANDS = frozenset({"status", "log", "diff", "show", "grep", "ls-files"})

# Checked against the raw string, quotes included. Longer tokens first so the
# reported operator is the most specific one.
BLOCKED_TOKENS = (">>", ">", "<", "&&", "&", ";", "`", "$(", "\n", "\r")

_XARGS_OPTIONS_WITH_VALUE = frozenset({"-I", "-L", "-l", "-n", "-P", "-s", "-d", "-E", "-e", "-a"})
_FIND_FORBIDDEN = frozenset(
    {"-exec", "-execdir", "-ok", "-okdir", "-delete", "-fprint", "-fprint0", "-fprintf", "-fls"}
)
_AWK_SYSTEM_RE = re.compile(r"\bsystem\s*\(")
# program files, extensions, and the profile/dump/pretty-print writers
_AWK_FORBIDDEN_SHORT = frozenset("fEilopdD")
_AWK_FORBIDDEN_LONG = (
    "file", "exec", "include", "load", "profile", "dump-variables", "pretty-print", "debug",
)
_GIT_FORBIDDEN_LONG = ("output", "ext-diff", "open-files-in-pager")
_SED_LONG_OPTIONS = (
    "expression", "file", "in-place", "line-length", "null-data", "zero-terminated",
    "quiet", "silent", "regexp-extended", "separate", "sandbox", "debug", "posix",
    "unbuffered", "follow-symlinks", "binary", "help", "version",
)
_SED_SIMPLE_COMMANDS = frozenset("=dDgGhHlnNpPqQxzFL")
_SED_SUBSTITUTE_FLAGS = frozenset("gpiImM")

# Commands xargs may run: none of their options write files or start programs.
XARGS_SAFE_COMMANDS = frozenset(
    {"cat", "grep", "head", "wc", "ls", "stat", "nl", "strings", "sha256sum", "md5sum",
     "du", "readlink", "realpath"}
)


def _deny(command: str, reason: str) -> CommandDenied:
    return CommandDenied(command, reason)


def split_pipeline(command: str) -> list[str]:
    """Split on ``|`` outside single and double quotes.

    Raises:
        CommandDenied: If a quote is left open.
    """
    segments: list[str] = []
    current: list[str] = []
    quote: str | None = None
    escaped = False
    for ch in command:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\" and quote != "'":
            current.append(ch)
            escaped = True
        elif quote:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif ch == "|":
            segments.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    if quote:
        raise _deny(command, "unbalanced quotes")
    segments.append("".join(current).strip())
    return segments


def strip_single_quoted(text: str) -> str:
    """Drop single-quoted spans, where the shell performs no expansion."""
    return re.sub(r"'[^']*'", "''", text)


def _short_flag_cluster(token: str) -> str:
    """Letters of a ``-abc`` style token, or '' for anything else."""
    if token.startswith("-") and not token.startswith("--") and len(token) > 1:
        return token[1:]
    return ""


def _long_option(token: str) -> str:
    """Name of a ``--name[=value]`` token, or '' for anything else."""
    if token.startswith("--") and len(token) > 2:
        return token[2:].partition("=")[0]
    return ""


def _abbreviates(name: str, *options: str) -> bool:
    """Whether `name` selects one of `options`; GNU tools accept unique prefixes."""
    return bool(name) and any(option.startswith(name) for option in options)


def _resolve_long(segment: str, verb: str, name: str, options: tuple[str, ...]) -> str:
    if name in options:
        return name
    matches = [option for option in options if option.startswith(name)]
    if len(matches) != 1:
        raise _deny(segment, f"unknown or ambiguous {verb} option '--{name}'")
    return matches[0]


def check_command(command: str) -> None:
    """Raise ``CommandDenied`` unless `command` is safe to run."""
    if not command or not command.strip():
        raise _deny(command, "empty command")
    for token in BLOCKED_TOKENS:
        if token in command:
            shown = token.encode("unicode_escape").decode()
            raise _deny(command, f"operator '{shown}' is not allowed")
    for segment in split_pipeline(command):
        check_segment(segment)


def is_safe(command: str) -> bool:
    try:
        check_command(command)
    except CommandDenied:
        return False
    return True


def check_segment(segment: str) -> None:
    """Validate one pipeline segment."""
    if not segment:
        raise _deny(segment, "empty pipeline segment")
    if "$" in strip_single_quoted(segment):
        raise _deny(segment, "shell expansion ('$') is not allowed outside single quotes")
    try:
        tokens = shlex.split(segment)
    except ValueError as e:
        raise _deny(segment, f"cannot parse command: {e}") from e
    if not tokens:
        raise _deny(segment, "empty pipeline segment")

    verb = tokens[0]
    if verb not in ALLOWED_COMMANDS:
        raise _deny(segment, f"'{verb}' is not an allowed command")

    rule = _RULES.get(verb)
    if rule is not None:
        rule(segment, tokens)


# ----------------------------------------------------------------------
# Per-command rules
# ----------------------------------------------------------------------


def _check_git(segment: str, tokens: list[str]) -> None:
    if len(tokens) < 2:
        raise _deny(segment, "git requires a read-only subcommand")
    sub = tokens[1]
    if sub.startswith("-"):
        raise _deny(segment, "git options before the subcommand are not allowed")
    if sub not in READ_ONLY_GIT_SUBCOMMANDS:
        allowed = ", ".join(sorted(READ_ONLY_GIT_SUBCOMMANDS))
        raise _deny(segment, f"git subcommand '{sub}' is not allowed (allowed: {allowed})")
    for token in tokens[2:]:
        if _abbreviates(_long_option(token), *_GIT_FORBIDDEN_LONG):
            raise _deny(segment, f"git option '{token}' is not allowed")
        # git grep -O<pager> opens the matches in an arbitrary program
        if sub == "grep" and "O" in _short_flag_cluster(token):
            raise _deny(segment, f"git grep option '{token}' is not allowed")


def _check_sed(segment: str, tokens: list[str]) -> None:
    scripts: list[str] = []
    operands: list[str] = []
    i = 1
    while i < len(tokens):
        token = tokens[i]
        if token == "--":
            operands.extend(tokens[i + 1:])
            break
        name = _long_option(token)
        if name:
            option = _resolve_long(segment, "sed", name, _SED_LONG_OPTIONS)
            if option == "in-place":
                raise _deny(segment, "sed in-place editing is not allowed")
            if option == "file":
                raise _deny(segment, "sed script files are not allowed")
            if option in ("expression", "line-length") and "=" not in token:
                i += 1
                if i >= len(tokens):
                    raise _deny(segment, f"sed option '--{option}' needs a value")
                value = tokens[i]
            else:
                value = token.partition("=")[2]
            if option == "expression":
                scripts.append(value)
        elif _short_flag_cluster(token):
            cluster = _short_flag_cluster(token)
            for j, letter in enumerate(cluster):
                if letter == "i":
                    raise _deny(segment, "sed in-place editing is not allowed")
                if letter == "f":
                    raise _deny(segment, "sed script files are not allowed")
                if letter in "el":
                    value = cluster[j + 1:]
                    if not value:
                        i += 1
                        if i >= len(tokens):
                            raise _deny(segment, f"sed option '-{letter}' needs a value")
                        value = tokens[i]
                    if letter == "e":
                        scripts.append(value)
                    break
        else:
            operands.append(token)
        i += 1

    if not scripts:
        if not operands:
            raise _deny(segment, "sed requires an explicit script")
        scripts.append(operands[0])
    for script in scripts:
        reason = sed_script_violation(script)
        if reason:
            raise _deny(segment, reason)


def _skip_delimited(script: str, start: int, parts: int) -> int:
    """Index just past `parts` sections delimited by ``script[start]``, or -1."""
    delimiter = script[start]
    j = start + 1
    while j < len(script):
        ch = script[j]
        if ch == "\\":
            j += 2
            continue
        if ch == delimiter:
            parts -= 1
            if parts == 0:
                return j + 1
        j += 1
    return -1


def _end_of_line(script: str, start: int) -> int:
    """Index of the newline ending sed text at `start`; backslash-newline continues it."""
    j = start
    while j < len(script):
        if script[j] == "\\":
            j += 2
            continue
        if script[j] == "\n":
            return j
        j += 1
    return len(script)


def sed_script_violation(script: str) -> str | None:
    """Reason a sed script may execute programs or write files, else None.

    Scripts that cannot be parsed are rejected as well.
    """
    i, n = 0, len(script)
    while i < n:
        ch = script[i]
        if ch in " \t\n;{}!,~+$" or ch.isdigit():
            i += 1
        elif ch in "/\\":
            if ch == "\\":
                i += 1
                if i >= n:
                    return "unterminated sed address"
            i = _skip_delimited(script, i, 1)
            if i < 0:
                return "unterminated sed address"
            while i < n and script[i] in "IM":
                i += 1
        elif ch in "ewW":
            return f"sed command '{ch}' is not allowed"
        elif ch in "sy":
            if i + 1 >= n or script[i + 1] in "\\\n ":
                return f"malformed sed '{ch}' command"
            i = _skip_delimited(script, i + 1, 2)
            if i < 0:
                return f"unterminated sed '{ch}' command"
            if ch == "y":
                continue
            while i < n and script[i] not in " \t\n;}":
                flag = script[i]
                if flag in "ew":
                    return f"sed substitution flag '{flag}' is not allowed"
                if flag not in _SED_SUBSTITUTE_FLAGS and not flag.isdigit():
                    return f"unknown sed substitution flag '{flag}'"
                i += 1
        elif ch in "aicrR#":
            # text, file to read, or comment: runs to the end of the line
            i = _end_of_line(script, i)
        elif ch in "btT:v":
            while i < n and script[i] not in ";}\n":
                i += 1
        elif ch in _SED_SIMPLE_COMMANDS:
            i += 1
            while i < n and script[i].isdigit():
                i += 1
        else:
            return f"unrecognized sed command '{ch}'"
    return None


def _check_xargs(segment: str, tokens: list[str]) -> None:
    i = 1
    while i < len(tokens) and tokens[i].startswith("-"):
        i += 2 if tokens[i] in _XARGS_OPTIONS_WITH_VALUE else 1
    if i >= len(tokens):
        raise _deny(segment, "xargs must name an allowed command")
    # input lines become extra arguments, so only commands without
    # dangerous options may receive them
    if tokens[i] not in XARGS_SAFE_COMMANDS:
        raise _deny(segment, f"xargs may not run '{tokens[i]}'")
    check_segment(shlex.join(tokens[i:]))


def _check_awk(segment: str, tokens: list[str]) -> None:
    in_options = True
    for token in tokens[1:]:
        if in_options and token.startswith("-") and token != "-":
            cluster = _short_flag_cluster(token)
            if (cluster and cluster[0] in _AWK_FORBIDDEN_SHORT) or _abbreviates(
                _long_option(token), *_AWK_FORBIDDEN_LONG
            ):
                raise _deny(segment, f"awk option '{token}' is not allowed")
            continue
        in_options = False
        if _AWK_SYSTEM_RE.search(token):
            raise _deny(segment, "awk system() calls are not allowed")
        if "getline" in token or "|" in token:
            raise _deny(segment, "awk pipes and getline are not allowed")


def _check_find(segment: str, tokens: list[str]) -> None:
    for token in tokens[1:]:
        if token in _FIND_FORBIDDEN:
            raise _deny(segment, f"find action '{token}' is not allowed")


def _check_sort(segment: str, tokens: list[str]) -> None:
    for token in tokens[1:]:
        cluster = _short_flag_cluster(token)
        name = _long_option(token)
        if _abbreviates(name, "output") or (cluster and cluster[0] not in "kt" and "o" in cluster):
            raise _deny(segment, "sort output files are not allowed")
        if _abbreviates(name, "compress-program"):
            raise _deny(segment, "sort compression programs are not allowed")


def _check_uniq(segment: str, tokens: list[str]) -> None:
    operands = [t for t in tokens[1:] if not t.startswith("-")]
    if len(operands) > 1:
        raise _deny(segment, "uniq output files are not allowed")


def _check_date(segment: str, tokens: list[str]) -> None:
    for token in tokens[1:]:
        if _abbreviates(_long_option(token), "set") or "s" in _short_flag_cluster(token):
            raise _deny(segment, "setting the date is not allowed")


def _check_less(segment: str, tokens: list[str]) -> None:
    for token in tokens[1:]:
        cluster = _short_flag_cluster(token)
        if token.startswith("+") or "o" in cluster.lower() or _abbreviates(
            _long_option(token).lower(), "log-file"
        ):
            raise _deny(segment, f"less option '{token}' is not allowed")


def _check_file(segment: str, tokens: list[str]) -> None:
    for token in tokens[1:]:
        if "C" in _short_flag_cluster(token) or _abbreviates(_long_option(token), "compile"):
            raise _deny(segment, "compiling magic files is not allowed")


def _check_tail(segment: str, tokens: list[str]) -> None:
    for token in tokens[1:]:
        cluster = _short_flag_cluster(token)
        if "f" in cluster.lower() or _abbreviates(_long_option(token), "follow"):
            raise _deny(segment, "tail cannot follow files")


_RULES = {
    "git": _check_git,
    "sed": _check_sed,
    "xargs": _check_xargs,
    "awk": _check_awk,
    "find": _check_find,
    "sort": _check_sort,
    "uniq": _check_uniq,
    "date": _check_date,
    "less": _check_less,
    "file": _check_file,
    "tail": _check_tail,
}
