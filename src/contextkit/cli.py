"""Command-line interface for contextkit."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from contextkit import __version__
from contextkit.config import (
    ProjectConfig,
    find_project_root,
    load_config,
    save_config,
    set_config_value,
)
from contextkit.exceptions import CommandDenied, ContextKitError, SandboxExecutionError
from contextkit.ui.console import Console

console = Console()


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    from rich.logging import RichHandler

    handler = RichHandler(console=console.console, show_path=False, rich_tracebacks=True)
    root_logger = logging.getLogger("contextkit")
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(handler)


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No contextkit project found. Run 'contextkit init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _load(path: str | None) -> tuple[Path, ProjectConfig]:
    root = _get_project_root(path)
    try:
        return root, load_config(root)
    except ContextKitError as e:
        console.error(str(e))
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="contextkit")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool):
    """contextkit - budgeted, relevance-ranked project context for coding assistants."""
    _configure_logging(verbose)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--provider", default=None, help="LLM provider (openai, anthropic, local).")
@click.option("--model", default=None, help="LLM model name.")
def init(path: str | None, provider: str | None, model: str | None):
    """Write a contextkit configuration for a repository."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing contextkit for: {root}")

    _, config = _load(str(root))
    config.name = root.name
    config.root_path = str(root)
    if provider:
        config.llm.provider = provider
    if model:
        config.llm.model = model

    save_config(root, config)
    console.success("Configuration saved")


# =========================================================================
# Workspace inspection
# =========================================================================


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--list", "list_files", is_flag=True, help="List every candidate file.")
def scan(path: str | None, list_files: bool):
    """Scan the workspace and report the candidate files."""
    from contextkit.workspace.filesystem import LocalFileSystem
    from contextkit.workspace.scanner import WorkspaceScanner

    root, config = _load(path)
    scanner = WorkspaceScanner(LocalFileSystem(), config.scanner)
    result = asyncio.run(scanner.scan(str(root)))
    if not result.workspace_available:
        console.error(f"Workspace not readable: {root}")
        sys.exit(1)
    console.show_scan(result, list_files=list_files)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--active", "-a", default=None, help="Active file, relative to the root.")
@click.option("--line", "-l", type=int, default=None, help="Cursor line (1-based) in the active file.")
@click.option("--limit", "-n", type=int, default=None, help="Show at most this many files.")
def rank(path: str | None, active: str | None, line: int | None, limit: int | None):
    """Show the heuristic relevance ranking for an active file."""
    root, config = _load(path)
    scores = asyncio.run(_rank(root, config, active, line))
    if limit is not None:
        scores = scores[:limit]
    if not scores:
        console.warning("No file scored above zero.")
        return
    console.show_ranking(scores, active)


async def _rank(root: Path, config: ProjectConfig, active: str | None, line: int | None):
    from contextkit.graph.dependencies import ImportGraphBuilder, reverse_dependencies
    from contextkit.scoring.relevance import RelevanceScorer, ScoringSignals
    from contextkit.symbols.python_symbols import PythonSymbolProvider
    from contextkit.workspace.filesystem import LocalFileSystem
    from contextkit.workspace.scanner import WorkspaceScanner

    fs = LocalFileSystem()
    result = await WorkspaceScanner(fs, config.scanner).scan(str(root))
    forward = await ImportGraphBuilder(fs, config.scanner.concurrency_limit).build(result.files)
    symbol = None
    if active and line is not None:
        provider = PythonSymbolProvider(fs, str(root), result.paths, config.scanner.concurrency_limit)
        symbol = await provider.active_symbol(active, max(0, line - 1))
    signals = ScoringSignals.from_active_symbol(active, symbol, forward, reverse_dependencies(forward))
    return RelevanceScorer(config.scoring).score(result.files, signals)


# =========================================================================
# Sandbox
# =========================================================================


@main.command("exec")
@click.argument("command")
@click.option("--path", "-p", default=None, help="Directory to run in (defaults to the project root).")
def exec_cmd(command: str, path: str | None):
    """Run a read-only command through the sandbox."""
    from contextkit.sandbox.executor import CommandSandbox

    root, config = _load(path)
    sandbox = CommandSandbox(config.sandbox)
    try:
        output = asyncio.run(sandbox.execute(command, str(root)))
    except (CommandDenied, SandboxExecutionError) as e:
        console.error(str(e))
        sys.exit(1)
    click.echo(output, nl=not output.endswith("\n"))


@main.command("commands")
def commands_cmd():
    """List the commands the sandbox allows and whether each is installed."""
    from contextkit.sandbox.executor import CommandSandbox

    sandbox = CommandSandbox()
    console.show_commands({name: sandbox.is_tool_available(name) for name in sandbox.allowed_commands()})


# =========================================================================
# Context building
# =========================================================================


@main.command()
@click.argument("request", default="")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--active", "-a", default=None, help="Active file, relative to the root.")
@click.option("--line", "-l", type=int, default=None, help="Cursor line (1-based) in the active file.")
@click.option("--budget", "-b", type=int, default=None, help="Total character budget.")
@click.option("--no-smart", is_flag=True, help="Skip model-driven selection; use heuristics only.")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write the context to a file.")
@click.option("--stats", is_flag=True, help="Show timing metrics and cache state.")
def context(
    request: str,
    path: str | None,
    active: str | None,
    line: int | None,
    budget: int | None,
    no_smart: bool,
    output: str | None,
    stats: bool,
):
    """Build the project context for REQUEST and print it."""
    from contextkit.service import BuildOptions, ContextService, EditorContext

    root, config = _load(path)
    if budget is not None:
        config.budget.max_total_chars = budget

    llm = None if no_smart else _provider_or_none(config)
    status_console = Console(stderr=True)
    service = ContextService.for_workspace(
        str(root),
        config,
        llm=llm,
        status=status_console,
        on_turn=status_console.show_agent_turn,
    )
    editor = EditorContext(
        active_file=active,
        line=max(0, line - 1) if line is not None else None,
    )
    try:
        result = asyncio.run(
            service.build_project_context(
                request, editor, BuildOptions(use_smart_selection=not no_smart)
            )
        )
    except ContextKitError as e:
        console.error(str(e))
        sys.exit(1)

    if output:
        Path(output).write_text(result.context_string, encoding="utf-8")
        console.success(f"Wrote {len(result.context_string):,} chars to {output}")
    else:
        click.echo(result.context_string)

    if stats:
        status_console.show_metrics(result.metrics)
        status_console.show_cache_stats(service.cache_stats())
    service.close()


def _provider_or_none(config: ProjectConfig):
    """Create the configured provider, or None (heuristic selection) if that is not possible."""
    from contextkit.llm.factory import create_provider

    llm_config = config.llm
    if not llm_config.api_key and llm_config.provider not in ("local",):
        console.warning(
            f"No API key found in {llm_config.api_key_env or 'the environment'}; "
            "using heuristic selection."
        )
        return None
    try:
        return create_provider(llm_config)
    except ContextKitError as e:
        console.warning(f"{e}; using heuristic selection.")
        return None


# =========================================================================
# Config Management
# =========================================================================


@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage contextkit configuration."""
    root, config = _load(path)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: contextkit config get <key>")
            sys.exit(1)
        data = config.model_dump()
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: contextkit config set <key> <value>")
            sys.exit(1)
        try:
            parsed_value = json.loads(value)
        except json.JSONDecodeError:
            parsed_value = value
        try:
            config = set_config_value(config, key, parsed_value)
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ValueError as e:
            console.error(f"Invalid value for {key}: {e}")
            sys.exit(1)
        save_config(root, config)
        console.success(f"Set {key} = {parsed_value}")


if __name__ == "__main__":
    main()
