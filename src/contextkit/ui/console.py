"""Rich-powered console output for contextkit."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from contextkit import __version__
from contextkit.agent.controller import AgentTurn
from contextkit.scoring.relevance import RelevanceScore
from contextkit.service import PerformanceMetrics
from contextkit.workspace.scanner import ScanResult


class Console:
    """Terminal output for contextkit using Rich.

    Also serves as the status sink for the context service, so progress
    messages land in the same stream as everything else.
    """

    def __init__(self, stderr: bool = False) -> None:
        self.console = RichConsole(stderr=stderr)

    def banner(self) -> None:
        self.console.print(
            Panel(
                f"[bold cyan]contextkit[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Budgeted project context for coding assistants[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def post_status(self, message: str, is_error: bool = False) -> None:
        if is_error:
            self.warning(message)
        else:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def show_scan(self, result: ScanResult, list_files: bool = False) -> None:
        """Summarize a workspace scan."""
        source = "cache" if result.from_cache else f"{result.scan_time_ms:.1f}ms"
        self.success(f"{len(result.files)} candidate files ({source}, {result.skipped} skipped)")
        if list_files:
            for f in result.files:
                self.console.print(f"  [cyan]{f.path}[/cyan] [dim]{f.size_bytes:,} B[/dim]")

    def show_ranking(self, scores: list[RelevanceScore], active_file: str | None) -> None:
        """Display heuristic relevance scores in a table."""
        title = f"Relevance for {active_file}" if active_file else "Relevance"
        table = Table(title=title, border_style="cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("File", style="bold")
        table.add_column("Score", justify="right", style="cyan")
        table.add_column("Factors", style="dim")

        for i, s in enumerate(scores, 1):
            factors = ", ".join(f"{k}={v:g}" for k, v in sorted(s.factors.items()))
            table.add_row(str(i), s.path, f"{s.score:g}", factors)

        self.console.print(table)

    def show_agent_turn(self, turn: AgentTurn) -> None:
        """Display one turn of agentic selection."""
        if turn.command:
            self.console.print(f"  [yellow]→[/yellow] [bold]{turn.tool}[/bold]({escape(repr(turn.command))})")
            output = turn.output
            if len(output) > 500:
                output = output[:500] + "\n... (truncated)"
            style = "red" if output.startswith("Error") else "dim"
            self.console.print(f"  [{style}]{escape(output)}[/{style}]", highlight=False)
        elif turn.tool:
            self.console.print(f"  [green]→[/green] [bold]{turn.tool}[/bold]")
        elif turn.content:
            self.console.print(f"  [dim]{escape(turn.content[:500])}[/dim]", highlight=False)

    def show_metrics(self, metrics: PerformanceMetrics) -> None:
        table = Table(title="Context Build", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right", style="cyan")

        table.add_row("Candidates", str(metrics.candidate_count))
        table.add_row("Included files", str(metrics.processed_count))
        table.add_section()
        table.add_row("Scan", f"{metrics.scan_time_ms:.1f}ms")
        table.add_row("Dependencies", f"{metrics.dependency_build_time_ms:.1f}ms")
        table.add_row("Selection", f"{metrics.selection_time_ms:.1f}ms")
        table.add_row("Assembly", f"{metrics.assembly_time_ms:.1f}ms")
        table.add_row("Total", f"{metrics.total_time_ms:.1f}ms")

        self.console.print(table)

    def show_commands(self, availability: dict[str, bool]) -> None:
        table = Table(title="Sandbox Commands", border_style="cyan")
        table.add_column("Command", style="bold")
        table.add_column("Available", justify="center")
        for name, available in availability.items():
            table.add_row(name, "[green]yes[/green]" if available else "[red]no[/red]")
        self.console.print(table)

    def show_cache_stats(self, stats: dict) -> None:
        for name, data in stats.items():
            self.console.print(f"[bold]{name}[/bold] cache: {data['size']} entries")
            for entry in data["entries"]:
                self.console.print(f"  [dim]{entry['key'][:40]}  age {entry['age_ms']:.0f}ms[/dim]")
