"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from covdelta.reporters.markdown import NO_DATA_MESSAGE, format_delta, format_pct, summary_line

if TYPE_CHECKING:
    from covdelta.analyzers.delta import DiffResult, FileDelta

console = Console()

_HIGH_THRESHOLD = 80.0
_MEDIUM_THRESHOLD = 50.0


class CLIReporter:
    """Rich terminal output reporter for coverage deltas."""

    def __init__(self, console_: Console | None = None) -> None:
        """Initialize the CLI reporter."""
        self.console = console_ or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def print_delta(self, result: DiffResult) -> None:
        """Print the overall summary and the per-file delta table."""
        if not result.has_data:
            self.print_warning(NO_DATA_MESSAGE)
            return

        color = self._get_coverage_color(result.current.percentage)
        self.console.print(f"[bold {color}]{summary_line(result)}[/bold {color}]")
        if result.base is None:
            self.print_info("No base report available for comparison.")

        table = Table(title="Coverage Delta", title_style="bold cyan")
        table.add_column("File", style="bold")
        table.add_column("Coverage", justify="right")
        table.add_column("Base", justify="right")
        table.add_column("Delta", justify="right")

        for row in result.files:
            row_color = self._get_coverage_color(row.current_pct)
            table.add_row(
                escape(row.path),
                f"[{row_color}]{format_pct(row.current_pct)}[/{row_color}]",
                "new" if row.base_pct is None else format_pct(row.base_pct),
                self._delta_markup(row),
            )

        self.console.print(table)

        if result.removed:
            removed = ", ".join(escape(path) for path in result.removed)
            self.print_info(f"Removed since base: {removed}")
        if result.collisions:
            hidden = ", ".join(escape(path) for path in result.collisions)
            self.print_warning(f"Not listed, path collides after prefix stripping: {hidden}")

    def _delta_markup(self, row: FileDelta) -> str:
        if row.delta is None:
            return "[cyan]new file[/cyan]"
        if row.delta > 0:
            return f"[green]{format_delta(row.delta)}[/green]"
        if row.delta < 0:
            return f"[red]{format_delta(row.delta)}[/red]"
        return f"[dim]{format_delta(row.delta)}[/dim]"

    def _get_coverage_color(self, percentage: float) -> str:
        """Get a color based on coverage percentage."""
        if percentage >= _HIGH_THRESHOLD:
            return "green"
        if percentage >= _MEDIUM_THRESHOLD:
            return "yellow"
        return "red"


reporter = CLIReporter()
