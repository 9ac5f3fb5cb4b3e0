"""Console output for the parsync CLI."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Writes user-facing messages to stderr through rich.

    Progress lines go through ``logging``; this class is only for the
    framing messages and the final summary.
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        """Initialize output formatter.

        Args:
            quiet: Suppress everything except errors
            console: Console to write to (defaults to a stderr console)
        """
        self.quiet = quiet
        self.console = console or Console(
            stderr=True, highlight=False, soft_wrap=True
        )

    def info(self, message: str) -> None:
        if not self.quiet:
            self.console.print(escape(message))

    def success(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[green]✓[/green] {escape(message)}")

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]Error:[/red] {escape(message)}")

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def print_summary(self, title: str, rows: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            rows: (label, value) pairs
        """
        if self.quiet:
            return

        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Item", style="bold")
        table.add_column("Value", justify="right")
        for label, value in rows:
            table.add_row(label, value)
        self.console.print(table)
