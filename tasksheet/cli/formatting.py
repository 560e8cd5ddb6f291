"""Visual formatting utilities for the tasksheet CLI."""

from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich import box

from tasksheet.core.models import LinkedSheet, SpreadsheetInfo, SyncState, Task, TaskStatus

# Global console instance
console = Console()

STATUS_STYLES = {
    TaskStatus.PENDING: ("○", "white"),
    TaskStatus.IN_PROGRESS: ("◐", "cyan"),
    TaskStatus.DONE: ("●", "green"),
    TaskStatus.BLOCKED: ("✗", "red"),
}

PRIORITY_STYLES = {
    "High": "bold red",
    "Medium": "yellow",
    "Low": "dim",
}


def format_relative_time(moment: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Format a timestamp as a short 'time ago' string."""
    if moment is None:
        return "never"

    now = now or datetime.now(timezone.utc)
    seconds = int((now - moment).total_seconds())

    if seconds < 5:
        return "just now"
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return moment.strftime("%Y-%m-%d %H:%M")


def print_task_table(tasks: list[Task]):
    """Print the cached tasks as a table."""
    if not tasks:
        console.print("[dim]No tasks in the connected sheet.[/dim]")
        return

    table = Table(box=box.SIMPLE_HEAD, padding=(0, 1))
    table.add_column("Row", style="dim", justify="right")
    table.add_column("", width=1)
    table.add_column("Task", style="bold white")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Assignee", style="cyan")
    table.add_column("Due", style="dim")
    table.add_column("ID", style="dim")

    for task in tasks:
        symbol, style = STATUS_STYLES[task.status]
        table.add_row(
            str(task.row_index),
            Text(symbol, style=style),
            escape(task.title),
            Text(task.status.value, style=style),
            Text(task.priority.value, style=PRIORITY_STYLES.get(task.priority.value, "")),
            escape(task.assignee or ""),
            escape(task.due_date or ""),
            task.id,
        )

    console.print(table)


def print_sync_summary(tasks: list[Task]):
    """Print the sync summary with clean formatting."""
    console.print()
    console.print("✓ [bold green]Sync complete![/bold green]")
    console.print()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label", style="dim")
    table.add_column("Value", style="bold cyan")

    table.add_row("Total tasks", str(len(tasks)))
    for status in TaskStatus:
        count = sum(1 for t in tasks if t.status == status)
        table.add_row(status.value.replace("_", " ").capitalize(), str(count))

    console.print(table)
    console.print()


def print_sync_state(state: SyncState, credentials: Optional[list[str]] = None):
    """Print connection and sync bookkeeping."""
    console.print()
    if state.connection is None:
        console.print("[dim]Not connected.[/dim] Use [cyan]connect <sheet url>[/cyan] to bind a sheet.")
        console.print()
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label", style="dim")
    table.add_column("Value")

    table.add_row("Sheet", f"[bold]{escape(state.connection.name or state.connection.id)}[/bold]")
    table.add_row("URL", f"[cyan]{escape(state.connection.url or '')}[/cyan]")
    table.add_row("State", state.state.value + (" (loading)" if state.is_loading else ""))
    table.add_row("Tasks", str(state.task_count))
    table.add_row("Last sync", format_relative_time(state.last_sync_time))
    if state.last_error:
        table.add_row("Last error", f"[red]{escape(state.last_error)}[/red]")
    if credentials:
        table.add_row("Credentials", ", ".join(credentials))

    console.print(table)
    console.print()


def print_linked_sheets(sheets: list[LinkedSheet], active_id: Optional[str] = None):
    """Print the user's previously connected sheets."""
    if not sheets:
        console.print("[dim]No linked sheets yet.[/dim]")
        return

    table = Table(box=box.SIMPLE_HEAD, padding=(0, 1))
    table.add_column("", width=1)
    table.add_column("Name", style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Last accessed", style="dim")

    for sheet in sheets:
        marker = Text("●", style="green") if sheet.id == active_id else Text("")
        table.add_row(
            marker,
            escape(sheet.name or "Untitled"),
            sheet.id,
            format_relative_time(sheet.last_accessed or sheet.created_at),
        )

    console.print(table)


def print_spreadsheets(sheets: list[SpreadsheetInfo]):
    """Print spreadsheets found in Google Drive."""
    if not sheets:
        console.print("[dim]No spreadsheets found in your Drive.[/dim]")
        return

    table = Table(box=box.SIMPLE_HEAD, padding=(0, 1))
    table.add_column("Name", style="bold")
    table.add_column("Modified", style="dim")
    table.add_column("Owner")
    table.add_column("ID", style="dim")

    for sheet in sheets:
        table.add_row(
            escape(sheet.name),
            format_relative_time(sheet.modified_time),
            "[green]me[/green]" if sheet.is_owner else "[dim]shared[/dim]",
            sheet.id,
        )

    console.print(table)


def print_error(message: str):
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def print_warning(message: str):
    """Print a warning message."""
    console.print(f"[yellow]⚠️[/yellow]  {escape(message)}")


def print_success(message: str):
    """Print a success message."""
    console.print(f"[green]✓[/green] {escape(message)}")


def print_info(message: str):
    """Print an informational message."""
    console.print(f"[cyan]ℹ[/cyan]  {escape(message)}")
