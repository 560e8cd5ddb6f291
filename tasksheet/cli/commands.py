"""Command implementations for the tasksheet CLI."""

import asyncio
import shlex
from typing import Optional

from tasksheet.config import TasksheetConfig
from tasksheet.config.factory import build_adapter_factory, build_bridge, build_registry
from tasksheet.core.bridge import SheetsBridge
from tasksheet.core.errors import TasksheetError
from tasksheet.core.models import (
    Connection,
    SheetConfig,
    Task,
    TaskDraft,
    extract_spreadsheet_id,
)
from tasksheet.core.registry import ConnectionRegistry
from tasksheet.core.transform import FIELD_COLUMNS
from tasksheet.integrations.google_sheets.auth import (
    BearerTokenAuth,
    load_bearer_auth,
    run_oauth_flow,
)
from tasksheet.integrations.google_sheets.drive import GoogleDriveBrowser
from tasksheet.cli.formatting import (
    console,
    print_linked_sheets,
    print_spreadsheets,
    print_sync_state,
    print_sync_summary,
    print_task_table,
    print_error,
    print_warning,
    print_success,
    print_info,
)


FIELD_ALIASES = {
    "task": "title",
    "due": "due_date",
    "due-date": "due_date",
    "desc": "description",
}


class TasksheetContext:
    """Shared context for tasksheet commands."""

    def __init__(self, config: Optional[TasksheetConfig] = None):
        self.config = config
        self.registry: Optional[ConnectionRegistry] = None
        self.bridge: Optional[SheetsBridge] = None
        self.bearer: Optional[BearerTokenAuth] = None
        self._credentials_loaded = False

    async def load_credentials(self) -> Optional[BearerTokenAuth]:
        """Load Google credentials once, in a worker thread.

        Loading may refresh an expired token, which is a network round-trip.
        """
        if not self._credentials_loaded:
            if self.config is None:
                self.config = TasksheetConfig.load_or_default()
            self.bearer = await asyncio.to_thread(load_bearer_auth, self.config.google_sheets)
            self._credentials_loaded = True
        return self.bearer

    def set_credentials(self, bearer: Optional[BearerTokenAuth]) -> None:
        self.bearer = bearer
        self._credentials_loaded = True

    def ensure_bridge(self) -> SheetsBridge:
        """Lazy initialize the registry and the bridge."""
        if self.config is None:
            self.config = TasksheetConfig.load_or_default()
        if self.registry is None:
            self.registry = build_registry(
                self.config,
                adapter_factory=build_adapter_factory(self.config, bearer=lambda: self.bearer),
            )
        if self.bridge is None:
            self.bridge = build_bridge(self.config, self.registry)
        return self.bridge

    @property
    def user_id(self) -> str:
        return self.config.storage.user_id if self.config else "local"


# Global context instance
_context = TasksheetContext()


def get_context() -> TasksheetContext:
    return _context


def set_context(context: TasksheetContext) -> None:
    global _context
    _context = context


def parse_fields(args: list[str]) -> dict[str, str]:
    """Parse ``key=value`` arguments into task fields.

    Raises:
        ValueError: If an argument is not ``key=value`` or names an unknown field
    """
    fields = {}
    for arg in args:
        if "=" not in arg:
            raise ValueError(f"Expected field=value, got '{arg}'")
        key, value = arg.split("=", 1)
        key = key.strip().lower()
        key = FIELD_ALIASES.get(key, key)
        if key not in FIELD_COLUMNS:
            raise ValueError(
                f"Unknown field '{key}'. Valid fields: {', '.join(FIELD_COLUMNS)}"
            )
        fields[key] = value
    return fields


def resolve_task(bridge: SheetsBridge, ref: str) -> Optional[Task]:
    """Find a cached task by id, or by sheet row number (``7`` or ``#7``)."""
    task = bridge.get_task(ref)
    if task is not None:
        return task

    row = ref.lstrip("#")
    if row.isdigit():
        return next((t for t in bridge.tasks if t.row_index == int(row)), None)
    return None


def _require_connection(bridge: SheetsBridge) -> bool:
    if not bridge.is_connected:
        print_warning("No sheet connected. Run 'connect <sheet url>' first.")
        return False
    return True


async def connect_command(args: list[str]) -> int:
    """
    Connect command: Bind a spreadsheet and run the first sync.

    Usage: connect <sheet url or id> [name]
    """
    if not args:
        print_error("Usage: connect <sheet url or id> [name]")
        return 1

    try:
        sheet_id = extract_spreadsheet_id(args[0])
    except ValueError as e:
        print_error(str(e))
        return 1

    bridge = _context.ensure_bridge()
    config = _context.config
    name = " ".join(args[1:])
    url = args[0] if args[0].startswith("http") else None

    sheet = SheetConfig(
        id=sheet_id,
        name=name,
        url=url,
        sheet_name=config.google_sheets.sheet_name,
    )

    console.print("[dim]Checking access to the sheet...[/dim]")
    probe = await _context.registry.get_adapter(sheet).test_connection()
    if probe.success:
        if not name and probe.title:
            sheet = sheet.model_copy(update={"name": probe.title})
        if config.google_sheets.sheet_name not in probe.sheet_names:
            print_warning(
                f"Tab '{config.google_sheets.sheet_name}' not found. "
                f"Available tabs: {', '.join(probe.sheet_names) or 'none'}"
            )
    else:
        print_warning(f"Could not verify the sheet: {probe.error}")

    try:
        connection = await bridge.connect(Connection(id=sheet.id, name=sheet.name, url=sheet.url))
    except TasksheetError as e:
        # The bridge stays bound after a failed first sync; unbind so the
        # next startup does not restore a sheet that was never linked
        bridge.disconnect()
        print_error(f"Failed to connect: {e}")
        return 1

    _context.registry.add_connection(_context.user_id, sheet)
    print_success(f"Connected to {connection.name or connection.id}")
    print_sync_summary(bridge.tasks)
    return 0


async def disconnect_command(args: list[str]) -> int:
    """
    Disconnect command: Unbind the current sheet.

    Usage: disconnect [--forget]
    """
    bridge = _context.ensure_bridge()
    connection = bridge.connection
    if connection is None:
        print_info("No sheet connected.")
        return 0

    bridge.disconnect()
    if "--forget" in args:
        _context.registry.remove_connection(_context.user_id, connection.id)
    else:
        _context.registry.evict(connection.id)

    print_success(f"Disconnected from {connection.name or connection.id}")
    return 0


async def sync_command(args: list[str]) -> int:
    """
    Sync command: Re-read every row of the connected sheet.

    Usage: sync
    """
    bridge = _context.ensure_bridge()
    if not _require_connection(bridge):
        return 1

    console.print("[dim]Syncing...[/dim]")
    try:
        tasks = await bridge.manual_sync()
    except TasksheetError as e:
        print_error(f"Sync failed: {e}")
        return 1

    print_sync_summary(tasks)
    return 0


async def list_command(args: list[str]) -> int:
    """
    List command: Show cached tasks, optionally filtered by status.

    Usage: list [status]
    """
    bridge = _context.ensure_bridge()
    if not _require_connection(bridge):
        return 1

    tasks = bridge.tasks
    if args:
        wanted = args[0].lower().replace(" ", "_")
        tasks = [t for t in tasks if t.status.value == wanted]

    print_task_table(tasks)
    return 0


async def add_command(args: list[str]) -> int:
    """
    Add command: Append a task row.

    Usage: add <title> [status=...] [priority=...] [assignee=...] [due=...] [description=...]
    """
    bridge = _context.ensure_bridge()
    if not _require_connection(bridge):
        return 1

    title_parts = [a for a in args if "=" not in a]
    try:
        fields = parse_fields([a for a in args if "=" in a])
        if title_parts:
            fields.setdefault("title", " ".join(title_parts))
        draft = TaskDraft.model_validate(fields)
    except ValueError as e:
        print_error(str(e))
        return 1

    try:
        await bridge.create_task(draft)
    except TasksheetError as e:
        print_error(f"Failed to add task: {e}")
        return 1

    print_success(f"Added '{draft.title}'")
    return 0


async def update_command(args: list[str]) -> int:
    """
    Update command: Change fields of one task.

    Usage: update <task id or row> field=value [field=value ...]
    """
    bridge = _context.ensure_bridge()
    if not _require_connection(bridge):
        return 1

    if len(args) < 2:
        print_error("Usage: update <task id or row> field=value [field=value ...]")
        return 1

    task = resolve_task(bridge, args[0])
    if task is None:
        print_error(f"Task '{args[0]}' not found. Run 'list' to see task ids.")
        return 1

    try:
        patch = parse_fields(args[1:])
        updated = await bridge.update_task(task.id, patch)
    except ValueError as e:
        print_error(str(e))
        return 1
    except TasksheetError as e:
        print_error(f"Failed to update task: {e}")
        return 1

    print_success(f"Updated '{updated.title if updated else task.title}'")
    return 0


async def done_command(args: list[str]) -> int:
    """
    Done command: Mark a task as done.

    Usage: done <task id or row>
    """
    if not args:
        print_error("Usage: done <task id or row>")
        return 1
    return await update_command([args[0], "status=done"])


async def delete_command(args: list[str]) -> int:
    """
    Delete command: Remove a task's row from the sheet.

    Usage: delete <task id or row>
    """
    bridge = _context.ensure_bridge()
    if not _require_connection(bridge):
        return 1

    if not args:
        print_error("Usage: delete <task id or row>")
        return 1

    task = resolve_task(bridge, args[0])
    if task is None:
        print_error(f"Task '{args[0]}' not found. Run 'list' to see task ids.")
        return 1

    try:
        await bridge.delete_task(task.id)
    except TasksheetError as e:
        print_error(f"Failed to delete task: {e}")
        return 1

    print_success(f"Deleted '{task.title}' (rows below moved up)")
    return 0


async def status_command(args: list[str]) -> int:
    """
    Status command: Show connection, sync state and the credentials in use.

    Usage: status
    """
    bridge = _context.ensure_bridge()

    credentials = None
    if bridge.is_connected:
        adapter = _context.registry.get_adapter(
            SheetConfig.from_connection(bridge.connection, sheet_name=bridge.sheet_name)
        )
        reader = getattr(adapter, "reader", None)
        writer = getattr(adapter, "writer", None)
        credentials = [
            f"read: {reader.name if reader else 'none'}",
            f"write: {writer.name if writer else 'none'}",
        ]

    print_sync_state(bridge.sync_state, credentials)
    return 0


async def sheets_command(args: list[str]) -> int:
    """
    Sheets command: List sheets connected before, or forget one.

    Usage: sheets [forget <sheet id>]
    """
    bridge = _context.ensure_bridge()
    registry = _context.registry

    if args[:1] == ["forget"]:
        if len(args) < 2:
            print_error("Usage: sheets forget <sheet id>")
            return 1
        if registry.remove_connection(_context.user_id, args[1]):
            print_success(f"Forgot sheet {args[1]}")
            return 0
        print_warning(f"Sheet {args[1]} is not linked.")
        return 1

    active = bridge.connection.id if bridge.connection else None
    print_linked_sheets(registry.list_connections(_context.user_id), active)
    return 0


async def _drive_browser() -> GoogleDriveBrowser:
    return GoogleDriveBrowser(await _context.load_credentials())


async def browse_command(args: list[str]) -> int:
    """
    Browse command: List spreadsheets in your Google Drive.

    Usage: browse
    """
    try:
        browser = await _drive_browser()
        sheets = await browser.list_spreadsheets()
    except TasksheetError as e:
        print_error(str(e))
        return 1

    print_spreadsheets(sheets)
    return 0


async def create_command(args: list[str]) -> int:
    """
    Create command: Create a new task spreadsheet and connect to it.

    Usage: create [title]
    """
    title = " ".join(args) or "My Tasks"
    try:
        browser = await _drive_browser()
        info = await browser.create_spreadsheet(title, _context.config.google_sheets.sheet_name)
    except TasksheetError as e:
        print_error(str(e))
        return 1

    print_success(f"Created '{info.name}'")
    return await connect_command([info.url, info.name])


async def login_command(args: list[str]) -> int:
    """
    Login command: Sign in with Google in the browser and cache the token.

    Usage: login
    """
    _context.ensure_bridge()
    google = _context.config.google_sheets

    if google.auth_method != "oauth":
        print_warning(f"Auth method is '{google.auth_method}', nothing to sign in to.")
        return 1

    console.print("[dim]Opening browser for Google sign-in...[/dim]")
    try:
        auth = await asyncio.to_thread(run_oauth_flow, google.credentials_path, google.token_path, google.scopes)
    except FileNotFoundError as e:
        print_error(str(e))
        return 1

    _context.set_credentials(auth)

    # Adapters resolve credentials once; rebuild the active one with the new token
    bridge = _context.bridge
    if bridge.connection is not None:
        _context.registry.evict(bridge.connection.id)

    print_success(f"Signed in. Token saved to {google.token_path}")
    return 0


async def help_command(args: list[str]) -> int:
    """
    Help command: Show available commands.

    Usage: help
    """
    console.print()
    console.print("[bold]Available commands:[/bold]")
    console.print()

    commands_table = [
        ("connect <url> [name]", "Connect a Google Sheet and sync it"),
        ("disconnect [--forget]", "Disconnect the current sheet"),
        ("sync", "Re-read every row of the connected sheet"),
        ("list [status]", "Show cached tasks"),
        ("add <title> [k=v ...]", "Append a task (status, priority, assignee, due, description)"),
        ("update <id|row> k=v ...", "Change fields of a task"),
        ("done <id|row>", "Mark a task as done"),
        ("delete <id|row>", "Delete a task's row"),
        ("status", "Show connection and sync state"),
        ("sheets [forget <id>]", "List previously connected sheets"),
        ("browse", "List spreadsheets in your Google Drive"),
        ("create [title]", "Create a task spreadsheet and connect it"),
        ("login", "Sign in with Google"),
        ("config <cmd>", "Manage configuration (init, show, path, validate)"),
        ("clear / cls", "Clear the terminal screen"),
        ("help", "Show this help message"),
        ("exit / quit", "Exit the interactive shell"),
    ]

    for cmd, desc in commands_table:
        console.print(f"  [cyan]{cmd:24}[/cyan] [dim]{desc}[/dim]")

    console.print()
    console.print("[bold]Configuration:[/bold]")
    console.print(f"  [dim]Config file:[/dim] {TasksheetConfig.get_default_path()}")
    console.print(f"  [dim]Run[/dim] [cyan]tasksheet config init[/cyan] [dim]to create a default configuration[/dim]")
    console.print()

    return 0


def split_command_line(line: str) -> list[str]:
    """Split a shell line, keeping quoted titles together."""
    try:
        return shlex.split(line)
    except ValueError:
        return line.split()
