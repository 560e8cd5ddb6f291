"""CLI application entry point and command wiring."""

import asyncio
import inspect
import logging
import os
import sys
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from tasksheet.config import TasksheetConfig
from tasksheet.core.errors import TasksheetError
from tasksheet.cli.commands import (
    TasksheetContext,
    add_command,
    browse_command,
    connect_command,
    create_command,
    delete_command,
    disconnect_command,
    done_command,
    help_command,
    list_command,
    login_command,
    sheets_command,
    split_command_line,
    status_command,
    sync_command,
    set_context,
    update_command,
)
from tasksheet.cli.config_commands import config_command
from tasksheet.cli.formatting import console, print_warning
from tasksheet.logging_setup import setup_logging


logger = logging.getLogger(__name__)

# One-shot commands that act on the sheet saved by the previous session
SESSION_COMMANDS = {"disconnect", "sync", "list", "ls", "add", "update", "done", "delete", "rm", "status"}


class TasksheetShell:
    """Interactive REPL shell for tasksheet."""

    def __init__(self, context: TasksheetContext):
        self.context = context
        self.running = False
        self.commands = {
            'connect': connect_command,
            'disconnect': disconnect_command,
            'sync': sync_command,
            'list': list_command,
            'ls': list_command,
            'add': add_command,
            'update': update_command,
            'done': done_command,
            'delete': delete_command,
            'rm': delete_command,
            'status': status_command,
            'sheets': sheets_command,
            'browse': browse_command,
            'create': create_command,
            'login': login_command,
            'config': config_command,
            'help': help_command,
            'exit': self._exit_command,
            'quit': self._exit_command,
            'clear': self._clear_command,
            'cls': self._clear_command,
        }

        # History outlives the prompt, which needs a terminal and is built in run()
        self.history = InMemoryHistory()
        self.prompt_session: Optional[PromptSession] = None

    def _exit_command(self, args: list[str]) -> int:
        """Exit the shell."""
        self.running = False
        console.print("[dim]Goodbye![/dim]")
        return 0

    def _print_banner(self):
        console.print("[bold cyan]tasksheet[/bold cyan] [dim]v0.1.0[/dim] - Interactive Shell")
        console.print("[dim]Type 'help' for available commands or 'exit' to quit.[/dim]\n")

    def _clear_command(self, args: list[str]) -> int:
        """Clear the terminal screen."""
        os.system('cls' if os.name == 'nt' else 'clear')
        self._print_banner()
        return 0

    async def dispatch(self, command_name: str, args: list[str]) -> int:
        """Run one command, awaiting it if it is a coroutine."""
        result = self.commands[command_name](args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def restore(self) -> None:
        """Re-bind the sheet connected in the previous session, if any."""
        try:
            connection = await self.context.ensure_bridge().restore()
        except Exception as e:
            if not isinstance(e, TasksheetError):
                logger.debug("Restoring the saved sheet failed", exc_info=True)
            print_warning(f"Could not sync the saved sheet: {e}")
            console.print("[dim]You can retry with the 'sync' command.[/dim]\n")
            return

        if connection is not None:
            self.context.registry.touch_last_accessed(self.context.user_id, connection.id)
            console.print(
                f"[dim]Reconnected to[/dim] [bold]{connection.name or connection.id}[/bold] "
                f"[dim]({len(self.context.bridge.tasks)} tasks)[/dim]\n"
            )

    def close(self) -> None:
        if self.context.bridge is not None:
            self.context.bridge.close()

    async def run(self):
        """Run the interactive shell.

        Prompting is asynchronous so the background sync keeps running while
        the shell waits for input.
        """
        self.running = True
        self._print_banner()

        await self.context.load_credentials()
        await self.restore()

        self.prompt_session = PromptSession(history=self.history, enable_history_search=True)
        with patch_stdout():
            while self.running:
                try:
                    user_input = (await self.prompt_session.prompt_async("tasksheet> ")).strip()

                    if not user_input:
                        continue

                    parts = split_command_line(user_input)
                    command_name = parts[0]
                    args = parts[1:]

                    if command_name not in self.commands:
                        console.print(f"[yellow]Unknown command:[/yellow] {command_name}")
                        console.print("[dim]Type 'help' for available commands.[/dim]")
                        continue

                    try:
                        await self.dispatch(command_name, args)
                    except KeyboardInterrupt:
                        console.print("\n^C")
                        continue
                    except Exception as e:
                        logger.debug("Command '%s' failed", command_name, exc_info=True)
                        console.print(f"[red]Error executing command:[/red] {e}")
                        console.print("[dim]The shell will continue running.[/dim]")

                except KeyboardInterrupt:
                    console.print("\n[dim]Use 'exit' or 'quit' to leave the shell.[/dim]")
                    continue
                except EOFError:
                    console.print("\n[dim]Goodbye![/dim]")
                    break

        self.close()

    async def execute_one_shot(self, command_name: str, args: list[str]) -> int:
        """Execute a single command and exit."""
        if command_name not in self.commands:
            console.print(f"[yellow]Unknown command:[/yellow] {command_name}")
            console.print("[dim]Type 'tasksheet help' for available commands.[/dim]")
            return 1

        try:
            await self.context.load_credentials()
            if command_name in SESSION_COMMANDS:
                await self.restore()
            return await self.dispatch(command_name, args)
        except Exception as e:
            console.print(f"[red]Error:[/red] {e}")
            return 1
        finally:
            self.close()


def main():
    """Main CLI entry point."""
    try:
        config = TasksheetConfig.load_or_default()
    except Exception as e:
        console.print(f"[red]Error:[/red] Failed to load configuration: {e}")
        console.print(f"Fix or remove [cyan]{TasksheetConfig.get_default_path()}[/cyan].")
        return 1

    setup_logging(config.logging.level, config.logging.log_file)

    context = TasksheetContext(config)
    set_context(context)
    shell = TasksheetShell(context)

    if len(sys.argv) > 1:
        # One-shot command mode
        command_name = sys.argv[1]
        args = sys.argv[2:]
        return asyncio.run(shell.execute_one_shot(command_name, args))

    # Interactive mode
    try:
        asyncio.run(shell.run())
        return 0
    except KeyboardInterrupt:
        console.print("\n[dim]Goodbye![/dim]")
        return 0


if __name__ == "__main__":
    sys.exit(main())
