from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm

console = Console()
err_console = Console(stderr=True)


def display_command(command: str) -> None:
    """Show the command that is about to run."""
    console.print(f"[bold cyan]→[/bold cyan] [bold]{escape(command)}[/bold]")


def confirm_execution() -> bool:
    """Ask the user to confirm running the command. Anything but yes declines."""
    try:
        return Confirm.ask("Run this command?", default=False, console=console)
    except EOFError:
        console.print()
        return False


def display_cancelled() -> None:
    console.print("[yellow]Cancelled.[/yellow]")


def display_exit_status(exit_code: int) -> None:
    """Report a non-zero exit of the executed command."""
    if exit_code != 0:
        err_console.print(f"[red]✗ Command exited with code {exit_code}[/red]")


def display_error(message: str, raw_response: Optional[str] = None) -> None:
    """Display an error, and the provider's raw reply when it helps diagnosis."""
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    if raw_response:
        err_console.print(Panel(escape(raw_response), title="Model response", border_style="red"))


def display_setup_help(message: str) -> None:
    """Tell the user how to configure a provider and key."""
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    err_console.print("Configure nlsh first:")
    err_console.print("  nlsh --set-provider <gemini|zai>")
    err_console.print("  nlsh --set-api-key <key>")


def display_saved(message: str) -> None:
    console.print(f"[green]✓[/green] {escape(message)}")
