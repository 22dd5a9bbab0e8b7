import typer
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from datetime import timedelta
from pathlib import Path
from typing import Optional
import subprocess
import sys
from loginguard.core.errors import InvalidIdentifierType, StoreUnavailable
from loginguard.security.login_guard import LoginGuard
from loginguard.services.retention_sweeper import RetentionSweeper

console = Console()


def gradient_text(text: str):
    colors = [
        "#00BCD4",
        "#26C6DA",
        "#4DD0E1",
        "#80DEEA",
    ]

    gradient = Text()
    for i, char in enumerate(text):
        if char == " ":
            gradient.append(char)
            continue

        progress = i / max(len(text) - 1, 1)
        color = colors[int(progress * (len(colors) - 1))]
        gradient.append(char, style=f"bold {color}")

    return gradient


def print_banner():
    console.print()
    console.print(gradient_text("LoginGuard"))
    console.print()


def format_expiry(value) -> str:
    if value is None:
        return "[bold red]never[/bold red]"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def build_guard() -> LoginGuard:
    return LoginGuard()


app = typer.Typer(
    name="loginguard",
    help="LoginGuard - login protection operations",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich"
)


@app.command()
def dev(
    port: int = typer.Option(8000, "--port", "-p", help="Server port"),
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Server host"),
    reload: bool = typer.Option(True, "--reload/--no-reload", help="Enable auto reload")
):
    """Run the API server in development mode"""
    print_banner()

    info_table = Table(box=None, show_header=False, padding=(0, 2), show_lines=False)
    info_table.add_row("[dim]>[/dim] [bold]API:[/bold]", f"[cyan]http://localhost:{port}[/cyan]")
    info_table.add_row("[dim]>[/dim] [bold]Docs:[/bold]", f"[cyan]http://localhost:{port}/docs[/cyan]")
    info_table.add_row("[dim]>[/dim] [bold]Health:[/bold]", f"[cyan]http://localhost:{port}/health[/cyan]")

    console.print(Panel(info_table, border_style="cyan", padding=(1, 2)))
    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

    cmd = [sys.executable, "-m", "uvicorn", "loginguard.main:app", "--host", host, "--port", str(port)]
    if reload:
        cmd.append("--reload")

    try:
        subprocess.run(cmd, cwd=Path.cwd())
    except KeyboardInterrupt:
        console.print("\n[dim]Server stopped[/dim]\n")


@app.command()
def sweep():
    """Run the retention and expiry sweeps once"""
    print_banner()

    guard = build_guard()
    sweeper = RetentionSweeper(guard.store, guard.settings)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True
        ) as progress:
            progress.add_task("[yellow]Sweeping security tables...", total=None)
            report = sweeper.run()
    except StoreUnavailable as e:
        console.print(f"[bold red]ERROR[/bold red] Store unavailable: {e}\n")
        raise typer.Exit(code=1)

    table = Table(box=None, show_header=True, header_style="bold cyan", padding=(0, 2))
    table.add_column("Step", style="cyan")
    table.add_column("Rows", style="green", justify="right")

    table.add_row("Cleared attempts deleted", str(report.cleared_attempts_deleted))
    table.add_row("Patterns archived", str(report.patterns_archived))
    table.add_row("Old attempts deleted", str(report.old_attempts_deleted))
    table.add_row("Locks expired", str(report.locks_expired))
    table.add_row("Blocks expired", str(report.blocks_expired))
    table.add_row("Overrides expired", str(report.overrides_expired))

    console.print(table)
    console.print()


@app.command()
def lock(
    identifier: str = typer.Argument(..., help="Account identifier"),
    identifier_type: str = typer.Option("email", "--type", "-t", help="email, username or user_id"),
    reason: str = typer.Option("Security violation", "--reason", "-r"),
    minutes: Optional[int] = typer.Option(None, "--minutes", "-m", help="Lock duration, defaults to the configured one"),
    locked_by: Optional[str] = typer.Option(None, "--by", help="Operator recording the lock")
):
    """Lock an account"""
    guard = build_guard()
    duration = timedelta(minutes=minutes) if minutes else None

    try:
        result = guard.lockout.lock_account(identifier, identifier_type, reason, duration, locked_by)
    except InvalidIdentifierType as e:
        console.print(f"[bold red]ERROR[/bold red] {e}\n")
        raise typer.Exit(code=2)

    if not result.success:
        console.print("[bold red]ERROR[/bold red] Could not record the lock\n")
        raise typer.Exit(code=1)

    console.print(f"[bold green]OK[/bold green] {identifier} locked until {format_expiry(result.expires_at)}\n")


@app.command()
def unlock(
    identifier: str = typer.Argument(..., help="Account identifier"),
    identifier_type: str = typer.Option("email", "--type", "-t", help="email, username or user_id")
):
    """Release every active lock on an account and clear its failures"""
    guard = build_guard()

    try:
        result = guard.lockout.unlock_account(identifier, identifier_type)
    except InvalidIdentifierType as e:
        console.print(f"[bold red]ERROR[/bold red] {e}\n")
        raise typer.Exit(code=2)

    if not result.success:
        console.print("[bold red]ERROR[/bold red] Could not release the lock\n")
        raise typer.Exit(code=1)

    console.print(f"[bold green]OK[/bold green] {identifier} unlocked\n")


@app.command()
def block(
    identifier: str = typer.Argument(..., help="Identifier to block"),
    identifier_type: str = typer.Option("ip", "--type", "-t", help="ip, email, user_id or fingerprint"),
    reason: str = typer.Option("Suspicious activity", "--reason", "-r"),
    severity: str = typer.Option("medium", "--severity", "-s", help="low, medium, high or critical"),
    minutes: Optional[int] = typer.Option(None, "--minutes", "-m", help="Block duration, defaults to the severity's"),
    blocked_by: Optional[str] = typer.Option(None, "--by", help="Operator recording the block")
):
    """Block an identifier"""
    guard = build_guard()
    duration = timedelta(minutes=minutes) if minutes else None

    try:
        result = guard.blocks.block_identifier(
            identifier,
            identifier_type,
            reason=reason,
            duration=duration,
            severity=severity,
            blocked_by=blocked_by
        )
    except (InvalidIdentifierType, ValueError) as e:
        console.print(f"[bold red]ERROR[/bold red] {e}\n")
        raise typer.Exit(code=2)

    if not result.success:
        console.print("[bold red]ERROR[/bold red] Could not record the block\n")
        raise typer.Exit(code=1)

    console.print(f"[bold green]OK[/bold green] {identifier} blocked until {format_expiry(result.expires_at)}\n")


@app.command()
def unblock(
    identifier: str = typer.Argument(..., help="Blocked identifier"),
    identifier_type: str = typer.Option("ip", "--type", "-t", help="ip, email, user_id or fingerprint")
):
    """Lift every active block on an identifier"""
    guard = build_guard()

    try:
        released = guard.blocks.unblock(identifier, identifier_type)
    except InvalidIdentifierType as e:
        console.print(f"[bold red]ERROR[/bold red] {e}\n")
        raise typer.Exit(code=2)

    if not released:
        console.print(f"[yellow]WARNING[/yellow] No active block for {identifier}\n")
        return

    console.print(f"[bold green]OK[/bold green] {identifier} unblocked\n")


@app.command()
def threats(
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum rows to show")
):
    """Show active blocks and locks"""
    print_banner()

    active = build_guard().active_threats(limit=limit)
    if not active:
        console.print("[green]No active threats[/green]\n")
        return

    severity_styles = {
        "low": "green",
        "medium": "yellow",
        "high": "red",
        "critical": "bold red",
    }

    table = Table(box=None, show_header=True, header_style="bold cyan", padding=(0, 2))
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Identifier", style="magenta")
    table.add_column("Type")
    table.add_column("Severity", justify="center")
    table.add_column("Reason")
    table.add_column("Expires")

    for threat in active:
        style = severity_styles.get(threat.severity, "white")
        table.add_row(
            threat.threat_type,
            threat.identifier,
            threat.identifier_type,
            f"[{style}]{threat.severity}[/{style}]",
            threat.reason,
            format_expiry(threat.expires_at)
        )

    console.print(table)
    console.print()


if __name__ == "__main__":
    app()
