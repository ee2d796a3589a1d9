"""CLI entry point for procwarden."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from procwarden.supervisor.models import (
    Action,
    ConfigOverrides,
    HookEvent,
    ProcessConfig,
    ProcessStatus,
    StatusCode,
)

app = typer.Typer(help="Supervise one long-running command through a pidfile.", add_completion=False)
console = Console()
err_console = Console(stderr=True)

STATUS_STYLE = {
    StatusCode.TIMED_OUT: "red",
    StatusCode.ZOMBIE: "red",
    StatusCode.INCONSISTENT: "bold red",
    StatusCode.NOT_RUNNING: "yellow",
    StatusCode.STOPPED: "cyan",
    StatusCode.RUNNING: "green",
    StatusCode.STARTED: "bold green",
    StatusCode.RESTARTED: "bold green",
}


def report(status: ProcessStatus) -> None:
    """Print the one-line status report on stdout."""
    style = STATUS_STYLE.get(status.code, "white")
    line = f"[{style}]{status.code.name}[/{style}] pid={status.pid}"
    if status.command_line:
        line += f" [dim]{escape(status.command_line)}[/dim]"
    console.print(line)


def print_config(config: ProcessConfig, path: Path) -> None:
    """Show a stored config as a table."""
    table = Table(title=str(path), show_header=True)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("command", escape(" ".join(config.command)))
    for name in ("pidfile", "workdir", "infile", "outfile", "errfile", "match", "allow"):
        value = getattr(config, name)
        table.add_row(name, "[dim]unset[/dim]" if value is None else escape(str(value)))
    for event in HookEvent:
        spec = config.hooks.resolve(event)
        if spec.command is None:
            continue
        shown = spec.command if isinstance(spec.command, str) else " ".join(spec.command)
        suffix = " [dim](nocheck)[/dim]" if spec.suppress_failure else ""
        table.add_row(event.value, escape(shown) + suffix)
    console.print(table)


def _ask(question: str) -> bool:
    return Confirm.ask(question, default=False, console=err_console)


@app.command(context_settings={"allow_interspersed_args": False})
def main(
    command: Optional[list[str]] = typer.Argument(None, help="Command to supervise (put it after --)"),
    start: bool = typer.Option(False, "--start", help="Create the config and start the command"),
    stay: bool = typer.Option(False, "--stay", help="Start the command unless it is already running"),
    restart: bool = typer.Option(False, "--restart", help="Stop the command if running, then start it"),
    kill: bool = typer.Option(False, "--kill", help="Stop the running command"),
    check: bool = typer.Option(False, "--check", help="Report status; exit 0 only if running"),
    generate: bool = typer.Option(False, "--generate", help="Write the config without starting anything"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file (default: procwarden.yaml)"),
    pidfile: Optional[str] = typer.Option(None, "--pidfile", "-p", help="Pidfile path"),
    workdir: Optional[str] = typer.Option(None, "--workdir", "-w", help="Working directory of the command"),
    infile: Optional[str] = typer.Option(None, "--infile", help="Standard input of the command"),
    outfile: Optional[str] = typer.Option(None, "--outfile", help="Standard output of the command"),
    errfile: Optional[str] = typer.Option(None, "--errfile", help="Standard error of the command"),
    match: Optional[str] = typer.Option(None, "--match", "-m", help="Regex the live command line must match ('.' derives it from the command)"),
    allow: Optional[int] = typer.Option(None, "--allow", "-a", help="Seconds of start-time drift tolerated (negative disables)"),
    temp: bool = typer.Option(False, "--temp", "-t", help="Apply changes for this run only, never write the config"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before overwriting a config"),
    foreground: bool = typer.Option(False, "--foreground", "-f", help="Replace this process with the command"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level"),
) -> None:
    """Check, start, stop or restart one supervised command."""
    from procwarden.config import get_settings
    from procwarden.logging_config import setup_logging
    from procwarden.supervisor.errors import HookFailure, SupervisorError
    from procwarden.supervisor.supervisor import Supervisor

    requested = [
        action for action, flag in (
            (Action.START, start),
            (Action.STAY, stay),
            (Action.RESTART, restart),
            (Action.KILL, kill),
            (Action.CHECK, check),
            (Action.GENERATE, generate),
        ) if flag
    ]
    if len(requested) != 1:
        err_console.print(
            "[red]Choose exactly one of --start, --stay, --restart, --kill, --check, --generate[/red]"
        )
        raise typer.Exit(1)
    action = requested[0]

    setup_logging(log_level)
    config_path = config or Path(get_settings().config_file)
    overrides = ConfigOverrides(
        workdir=workdir,
        pidfile=pidfile,
        outfile=outfile,
        infile=infile,
        errfile=errfile,
        match=match,
        allow=allow,
    )
    supervisor = Supervisor(
        config_path,
        confirm=(lambda question: True) if yes else _ask,
        temporary=temp,
        foreground=foreground,
    )

    try:
        outcome = supervisor.run(action, overrides=overrides, command=command)
    except HookFailure as exc:
        if exc.status is not None:
            report(exc.status)
        shown = exc.command if isinstance(exc.command, str) else " ".join(exc.command)
        err_console.print(f"[bold red]Hook {exc.event.value} failed[/bold red] (exit code {exc.returncode})")
        err_console.print(f"  [dim]{escape(shown)}[/dim]")
        raise typer.Exit(exc.exit_code)
    except SupervisorError as exc:
        if exc.status is not None:
            report(exc.status)
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(exc.exit_code)

    report(outcome.status)
    if action == Action.GENERATE and supervisor.config is not None:
        print_config(supervisor.config, config_path)
    raise typer.Exit(outcome.exit_code)


if __name__ == "__main__":
    app()
