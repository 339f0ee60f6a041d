"""CLI for the StackShift workflow state and batch sessions."""

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stackshift.config import Config
from stackshift.constants import BATCH_SESSION_FILENAME
from stackshift.errors import ValidationError
from stackshift.state import BatchSession
from stackshift.tools.batch_session import BatchSessionRegistry
from stackshift.tools.state_store import StateStore
from stackshift.utils.logging import configure_logging
from stackshift.utils.security import PathValidator, create_default_validator

app = typer.Typer(help="StackShift - Workflow state manager")
batch_app = typer.Typer(help="Manage batch sessions shared across repositories")
app.add_typer(batch_app, name="batch")

console = Console()
err_console = Console(stderr=True)

STATUS_LABELS = {
    "complete": "[green]✅ Complete[/green]",
    "in_progress": "[yellow]🔄 In Progress[/yellow]",
    "pending": "[dim]⏳ Pending[/dim]",
}


@dataclass
class Context:
    """Objects shared by all commands of one invocation."""

    directory: Path
    validator: PathValidator
    config: Config

    def store(self) -> StateStore:
        return StateStore(self.directory, self.validator)

    def registry(self) -> BatchSessionRegistry:
        return BatchSessionRegistry(self.validator)


def _fail(error: ValidationError) -> None:
    """Print the external-safe message and exit."""
    err_console.print(f"[red]Error: {error.message}[/red]")
    raise typer.Exit(code=1)


def _parse_pairs(pairs: list[str], option: str) -> dict[str, str]:
    """Parse ``key=value`` arguments into a dict."""
    parsed = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            err_console.print(f"[red]Invalid {option} (expected key=value): {pair}[/red]")
            raise typer.Exit(code=1)
        parsed[key.strip()] = value.strip()
    return parsed


def _print_json(data: dict) -> None:
    console.print_json(json.dumps(data, default=str))


@app.callback()
def main(
    ctx: typer.Context,
    directory: Optional[str] = typer.Option(
        None,
        "--directory", "-C",
        help="Project directory (default: current directory)",
    ),
) -> None:
    """Track progress through the StackShift workflow."""
    cwd = Path.cwd()

    try:
        config = Config.load(cwd)
    except Exception as e:
        err_console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    errors = config.validate()
    if errors:
        err_console.print("[red]Configuration errors:[/red]")
        for error in errors:
            err_console.print(f"  - {error}")
        sys.exit(1)

    configure_logging(config)
    validator = create_default_validator(cwd, test_mode=config.test_mode)

    try:
        project_dir = validator.validate_directory(directory) if directory else validator.working_directory
    except ValidationError as e:
        _fail(e)

    ctx.obj = Context(directory=project_dir, validator=validator, config=config)


@app.command()
def init(
    ctx: typer.Context,
    route: Optional[str] = typer.Option(None, "--route", "-r", help="greenfield or brownfield"),
) -> None:
    """Initialize state tracking."""
    try:
        ctx.obj.store().initialize(route)
        console.print("[green]State initialized[/green]")
        _print_json(ctx.obj.store().status())
    except ValidationError as e:
        _fail(e)


@app.command("set-route")
def set_route(ctx: typer.Context, route: str = typer.Argument(..., help="greenfield or brownfield")) -> None:
    """Set the route (greenfield or brownfield)."""
    try:
        store = ctx.obj.store()
        store.set_route(route)
        console.print(f"[green]Route set to: {route}[/green]")
        _print_json(store.status())
    except ValidationError as e:
        _fail(e)


@app.command("get-route")
def get_route(ctx: typer.Context) -> None:
    """Show the current route."""
    try:
        route = ctx.obj.store().load().route
    except ValidationError as e:
        _fail(e)

    if route:
        console.print(f"Current route: {route}")
    else:
        console.print("[dim]Route not set. Run: stackshift set-route <greenfield|brownfield>[/dim]")


@app.command()
def start(ctx: typer.Context, step: str = typer.Argument(..., help="Step ID")) -> None:
    """Start a step."""
    try:
        store = ctx.obj.store()
        store.start_step(step)
        console.print(f"[green]Started step: {step}[/green]")
        _print_json(store.status())
    except ValidationError as e:
        _fail(e)


@app.command()
def complete(
    ctx: typer.Context,
    step: str = typer.Argument(..., help="Step ID"),
    detail: list[str] = typer.Option([], "--detail", "-d", help="Step detail as key=value"),
) -> None:
    """Complete a step and advance to the next one."""
    details = _parse_pairs(detail, "--detail")
    try:
        store = ctx.obj.store()
        store.complete_step(step, details)
        console.print(f"[green]Completed step: {step}[/green]")
        _print_json(store.status())
    except ValidationError as e:
        _fail(e)


@app.command()
def configure(
    ctx: typer.Context,
    options: list[str] = typer.Argument(..., help="Workflow options as key=value"),
) -> None:
    """Set workflow options (e.g. clarifications_strategy=defer)."""
    values = _parse_pairs(options, "option")
    try:
        state = ctx.obj.store().configure(values)
        _print_json(state.config.to_document())
    except ValidationError as e:
        _fail(e)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show current status."""
    try:
        _print_json(ctx.obj.store().status())
    except ValidationError as e:
        _fail(e)


@app.command()
def progress(ctx: typer.Context) -> None:
    """Show detailed progress."""
    try:
        summary = ctx.obj.store().progress_summary()
    except ValidationError as e:
        _fail(e)

    table = Table(title="Reverse Engineering Progress")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Output", style="dim")
    table.add_column("Started", style="dim")
    table.add_column("Completed", style="dim")

    for index, step in enumerate(summary, start=1):
        table.add_row(
            str(index),
            step["name"],
            STATUS_LABELS[step["status"]],
            step["output"],
            step["started"].strftime("%Y-%m-%d %H:%M") if step["started"] else "",
            step["completed"].strftime("%Y-%m-%d %H:%M") if step["completed"] else "",
        )

    console.print(table)


@app.command()
def reset(ctx: typer.Context) -> None:
    """Reset state (start over)."""
    try:
        removed = ctx.obj.store().reset()
    except ValidationError as e:
        _fail(e)

    if removed:
        console.print("State has been reset. Run \"stackshift init\" to start over.")
    else:
        console.print("No state file to reset.")


def format_session(session: BatchSession) -> Panel:
    """Render a batch session for display."""
    answers = session.answers
    lines = [
        f"Session ID: {session.session_id}",
        f"Batch Root: {session.batch_root_directory}",
        f"Started: {session.started_at.astimezone().strftime('%Y-%m-%d %H:%M')}",
        f"Total Repos: {session.total_repos}",
        f"Batch Size: {session.batch_size}",
        f"Processed: {len(session.processed_repos)}/{session.total_repos}",
        "",
        "Configuration:",
        f"  Route: {answers.route or 'not set'}",
        f"  Transmission: {answers.transmission or 'not set'}",
        f"  Spec Output: {answers.spec_output_location or 'current directory'}",
        f"  Build Location: {answers.build_location or 'greenfield/'}",
        f"  Target Stack: {answers.target_stack or 'not set'}",
        "",
        f"Session File: {Path(session.batch_root_directory) / BATCH_SESSION_FILENAME}",
    ]
    return Panel("\n".join(lines), title="📦 Active Batch Session", border_style="cyan")


@batch_app.command("create")
def batch_create(
    ctx: typer.Context,
    root: str = typer.Argument(".", help="Batch root directory"),
    total: int = typer.Option(..., "--total", "-t", help="Number of repositories"),
    batch_size: int = typer.Option(5, "--batch-size", "-b", help="Repositories per round"),
    answer: list[str] = typer.Option([], "--answer", "-a", help="Shared answer as key=value"),
) -> None:
    """Create a batch session."""
    answers = _parse_pairs(answer, "--answer")
    try:
        root_dir = ctx.obj.validator.validate_directory(root)
        session = ctx.obj.registry().create(root_dir, total, batch_size, answers)
    except ValidationError as e:
        _fail(e)

    console.print(format_session(session))


@batch_app.command("show")
def batch_show(ctx: typer.Context) -> None:
    """Show the batch session covering the project directory."""
    try:
        session = ctx.obj.registry().find(ctx.obj.directory)
    except ValidationError as e:
        _fail(e)

    if session is None:
        console.print("No active batch session")
    else:
        console.print(format_session(session))


@batch_app.command("progress")
def batch_progress(ctx: typer.Context) -> None:
    """Show batch progress."""
    try:
        console.print(ctx.obj.registry().progress(ctx.obj.directory))
    except ValidationError as e:
        _fail(e)


@batch_app.command("mark")
def batch_mark(ctx: typer.Context, repo: str = typer.Argument(..., help="Repository identifier")) -> None:
    """Mark a repository as processed."""
    try:
        registry = ctx.obj.registry()
        session = registry.mark_processed(repo, ctx.obj.directory)
    except ValidationError as e:
        _fail(e)

    if session is None:
        console.print("No active batch session")
    else:
        console.print(f"[green]Marked processed: {repo}[/green]")
        console.print(registry.progress(ctx.obj.directory))


@batch_app.command("clear")
def batch_clear(ctx: typer.Context) -> None:
    """Clear the batch session in the project directory."""
    try:
        removed = ctx.obj.registry().clear(ctx.obj.directory)
    except ValidationError as e:
        _fail(e)

    console.print("Batch session cleared." if removed else "No batch session in this directory.")


if __name__ == "__main__":
    app()
