"""Command-line interface for gitmon."""

import time
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table

from gitmon.errors import DeliveryFailed, GitmonError
from gitmon.incremental import MonitorEngine, WatermarkStore
from gitmon.logging_setup import configure_logging
from gitmon.models import MonitorConfig, RunReport
from gitmon.notify import Mailer, ReportRenderer
from gitmon.settings import Settings, load_config

app = typer.Typer(
    name="gitmon",
    help="Monitor git repositories and e-mail a report of new commits",
    add_completion=False,
)
console = Console()
logger = structlog.get_logger(__name__)

ConfigOption = typer.Option(None, "--config", "-c", help="Path to config.toml")


def _load(config_path: Optional[Path], verbose: bool = False) -> MonitorConfig:
    settings = Settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_json)
    try:
        return load_config(config_path, settings)
    except GitmonError as e:
        console.print(f"[bold red]Error:[/bold red] {e.reason}")
        raise typer.Exit(1)


def print_summary(report: RunReport) -> None:
    """Print one row per repository."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="cyan")
    table.add_column("Status")
    table.add_column("Branches", justify="right", style="yellow")
    table.add_column("Commits", justify="right", style="yellow")

    for entry in report.entries:
        if entry.failure is not None:
            table.add_row(
                entry.name,
                f"[red]{entry.failure.kind.value}[/red]: {entry.failure.reason}",
                "-",
                "-",
            )
        elif entry.has_changes:
            table.add_row(
                entry.name,
                "[green]changed[/green]",
                str(len(entry.changes.branches)),
                str(entry.changes.commit_count),
            )
        else:
            table.add_row(entry.name, "[dim]up to date[/dim]", "0", "0")

    console.print(table)


def run_once(config: MonitorConfig, output: Optional[Path] = None) -> bool:
    """Check all repositories, then render and deliver the report.

    Returns:
        False on any run-level failure, True otherwise
    """
    engine = MonitorEngine.from_config(config)
    try:
        report = engine.run(config.repos)
    except GitmonError as e:
        console.print(f"[bold red]Error ({e.kind.value}):[/bold red] {e.reason}")
        return False

    print_summary(report)

    if not report.is_noteworthy and not config.send_empty:
        console.print("[green]No new commits found.[/green]")
        return True

    # Watermarks are already committed; delivery problems do not roll them back
    try:
        html = ReportRenderer(config.template_path).render(report)
        if output is not None:
            try:
                output.parent.mkdir(parents=True, exist_ok=True)
                output.write_text(html, encoding="utf-8")
            except OSError as e:
                raise DeliveryFailed(f"Failed to write report to {output}: {e}") from e
            console.print(f"[bold green]✓[/bold green] Report written to {output}")
        else:
            if config.mail is None:
                raise DeliveryFailed("No mail settings configured; add from/to or use --output")
            Mailer(config.mail).send(html)
            console.print(f"[bold green]✓[/bold green] Report sent to {config.mail.recipient}")
    except GitmonError as e:
        console.print(f"[bold red]Error ({e.kind.value}):[/bold red] {e.reason}")
        return False

    return True


@app.command()
def run(
    config_path: Optional[Path] = ConfigOption,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the HTML report here instead of mailing it"),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", min=1, help="Repeat every N seconds until interrupted"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Fetch all configured repositories and report new commits."""
    config = _load(config_path, verbose)

    if interval is None:
        if not run_once(config, output):
            raise typer.Exit(1)
        return

    console.print(f"[bold blue]Checking every {interval:g} seconds, Ctrl-C to stop[/bold blue]")
    try:
        while True:
            if not run_once(config, output):
                logger.warning("run_failed")
            time.sleep(interval)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


@app.command()
def status(
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Show the stored watermark of every configured repository."""
    config = _load(config_path)
    store = WatermarkStore(config.resolved_state_dir)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="cyan")
    table.add_column("Branch", style="green")
    table.add_column("Last seen", style="white", width=10)
    table.add_column("Checked at", style="blue")

    try:
        for repo in config.repos:
            watermark = store.load(repo.repository_id)
            if watermark.is_empty:
                table.add_row(repo.display_name, "[dim]never checked[/dim]", "", "")
                continue
            checked_at = (
                watermark.last_checked_at.strftime("%Y-%m-%d %H:%M")
                if watermark.last_checked_at
                else ""
            )
            for branch, sha in sorted(watermark.branches.items()):
                table.add_row(repo.display_name, branch, sha[:8], checked_at)
    except GitmonError as e:
        console.print(f"[bold red]Error:[/bold red] {e.reason}")
        raise typer.Exit(1)

    console.print(f"[bold]State:[/bold] {store.state_file}")
    console.print(table)


@app.command()
def forget(
    repository: str = typer.Argument(..., help="Repository name or path"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Drop the stored watermark of a repository.

    The next run reports all of its branches as new.
    """
    config = _load(config_path)
    store = WatermarkStore(config.resolved_state_dir)

    repository_id = str(Path(repository).expanduser().absolute())
    for repo in config.repos:
        if repository in (repo.display_name, repo.url) or repo.repository_id == repository_id:
            repository_id = repo.repository_id
            break

    try:
        deleted = store.delete(repository_id)
    except GitmonError as e:
        console.print(f"[bold red]Error:[/bold red] {e.reason}")
        raise typer.Exit(1)

    if not deleted:
        console.print(f"[yellow]No watermark stored for {repository}[/yellow]")
        raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] Forgot {repository}")


@app.command()
def version() -> None:
    """Show version information."""
    from gitmon import __version__

    console.print(f"[bold]gitmon[/bold] version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
