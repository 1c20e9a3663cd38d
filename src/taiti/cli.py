"""Command-line interface for TAITI."""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import structlog
import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from taiti.classification import BoardRefresher, BoardSnapshot, TaskClassifier
from taiti.conflicts import ConflictScorer
from taiti.errors import ScenarioWriteInconsistentError, TaitiError
from taiti.extraction import FeatureFileLocator
from taiti.models import ScenarioSet, TaitiSettings, Task
from taiti.progress import ProgressReporter
from taiti.sync import ScenarioSync
from taiti.tracker import TrackerClient, TrackerError, TrelloClient

app = typer.Typer(
    name="taiti",
    help="Task/scenario synchronization and conflict-risk checks for Trello boards",
    add_completion=False,
)
scenarios_app = typer.Typer(help="Show, set or delete the scenarios attached to a task")
app.add_typer(scenarios_app, name="scenarios")
console = Console()

CLI_ERRORS = (TaitiError, TrackerError, ValueError)


def _configure_logging(level: str) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(numeric))


def _load_settings() -> TaitiSettings:
    settings = TaitiSettings()
    _configure_logging(settings.log_level)
    return settings


def _connect(settings: TaitiSettings) -> Tuple[TrackerClient, str]:
    """Create the tracker client and return it with the board id."""
    if not settings.is_trello_configured:
        raise ValueError(
            "Trello is not configured. Set TAITI_TRELLO_API_KEY, TAITI_TRELLO_TOKEN and TAITI_TRELLO_BOARD"
        )
    client = TrelloClient(
        settings.trello_api_key,
        settings.trello_token,
        settings.trello_board,
        api_url=settings.trello_api_url,
        timeout=settings.request_timeout,
    )
    return client, client.board_id


def _locator(repo_path: Path, settings: TaitiSettings) -> Optional[FeatureFileLocator]:
    try:
        return FeatureFileLocator(repo_path, settings.scenarios_folder)
    except ValueError:
        return None


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


class RichProgressReporter(ProgressReporter):
    """Forwards pass progress to a rich progress bar."""

    def __init__(self, progress: Progress, task_id: TaskID) -> None:
        super().__init__()
        self._progress = progress
        self._task_id = task_id

    def update(self, fraction: float, label: str = "") -> None:
        super().update(fraction, label)
        self._progress.update(self._task_id, completed=self.fraction * 100, description=label or "Working...")


def _task_table(title: str, tasks: List[Task], with_rate: bool = False) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("List", style="blue")
    table.add_column("Owner", style="green")
    if with_rate:
        table.add_column("Conflict", justify="right", style="yellow")
        table.add_column("Conflicting tasks", style="green")

    for task in tasks:
        row = [task.id, task.name[:60], task.list_name, task.owner_name]
        if with_rate:
            row.append(f"{task.conflict_rate:.0f}%")
            row.append(", ".join(ref.name for ref in task.conflicting_tasks))
        table.add_row(*row)
    return table


def _print_snapshot(snapshot: BoardSnapshot) -> None:
    classification = snapshot.classification
    mine = ConflictScorer.rank_tasks(classification.mine_unstarted)

    console.print(_task_table("My unstarted tasks", mine, with_rate=True))
    console.print(_task_table("Others' pending tasks", list(classification.others_pending)))
    console.print(_task_table("Tasks without scenarios", list(classification.no_scenario)))

    for task_id, message in classification.errors.items():
        console.print(f"[yellow]⚠ {task_id}:[/yellow] {message}")

    failed = {task_id: score.failed_pairs for task_id, score in snapshot.scores.items() if score.failed_pairs}
    for task_id, pairs in failed.items():
        console.print(f"[yellow]⚠ Deep analysis failed for {task_id} against {', '.join(pairs)}[/yellow]")


@app.command()
def status() -> None:
    """Check configuration and tracker connectivity."""
    try:
        settings = _load_settings()

        console.print("\n[bold]TAITI configuration[/bold]")
        console.print(f"[cyan]Board:[/cyan] {settings.trello_board or 'not set'}")
        console.print(f"[cyan]Unstarted lists:[/cyan] {', '.join(settings.unstarted_lists)}")
        console.print(f"[cyan]Started lists:[/cyan] {', '.join(settings.started_lists)}")
        console.print(f"[cyan]Scenarios folder:[/cyan] {settings.scenarios_folder}")

        client, board_id = _connect(settings)
        if isinstance(client, TrelloClient):
            code = client.check_board()
            if code == 401:
                raise ValueError("Trello rejected the API key or token")
            if code == 404:
                raise ValueError(f"Board {board_id} not found or not visible to this token")

        user_id = client.get_authenticated_user_id()
        console.print(f"\n[green]✓ Connected to board {board_id} as {user_id}[/green]")

    except CLI_ERRORS as e:
        _fail(e)


@app.command()
def refresh(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Member id to classify for"),
) -> None:
    """Classify the board and score my unstarted tasks."""
    try:
        settings = _load_settings()
        client, board_id = _connect(settings)
        classifier = TaskClassifier(client, ScenarioSync(client), settings.bucket_rules())

        with BoardRefresher(classifier, ConflictScorer(), current_user_id=user) as refresher:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                console=console,
            ) as progress:
                task_id = progress.add_task("Refreshing board...", total=100)
                reporter = RichProgressReporter(progress, task_id)
                try:
                    snapshot = refresher.refresh(board_id, reporter).result()
                except KeyboardInterrupt:
                    reporter.token.cancel()
                    raise

        _print_snapshot(snapshot)

    except CLI_ERRORS as e:
        _fail(e)


@app.command()
def conflicts(
    task_id: str = typer.Argument(..., help="Id of the task to check"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Member id to classify for"),
) -> None:
    """Rank others' pending tasks by their conflict with one task."""
    try:
        settings = _load_settings()
        client, board_id = _connect(settings)
        classifier = TaskClassifier(client, ScenarioSync(client), settings.bucket_rules())
        snapshot = classifier.classify(board_id, user)

        target = snapshot.find(task_id)
        if target is None:
            raise ValueError(f"Task {task_id} is not pending on board {board_id}")
        if not target.has_scenarios:
            console.print(f"[yellow]Task {task_id} has no scenarios selected.[/yellow]")
            return

        ranked = ConflictScorer().rank(target, snapshot.others_pending)
        if not ranked:
            console.print(f"[green]✓ No conflicts for {target.name}[/green]")
            return

        table = Table(title=f"Conflicts of {target.name}", show_header=True, header_style="bold magenta")
        table.add_column("Rate", justify="right", style="yellow")
        table.add_column("Id", style="cyan")
        table.add_column("Task", style="white")
        table.add_column("Shared scenarios", justify="right", style="green")
        for entry in ranked:
            table.add_row(f"{entry.rate}%", entry.task.id, entry.task.name, str(entry.shared_references))
        console.print(table)

    except CLI_ERRORS as e:
        _fail(e)


@app.command()
def features(
    repo_path: Path = typer.Option(Path("."), "--repo", "-r", help="Path inside the Git repository"),
) -> None:
    """List feature files and their scenarios."""
    try:
        settings = _load_settings()
        locator = FeatureFileLocator(repo_path, settings.scenarios_folder)

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("File", style="cyan")
        table.add_column("Line", justify="right", style="yellow")
        table.add_column("Scenario", style="white")
        for path in locator.feature_files():
            for line in locator.scenario_lines(path):
                table.add_row(path, str(line), locator.scenario_title(path, line))
        console.print(table)

    except CLI_ERRORS as e:
        _fail(e)


@scenarios_app.command("show")
def scenarios_show(
    task_id: str = typer.Argument(..., help="Id of the task"),
    repo_path: Path = typer.Option(Path("."), "--repo", "-r", help="Path inside the Git repository"),
) -> None:
    """Show the scenarios attached to a task."""
    try:
        settings = _load_settings()
        client, _ = _connect(settings)
        scenario_set = ScenarioSync(client).read(task_id)
        if scenario_set is None:
            console.print(f"[yellow]Task {task_id} has no scenarios.[/yellow]")
            return

        locator = _locator(repo_path, settings)
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("File", style="cyan")
        table.add_column("Line", justify="right", style="yellow")
        table.add_column("Scenario", style="white")
        for reference in scenario_set.references():
            title = locator.scenario_title(reference.file_path, reference.line) if locator else ""
            table.add_row(reference.file_path, str(reference.line), title)
        console.print(table)

    except CLI_ERRORS as e:
        _fail(e)


@scenarios_app.command("set")
def scenarios_set(
    task_id: str = typer.Argument(..., help="Id of the task"),
    references: List[str] = typer.Argument(..., help="Scenarios as file:line"),
    repo_path: Path = typer.Option(Path("."), "--repo", "-r", help="Path inside the Git repository"),
) -> None:
    """Replace the scenarios attached to a task."""
    try:
        settings = _load_settings()
        locator = FeatureFileLocator(repo_path, settings.scenarios_folder)
        scenario_set: ScenarioSet = locator.build_scenario_set(references)

        client, _ = _connect(settings)
        ScenarioSync(client).write(task_id, scenario_set)
        console.print(f"[bold green]✓[/bold green] Saved {len(scenario_set)} scenario(s) to {task_id}")

    except ScenarioWriteInconsistentError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        console.print(f"[yellow]Remove attachment {e.attachment_id} from the task by hand.[/yellow]")
        raise typer.Exit(1)
    except CLI_ERRORS as e:
        _fail(e)


@scenarios_app.command("delete")
def scenarios_delete(
    task_id: str = typer.Argument(..., help="Id of the task"),
) -> None:
    """Delete the scenarios attached to a task."""
    try:
        settings = _load_settings()
        client, _ = _connect(settings)
        report = ScenarioSync(client).delete(task_id)

        for failure in report.failures:
            console.print(f"[yellow]⚠ {failure}[/yellow]")
        removed = len(report.deleted_comments) + len(report.deleted_attachments)
        console.print(f"[bold green]✓[/bold green] Removed {removed} scenario object(s) from {task_id}")

    except CLI_ERRORS as e:
        _fail(e)


@app.command()
def version() -> None:
    """Show version information."""
    from taiti import __version__

    console.print(f"[bold]TAITI[/bold] version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
