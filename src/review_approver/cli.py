"""Command-line interface for review-approver.

Uses Typer for a modern, type-hinted CLI experience.
"""

from __future__ import annotations

import json
import signal
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from review_approver import __version__
from review_approver.config import ApproverSettings, apply_overrides, load_settings, save_settings
from review_approver.errors import ApproverError, ResolutionMismatchError, format_error_for_display
from review_approver.logging import LogConfig, LogLevel, configure_logging
from review_approver.models.review import ProductReview
from review_approver.moderation import approve_review, build_notifiers, build_reviewers
from review_approver.queue import PollingDriver, RedisQueueStore, WorkerPool

# Local .env provides REVIEW_APPROVER_* overrides
load_dotenv()

app = typer.Typer(
    name="review-approver",
    help="Moderate queued product reviews and notify their authors.",
    add_completion=False,
    rich_markup_mode="rich",
)

queue_app = typer.Typer(
    name="queue",
    help="Inspect and repair the review queues.",
)
app.add_typer(queue_app, name="queue")

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="JSON settings file"),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"review-approver version {__version__}")
        raise typer.Exit()


def _print_error(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(format_error_for_display(error))}")


def _load(config: Path | None, **overrides) -> ApproverSettings:
    """Load settings, applying non-None CLI overrides as `section__field`."""
    try:
        return apply_overrides(load_settings(config), **overrides)
    except ApproverError as e:
        _print_error(e)
        raise typer.Exit(1)


def _build_pool(settings: ApproverSettings) -> WorkerPool:
    store = RedisQueueStore(settings.redis)
    return WorkerPool(
        store,
        reviewers=build_reviewers(settings.reviewers),
        notifiers=build_notifiers(settings.notifiers),
        max_attempts=settings.queue.max_attempts,
    )


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Review Approver - asynchronous moderation of product reviews.

    Reviews wait on a [bold]request[/bold] list, are claimed onto a
    [bold]processing[/bold] list, checked against content policies and either
    accepted, rejected or sent back for another attempt.
    """
    pass


@app.command()
def run(
    config: ConfigOption = None,
    poll_seconds: Annotated[
        Optional[float], typer.Option("--poll-seconds", help="Seconds between polls")
    ] = None,
    max_attempts: Annotated[
        Optional[int], typer.Option("--max-attempts", help="Attempts before a denied review is dropped")
    ] = None,
    request_queue: Annotated[
        Optional[str], typer.Option("--request-queue", help="List new and retried jobs wait on")
    ] = None,
    processing_queue: Annotated[
        Optional[str], typer.Option("--processing-queue", help="List claimed jobs sit on")
    ] = None,
    redis_host: Annotated[Optional[str], typer.Option("--redis-host")] = None,
    redis_port: Annotated[Optional[int], typer.Option("--redis-port")] = None,
    log_file: Annotated[
        Optional[Path], typer.Option("--log-file", help="Also write logs to this file")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log every job outcome")] = False,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Log as JSON lines")] = False,
    max_ticks: Annotated[
        Optional[int], typer.Option("--max-ticks", help="Stop after this many polls")
    ] = None,
) -> None:
    """Poll the request queue and moderate reviews until interrupted."""
    configure_logging(
        LogConfig(
            level=LogLevel.VERBOSE if verbose else LogLevel.NORMAL,
            log_file=log_file,
            json_format=json_logs,
        )
    )
    settings = _load(
        config,
        queue__poll_seconds=poll_seconds,
        queue__max_attempts=max_attempts,
        queue__request=request_queue,
        queue__processing=processing_queue,
        redis__host=redis_host,
        redis__port=redis_port,
    )

    try:
        pool = _build_pool(settings)
    except ApproverError as e:
        _print_error(e)
        raise typer.Exit(1)

    # Fail fast when the broker is unreachable rather than on every tick
    try:
        pool.store.ping()
    except ApproverError as e:
        pool.store.close()
        _print_error(e)
        raise typer.Exit(1)

    driver = PollingDriver(pool, settings.queue)

    def _shutdown(signum, frame) -> None:
        console.print("[yellow]Stopping after in-flight reviews finish...[/yellow]")
        driver.stop()

    previous = {sig: signal.signal(sig, _shutdown) for sig in (signal.SIGINT, signal.SIGTERM)}

    console.print(
        f"[green]Moderating[/green] {settings.queue.request} -> {settings.queue.processing} "
        f"every {settings.queue.poll_seconds}s (max attempts {settings.queue.max_attempts})"
    )
    try:
        driver.run(max_ticks=max_ticks)
    finally:
        pool.store.close()
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    console.print(
        f"Processed {driver.processed} review(s) in {driver.ticks} poll(s), "
        f"{driver.resolved} resolved, {driver.failures} failure(s)"
    )


@app.command("process-once")
def process_once(config: ConfigOption = None) -> None:
    """Claim and moderate a single review."""
    settings = _load(config)
    pool = _build_pool(settings)

    try:
        outcome = pool.process_next(settings.queue.request, settings.queue.processing)
    except ResolutionMismatchError as e:
        _print_error(e)
        if e.lost:
            console.print("[yellow]The job was already gone; another worker may have resolved it.[/yellow]")
        elif e.duplicated:
            console.print("[yellow]Several copies were removed; the job may have been processed twice.[/yellow]")
        raise typer.Exit(1)
    except ApproverError as e:
        _print_error(e)
        raise typer.Exit(1)
    finally:
        pool.store.close()

    if outcome is None:
        console.print("[dim]Request queue is empty.[/dim]")
        return

    review = outcome.job.review
    fate = "final" if outcome.terminal else "will retry"
    console.print(
        Panel(
            f"[cyan]Product:[/cyan] {review.product_id}\n"
            f"[cyan]Reviewer:[/cyan] {escape(review.reviewer_name)} <{escape(review.email)}>\n"
            f"[cyan]Attempts:[/cyan] {outcome.job.attempts}\n"
            f"[cyan]Decision:[/cyan] {outcome.decision.value} ({fate})",
            title="Moderation Outcome",
        )
    )
    for err in outcome.notification_errors:
        console.print(f"[yellow]Notification failed:[/yellow] {escape(format_error_for_display(err))}")


@app.command()
def submit(
    review_file: Annotated[Path, typer.Argument(help="JSON file with the review")],
    config: ConfigOption = None,
) -> None:
    """Validate a review and queue it for moderation."""
    try:
        with open(review_file, encoding="utf-8") as f:
            data = json.load(f)
        review = ProductReview.model_validate(data)
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] File not found: {review_file}")
        raise typer.Exit(1)
    except ValueError as e:
        # Covers both malformed JSON and pydantic type errors
        console.print(f"[red]Error:[/red] Could not read review: {escape(str(e))}")
        raise typer.Exit(1)

    errors = review.validate_fields()
    if errors:
        console.print("[red]Review is invalid:[/red]")
        for error in errors:
            console.print(f"  - {error}")
        raise typer.Exit(1)

    settings = _load(config)
    pool = _build_pool(settings)
    try:
        length = pool.push_review(review.sanitized(), settings.queue.request)
    except ApproverError as e:
        _print_error(e)
        raise typer.Exit(1)
    finally:
        pool.store.close()

    console.print(f"[green]Queued[/green] review for product {review.product_id} ({length} waiting)")


@app.command()
def check(
    text: Annotated[str, typer.Argument(help="Review text to check")],
    config: ConfigOption = None,
) -> None:
    """Run review text through the content policies without queueing it."""
    settings = _load(config)
    reviewers = build_reviewers(settings.reviewers)
    approved = approve_review(ProductReview(text=text).sanitized(), reviewers)

    if approved:
        console.print("[green]Approved[/green]")
    else:
        console.print("[red]Denied[/red]")
        raise typer.Exit(1)


@app.command("save-config")
def save_config(
    output: Annotated[Path, typer.Argument(help="Where to write the JSON settings")],
    config: ConfigOption = None,
) -> None:
    """Write the effective settings (file plus environment) to a JSON file."""
    settings = _load(config)
    path = save_settings(output, settings)
    console.print(f"[green]Saved[/green] settings to {path}")


@queue_app.command("status")
def queue_status(config: ConfigOption = None) -> None:
    """Show how many jobs are on each list."""
    settings = _load(config)
    pool = _build_pool(settings)
    names = settings.queue

    try:
        stats = pool.stats(names.request, names.processing, names.dead_letter)
    except ApproverError as e:
        _print_error(e)
        raise typer.Exit(1)
    finally:
        pool.store.close()

    table = Table(title="Review Queues")
    table.add_column("Queue", style="cyan")
    table.add_column("List", style="dim")
    table.add_column("Jobs", style="green", justify="right")
    table.add_row("request", names.request, str(stats.request))
    table.add_row("processing", names.processing, str(stats.processing))
    table.add_row("dead letter", names.dead_letter, str(stats.dead_letter))
    console.print(table)


@queue_app.command("sweep")
def queue_sweep(config: ConfigOption = None) -> None:
    """Move malformed jobs off the processing list into the dead-letter list."""
    settings = _load(config)
    pool = _build_pool(settings)

    try:
        moved = pool.sweep_stranded(settings.queue.processing, settings.queue.dead_letter)
    except ApproverError as e:
        _print_error(e)
        raise typer.Exit(1)
    finally:
        pool.store.close()

    if moved:
        console.print(f"[yellow]Moved {moved} malformed job(s) to {settings.queue.dead_letter}.[/yellow]")
    else:
        console.print("[green]No stranded jobs found.[/green]")
