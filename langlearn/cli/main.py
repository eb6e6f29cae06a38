"""
LangLearn CLI - Operate the offline-first learning engine from a terminal.

Usage:
    langlearn status                 # Local queue and cache statistics
    langlearn sync                   # One sync pass over every collection
    langlearn sync -c user_progress  # One pass over a single collection
    langlearn watch                  # Sync automatically whenever the remote is reachable
    langlearn recommend USER_ID      # Generate and store module recommendations
    langlearn quiz USER_ID --seed 7  # Compose an adaptive quiz
"""

from __future__ import annotations

import asyncio
import random
import sys
from typing import Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings
from langlearn.adaptive import (
    AdaptiveLearningEngine,
    PerformanceAnalyzer,
    RecommendationGenerator,
    RecommendationPersistence,
)
from langlearn.db import LocalDatabase
from langlearn.offline import LocalStore
from langlearn.quiz import AdaptiveQuizComposer
from langlearn.sync import (
    HealthCheckConnectivityMonitor,
    RemoteConfig,
    RemoteStoreClient,
    RetryPolicy,
    SyncEngine,
    SyncStats,
)

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="langlearn",
    help="Offline-first language learning engine",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def _open_store(settings: Settings) -> LocalStore:
    return LocalStore(LocalDatabase(settings.database_path))


def _remote(settings: Settings) -> RemoteStoreClient:
    return RemoteStoreClient(RemoteConfig(**settings.get_remote_config()))


def _sync_engine(settings: Settings, store: LocalStore, remote: RemoteStoreClient) -> SyncEngine:
    sync_config = settings.get_sync_config()
    return SyncEngine(
        store,
        remote,
        collections=sync_config["collections"],
        retry_policy=RetryPolicy(**sync_config["retry"]),
    )


def _learning_engine(
    settings: Settings, remote: RemoteStoreClient, seed: int | None = None
) -> AdaptiveLearningEngine:
    return AdaptiveLearningEngine(
        remote,
        analyzer=PerformanceAnalyzer(**settings.get_analyzer_config()),
        recommender=RecommendationGenerator(**settings.get_recommender_config()),
        composer=AdaptiveQuizComposer(rng=random.Random(seed), **settings.get_quiz_config()),
        persistence=RecommendationPersistence(settings.recommendation_persistence),
        default_difficulty=settings.quiz_default_difficulty,
    )


def _print_sync_results(results: dict[str, SyncStats]) -> None:
    table = Table(title="Sync Results")
    table.add_column("Collection", style="cyan")
    table.add_column("Synced", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Deferred", justify="right", style="yellow")
    table.add_column("Duration", justify="right")

    for collection, stats in results.items():
        if stats.skipped_in_flight:
            table.add_row(collection, "-", "-", "-", "[dim]in flight[/dim]")
            continue
        table.add_row(
            collection,
            str(stats.synced),
            str(stats.failed),
            str(stats.deferred),
            f"{stats.duration_seconds():.2f}s",
        )
    console.print(table)

    for stats in results.values():
        for detail in stats.error_details[:5]:
            console.print(f"  [red]•[/red] {detail}")


# =============================================================================
# Commands
# =============================================================================


@app.command()
def status() -> None:
    """Show local queue and cache statistics."""
    settings = get_settings()
    store = _open_store(settings)
    try:
        stats = store.get_stats()
    finally:
        store.database.close()

    table = Table(title="LangLearn Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database", str(settings.database_path))
    table.add_row("Remote", settings.remote_base_url)
    table.add_row("Pending Mutations", str(stats.get("pending_total", 0)))
    for collection, count in sorted(stats.get("pending_by_collection", {}).items()):
        table.add_row(f"  {collection}", str(count))
    table.add_row("Total Mutations", str(stats.get("mutations_total", 0)))
    table.add_row("Unsynced Progress", str(stats.get("progress_unsynced", 0)))
    table.add_row("Cached Lessons", str(stats.get("cached_lessons", 0)))

    console.print(table)


@app.command()
def sync(
    collection: Annotated[
        str | None, typer.Option("--collection", "-c", help="Sync a single collection")
    ] = None,
) -> None:
    """
    Run one sync pass.

    Pending mutations are applied to the remote store in the order they
    were recorded; failures stay queued for the next pass.
    """
    settings = get_settings()
    results = asyncio.run(_run_sync(settings, collection))
    _print_sync_results(results)

    if any(stats.failed for stats in results.values()):
        raise typer.Exit(1)


async def _run_sync(settings: Settings, collection: str | None) -> dict[str, SyncStats]:
    store = _open_store(settings)
    try:
        async with _remote(settings) as remote:
            engine = _sync_engine(settings, store, remote)
            if collection:
                stats = await engine.sync_collection(collection)
                return {collection: stats}
            return await engine.sync_all()
    finally:
        store.database.close()


@app.command()
def watch() -> None:
    """Sync automatically whenever the remote store becomes reachable (Ctrl+C to stop)."""
    settings = get_settings()
    console.print(
        Panel(
            f"Watching [cyan]{settings.remote_base_url}[/cyan] every "
            f"{settings.connectivity_poll_interval_seconds:g}s",
            title="LangLearn Watch",
        )
    )
    try:
        asyncio.run(_run_watch(settings))
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")


async def _run_watch(settings: Settings) -> None:
    store = _open_store(settings)
    try:
        async with _remote(settings) as remote:
            engine = _sync_engine(settings, store, remote)
            monitor = HealthCheckConnectivityMonitor(
                remote.health_check,
                poll_interval=settings.connectivity_poll_interval_seconds,
            )
            engine.attach(monitor)
            monitor.start()
            try:
                while True:
                    await asyncio.sleep(settings.connectivity_poll_interval_seconds)
                    # A pass on each poll while online picks up records whose retry came due
                    if monitor.is_online and store.count_unsynced() > 0:
                        engine.trigger()
            finally:
                engine.detach()
                await monitor.stop()
                await engine.wait_idle()
    finally:
        store.database.close()


@app.command()
def recommend(
    user_id: Annotated[str, typer.Argument(help="Learner id")],
) -> None:
    """Generate, store and show module recommendations for a learner."""
    settings = get_settings()
    recommendations = asyncio.run(_run_recommend(settings, user_id))

    if not recommendations:
        console.print("[yellow]No recommendations for this learner.[/yellow]")
        return

    table = Table(title=f"Recommendations for {user_id}")
    table.add_column("Module", style="cyan")
    table.add_column("Confidence", justify="right", style="green")
    table.add_column("Matched")

    for rec in recommendations:
        table.add_row(
            rec.module_id,
            f"{rec.confidence:.0%}",
            ", ".join(rec.reason.get("matched_keywords", [])),
        )
    console.print(table)


async def _run_recommend(settings: Settings, user_id: str):
    async with _remote(settings) as remote:
        return await _learning_engine(settings, remote).recommend(user_id)


@app.command()
def quiz(
    user_id: Annotated[str, typer.Argument(help="Learner id")],
    seed: Annotated[
        int | None, typer.Option("--seed", help="Seed for reproducible distractors")
    ] = None,
) -> None:
    """Compose an adaptive quiz for a learner."""
    settings = get_settings()
    composed = asyncio.run(_run_quiz(settings, user_id, seed))

    if not composed.questions:
        console.print(
            f"[yellow]No templates near difficulty {composed.difficulty:.2f}.[/yellow]"
        )
        return

    console.print(
        Panel(
            f"Difficulty: {composed.difficulty:.2f}\n"
            f"Focus: {', '.join(composed.focus_areas) or '-'}",
            title=f"Quiz for {user_id}",
        )
    )
    for number, question in enumerate(composed.questions, 1):
        console.print(f"\n[bold]{number}. {question.question}[/bold]")
        for option in question.options:
            console.print(f"   - {option}")
        if question.hint:
            console.print(f"   [dim]Hint: {question.hint}[/dim]")


async def _run_quiz(settings: Settings, user_id: str, seed: int | None):
    async with _remote(settings) as remote:
        return await _learning_engine(settings, remote, seed).compose_quiz(user_id)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
