import asyncio
from pathlib import Path

import click
import duckdb
from rich.console import Console
from rich.table import Table

from sfind.core.config import DATABASE_URL_ENV, IndexerConfig
from sfind.core.constants import DEFAULT_WINDOW_SIZE
from sfind.core.errors import IndexerError
from sfind.log import configure_logging

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class FatalError(click.ClickException):
    """Fatal indexer error reported with its own exit code."""

    def __init__(self, exc: IndexerError) -> None:
        super().__init__(f"{type(exc).__name__}: {exc}")
        self.exit_code = exc.exit_code


@click.group()
def cli() -> None:
    """sfind: resumable substreams block indexer."""


@cli.command("run")
@click.option("--endpoint-url", required=True, help="URL of the substreams endpoint")
@click.option(
    "--package-file",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Package descriptor (JSON) declaring the module graph",
)
@click.option("--module-name", required=True, help="Output module to subscribe to")
@click.option("--skip-migrations", is_flag=True, default=False, help="Don't run any migrations")
@click.option("--window-size", type=click.IntRange(min=1), default=DEFAULT_WINDOW_SIZE, show_default=True, help="Blocks per stream request")
@click.option(
    "--resume-from",
    type=click.Choice(["height", "cursor"]),
    default="height",
    show_default=True,
    help="Seed the stream from the stored height or the stored cursor",
)
@click.option("--pipeline-name", default=None, help="Progress marker key (defaults to the module name)")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default="INFO", show_default=True)
def run_cmd(
    endpoint_url: str,
    package_file: Path,
    module_name: str,
    skip_migrations: bool,
    window_size: int,
    resume_from: str,
    pipeline_name: str | None,
    log_level: str,
) -> None:
    """Stream module output into the database, resuming from the last committed block."""
    configure_logging(log_level)

    from sfind.api.run_indexer import run_indexer

    try:
        config = IndexerConfig.from_env(
            endpoint_url=endpoint_url,
            package_file=package_file,
            module_name=module_name,
            skip_migrations=skip_migrations,
            window_size=window_size,
            resume_mode=resume_from,
            pipeline_name=pipeline_name,
        )
        result = asyncio.run(run_indexer(config))
    except IndexerError as e:
        raise FatalError(e) from e

    stats = result.stats
    console.print(
        f"[bold]{result.reason}[/]: {stats.blocks_processed} blocks • {stats.rows_written} rows "
        f"• windows={stats.windows} refills={stats.refills} "
        f"• marker={result.marker.last_height if result.marker else 'none'}"
    )


@cli.command("migrate")
@click.option("--database-url", envvar=DATABASE_URL_ENV, required=True, help=f"Store URL (default: ${DATABASE_URL_ENV})")
def migrate_cmd(database_url: str) -> None:
    """Apply pending schema migrations."""
    configure_logging("INFO")

    from sfind.storage.database import connect
    from sfind.storage.migrations import run_migrations

    try:
        con = connect(database_url)
        try:
            applied = run_migrations(con)
        finally:
            con.close()
    except IndexerError as e:
        raise FatalError(e) from e
    console.print(f"[bold]migrations applied[/]: {', '.join(f'V{v:03d}' for v in applied) or 'none'}")


@cli.command("status")
@click.option("--database-url", envvar=DATABASE_URL_ENV, required=True, help=f"Store URL (default: ${DATABASE_URL_ENV})")
def status_cmd(database_url: str) -> None:
    """Show progress markers and row counts, plus the last failed block per pipeline."""
    from sfind.storage.database import connect
    from sfind.storage.queries import fetch_last_failures, fetch_progress, fetch_table_counts

    try:
        con = connect(database_url)
    except IndexerError as e:
        raise FatalError(e) from e
    try:
        progress = fetch_progress(con)
        counts = fetch_table_counts(con)
        failures = fetch_last_failures(con)
    except duckdb.CatalogException:
        console.print("[yellow]schema not initialised[/]: run `sfind migrate` first")
        return
    finally:
        con.close()

    table = Table(title="progress markers")
    for col in ("pipeline", "last height", "cursor", "updated at"):
        table.add_column(col)
    for row in progress.itertuples(index=False):
        table.add_row(row.pipeline_name, str(row.last_height), row.cursor if isinstance(row.cursor, str) else "-", str(row.updated_at))
    console.print(table)
    console.print(
        f"[bold]rows[/]: blocks={counts['blocks']}  transactions={counts['transactions']}  events={counts['events']}"
    )

    if failures.empty:
        return
    failed = Table(title="last failed block")
    for col in ("pipeline", "block", "details", "at"):
        failed.add_column(col)
    for row in failures.itertuples(index=False):
        failed.add_row(row.pipeline_name, str(row.block_height), row.details or "-", str(row.updated_at))
    console.print(failed)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
