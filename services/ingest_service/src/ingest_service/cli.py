from __future__ import annotations

import logging
import signal
import threading
import uuid
from collections.abc import Callable

import typer

from laurels_core.db.queries import display_title
from laurels_core.db.session import SessionLocal, session_scope
from ingest_service.errors import MissingConfigurationError
from ingest_service.fetch.http_client import RateLimitedHttpClient
from ingest_service.metadata.http_cached import CachedHttpClient
from ingest_service.metadata.resolver import MetadataResolver
from ingest_service.metadata.tmdb import TmdbClient
from ingest_service.orchestrator import RunOptions, RunOrchestrator
from ingest_service.reconcile import BackfillResult, ReconciliationEngine
from ingest_service.reference_cache import MasterReferenceCache
from ingest_service.settings import settings as ingest_settings
from ingest_service.sources import SOURCES, AwardSource, get_source

app = typer.Typer(help="Award ceremony ingestion (fetch, extract, resolve, reconcile).")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def _source_or_exit(key: str) -> AwardSource:
    try:
        return get_source(key)
    except KeyError as e:
        typer.echo(str(e.args[0]), err=True)
        raise typer.Exit(2)


def _build_resolver(http: CachedHttpClient) -> MetadataResolver:
    client = TmdbClient(http=http, api_key=ingest_settings.tmdb_api_key, base_url=ingest_settings.tmdb_base_url)
    return MetadataResolver(
        client=client,
        image_base_url=ingest_settings.tmdb_image_base_url,
        default_locale=_locale(ingest_settings.default_language),
        secondary_language=ingest_settings.secondary_language,
        max_artwork=ingest_settings.max_artwork,
    )


def _metadata_http() -> CachedHttpClient:
    return CachedHttpClient(
        cache_dir=ingest_settings.metadata_cache_dir,
        user_agent=ingest_settings.user_agent,
        timeout_s=ingest_settings.request_timeout_s,
        delay_s=ingest_settings.metadata_delay_s,
        max_cache_age_s=ingest_settings.metadata_cache_max_age_s,
        max_retries=ingest_settings.max_retries,
    )


def _locale(language: str) -> str:
    return "en-US" if language == "en" else language


@app.command()
def run(
    source: str = typer.Option(..., "--source", "-s", help="Award source key (see `sources`)."),
    year: int | None = typer.Option(None, help="Process a single ceremony year."),
    winners_only: bool = typer.Option(False, "--winners-only", help="Only refresh winner flags of known works."),
) -> None:
    """
    Ingest ceremonies for one award source, newest first.

    A full run requires LAURELS_TMDB_API_KEY. Ctrl-C stops after the current ceremony.
    """
    award_source = _source_or_exit(source)
    stop_event = threading.Event()

    def _request_stop(signum, frame) -> None:
        typer.echo("Stop requested; finishing the current ceremony...", err=True)
        stop_event.set()

    with _metadata_http() as metadata_http, RateLimitedHttpClient(
        crawl_delay=ingest_settings.fetch_delay_s,
        user_agent=ingest_settings.user_agent,
        timeout=ingest_settings.request_timeout_s,
        max_retries=ingest_settings.max_retries,
    ) as fetcher:
        try:
            resolver = None if winners_only else _build_resolver(metadata_http)
            orchestrator = RunOrchestrator(
                award_source,
                fetcher=fetcher,
                resolver=resolver,
                session_factory=SessionLocal,
                base_url=ingest_settings.wikipedia_base_url,
                unit_delay_s=ingest_settings.unit_delay_s,
                winners_only_delay_s=ingest_settings.winners_only_delay_s,
                secondary_language=ingest_settings.secondary_language,
                stop_event=stop_event,
            )
            previous = signal.signal(signal.SIGINT, _request_stop)
            try:
                report = orchestrator.run(RunOptions(year=year, winners_only_update=winners_only))
            finally:
                signal.signal(signal.SIGINT, previous)
        except MissingConfigurationError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    for line in report.summary_lines():
        typer.echo(line)
    if not report.success:
        raise typer.Exit(1)


@app.command()
def seed(source: str = typer.Option(..., "--source", "-s", help="Award source key.")) -> None:
    """Create the organization and category rows for a source."""
    award_source = _source_or_exit(source)
    cache = MasterReferenceCache(award_source)
    with session_scope() as session:
        cache.refresh(session)
        organization_id = cache.organization_id(session)
    typer.echo(f"{award_source.organization_name}: {organization_id}")
    for category in award_source.categories:
        typer.echo(f"  {category.short_name}")


def _backfill(operation: Callable[[ReconciliationEngine, MetadataResolver], BackfillResult]) -> None:
    """Build a resolver and run one backfill operation of the reconciliation engine."""
    with _metadata_http() as metadata_http:
        try:
            resolver = _build_resolver(metadata_http)
        except MissingConfigurationError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
        # Any source works here: backfills touch works only.
        award_source = next(iter(SOURCES.values()))
        try:
            with session_scope() as session:
                engine = ReconciliationEngine(
                    session,
                    source=award_source,
                    cache=MasterReferenceCache(award_source),
                    secondary_language=ingest_settings.secondary_language,
                )
                result = operation(engine, resolver)
        except MissingConfigurationError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    typer.echo(
        f"scanned={result.scanned} assigned={result.assigned} not_found={result.not_found} "
        f"unavailable={result.unavailable} conflicts={result.conflicts} rows={result.rows_written}"
    )
    for issue in engine.issues:
        typer.echo(issue.to_log_message(), err=True)


@app.command("backfill-external-ids")
def backfill_external_ids(
    limit: int | None = typer.Option(None, help="Maximum number of works to look up."),
) -> None:
    """Look up metadata ids for works known only by their IMDb id."""
    _backfill(lambda engine, resolver: engine.backfill_external_ids(resolver, limit=limit))


@app.command("backfill-alternate-ids")
def backfill_alternate_ids(
    limit: int | None = typer.Option(None, help="Maximum number of works to look up."),
    year: int | None = typer.Option(None, help="Only works first seen in this ceremony year."),
) -> None:
    """Look up IMDb ids for works that have none, searching by title when no metadata id is known."""
    _backfill(lambda engine, resolver: engine.backfill_alternate_ids(resolver, limit=limit, year=year))


@app.command("backfill-artwork")
def backfill_artwork(
    limit: int | None = typer.Option(None, help="Maximum number of works to look up."),
) -> None:
    """Fetch posters for identified works that have no artwork."""
    _backfill(lambda engine, resolver: engine.backfill_artwork(resolver, limit=limit))


@app.command("backfill-titles")
def backfill_titles(
    limit: int | None = typer.Option(None, help="Maximum number of works to look up."),
) -> None:
    """Fetch the secondary-language title for identified works that lack one."""
    _backfill(lambda engine, resolver: engine.backfill_titles(resolver, limit=limit))


@app.command()
def title(
    work_id: str,
    language: str | None = typer.Option(None, "--language", "-l", help="Preferred language code."),
) -> None:
    """Print the display title of a work, falling back to its default title."""
    try:
        parsed = uuid.UUID(work_id)
    except ValueError:
        typer.echo(f"Not a work id: {work_id}", err=True)
        raise typer.Exit(2)
    with SessionLocal() as session:
        text = display_title(session, parsed, language)
    if text is None:
        typer.echo(f"No title for {work_id}", err=True)
        raise typer.Exit(1)
    typer.echo(text)


@app.command()
def sources() -> None:
    """List the known award sources."""
    for key, s in sorted(SOURCES.items()):
        layout = "per-year pages" if s.per_year else "single page"
        typer.echo(f"{key:16} {s.organization_name} ({s.country}, since {s.first_ceremony_year}; {layout})")


if __name__ == "__main__":
    app()
