"""
Run orchestration: one ceremony unit at a time, newest first.

Each unit is fetched, extracted, resolved and reconciled inside its own session and
committed on success. A failing unit is rolled back and reported; the run moves on.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from laurels_core.db.enums import RunMode, RunStatus
from laurels_core.db.models import IngestRun
from ingest_service.errors import DocumentFetchError, ErrorKind, IngestIssue, MissingConfigurationError
from ingest_service.fetch.http_client import RateLimitedHttpClient
from ingest_service.metadata.resolver import MetadataResolver, ResolutionStatus
from ingest_service.parse.document import extract_document, group_by_year
from ingest_service.parse.extract import RawEntry
from ingest_service.reconcile import ReconciliationEngine
from ingest_service.reference_cache import MasterReferenceCache
from ingest_service.sources import AwardSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOptions:
    year: int | None = None
    winners_only_update: bool = False

    @property
    def mode(self) -> RunMode:
        return RunMode.winners_only if self.winners_only_update else RunMode.full


@dataclass
class UnitResult:
    year: int
    processed: int = 0
    winners: int = 0
    works_created: int = 0
    skipped: bool = False
    error: str | None = None
    issues: list[IngestIssue] = field(default_factory=list)


@dataclass
class RunReport:
    source_key: str
    mode: RunMode
    units: list[UnitResult] = field(default_factory=list)
    stopped: bool = False
    ingest_run_id: uuid.UUID | None = None

    @property
    def processed(self) -> int:
        return sum(u.processed for u in self.units)

    @property
    def winners(self) -> int:
        return sum(u.winners for u in self.units)

    @property
    def works_created(self) -> int:
        return sum(u.works_created for u in self.units)

    @property
    def skipped_units(self) -> list[int]:
        return [u.year for u in self.units if u.skipped]

    @property
    def errors(self) -> list[IngestIssue]:
        return [i for u in self.units for i in u.issues if i.kind is ErrorKind.UNIT_FAILURE]

    @property
    def issues(self) -> list[IngestIssue]:
        return [i for u in self.units for i in u.issues]

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def status(self) -> RunStatus:
        if self.stopped:
            return RunStatus.stopped
        return RunStatus.completed if self.success else RunStatus.completed_with_errors

    def summary_lines(self) -> list[str]:
        lines = [
            f"source:        {self.source_key} ({self.mode.value})",
            f"units:         {len(self.units)} ({len(self.skipped_units)} skipped)",
            f"processed:     {self.processed}",
            f"winners:       {self.winners}",
            f"works created: {self.works_created}",
            f"errors:        {len(self.errors)}",
        ]
        if self.stopped:
            lines.append("stopped:       yes")
        lines.extend(f"  {issue.to_log_message()}" for issue in self.errors)
        return lines


class RunOrchestrator:
    def __init__(
        self,
        source: AwardSource,
        *,
        fetcher: RateLimitedHttpClient,
        resolver: MetadataResolver | None,
        session_factory: Callable[[], Session],
        base_url: str,
        cache: MasterReferenceCache | None = None,
        unit_delay_s: float = 1.0,
        winners_only_delay_s: float = 0.5,
        secondary_language: str | None = "ja",
        stop_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.source = source
        self.fetcher = fetcher
        self.resolver = resolver
        self.session_factory = session_factory
        self.base_url = base_url
        self.cache = cache or MasterReferenceCache(source)
        self.unit_delay_s = unit_delay_s
        self.winners_only_delay_s = winners_only_delay_s
        self.secondary_language = secondary_language
        self.stop_event = stop_event or threading.Event()
        self._sleep = sleep
        self._today = today

    def run(self, options: RunOptions | None = None) -> RunReport:
        options = options or RunOptions()
        if not options.winners_only_update:
            self._require_resolver()

        report = RunReport(source_key=self.source.key, mode=options.mode)
        run_row_id = self._start_run(options)
        report.ingest_run_id = run_row_id
        logger.info("Starting %s run for %s", options.mode.value, self.source.organization_name)

        delay = self.winners_only_delay_s if options.winners_only_update else self.unit_delay_s
        try:
            first = True
            for year, prefetched in self._units(options):
                if self.stop_event.is_set():
                    logger.info("Stop requested; ending run before %s", year)
                    report.stopped = True
                    break
                if not first:
                    self._sleep(delay)
                first = False
                report.units.append(self._run_unit(year, prefetched, options))
        except Exception as exc:
            self._finish_run(run_row_id, report, status=RunStatus.failed, error_log=str(exc))
            raise

        self._finish_run(run_row_id, report, status=report.status)
        logger.info(
            "Finished %s: %d processed, %d winners, %d errors",
            self.source.key,
            report.processed,
            report.winners,
            len(report.errors),
        )
        return report

    def seed(self) -> MasterReferenceCache:
        """Create the organization and category rows for the source."""
        with self.session_factory() as session:
            self.cache.refresh(session)
            session.commit()
        return self.cache

    def unit_years(self, options: RunOptions) -> list[int]:
        """Years a per-year source would visit, newest first."""
        if options.year is not None:
            return [options.year]
        current = self._today().year
        return list(range(current, self.source.first_ceremony_year - 1, -1))

    def _units(self, options: RunOptions) -> Iterator[tuple[int, list[RawEntry] | None]]:
        if self.source.per_year:
            for year in self.unit_years(options):
                yield year, None
            return

        url = self.source.page_url(self.base_url)
        html = self._fetch(url)
        if html is None:
            logger.warning("%s: %s not found, nothing to do", self.source.key, url)
            return
        grouped = group_by_year(extract_document(html, self.source, base_url=self.base_url))
        years = sorted(grouped, reverse=True)
        if options.year is not None:
            years = [y for y in years if y == options.year]
        for year in years:
            yield year, grouped[year]

    def _fetch(self, url: str) -> str | None:
        """Document text, or None when the page does not exist."""
        result = self.fetcher.fetch(url)
        if result.not_found:
            return None
        if not result.ok or result.text is None:
            raise DocumentFetchError(url, result.error or "empty response", status_code=result.status_code or None)
        return result.text

    def _run_unit(self, year: int, prefetched: list[RawEntry] | None, options: RunOptions) -> UnitResult:
        unit = UnitResult(year=year)
        with self.session_factory() as session:
            engine = ReconciliationEngine(
                session, source=self.source, cache=self.cache, secondary_language=self.secondary_language
            )
            try:
                entries = prefetched
                if entries is None:
                    html = self._fetch(self.source.page_url(self.base_url, year))
                    if html is None:
                        logger.info("%s %s: no page, skipped", self.source.key, year)
                        unit.skipped = True
                        return unit
                    entries = [
                        e for e in extract_document(html, self.source, base_url=self.base_url, year=year) if e.year == year
                    ]
                if options.winners_only_update:
                    self._refresh_winners(engine, year, entries, unit)
                else:
                    self._reconcile_unit(engine, self._require_resolver(), year, entries, unit)
                session.commit()
            except Exception as exc:
                session.rollback()
                # Ids cached during the failed transaction may not exist.
                self.cache.invalidate()
                issue = IngestIssue(
                    kind=ErrorKind.UNIT_FAILURE,
                    message=f"{type(exc).__name__}: {exc}",
                    source_key=self.source.key,
                    year=year,
                    details={"organization": self.source.organization_name},
                )
                logger.exception("%s %s failed", self.source.organization_name, year)
                unit.error = issue.message
                unit.issues.append(issue)
                unit.processed = unit.winners = unit.works_created = 0
                return unit
            unit.issues.extend(engine.issues)
        logger.info("%s %s: %d entries, %d winners", self.source.key, year, unit.processed, unit.winners)
        return unit

    def _require_resolver(self) -> MetadataResolver:
        if self.resolver is None:
            raise MissingConfigurationError(
                f"A metadata client is required for a full run of {self.source.key} (set LAURELS_TMDB_API_KEY)"
            )
        return self.resolver

    def _reconcile_unit(
        self,
        engine: ReconciliationEngine,
        resolver: MetadataResolver,
        year: int,
        entries: list[RawEntry],
        unit: UnitResult,
    ) -> None:
        batch = engine.begin_ceremony(year)
        for entry in entries:
            resolution = resolver.resolve(title=entry.title, year=entry.year)
            if resolution.status is ResolutionStatus.unavailable:
                unit.issues.append(
                    IngestIssue(
                        kind=ErrorKind.EXTERNAL_SERVICE,
                        message=resolution.reason or "metadata service unavailable",
                        source_key=self.source.key,
                        year=entry.year,
                        title=entry.title,
                    )
                )
            outcome = engine.reconcile(entry, resolution, batch)
            unit.processed += 1
            unit.winners += int(entry.is_winner)
            unit.works_created += int(outcome.created)
        engine.flush(batch)

    def _refresh_winners(self, engine: ReconciliationEngine, year: int, entries: list[RawEntry], unit: UnitResult) -> None:
        batch = engine.begin_ceremony(year)
        for entry in entries:
            if not entry.is_winner:
                continue
            if engine.refresh_winner(entry, batch):
                unit.processed += 1
                unit.winners += 1
        engine.flush(batch)

    def _start_run(self, options: RunOptions) -> uuid.UUID:
        run_id = uuid.uuid4()
        with self.session_factory() as session:
            session.add(
                IngestRun(
                    ingest_run_id=run_id,
                    source_key=self.source.key,
                    mode=options.mode,
                    params={"year": options.year, "winners_only_update": options.winners_only_update},
                    started_at=datetime.now(timezone.utc),
                    status=RunStatus.started,
                )
            )
            session.commit()
        return run_id

    def _finish_run(
        self,
        run_id: uuid.UUID,
        report: RunReport,
        *,
        status: RunStatus,
        error_log: str | None = None,
    ) -> None:
        with self.session_factory() as session:
            row = session.get(IngestRun, run_id)
            if row is None:
                logger.warning("Ingest run %s vanished before it could be finished", run_id)
                return
            row.finished_at = datetime.now(timezone.utc)
            row.status = status
            row.units_processed = len([u for u in report.units if not u.skipped and u.error is None])
            row.entries_processed = report.processed
            row.winners = report.winners
            row.errors = [issue.model_dump(mode="json") for issue in report.issues]
            row.error_log = error_log
            session.commit()
