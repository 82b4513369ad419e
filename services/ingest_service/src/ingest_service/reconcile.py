"""
Reconciliation of extracted entries against canonical works.

Lookups and work creation happen immediately (later entries must see earlier ones);
titles, artwork, source references and nominations are staged per ceremony and
flushed as grouped conflict-tolerant inserts.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import ColumnElement, Select, or_, select
from sqlalchemy.orm import Session

from laurels_core.db.enums import ArtworkSource, SourceType, TextKind
from laurels_core.db.models import (
    ArtworkReference,
    CanonicalWork,
    LocalizedText,
    NominationFact,
    SourceReference,
)
from laurels_core.db.queries import (
    display_title,
    find_work_by_alternate_id,
    find_work_by_external_id,
    find_works_by_default_title,
)
from laurels_core.db.upsert import upsert_rows
from laurels_core.identity import nomination_id_for, reference_id_for, text_id_for
from ingest_service.errors import ErrorKind, IngestIssue, MetadataServiceError, MissingConfigurationError
from ingest_service.metadata.resolver import MetadataResolver, Resolution, ResolutionStatus, ResolvedMetadata
from ingest_service.parse.extract import RawEntry
from ingest_service.reference_cache import MasterReferenceCache
from ingest_service.sources import AwardSource
from ingest_service.utils.urls import imdb_title_url

logger = logging.getLogger(__name__)

# Same-title works further apart than this are remakes, not the same film.
TITLE_MATCH_MAX_YEAR_GAP = 3


@dataclass
class BatchCounts:
    titles: int = 0
    artwork: int = 0
    references: int = 0
    nominations: int = 0


@dataclass
class CeremonyBatch:
    """Writes staged for one ceremony."""

    year: int
    ceremony_id: uuid.UUID
    texts: list[dict[str, Any]] = field(default_factory=list)
    localized_texts: list[dict[str, Any]] = field(default_factory=list)
    artwork: list[dict[str, Any]] = field(default_factory=list)
    references: list[dict[str, Any]] = field(default_factory=list)
    nominations: list[dict[str, Any]] = field(default_factory=list)

    @property
    def pending(self) -> int:
        return (
            len(self.texts)
            + len(self.localized_texts)
            + len(self.artwork)
            + len(self.references)
            + len(self.nominations)
        )


@dataclass(frozen=True)
class ReconcileOutcome:
    work_id: uuid.UUID
    created: bool
    matched_by: str | None


@dataclass
class BackfillResult:
    scanned: int = 0
    assigned: int = 0
    not_found: int = 0
    unavailable: int = 0
    conflicts: int = 0
    rows_written: int = 0


class ReconciliationEngine:
    def __init__(
        self,
        session: Session,
        *,
        source: AwardSource,
        cache: MasterReferenceCache,
        secondary_language: str | None = "ja",
    ) -> None:
        self.session = session
        self.source = source
        self.cache = cache
        self.default_language = source.default_language
        self.secondary_language = secondary_language
        self.issues: list[IngestIssue] = []

    def begin_ceremony(self, year: int) -> CeremonyBatch:
        return CeremonyBatch(year=year, ceremony_id=self.cache.ceremony_id(self.session, year))

    def reconcile(self, entry: RawEntry, resolution: Resolution | None, batch: CeremonyBatch) -> ReconcileOutcome:
        """Match or create the work for `entry` and stage its dependent rows in `batch`."""
        metadata = resolution.metadata if resolution is not None and resolution.ok else None
        alternate_id = (metadata.alternate_id if metadata else None) or entry.alternate_id
        external_id = metadata.external_id if metadata else None

        work, matched_by = self._find_work(entry, alternate_id=alternate_id, external_id=external_id)
        created = work is None
        if work is None:
            work = self._create_work(entry, metadata)
        self._backfill(work, entry, alternate_id=alternate_id, external_id=external_id)

        self._stage_default_title(batch, work.work_id, entry.title)
        if metadata is not None:
            self._stage_localized_title(batch, work.work_id, entry.title, metadata)
            self._stage_artwork(batch, work.work_id, metadata)
        self._stage_references(batch, work.work_id, entry, alternate_id=work.external_alternate_id)
        self._stage_nomination(batch, work.work_id, is_winner=entry.is_winner, special_mention=entry.special_mention)

        logger.debug(
            "%s %s: %r -> %s (%s)",
            self.source.key,
            entry.year,
            entry.title,
            work.work_id,
            "new" if created else f"matched by {matched_by}",
        )
        return ReconcileOutcome(work_id=work.work_id, created=created, matched_by=matched_by)

    def refresh_winner(self, entry: RawEntry, batch: CeremonyBatch) -> bool:
        """Winners-only mode: flag the nomination of an already-known work. Never creates works."""
        work, _ = self._find_work(entry, alternate_id=entry.alternate_id, external_id=None)
        if work is None:
            logger.info("%s %s: winner %r is not a known work, skipped", self.source.key, entry.year, entry.title)
            return False
        self._stage_nomination(batch, work.work_id, is_winner=True, special_mention=entry.special_mention)
        return True

    def flush(self, batch: CeremonyBatch) -> BatchCounts:
        """Issue the staged writes as grouped upserts and clear the batch."""
        counts = BatchCounts()
        session = self.session
        counts.titles += upsert_rows(session, LocalizedText, batch.texts, key=("work_id", "kind", "language_code"))
        counts.titles += upsert_rows(
            session,
            LocalizedText,
            batch.localized_texts,
            key=("work_id", "kind", "language_code"),
            update=("content",),
            touch="updated_at",
        )
        counts.artwork = upsert_rows(session, ArtworkReference, self._new_artwork(batch.artwork), key=None)
        counts.references = upsert_rows(
            session,
            SourceReference,
            batch.references,
            key=("work_id", "source_type", "language_code"),
            update=("url", "is_primary"),
            touch="updated_at",
        )
        counts.nominations = upsert_rows(
            session,
            NominationFact,
            batch.nominations,
            key=("work_id", "ceremony_id", "category_id"),
            update=("is_winner", "special_mention"),
            touch="updated_at",
        )
        batch.texts.clear()
        batch.localized_texts.clear()
        batch.artwork.clear()
        batch.references.clear()
        batch.nominations.clear()
        return counts

    def backfill_external_ids(self, resolver: MetadataResolver, *, limit: int | None = None) -> BackfillResult:
        """Assign metadata-service ids to works known only by their alternate id."""
        result = BackfillResult()
        stmt = select(CanonicalWork).where(
            CanonicalWork.external_alternate_id.is_not(None), CanonicalWork.external_id.is_(None)
        )
        for work in self._backfill_candidates(stmt, limit):
            alternate_id = work.external_alternate_id
            if not alternate_id:
                continue
            result.scanned += 1
            resolution = resolver.find_by_alternate_id(alternate_id)
            if resolution.status is ResolutionStatus.unavailable:
                result.unavailable += 1
                continue
            if not resolution.ok or resolution.metadata is None:
                result.not_found += 1
                continue
            if self._claim(work, "external_id", resolution.metadata.external_id):
                result.assigned += 1
            else:
                result.conflicts += 1
        self.session.flush()
        return result

    def backfill_alternate_ids(
        self, resolver: MetadataResolver, *, limit: int | None = None, year: int | None = None
    ) -> BackfillResult:
        """
        Assign IMDb ids to works that lack one.

        Works with a metadata-service id are described directly; the rest are searched
        by default title and year first, and get the metadata-service id as well.
        """
        result = BackfillResult()
        stmt = select(CanonicalWork).where(CanonicalWork.external_alternate_id.is_(None))
        if year is not None:
            stmt = stmt.where(CanonicalWork.year == year)
        for work in self._backfill_candidates(stmt, limit):
            result.scanned += 1
            external_id = work.external_id
            if external_id is None:
                title = display_title(self.session, work.work_id, self.default_language)
                if not title or work.year is None:
                    result.not_found += 1
                    continue
                try:
                    candidate = resolver.search(title=title, year=work.year)
                except MetadataServiceError as exc:
                    logger.warning("Search unavailable for %r (%s): %s", title, work.year, exc)
                    result.unavailable += 1
                    continue
                if candidate is None:
                    result.not_found += 1
                    continue
                external_id = candidate.external_id

            resolution = resolver.describe(external_id)
            alternate_id = resolution.metadata.alternate_id if resolution.metadata else None
            if alternate_id is None:
                _count_miss(result, resolution, "details:")
                continue
            if not self._claim(work, "external_alternate_id", alternate_id):
                result.conflicts += 1
                continue
            self._claim(work, "external_id", external_id)
            work.updated_at = datetime.now(timezone.utc)
            upsert_rows(
                self.session,
                SourceReference,
                [self._reference_row(work.work_id, SourceType.imdb, imdb_title_url(alternate_id), self.default_language)],
                key=("work_id", "source_type", "language_code"),
                update=("url", "is_primary"),
                touch="updated_at",
            )
            result.assigned += 1
        self.session.flush()
        return result

    def backfill_artwork(self, resolver: MetadataResolver, *, limit: int | None = None) -> BackfillResult:
        """Fetch artwork for identified works that have none stored."""
        result = BackfillResult()
        has_artwork = (
            select(ArtworkReference.artwork_id).where(ArtworkReference.work_id == CanonicalWork.work_id).exists()
        )
        stmt = select(CanonicalWork).where(_is_identified(), ~has_artwork)
        for work in self._backfill_candidates(stmt, limit):
            result.scanned += 1
            external_id = self._known_external_id(work, resolver, result)
            if external_id is None:
                continue
            resolution = resolver.describe(external_id)
            metadata = resolution.metadata
            if metadata is None or not metadata.artwork:
                _count_miss(result, resolution, "images:", "configuration:")
                continue
            rows = self._new_artwork(self._artwork_rows(work.work_id, metadata))
            result.rows_written += upsert_rows(self.session, ArtworkReference, rows, key=None)
            result.assigned += 1
        self.session.flush()
        return result

    def backfill_titles(self, resolver: MetadataResolver, *, limit: int | None = None) -> BackfillResult:
        """Fetch the secondary-language title for identified works that lack one."""
        lang = self.secondary_language
        if not lang or lang == self.default_language:
            raise MissingConfigurationError("A secondary language other than the default is required")
        result = BackfillResult()
        has_title = (
            select(LocalizedText.text_id)
            .where(
                LocalizedText.work_id == CanonicalWork.work_id,
                LocalizedText.kind == TextKind.title,
                LocalizedText.language_code == lang,
            )
            .exists()
        )
        stmt = select(CanonicalWork).where(_is_identified(), ~has_title)
        for work in self._backfill_candidates(stmt, limit):
            result.scanned += 1
            external_id = self._known_external_id(work, resolver, result)
            if external_id is None:
                continue
            default_title = display_title(self.session, work.work_id, self.default_language) or ""
            resolution = resolver.describe(external_id, fallback_title=default_title or None)
            row = (
                self._localized_title_row(work.work_id, default_title, resolution.metadata)
                if resolution.metadata is not None
                else None
            )
            if row is None or row["language_code"] != lang:
                _count_miss(result, resolution, "details[", "translations:")
                continue
            result.rows_written += upsert_rows(
                self.session,
                LocalizedText,
                [row],
                key=("work_id", "kind", "language_code"),
                update=("content",),
                touch="updated_at",
            )
            result.assigned += 1
        self.session.flush()
        return result

    def _backfill_candidates(self, stmt: Select[tuple[CanonicalWork]], limit: int | None) -> list[CanonicalWork]:
        stmt = stmt.order_by(CanonicalWork.created_at, CanonicalWork.work_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).all())

    def _known_external_id(self, work: CanonicalWork, resolver: MetadataResolver, result: BackfillResult) -> int | None:
        """The work's metadata-service id, looked up (and claimed) from its IMDb id when missing."""
        if work.external_id is not None:
            return work.external_id
        if not work.external_alternate_id:
            result.not_found += 1
            return None
        resolution = resolver.find_by_alternate_id(work.external_alternate_id)
        if resolution.status is ResolutionStatus.unavailable:
            result.unavailable += 1
            return None
        if not resolution.ok or resolution.metadata is None:
            result.not_found += 1
            return None
        if not self._claim(work, "external_id", resolution.metadata.external_id):
            result.conflicts += 1
            return None
        work.updated_at = datetime.now(timezone.utc)
        return resolution.metadata.external_id

    def _find_work(
        self,
        entry: RawEntry,
        *,
        alternate_id: str | None,
        external_id: int | None,
    ) -> tuple[CanonicalWork | None, str | None]:
        if alternate_id:
            work = find_work_by_alternate_id(self.session, alternate_id)
            if work is not None:
                return work, "alternate_id"
        if external_id is not None:
            work = find_work_by_external_id(self.session, external_id)
            if work is not None:
                return work, "external_id"
        candidates = [
            work
            for work in find_works_by_default_title(self.session, entry.title, language_code=self.default_language)
            if self._title_match_allowed(work, entry, alternate_id=alternate_id, external_id=external_id)
        ]
        if candidates:
            return min(candidates, key=lambda w: abs((w.year or entry.year) - entry.year)), "title"
        return None, None

    def _title_match_allowed(
        self, work: CanonicalWork, entry: RawEntry, *, alternate_id: str | None, external_id: int | None
    ) -> bool:
        """A same-title work is a different film when its identifiers or year disagree with the entry."""
        if alternate_id and work.external_alternate_id and work.external_alternate_id != alternate_id:
            return False
        if external_id is not None and work.external_id is not None and work.external_id != external_id:
            return False
        if work.year is not None and abs(work.year - entry.year) > TITLE_MATCH_MAX_YEAR_GAP:
            logger.debug(
                "%r (%s) not matched to work %s from %s", entry.title, entry.year, work.work_id, work.year
            )
            return False
        return True

    def _create_work(self, entry: RawEntry, metadata: ResolvedMetadata | None) -> CanonicalWork:
        work = CanonicalWork(
            work_id=uuid.uuid4(),
            original_language=(metadata.original_language if metadata else None) or self.default_language,
            year=entry.year,
        )
        self.session.add(work)
        self.session.flush()
        # Recorded now so that later entries in this run can match on it.
        upsert_rows(
            self.session,
            LocalizedText,
            [self._title_row(work.work_id, self.default_language, entry.title, is_default=True)],
            key=("work_id", "kind", "language_code"),
        )
        return work

    def _backfill(self, work: CanonicalWork, entry: RawEntry, *, alternate_id: str | None, external_id: int | None) -> None:
        changed = self._claim(work, "external_alternate_id", alternate_id, entry=entry)
        changed = self._claim(work, "external_id", external_id, entry=entry) or changed
        if work.year is None:
            work.year = entry.year
            changed = True
        if changed:
            work.updated_at = datetime.now(timezone.utc)
            self.session.flush()

    def _claim(self, work: CanonicalWork, attr: str, value: Any, *, entry: RawEntry | None = None) -> bool:
        """Set a write-once identifier unless it is already set or held by another work."""
        if value is None or getattr(work, attr) is not None:
            return False
        column = getattr(CanonicalWork, attr)
        holder = self.session.scalar(
            select(CanonicalWork.work_id).where(column == value, CanonicalWork.work_id != work.work_id).limit(1)
        )
        if holder is not None:
            issue = IngestIssue(
                kind=ErrorKind.INTEGRITY,
                message=f"{attr}={value} already belongs to work {holder}; not assigned to {work.work_id}",
                source_key=self.source.key,
                year=entry.year if entry else None,
                title=entry.title if entry else None,
                details={"attr": attr, "value": value, "holder": str(holder), "work_id": str(work.work_id)},
            )
            logger.warning(issue.to_log_message())
            self.issues.append(issue)
            return False
        setattr(work, attr, value)
        return True

    def _title_row(self, work_id: uuid.UUID, language_code: str, content: str, *, is_default: bool) -> dict[str, Any]:
        return {
            "text_id": text_id_for(work_id=work_id, kind=TextKind.title.value, language_code=language_code),
            "work_id": work_id,
            "kind": TextKind.title,
            "language_code": language_code,
            "content": content,
            "is_default": is_default,
        }

    def _stage_default_title(self, batch: CeremonyBatch, work_id: uuid.UUID, title: str) -> None:
        # No-op when present; fills the gap for works matched by id that lack one.
        batch.texts.append(self._title_row(work_id, self.default_language, title, is_default=True))

    def _stage_localized_title(
        self, batch: CeremonyBatch, work_id: uuid.UUID, default_title: str, metadata: ResolvedMetadata
    ) -> None:
        row = self._localized_title_row(work_id, default_title, metadata)
        if row is not None:
            batch.localized_texts.append(row)

    def _localized_title_row(
        self, work_id: uuid.UUID, default_title: str, metadata: ResolvedMetadata
    ) -> dict[str, Any] | None:
        lang = metadata.localized_language or self.secondary_language
        title = metadata.localized_title
        if not lang or not title or lang == self.default_language or title == default_title:
            return None
        return self._title_row(work_id, lang, title, is_default=False)

    def _stage_artwork(self, batch: CeremonyBatch, work_id: uuid.UUID, metadata: ResolvedMetadata) -> None:
        batch.artwork.extend(self._artwork_rows(work_id, metadata))

    def _artwork_rows(self, work_id: uuid.UUID, metadata: ResolvedMetadata) -> list[dict[str, Any]]:
        return [
            {
                "artwork_id": uuid.uuid4(),
                "work_id": work_id,
                "url": art.url,
                "width": art.width,
                "height": art.height,
                "language_code": art.language_code,
                "country_code": art.country_code,
                "source_type": ArtworkSource.tmdb,
                "is_primary": art.is_primary,
            }
            for art in metadata.artwork
        ]

    def _stage_references(
        self, batch: CeremonyBatch, work_id: uuid.UUID, entry: RawEntry, *, alternate_id: str | None
    ) -> None:
        if entry.source_url:
            batch.references.append(
                self._reference_row(work_id, SourceType.wikipedia, entry.source_url, self.default_language)
            )
        if alternate_id:
            batch.references.append(
                self._reference_row(work_id, SourceType.imdb, imdb_title_url(alternate_id), self.default_language)
            )

    def _reference_row(
        self, work_id: uuid.UUID, source_type: SourceType, url: str, language_code: str
    ) -> dict[str, Any]:
        return {
            "reference_id": reference_id_for(work_id=work_id, source_type=source_type.value, language_code=language_code),
            "work_id": work_id,
            "url": url,
            "source_type": source_type,
            "language_code": language_code,
            "is_primary": True,
        }

    def _stage_nomination(
        self, batch: CeremonyBatch, work_id: uuid.UUID, *, is_winner: bool, special_mention: str | None
    ) -> None:
        category_id = self.cache.category_id(self.session)
        for staged in batch.nominations:
            # Two entries resolved to one work: a win on either side is kept.
            if staged["work_id"] == work_id and staged["category_id"] == category_id:
                staged["is_winner"] = staged["is_winner"] or is_winner
                staged["special_mention"] = staged["special_mention"] or special_mention
                return
        batch.nominations.append(
            {
                "nomination_id": nomination_id_for(
                    work_id=work_id, ceremony_id=batch.ceremony_id, category_id=category_id
                ),
                "work_id": work_id,
                "ceremony_id": batch.ceremony_id,
                "category_id": category_id,
                "is_winner": is_winner,
                "special_mention": special_mention,
            }
        )

    def _new_artwork(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Drop rows whose URL or variant key is already stored (NULL keys never conflict)."""
        if not rows:
            return []
        work_ids = {r["work_id"] for r in rows}
        existing = self.session.execute(
            select(
                ArtworkReference.work_id,
                ArtworkReference.url,
                ArtworkReference.width,
                ArtworkReference.height,
                ArtworkReference.language_code,
                ArtworkReference.country_code,
            ).where(ArtworkReference.work_id.in_(work_ids))
        ).all()
        seen_urls = {(r.work_id, r.url) for r in existing}
        seen_variants = {(r.work_id, r.width, r.height, r.language_code, r.country_code) for r in existing}
        has_primary = {r.work_id for r in existing}

        out: list[dict[str, Any]] = []
        for row in rows:
            url_key = (row["work_id"], row["url"])
            variant = (row["work_id"], row["width"], row["height"], row["language_code"], row["country_code"])
            if url_key in seen_urls or variant in seen_variants:
                continue
            seen_urls.add(url_key)
            seen_variants.add(variant)
            if row["work_id"] in has_primary:
                row = {**row, "is_primary": False}
            out.append(row)
        return out


def _is_identified() -> ColumnElement[bool]:
    return or_(CanonicalWork.external_id.is_not(None), CanonicalWork.external_alternate_id.is_not(None))


def _count_miss(result: BackfillResult, resolution: Resolution, *failure_prefixes: str) -> None:
    """A lookup that came back empty counts as unavailable when the relevant call failed."""
    if resolution.status is ResolutionStatus.unavailable or any(
        note.startswith(failure_prefixes) for note in resolution.notes
    ):
        result.unavailable += 1
    else:
        result.not_found += 1
