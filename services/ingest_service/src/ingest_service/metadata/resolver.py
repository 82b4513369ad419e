from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from ingest_service.errors import MetadataServiceError
from ingest_service.metadata.tmdb import TmdbClient

logger = logging.getLogger(__name__)

PRIMARY_YEAR_WINDOW = 1
FALLBACK_YEAR_WINDOW = 2
FALLBACK_POSTER_SIZE = "w342"


class ResolutionStatus(str, enum.Enum):
    resolved = "resolved"
    not_found = "not_found"
    unavailable = "unavailable"


@dataclass(frozen=True)
class ArtworkCandidate:
    url: str
    width: int | None
    height: int | None
    language_code: str | None = None
    country_code: str | None = None
    is_primary: bool = False


@dataclass(frozen=True)
class ResolvedMetadata:
    external_id: int
    canonical_title: str | None
    release_year: int | None = None
    original_language: str | None = None
    localized_title: str | None = None
    localized_language: str | None = None
    alternate_id: str | None = None
    poster_path: str | None = None
    artwork: tuple[ArtworkCandidate, ...] = ()


@dataclass(frozen=True)
class Resolution:
    """Outcome of a metadata lookup: a value, a definite miss, or "service unavailable"."""

    status: ResolutionStatus
    metadata: ResolvedMetadata | None = None
    reason: str | None = None
    notes: tuple[str, ...] = field(default=())

    @classmethod
    def resolved(cls, metadata: ResolvedMetadata, *, notes: tuple[str, ...] = ()) -> Resolution:
        return cls(status=ResolutionStatus.resolved, metadata=metadata, notes=notes)

    @classmethod
    def not_found(cls, reason: str | None = None) -> Resolution:
        return cls(status=ResolutionStatus.not_found, reason=reason)

    @classmethod
    def unavailable(cls, reason: str) -> Resolution:
        return cls(status=ResolutionStatus.unavailable, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status is ResolutionStatus.resolved and self.metadata is not None


@dataclass(frozen=True)
class SearchCandidate:
    external_id: int
    title: str | None
    release_year: int | None
    rank: int


class MetadataResolver:
    """
    Resolve (title, year) to TMDB metadata.

    Search runs with the year first and keeps results released within one year of it;
    when nothing qualifies the search is repeated without the year, candidates within
    two years are accepted and the closest release year wins. Details come from two
    locale passes (default locale for identifiers and poster, secondary locale for a
    localized title). Service failures never raise: they surface as
    `ResolutionStatus.unavailable`.
    """

    def __init__(
        self,
        *,
        client: TmdbClient,
        image_base_url: str = "https://image.tmdb.org/t/p/original",
        default_locale: str = "en-US",
        secondary_language: str | None = "ja",
        max_artwork: int = 5,
    ) -> None:
        self.client = client
        self.image_base_url = image_base_url.rstrip("/")
        self.default_locale = default_locale
        self.secondary_language = secondary_language
        self.max_artwork = max_artwork
        self._configuration: dict[str, Any] | None = None

    def resolve(self, *, title: str, year: int) -> Resolution:
        try:
            candidate = self.search(title=title, year=year)
        except MetadataServiceError as exc:
            logger.warning("Metadata search unavailable for %r (%s): %s", title, year, exc)
            return Resolution.unavailable(str(exc))
        if candidate is None:
            logger.info("No metadata match for %r (%s)", title, year)
            return Resolution.not_found(f"no candidate within ±{FALLBACK_YEAR_WINDOW} years")
        return self.describe(candidate.external_id, fallback_title=candidate.title, release_year=candidate.release_year)

    def search(self, *, title: str, year: int) -> SearchCandidate | None:
        """Pick the best search candidate; raises MetadataServiceError on service failure."""
        results = _candidates(self.client.search_movie(title, year=year, language=self.default_locale))
        matches = [c for c in results if c.release_year is not None and abs(c.release_year - year) <= PRIMARY_YEAR_WINDOW]
        if matches:
            return matches[0]

        results = _candidates(self.client.search_movie(title, language=self.default_locale))
        widened = [
            c for c in results if c.release_year is not None and abs(c.release_year - year) <= FALLBACK_YEAR_WINDOW
        ]
        if not widened:
            return None
        return min(widened, key=lambda c: (abs((c.release_year or year) - year), c.rank))

    def describe(
        self,
        external_id: int,
        *,
        fallback_title: str | None = None,
        release_year: int | None = None,
    ) -> Resolution:
        """
        Fetch details, localized title and artwork for a known TMDB id.

        Partial failures degrade: a failed details pass still yields the id.
        """
        notes: list[str] = []
        try:
            details = self.client.movie_details(external_id, language=self.default_locale)
        except MetadataServiceError as exc:
            logger.warning("Details unavailable for TMDB %s: %s", external_id, exc)
            notes.append(f"details: {exc}")
            details = {}

        canonical_title = _str_or_none(details.get("title")) or fallback_title
        poster_path = _str_or_none(details.get("poster_path"))
        localized = self._localized_title(external_id, canonical_title=canonical_title, notes=notes)
        artwork = self._artwork(external_id, poster_path=poster_path, notes=notes)

        metadata = ResolvedMetadata(
            external_id=external_id,
            canonical_title=canonical_title,
            release_year=_release_year(details.get("release_date")) or release_year,
            original_language=_str_or_none(details.get("original_language")),
            localized_title=localized,
            localized_language=self.secondary_language if localized else None,
            alternate_id=_imdb_id(details.get("imdb_id")),
            poster_path=poster_path,
            artwork=artwork,
        )
        return Resolution.resolved(metadata, notes=tuple(notes))

    def find_by_alternate_id(self, alternate_id: str) -> Resolution:
        """Map an IMDb id to a TMDB id without fetching details."""
        try:
            results = self.client.find_by_imdb_id(alternate_id)
        except MetadataServiceError as exc:
            logger.warning("Find-by-IMDb unavailable for %s: %s", alternate_id, exc)
            return Resolution.unavailable(str(exc))
        for r in results:
            movie_id = r.get("id")
            if isinstance(movie_id, int):
                return Resolution.resolved(
                    ResolvedMetadata(
                        external_id=movie_id,
                        canonical_title=_str_or_none(r.get("title")),
                        release_year=_release_year(r.get("release_date")),
                        alternate_id=alternate_id,
                    )
                )
        return Resolution.not_found(f"no movie for {alternate_id}")

    def _localized_title(self, external_id: int, *, canonical_title: str | None, notes: list[str]) -> str | None:
        lang = self.secondary_language
        if not lang:
            return None
        title: str | None = None
        try:
            localized = self.client.movie_details(external_id, language=lang)
            title = _str_or_none(localized.get("title"))
        except MetadataServiceError as exc:
            notes.append(f"details[{lang}]: {exc}")
            try:
                title = _translation_title(self.client.movie_translations(external_id), lang)
            except MetadataServiceError as exc2:
                notes.append(f"translations: {exc2}")
                return None
        # An unchanged pass-through title is not a translation.
        if not title or title == canonical_title:
            return None
        return title

    def _artwork(self, external_id: int, *, poster_path: str | None, notes: list[str]) -> tuple[ArtworkCandidate, ...]:
        posters: list[dict[str, Any]] = []
        try:
            images = self.client.movie_images(external_id)
            raw = images.get("posters")
            posters = [p for p in raw if isinstance(p, dict)] if isinstance(raw, list) else []
        except MetadataServiceError as exc:
            notes.append(f"images: {exc}")

        out: list[ArtworkCandidate] = []
        for p in posters:
            file_path = _str_or_none(p.get("file_path"))
            if not file_path:
                continue
            out.append(
                ArtworkCandidate(
                    url=f"{self.image_base_url}{file_path}",
                    width=_int_or_none(p.get("width")),
                    height=_int_or_none(p.get("height")),
                    language_code=_str_or_none(p.get("iso_639_1")),
                    country_code=_str_or_none(p.get("iso_3166_1")),
                    is_primary=not out,
                )
            )
            if len(out) >= self.max_artwork:
                break
        if out or not poster_path:
            return tuple(out)

        fallback = self._configured_poster(poster_path, notes=notes)
        return (fallback,) if fallback else ()

    def _configured_poster(self, poster_path: str, *, notes: list[str]) -> ArtworkCandidate | None:
        if self._configuration is None:
            try:
                self._configuration = self.client.configuration()
            except MetadataServiceError as exc:
                notes.append(f"configuration: {exc}")
                return None
        images = self._configuration.get("images") or {}
        base = _str_or_none(images.get("secure_base_url"))
        sizes = images.get("poster_sizes") or []
        if not base or FALLBACK_POSTER_SIZE not in sizes:
            return None
        width = int(FALLBACK_POSTER_SIZE[1:])
        return ArtworkCandidate(
            url=f"{base}{FALLBACK_POSTER_SIZE}{poster_path}",
            width=width,
            # TMDB posters are 2:3.
            height=width * 3 // 2,
            is_primary=True,
        )


def _candidates(results: list[dict[str, Any]]) -> list[SearchCandidate]:
    out: list[SearchCandidate] = []
    for rank, r in enumerate(results):
        movie_id = r.get("id")
        if not isinstance(movie_id, int):
            continue
        out.append(
            SearchCandidate(
                external_id=movie_id,
                title=_str_or_none(r.get("title")),
                release_year=_release_year(r.get("release_date")),
                rank=rank,
            )
        )
    return out


def _translation_title(translations: list[dict[str, Any]], language: str) -> str | None:
    for t in translations:
        if t.get("iso_639_1") != language:
            continue
        data = t.get("data")
        if isinstance(data, dict):
            return _str_or_none(data.get("title"))
    return None


def _release_year(value: Any) -> int | None:
    if not isinstance(value, str) or len(value) < 4 or not value[:4].isdigit():
        return None
    return int(value[:4])


def _imdb_id(value: Any) -> str | None:
    s = _str_or_none(value)
    if s and s.startswith("tt") and s[2:].isdigit():
        return s
    return None


def _int_or_none(value: Any) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _str_or_none(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None
