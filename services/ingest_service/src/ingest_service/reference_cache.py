"""Master reference data (organization, categories, ceremonies) for one award source."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from laurels_core.db.models import AwardCategory, AwardOrganization, CeremonyUnit
from laurels_core.db.upsert import upsert_rows
from laurels_core.identity import category_id_for, ceremony_id_for, organization_id_for
from ingest_service.sources import AwardSource

logger = logging.getLogger(__name__)


class MasterReferenceCache:
    """
    Identifier cache for an award source, loaded lazily on first access.

    The cache is advisory: it holds ids only, never ORM objects, and a miss always
    falls through to an upsert against the store. Organization and categories are
    seeded on first load if absent.
    """

    def __init__(self, source: AwardSource) -> None:
        self.source = source
        self._organization_id: uuid.UUID | None = None
        self._category_ids: dict[str, uuid.UUID] = {}
        self._ceremonies: dict[int, uuid.UUID] = {}

    @property
    def loaded(self) -> bool:
        return self._organization_id is not None

    def invalidate(self) -> None:
        self._organization_id = None
        self._category_ids = {}
        self._ceremonies = {}

    def refresh(self, session: Session) -> None:
        self.invalidate()
        self._load(session)

    def organization_id(self, session: Session) -> uuid.UUID:
        if self._organization_id is None:
            return self._load(session)
        return self._organization_id

    def category_id(self, session: Session, short_name: str | None = None) -> uuid.UUID:
        if self._organization_id is None:
            self._load(session)
        short_name = short_name or self.source.primary_category
        try:
            return self._category_ids[short_name]
        except KeyError:
            raise KeyError(f"{self.source.key}: unknown category {short_name!r}") from None

    def known_ceremonies(self) -> dict[int, uuid.UUID]:
        return dict(self._ceremonies)

    def ceremony_id(self, session: Session, year: int) -> uuid.UUID:
        """
        Ceremony id for `year`.

        Every encounter upserts the ceremony so its sequence number is recomputed;
        the cached id only saves the read-back.
        """
        organization_id = self.organization_id(session)
        upsert_rows(
            session,
            CeremonyUnit,
            [
                {
                    "ceremony_id": ceremony_id_for(organization_id=organization_id, year=year),
                    "organization_id": organization_id,
                    "year": year,
                    "sequence_number": self.source.sequence_number(year),
                }
            ],
            key=("organization_id", "year"),
            update=("sequence_number",),
            touch="updated_at",
        )
        cached = self._ceremonies.get(year)
        if cached is not None:
            return cached
        # Another writer may have created the row with a different id; read it back.
        ceremony_id = session.scalar(
            select(CeremonyUnit.ceremony_id).where(
                CeremonyUnit.organization_id == organization_id, CeremonyUnit.year == year
            )
        )
        if ceremony_id is None:
            raise RuntimeError(f"Ceremony upsert for {self.source.key} {year} did not persist")
        self._ceremonies[year] = ceremony_id
        return ceremony_id

    def _load(self, session: Session) -> uuid.UUID:
        source = self.source
        org_id = organization_id_for(source.organization_name)
        upsert_rows(
            session,
            AwardOrganization,
            [
                {
                    "organization_id": org_id,
                    "name": source.organization_name,
                    "short_name": source.short_name,
                    "country": source.country,
                    "established_year": source.established_year,
                }
            ],
            key=("name",),
        )
        organization_id = session.scalar(
            select(AwardOrganization.organization_id).where(AwardOrganization.name == source.organization_name)
        )
        if organization_id is None:
            raise RuntimeError(f"Organization {source.organization_name!r} could not be seeded")

        upsert_rows(
            session,
            AwardCategory,
            [
                {
                    "category_id": category_id_for(organization_id=organization_id, short_name=c.short_name),
                    "organization_id": organization_id,
                    "name": c.name,
                    "short_name": c.short_name,
                }
                for c in source.categories
            ],
            key=("organization_id", "short_name"),
        )
        categories = session.execute(
            select(AwardCategory.short_name, AwardCategory.category_id).where(
                AwardCategory.organization_id == organization_id
            )
        ).all()
        ceremonies = session.execute(
            select(CeremonyUnit.year, CeremonyUnit.ceremony_id).where(CeremonyUnit.organization_id == organization_id)
        ).all()

        self._organization_id = organization_id
        self._category_ids = {short_name: category_id for short_name, category_id in categories}
        self._ceremonies = {year: ceremony_id for year, ceremony_id in ceremonies}
        logger.debug(
            "Loaded %s: %d categories, %d ceremonies",
            source.organization_name,
            len(self._category_ids),
            len(self._ceremonies),
        )
        return organization_id
