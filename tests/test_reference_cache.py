"""Tests for reference_cache.py"""

import pytest
from sqlalchemy import func, select

from laurels_core.db.models import AwardCategory, AwardOrganization, CeremonyUnit
from ingest_service.reference_cache import MasterReferenceCache
from ingest_service.sources import CANNES_FILM_FESTIVAL


class TestMasterReferenceCache:
    def test_lazy_seed(self, session, academy_cache):
        assert not academy_cache.loaded
        org_id = academy_cache.organization_id(session)
        assert academy_cache.loaded
        org = session.get(AwardOrganization, org_id)
        assert org.name == "Academy Awards"
        assert org.established_year == 1929
        assert session.scalar(select(AwardCategory.short_name)) == "Best Picture"

    def test_seed_is_idempotent(self, session, academy_cache):
        academy_cache.refresh(session)
        MasterReferenceCache(academy_cache.source).refresh(session)
        assert session.scalar(select(func.count()).select_from(AwardOrganization)) == 1
        assert session.scalar(select(func.count()).select_from(AwardCategory)) == 1

    def test_ceremony_created_with_sequence_number(self, session, academy_cache):
        ceremony_id = academy_cache.ceremony_id(session, 1972)
        ceremony = session.get(CeremonyUnit, ceremony_id)
        assert ceremony.year == 1972
        assert ceremony.sequence_number == 45

    def test_ceremony_cached(self, session, academy_cache):
        first = academy_cache.ceremony_id(session, 2020)
        assert academy_cache.known_ceremonies() == {2020: first}
        assert academy_cache.ceremony_id(session, 2020) == first
        assert session.scalar(select(func.count()).select_from(CeremonyUnit)) == 1

    def test_existing_ceremony_reused_and_renumbered(self, session, academy_cache):
        ceremony_id = academy_cache.ceremony_id(session, 1972)
        session.execute(
            CeremonyUnit.__table__.update().where(CeremonyUnit.ceremony_id == ceremony_id).values(sequence_number=1)
        )
        fresh = MasterReferenceCache(academy_cache.source)
        assert fresh.ceremony_id(session, 1972) == ceremony_id
        session.expire_all()
        assert session.get(CeremonyUnit, ceremony_id).sequence_number == 45

    def test_warm_cache_renumbers_on_every_encounter(self, session, academy_cache):
        ceremony_id = academy_cache.ceremony_id(session, 1972)
        session.execute(
            CeremonyUnit.__table__.update().where(CeremonyUnit.ceremony_id == ceremony_id).values(sequence_number=1)
        )
        assert academy_cache.ceremony_id(session, 1972) == ceremony_id
        assert session.scalar(select(CeremonyUnit.sequence_number).where(CeremonyUnit.ceremony_id == ceremony_id)) == 45

    def test_preloaded_ceremony_renumbered(self, session, academy_cache):
        ceremony_id = academy_cache.ceremony_id(session, 1972)
        session.execute(
            CeremonyUnit.__table__.update().where(CeremonyUnit.ceremony_id == ceremony_id).values(sequence_number=7)
        )
        academy_cache.refresh(session)
        assert academy_cache.known_ceremonies() == {1972: ceremony_id}
        academy_cache.ceremony_id(session, 1972)
        assert session.scalar(select(CeremonyUnit.sequence_number).where(CeremonyUnit.ceremony_id == ceremony_id)) == 45

    def test_load_picks_up_existing_ceremonies(self, session, academy_cache):
        ceremony_id = academy_cache.ceremony_id(session, 1999)
        fresh = MasterReferenceCache(academy_cache.source)
        fresh.refresh(session)
        assert fresh.known_ceremonies() == {1999: ceremony_id}

    def test_categories(self, session):
        cache = MasterReferenceCache(CANNES_FILM_FESTIVAL)
        assert cache.category_id(session) == cache.category_id(session, "Palme d'Or")
        assert cache.category_id(session, "Grand Prix") != cache.category_id(session)
        with pytest.raises(KeyError):
            cache.category_id(session, "Best Picture")

    def test_invalidate(self, session, academy_cache):
        academy_cache.ceremony_id(session, 1972)
        academy_cache.invalidate()
        assert not academy_cache.loaded
        assert academy_cache.known_ceremonies() == {}
