"""Tests for laurels_core: upserts, lookups and display titles on SQLite."""

import uuid

import pytest
from sqlalchemy import func, select

from laurels_core.db.enums import TextKind
from laurels_core.db.models import AwardOrganization, CanonicalWork, LocalizedText
from laurels_core.db.queries import display_title, find_work_by_default_title
from laurels_core.db.upsert import upsert_rows
from laurels_core.identity import organization_id_for, text_id_for


def _work(session, **kwargs):
    work = CanonicalWork(work_id=uuid.uuid4(), **kwargs)
    session.add(work)
    session.flush()
    return work


def _title(work_id, lang, content, *, is_default=False):
    return {
        "text_id": text_id_for(work_id=work_id, kind="title", language_code=lang),
        "work_id": work_id,
        "kind": TextKind.title,
        "language_code": lang,
        "content": content,
        "is_default": is_default,
    }


class TestUpsert:
    def test_do_nothing_keeps_first(self, session):
        work = _work(session)
        key = ("work_id", "kind", "language_code")
        upsert_rows(session, LocalizedText, [_title(work.work_id, "en", "First", is_default=True)], key=key)
        upsert_rows(session, LocalizedText, [_title(work.work_id, "en", "Second", is_default=True)], key=key)
        assert session.scalars(select(LocalizedText.content)).all() == ["First"]

    def test_update_overwrites_listed_columns(self, session):
        work = _work(session)
        key = ("work_id", "kind", "language_code")
        upsert_rows(session, LocalizedText, [_title(work.work_id, "ja", "Old")], key=key, update=("content",))
        upsert_rows(
            session,
            LocalizedText,
            [_title(work.work_id, "ja", "New")],
            key=key,
            update=("content",),
            touch="updated_at",
        )
        row = session.scalars(select(LocalizedText)).one()
        assert row.content == "New"
        assert row.updated_at is not None

    def test_duplicate_keys_in_one_batch_collapse(self, session):
        work = _work(session)
        rows = [_title(work.work_id, "en", "A", is_default=True), _title(work.work_id, "en", "B", is_default=True)]
        upsert_rows(session, LocalizedText, rows, key=("work_id", "kind", "language_code"), update=("content",))
        assert session.scalars(select(LocalizedText.content)).all() == ["B"]

    def test_update_requires_key(self, session):
        with pytest.raises(ValueError):
            upsert_rows(session, AwardOrganization, [{"organization_id": uuid.uuid4(), "name": "X"}], key=None, update=("name",))

    def test_empty_batch(self, session):
        assert upsert_rows(session, AwardOrganization, [], key=("name",)) == 0

    def test_chunking(self, session):
        rows = [{"organization_id": organization_id_for(f"Org {i}"), "name": f"Org {i}"} for i in range(25)]
        upsert_rows(session, AwardOrganization, rows, key=("name",), chunk_size=10)
        upsert_rows(session, AwardOrganization, rows, key=("name",), chunk_size=10)
        assert session.scalar(select(func.count()).select_from(AwardOrganization)) == 25


class TestTitles:
    def _work_with_titles(self, session):
        work = _work(session)
        upsert_rows(
            session,
            LocalizedText,
            [_title(work.work_id, "en", "Spirited Away", is_default=True), _title(work.work_id, "ja", "千と千尋の神隠し")],
            key=("work_id", "kind", "language_code"),
        )
        return work

    def test_requested_language(self, session):
        work = self._work_with_titles(session)
        assert display_title(session, work.work_id, "ja") == "千と千尋の神隠し"

    def test_falls_back_to_default(self, session):
        """An unsupported locale never renders an empty title"""
        work = self._work_with_titles(session)
        assert display_title(session, work.work_id, "fr") == "Spirited Away"
        assert display_title(session, work.work_id) == "Spirited Away"

    def test_falls_back_to_any_title(self, session):
        work = _work(session)
        upsert_rows(
            session,
            LocalizedText,
            [_title(work.work_id, "ko", "기생충"), _title(work.work_id, "fr", "Parasite")],
            key=("work_id", "kind", "language_code"),
        )
        assert display_title(session, work.work_id, "de") == "Parasite"

    def test_no_titles(self, session):
        assert display_title(session, _work(session).work_id, "en") is None

    def test_find_by_default_title_exact(self, session):
        work = self._work_with_titles(session)
        assert find_work_by_default_title(session, "Spirited Away", language_code="en").work_id == work.work_id
        assert find_work_by_default_title(session, "spirited away", language_code="en") is None
        assert find_work_by_default_title(session, "千と千尋の神隠し", language_code="ja") is None


class TestSessionScope:
    def test_commits_on_success(self, session_factory):
        from laurels_core.db.session import session_scope

        with session_scope(session_factory) as session:
            session.add(AwardOrganization(organization_id=organization_id_for("BAFTA"), name="BAFTA"))
        with session_factory() as session:
            assert session.scalar(select(AwardOrganization.name)) == "BAFTA"

    def test_rolls_back_on_error(self, session_factory):
        from laurels_core.db.session import session_scope

        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as session:
                session.add(AwardOrganization(organization_id=organization_id_for("BAFTA"), name="BAFTA"))
                session.flush()
                raise RuntimeError("boom")
        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(AwardOrganization)) == 0
