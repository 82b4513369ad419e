from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from laurels_core.db.enums import TextKind
from laurels_core.db.models import CanonicalWork, LocalizedText


def find_work_by_alternate_id(session: Session, alternate_id: str) -> CanonicalWork | None:
    return session.scalars(
        select(CanonicalWork).where(CanonicalWork.external_alternate_id == alternate_id).limit(1)
    ).first()


def find_work_by_external_id(session: Session, external_id: int) -> CanonicalWork | None:
    return session.scalars(select(CanonicalWork).where(CanonicalWork.external_id == external_id).limit(1)).first()


def find_works_by_default_title(session: Session, title: str, *, language_code: str) -> list[CanonicalWork]:
    """Works whose default-language title text is exactly `title`, oldest first."""
    stmt = (
        select(CanonicalWork)
        .join(LocalizedText, LocalizedText.work_id == CanonicalWork.work_id)
        .where(
            LocalizedText.kind == TextKind.title,
            LocalizedText.language_code == language_code,
            LocalizedText.is_default.is_(True),
            LocalizedText.content == title,
        )
        .order_by(CanonicalWork.created_at, CanonicalWork.work_id)
    )
    return list(session.scalars(stmt).all())


def find_work_by_default_title(session: Session, title: str, *, language_code: str) -> CanonicalWork | None:
    works = find_works_by_default_title(session, title, language_code=language_code)
    return works[0] if works else None


def display_title(session: Session, work_id: uuid.UUID, language_code: str | None = None) -> str | None:
    """
    Title to show for `work_id` in `language_code`.

    Falls back to the default text, then to any title text, so a work that has a
    default title never renders an empty title for an unsupported locale.
    """
    rows = session.execute(
        select(LocalizedText.language_code, LocalizedText.content, LocalizedText.is_default).where(
            LocalizedText.work_id == work_id,
            LocalizedText.kind == TextKind.title,
        )
    ).all()
    texts = [r for r in rows if (r.content or "").strip()]
    if not texts:
        return None
    if language_code:
        for lang, content, _ in texts:
            if lang == language_code:
                return content
    for _, content, is_default in texts:
        if is_default:
            return content
    return sorted(texts, key=lambda r: r.language_code)[0].content
