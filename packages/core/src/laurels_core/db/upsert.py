"""Dialect-native batched upserts keyed on natural keys."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from laurels_core.db.base import Base

# Stay under SQLite's bound-parameter limit for multi-row VALUES.
DEFAULT_CHUNK_SIZE = 200


def dialect_insert(session: Session):
    """Return the `insert()` construct of the bound dialect (supports ON CONFLICT)."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upsert is not supported for dialect {name!r}")
    return insert


def upsert_rows(
    session: Session,
    model: type[Base],
    rows: Iterable[Mapping[str, Any]],
    *,
    key: Sequence[str] | None,
    update: Sequence[str] = (),
    touch: str | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Insert `rows` into `model`, resolving conflicts on the natural `key`.

    - `update` empty: conflicting rows are left untouched (ON CONFLICT DO NOTHING).
      With `key=None` any unique violation is ignored.
    - `update` given: the listed columns are overwritten from the incoming row
      (ON CONFLICT (key) DO UPDATE); `touch` names a timestamp column set to now.

    Rows sharing a key within one call collapse to the last one, since a single
    statement may not affect the same row twice.
    """
    batch = _dedupe(rows, key)
    if not batch:
        return 0
    if update and not key:
        raise ValueError("update columns require a conflict key")

    insert = dialect_insert(session)
    affected = 0
    for start in range(0, len(batch), chunk_size):
        chunk = batch[start : start + chunk_size]
        stmt = insert(model).values(chunk)
        if update:
            set_: dict[str, Any] = {col: stmt.excluded[col] for col in update}
            if touch:
                set_[touch] = datetime.now(timezone.utc)
            stmt = stmt.on_conflict_do_update(index_elements=list(key or ()), set_=set_)
        elif key:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(key))
        else:
            stmt = stmt.on_conflict_do_nothing()
        result = session.execute(stmt)
        affected += max(result.rowcount or 0, 0)
    return affected


def _dedupe(rows: Iterable[Mapping[str, Any]], key: Sequence[str] | None) -> list[dict[str, Any]]:
    if not key:
        return [dict(r) for r in rows]
    by_key: dict[tuple, dict[str, Any]] = {}
    for row in rows:
        by_key[tuple(row.get(k) for k in key)] = dict(row)
    return list(by_key.values())
