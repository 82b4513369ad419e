"""
Structure classification for reference-page sections.

A section (a `<table>` or `<ul>/<ol>`) is tagged as a list block, a table block with a
column map, or rejected. Rules are plain data evaluated in a fixed order so each can be
tested against header fixtures on its own.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from bs4 import Tag

from ingest_service.utils.titles import clean_text

_WORD_RE = re.compile(r"[a-z]+")
_YEAR_HEADER_RE = re.compile(r"^\d{4}(-\d{2})?$")


class ColumnRole(str, enum.Enum):
    title = "title"
    year = "year"
    attribution = "attribution"


@dataclass(frozen=True)
class ColumnRule:
    name: str
    role: ColumnRole
    matches: Callable[[str], bool]


@dataclass(frozen=True)
class RejectionRule:
    name: str
    matches: Callable[[Sequence[str]], bool]


@dataclass(frozen=True)
class ColumnMap:
    title: int
    year: int
    attribution: int | None = None
    year_explicit: bool = False


@dataclass(frozen=True)
class ListBlock:
    element: Tag | None = None
    heading: str | None = None


@dataclass(frozen=True)
class TableBlock:
    column_map: ColumnMap
    element: Tag | None = None
    heading: str | None = None


@dataclass(frozen=True)
class Rejected:
    reason: str
    rule: str | None = None


Classification = ListBlock | TableBlock | Rejected


def header_tokens(header: str) -> set[str]:
    return set(_WORD_RE.findall(header.lower()))


def _is_statistics_summary(headers: Sequence[str]) -> bool:
    tokens: set[str] = set()
    for h in headers:
        tokens |= header_tokens(h)
    return "nominations" in tokens and "wins" in tokens


def _is_jury_roster(headers: Sequence[str]) -> bool:
    lowered = [h.lower() for h in headers]
    return any(("jury" in h or "member" in h or "president" in h) for h in lowered)


def _is_title_header(header: str) -> bool:
    h = header.lower()
    return ("film" in h or "picture" in h or "title" in h) and "studio" not in h


def _is_year_header(header: str) -> bool:
    h = header.lower().strip()
    return "year" in h or "release" in h or bool(_YEAR_HEADER_RE.match(h))


def _is_attribution_header(header: str) -> bool:
    h = header.lower()
    return "studio" in h or "producer" in h or "director" in h


REJECTION_RULES: tuple[RejectionRule, ...] = (
    RejectionRule("statistics-summary", _is_statistics_summary),
    RejectionRule("jury-roster", _is_jury_roster),
)

COLUMN_RULES: tuple[ColumnRule, ...] = (
    ColumnRule("film-or-title", ColumnRole.title, _is_title_header),
    ColumnRule("year-or-release", ColumnRole.year, _is_year_header),
    ColumnRule("studio-producer-director", ColumnRole.attribution, _is_attribution_header),
)


def classify_headers(
    headers: Sequence[str],
    *,
    rejection_rules: Sequence[RejectionRule] = REJECTION_RULES,
    column_rules: Sequence[ColumnRule] = COLUMN_RULES,
) -> TableBlock | Rejected:
    """
    Classify a table from its header texts alone.

    Each header takes the role of the first rule that matches it; the first header
    to claim a role keeps it. Without a title column the table is rejected; without
    a year column the year is assumed to sit in column 0 (row header).
    """
    headers = [clean_text(h) for h in headers]
    for rule in rejection_rules:
        if rule.matches(headers):
            return Rejected(reason=f"rejected by {rule.name}", rule=rule.name)

    found: dict[ColumnRole, int] = {}
    for index, header in enumerate(headers):
        for rule in column_rules:
            if rule.matches(header):
                found.setdefault(rule.role, index)
                break

    if ColumnRole.title not in found:
        return Rejected(reason="no title column", rule="missing-title")

    return TableBlock(
        column_map=ColumnMap(
            title=found[ColumnRole.title],
            year=found.get(ColumnRole.year, 0),
            attribution=found.get(ColumnRole.attribution),
            year_explicit=ColumnRole.year in found,
        )
    )


def table_headers(table: Tag) -> list[str]:
    """Header texts from the first row of `table`, one per spanned column."""
    first_row = table.find("tr")
    if not isinstance(first_row, Tag):
        return []
    headers: list[str] = []
    for cell in first_row.find_all("th"):
        try:
            span = int(cell.get("colspan") or 1)
        except (TypeError, ValueError):
            span = 1
        headers.extend([cell.get_text(" ", strip=True)] * max(span, 1))
    return headers


def classify_section(section: Tag, *, heading: str | None = None) -> Classification:
    if section.name in ("ul", "ol"):
        return ListBlock(element=section, heading=heading)
    if section.name != "table":
        return Rejected(reason=f"unsupported element <{section.name}>", rule="unsupported")

    headers = table_headers(section)
    if not headers:
        return Rejected(reason="table has no header row", rule="missing-header")
    result = classify_headers(headers)
    if isinstance(result, Rejected):
        return result
    return TableBlock(column_map=result.column_map, element=section, heading=heading)
