from __future__ import annotations

import logging
from collections import defaultdict

from bs4 import BeautifulSoup

from ingest_service.parse.extract import RawEntry, extract_block, iter_blocks
from ingest_service.parse.special_awards import find_special_award_winner, merge_special_winner
from ingest_service.sources import AwardSource

logger = logging.getLogger(__name__)


def extract_document(html: str, source: AwardSource, *, base_url: str, year: int | None = None) -> list[RawEntry]:
    """
    All entries of one reference page.

    For per-year pages `year` seeds the running year and scopes the special-award
    pass; single pages carry their years in row headers.
    """
    soup = BeautifulSoup(html, "lxml")
    entries: list[RawEntry] = []
    blocks = 0
    for block in iter_blocks(
        soup,
        table_selector=source.table_selector,
        first_only=source.first_table_only,
        section_keywords=source.section_keywords,
    ):
        blocks += 1
        entries.extend(extract_block(block, base_url=base_url, start_year=year if source.per_year else None))
    if blocks == 0:
        logger.info("%s: no usable section found%s", source.key, f" for {year}" if year else "")

    if source.special_award is not None and year is not None:
        winner = find_special_award_winner(soup, source.special_award, year=year, base_url=base_url)
        if winner is not None:
            logger.info("%s %s: %s winner %r", source.key, year, source.special_award.name, winner.title)
        entries = merge_special_winner(entries, winner)
    return entries


def group_by_year(entries: list[RawEntry]) -> dict[int, list[RawEntry]]:
    """Entries per year, keeping the first occurrence of each (title, year)."""
    grouped: dict[int, list[RawEntry]] = defaultdict(list)
    seen: set[tuple[str, int]] = set()
    for entry in entries:
        if entry.dedup_key in seen:
            continue
        seen.add(entry.dedup_key)
        grouped[entry.year].append(entry)
    return dict(grouped)
