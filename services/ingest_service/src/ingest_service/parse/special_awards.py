"""
Secondary extraction for single-winner honours (e.g. the Palme d'Or).

Such awards are announced in the page infobox or in an "Awards" section rather than
in the nominee table, so they are located separately and merged into the year's
entries.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from ingest_service.parse.extract import RawEntry, extract_links, following_section_elements, is_footnote_link
from ingest_service.utils.titles import clean_text, clean_title, normalize_quotes, normalize_title
from ingest_service.utils.urls import absolute_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpecialAward:
    name: str
    # Lowercase spellings used to spot the award in headers and prose.
    aliases: tuple[str, ...]
    # Prose phrasings capturing the winning title in group 1.
    patterns: tuple[re.Pattern[str], ...]
    # Tokens that must not appear in an extracted title.
    tokens: tuple[str, ...]
    section_keywords: tuple[str, ...] = ("award", "prize")
    max_siblings: int = 10

    def mentioned_in(self, text: str) -> bool:
        lowered = normalize_quotes(text).lower()
        return any(alias in lowered for alias in self.aliases)

    def is_plausible_title(self, title: str) -> bool:
        lowered = normalize_quotes(title).lower()
        return bool(title) and not any(token in lowered for token in self.tokens)


PALME_D_OR = SpecialAward(
    name="Palme d'Or",
    aliases=("palme d'or", "palm d'or", "golden palm"),
    patterns=(
        re.compile(r"palme d'or[:\s–—-]+([^,\n(]+?)(?=\s+(?:directed\s+)?by\s|[,\n(]|$)", re.IGNORECASE),
        re.compile(r"palm d'or[:\s–—-]+([^,\n(]+?)(?=\s+(?:directed\s+)?by\s|[,\n(]|$)", re.IGNORECASE),
        re.compile(r"golden palm[:\s–—-]+([^,\n(]+?)(?=\s+(?:directed\s+)?by\s|[,\n(]|$)", re.IGNORECASE),
    ),
    tokens=("palme", "palm d'or", "golden palm"),
)


def find_special_award_winner(
    soup: BeautifulSoup,
    award: SpecialAward,
    *,
    year: int,
    base_url: str,
) -> RawEntry | None:
    """Infobox first, then list items and table rows after award/prize headings."""
    entry = _from_infobox(soup, award, year=year, base_url=base_url)
    if entry is not None:
        return entry

    for heading in soup.find_all(("h2", "h3", "h4")):
        text = heading.get_text(" ", strip=True).lower()
        if not any(k in text for k in award.section_keywords):
            continue
        for element in following_section_elements(heading, limit=award.max_siblings):
            entry = _from_list_items(element, award, year=year, base_url=base_url)
            if entry is None:
                entry = _from_table_rows(element, award, year=year, base_url=base_url)
            if entry is not None:
                return entry
    logger.debug("No %s winner found for %s", award.name, year)
    return None


def merge_special_winner(entries: list[RawEntry], winner: RawEntry | None) -> list[RawEntry]:
    """Flag the matching entry as winner, or append the winner when it is not listed."""
    if winner is None:
        return list(entries)
    key = normalize_title(winner.title)
    merged: list[RawEntry] = []
    matched = False
    for entry in entries:
        if not matched and entry.year == winner.year and normalize_title(entry.title) == key:
            matched = True
            entry = dataclasses.replace(
                entry,
                is_winner=True,
                source_url=entry.source_url or winner.source_url,
                alternate_id=entry.alternate_id or winner.alternate_id,
            )
        merged.append(entry)
    if not matched:
        merged.append(dataclasses.replace(winner, is_winner=True))
    return merged


def _from_infobox(soup: BeautifulSoup, award: SpecialAward, *, year: int, base_url: str) -> RawEntry | None:
    for infobox in soup.select(".infobox"):
        for row in infobox.find_all("tr"):
            header = row.find("th")
            if not isinstance(header, Tag) or not award.mentioned_in(header.get_text(" ", strip=True)):
                continue
            cell = row.find("td")
            if not isinstance(cell, Tag):
                continue
            entry = _entry_from_cell(cell, award, year=year, base_url=base_url, allow_text=False)
            if entry is not None:
                return entry
    return None


def _from_list_items(element: Tag, award: SpecialAward, *, year: int, base_url: str) -> RawEntry | None:
    items: Iterator[Tag] = iter([element]) if element.name == "li" else iter(element.find_all("li"))
    for item in items:
        if not award.mentioned_in(item.get_text(" ", strip=True)):
            continue
        entry = _entry_from_cell(item, award, year=year, base_url=base_url, allow_text=False)
        if entry is not None:
            return entry
        text = normalize_quotes(clean_text(item.get_text(" ", strip=True)))
        for pattern in award.patterns:
            m = pattern.search(text)
            if not m:
                continue
            title = clean_title(m.group(1))
            if award.is_plausible_title(title):
                return RawEntry(title=title, year=year, is_winner=True)
    return None


def _from_table_rows(element: Tag, award: SpecialAward, *, year: int, base_url: str) -> RawEntry | None:
    tables = [element] if element.name == "table" else element.find_all("table")
    for table in tables:
        for row in table.find_all("tr"):
            if not award.mentioned_in(row.get_text(" ", strip=True)):
                continue
            cells = row.find_all("td")
            # The award name sits in the first cell, the film in the second.
            if len(cells) < 2:
                continue
            entry = _entry_from_cell(cells[1], award, year=year, base_url=base_url, allow_text=True)
            if entry is not None:
                return entry
    return None


def _entry_from_cell(
    cell: Tag,
    award: SpecialAward,
    *,
    year: int,
    base_url: str,
    allow_text: bool,
) -> RawEntry | None:
    title = ""
    italic = cell.find("i")
    if isinstance(italic, Tag):
        title = clean_title(italic.get_text(" ", strip=True))
    if not title:
        for link in cell.find_all("a"):
            if is_footnote_link(link):
                continue
            candidate = clean_title(link.get_text(" ", strip=True))
            if candidate and award.is_plausible_title(candidate):
                title = candidate
                break
    if not title and allow_text:
        title = clean_title(cell.get_text(" ", strip=True))
    if not award.is_plausible_title(title):
        return None
    _, alternate_id = extract_links(cell, base_url=base_url)
    return RawEntry(
        title=title,
        year=year,
        is_winner=True,
        source_url=_title_link_url(cell, title, base_url=base_url),
        alternate_id=alternate_id,
    )


def _title_link_url(cell: Tag, title: str, *, base_url: str) -> str | None:
    """URL of the link whose text is the title (not the award's own link)."""
    key = normalize_title(title)
    for link in cell.find_all("a", href=True):
        if is_footnote_link(link):
            continue
        if normalize_title(clean_title(link.get_text(" ", strip=True))) != key:
            continue
        href = link.get("href")
        return absolute_url(href if isinstance(href, str) else None, base_url=base_url)
    return None
