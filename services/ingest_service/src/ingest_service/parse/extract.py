"""Entry extraction from classified reference-page sections."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from ingest_service.parse.classify import ColumnMap, ListBlock, Rejected, TableBlock, classify_section
from ingest_service.utils.titles import clean_text, clean_title, normalize_title
from ingest_service.utils.urls import absolute_url, imdb_id_from_url

logger = logging.getLogger(__name__)

WINNER_HIGHLIGHT = "#faeb86"

_YEAR_RANGE_RE = re.compile(r"(?<!\d)(\d{4})\s*[/–-]\s*(\d{2})(?!\d)")
_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")
_BACKGROUND_RE = re.compile(r"background(?:-color)?\s*:\s*([^;]+)", re.IGNORECASE)
_LIST_TITLE_RE = re.compile(r"^([^–—-]+)")
_LIST_ATTRIBUTION_RE = re.compile(r"(?:directed by|by|–|—)\s*([^,\n]+)", re.IGNORECASE)
_HEADING_TAGS = ("h2", "h3", "h4")


@dataclass(frozen=True)
class RawEntry:
    title: str
    year: int
    is_winner: bool = False
    attribution: str | None = None
    source_url: str | None = None
    alternate_id: str | None = None
    special_mention: str | None = None

    @property
    def dedup_key(self) -> tuple[str, int]:
        return (normalize_title(self.title), self.year)


def parse_year(text: str | None) -> int | None:
    """
    Year from a row-header text.

    "1929/30" and "1927-28" give the end year (1930, 1928), "1999/00" rolls over to
    2000; otherwise the first four-digit run is used ("2023 (96th)" gives 2023).
    """
    if not text:
        return None
    m = _YEAR_RANGE_RE.search(text)
    if m:
        start = int(m.group(1))
        end = int(m.group(2))
        full_end = start - start % 100 + end
        if full_end < start:
            full_end += 100
        return full_end
    m = _YEAR_RE.search(text)
    if m:
        return int(m.group(1))
    return None


def has_winner_highlight(tag: Tag | None) -> bool:
    if tag is None:
        return False
    bgcolor = tag.get("bgcolor")
    if isinstance(bgcolor, str) and bgcolor.strip().lower() == WINNER_HIGHLIGHT:
        return True
    style = tag.get("style")
    if isinstance(style, str):
        for value in _BACKGROUND_RE.findall(style):
            if WINNER_HIGHLIGHT in value.lower():
                return True
    return False


def is_winner_cell(cell: Tag, row: Tag | None = None) -> bool:
    """Bold/strong markup, the winner highlight colour, or an asterisk marker."""
    if cell.find(["b", "strong"]) is not None:
        return True
    if has_winner_highlight(cell) or has_winner_highlight(row):
        return True
    return "*" in cell.get_text()


def extract_title(cell: Tag) -> str:
    """Italic span first, then the first link's text, then the whole cell text."""
    italic = cell.find("i")
    if isinstance(italic, Tag):
        text = italic.get_text(" ", strip=True)
        if text:
            return clean_title(text)
    for link in cell.find_all("a"):
        if is_footnote_link(link):
            continue
        text = link.get_text(" ", strip=True)
        if text:
            return clean_title(text)
        break
    return clean_title(_text_without_footnotes(cell))


def extract_links(cell: Tag, *, base_url: str) -> tuple[str | None, str | None]:
    """(reference URL of the first content link, IMDb id from any link)."""
    reference_url: str | None = None
    alternate_id: str | None = None
    for link in cell.find_all("a", href=True):
        if is_footnote_link(link):
            continue
        href = link.get("href")
        url = absolute_url(href if isinstance(href, str) else None, base_url=base_url)
        if url is None:
            continue
        imdb = imdb_id_from_url(url)
        if imdb and alternate_id is None:
            alternate_id = imdb
            continue
        if reference_url is None:
            reference_url = url
    return reference_url, alternate_id


def extract_table_entries(
    table: Tag,
    column_map: ColumnMap,
    *,
    base_url: str,
    start_year: int | None = None,
) -> list[RawEntry]:
    """
    Walk table rows carrying a running year.

    Header positions from `column_map` are mapped onto each row's cells; rows that
    are short of the header width are taken to lose their leading cells to a rowspan.
    A year found in the year column (or, without an explicit one, in the row's
    leading header cell) replaces the running year and resets the dedup window.
    Rows before any year is known are skipped, as are rows without a title.
    """
    entries: list[RawEntry] = []
    current_year = start_year
    seen: set[tuple[str, int]] = set()

    rows = table.find_all("tr")
    width = len(_row_columns(rows[0])) if rows else 0
    for index, row in enumerate(rows[1:], start=1):
        if _nested_in_other_table(row, table):
            continue
        cells = row.find_all("td", recursive=False)
        header = row.find("th", recursive=False)
        if not cells and header is None:
            continue
        columns = _row_columns(row)
        offset = max(width - len(columns), 0)

        if column_map.year_explicit:
            year_cell = _column(columns, column_map.year, offset)
        else:
            year_cell = header if isinstance(header, Tag) else None
        year = parse_year(year_cell.get_text(" ", strip=True)) if year_cell is not None else None
        if year is not None and year != current_year:
            current_year = year
            seen.clear()
        if current_year is None:
            logger.debug("Row %d skipped: no year established", index)
            continue
        if not cells:
            continue

        title_cell = _column(columns, column_map.title, offset)
        if title_cell is None or title_cell.name != "td" or title_cell is year_cell:
            title_cell = cells[0]
        title = extract_title(title_cell)
        if not title:
            logger.debug("Row %d skipped: no title", index)
            continue

        key = (normalize_title(title), current_year)
        if key in seen:
            logger.debug("Skipping duplicate %r (%s)", title, current_year)
            continue
        seen.add(key)

        attribution = None
        if column_map.attribution is not None:
            attribution_cell = _column(columns, column_map.attribution, offset)
            if attribution_cell is not None and attribution_cell is not title_cell:
                attribution = clean_text(_text_without_footnotes(attribution_cell)) or None
        reference_url, alternate_id = extract_links(title_cell, base_url=base_url)
        entries.append(
            RawEntry(
                title=title,
                year=current_year,
                is_winner=is_winner_cell(title_cell, row),
                attribution=attribution,
                source_url=reference_url,
                alternate_id=alternate_id,
            )
        )
    return entries


def extract_list_entries(items_parent: Tag, *, base_url: str, start_year: int | None) -> list[RawEntry]:
    if start_year is None:
        logger.debug("List block skipped: no year established")
        return []
    entries: list[RawEntry] = []
    seen: set[tuple[str, int]] = set()
    for item in items_parent.find_all("li"):
        title = _list_item_title(item)
        if not title:
            continue
        key = (normalize_title(title), start_year)
        if key in seen:
            continue
        seen.add(key)
        text = _text_without_footnotes(item)
        m = _LIST_ATTRIBUTION_RE.search(text)
        reference_url, alternate_id = extract_links(item, base_url=base_url)
        entries.append(
            RawEntry(
                title=title,
                year=start_year,
                is_winner=is_winner_cell(item),
                attribution=clean_text(m.group(1)) if m else None,
                source_url=reference_url,
                alternate_id=alternate_id,
            )
        )
    return entries


def extract_block(block: TableBlock | ListBlock, *, base_url: str, start_year: int | None = None) -> list[RawEntry]:
    if block.element is None:
        return []
    if isinstance(block, TableBlock):
        return extract_table_entries(block.element, block.column_map, base_url=base_url, start_year=start_year)
    return extract_list_entries(block.element, base_url=base_url, start_year=start_year)


def iter_blocks(
    soup: BeautifulSoup,
    *,
    table_selector: str,
    first_only: bool = False,
    section_keywords: tuple[str, ...] = (),
    max_siblings: int = 15,
) -> Iterator[TableBlock | ListBlock]:
    """
    Yield accepted blocks in document order.

    Tables matching `table_selector` are classified first. When none is accepted,
    siblings following headings that mention one of `section_keywords` are searched
    for tables and lists.
    """
    yielded = False
    for table in soup.select(table_selector):
        if _inside_infobox(table):
            continue
        result = classify_section(table, heading=_preceding_heading(table))
        if isinstance(result, Rejected):
            logger.debug("Section skipped (%s)", result.reason)
            continue
        yielded = True
        yield result
        if first_only:
            return
    if yielded or not section_keywords:
        return

    for heading in soup.find_all(_HEADING_TAGS):
        heading_text = clean_text(heading.get_text(" ", strip=True))
        if not any(k in heading_text.lower() for k in section_keywords):
            continue
        for element in following_section_elements(heading, limit=max_siblings):
            candidates = [element] if element.name in ("table", "ul", "ol") else element.find_all(
                ["table", "ul", "ol"], limit=1
            )
            for candidate in candidates:
                result = classify_section(candidate, heading=heading_text)
                if isinstance(result, Rejected):
                    continue
                yield result
                if first_only:
                    return


def section_start(heading: Tag) -> Tag:
    """Newer page markup wraps headings in <div class="mw-heading">; walk from the wrapper."""
    parent = heading.parent
    if isinstance(parent, Tag) and "mw-heading" in (parent.get("class") or []):
        return parent
    return heading


def following_section_elements(heading: Tag, *, limit: int) -> Iterator[Tag]:
    count = 0
    for sibling in section_start(heading).find_next_siblings():
        if count >= limit:
            return
        if sibling.name in _HEADING_TAGS or "mw-heading" in (sibling.get("class") or []):
            return
        count += 1
        yield sibling


def _list_item_title(item: Tag) -> str:
    italic = item.find("i")
    if isinstance(italic, Tag) and italic.get_text(strip=True):
        return clean_title(italic.get_text(" ", strip=True))
    for link in item.find_all("a"):
        if is_footnote_link(link):
            continue
        text = link.get_text(" ", strip=True)
        if text:
            return clean_title(text)
        break
    m = _LIST_TITLE_RE.match(_text_without_footnotes(item))
    return clean_title(m.group(1)) if m else ""


def _preceding_heading(element: Tag) -> str | None:
    heading = element.find_previous(_HEADING_TAGS)
    return clean_text(heading.get_text(" ", strip=True)) if isinstance(heading, Tag) else None


def is_footnote_link(link: Tag) -> bool:
    if link.find_parent("sup") is not None:
        return True
    href = link.get("href")
    return isinstance(href, str) and href.startswith("#")


def _text_without_footnotes(tag: Tag) -> str:
    parts: list[str] = []
    for s in tag.find_all(string=True):
        if s.find_parent("sup") is not None:
            continue
        parts.append(str(s))
    return clean_text(" ".join(parts))


def _inside_infobox(tag: Tag) -> bool:
    for parent in tag.parents:
        if isinstance(parent, Tag) and "infobox" in (parent.get("class") or []):
            return True
    return "infobox" in (tag.get("class") or [])


def _nested_in_other_table(row: Tag, table: Tag) -> bool:
    return row.find_parent("table") is not table


def _row_columns(row: Tag) -> list[Tag]:
    """Direct cells of `row`, each repeated once per column it spans."""
    columns: list[Tag] = []
    for cell in row.find_all(["th", "td"], recursive=False):
        try:
            span = int(cell.get("colspan") or 1)
        except (TypeError, ValueError):
            span = 1
        columns.extend([cell] * max(span, 1))
    return columns


def _column(columns: list[Tag], header_index: int, offset: int) -> Tag | None:
    position = header_index - offset
    if 0 <= position < len(columns):
        return columns[position]
    return None
