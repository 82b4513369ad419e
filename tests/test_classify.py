"""Tests for parse/classify.py: header rules and section classification."""

import pytest
from bs4 import BeautifulSoup

from ingest_service.parse.classify import (
    ColumnMap,
    ListBlock,
    Rejected,
    TableBlock,
    classify_headers,
    classify_section,
    header_tokens,
    table_headers,
)


class TestRejectionRules:
    """Summary and roster tables are never treated as nominee tables"""

    def test_nominations_and_wins_rejected(self):
        result = classify_headers(["Studio", "Nominations", "Wins"])
        assert isinstance(result, Rejected)
        assert result.rule == "statistics-summary"

    def test_rejection_is_token_based(self):
        """'Film' plus both tokens is still a statistics table"""
        result = classify_headers(["Film", "Total nominations", "Total wins"])
        assert isinstance(result, Rejected)
        assert result.rule == "statistics-summary"

    def test_nominations_alone_not_rejected(self):
        result = classify_headers(["Film", "Nominations"])
        assert isinstance(result, TableBlock)

    def test_jury_roster_rejected(self):
        result = classify_headers(["Jury member", "Country"])
        assert isinstance(result, Rejected)
        assert result.rule == "jury-roster"

    def test_no_title_column_rejected(self):
        result = classify_headers(["Year", "Producer(s)"])
        assert isinstance(result, Rejected)
        assert result.reason == "no title column"


class TestColumnMapping:
    def test_year_film_producer(self):
        result = classify_headers(["Year", "Film", "Producer(s)"])
        assert isinstance(result, TableBlock)
        assert result.column_map == ColumnMap(title=1, year=0, attribution=2, year_explicit=True)

    def test_year_defaults_to_first_column(self):
        result = classify_headers(["English title", "Original title", "Director(s)"])
        assert isinstance(result, TableBlock)
        assert result.column_map.title == 0
        assert result.column_map.year == 0
        assert result.column_map.year_explicit is False
        assert result.column_map.attribution == 2

    def test_first_header_keeps_role(self):
        """A second title-like header does not move the title column"""
        result = classify_headers(["Picture", "Original title"])
        assert isinstance(result, TableBlock)
        assert result.column_map.title == 0

    def test_studio_is_not_a_title(self):
        """'Film studio' is attribution, not title"""
        result = classify_headers(["Year", "Film studio", "Film"])
        assert isinstance(result, TableBlock)
        assert result.column_map.title == 2
        assert result.column_map.attribution == 1

    @pytest.mark.parametrize("header", ["Year", "Release date", "1972"])
    def test_year_headers(self, header):
        result = classify_headers([header, "Film"])
        assert isinstance(result, TableBlock)
        assert result.column_map.year_explicit is True

    def test_non_breaking_spaces_cleaned(self):
        result = classify_headers(["Year\xa0of release", "Film"])
        assert isinstance(result, TableBlock)
        assert result.column_map.year == 0


class TestSections:
    def test_list_section(self):
        soup = BeautifulSoup("<ul><li>A</li></ul>", "lxml")
        result = classify_section(soup.find("ul"), heading="Awards")
        assert isinstance(result, ListBlock)
        assert result.heading == "Awards"

    def test_table_without_header_row(self):
        soup = BeautifulSoup("<table><tr><td>x</td></tr></table>", "lxml")
        result = classify_section(soup.find("table"))
        assert isinstance(result, Rejected)
        assert result.rule == "missing-header"

    def test_unsupported_element(self):
        soup = BeautifulSoup("<div>x</div>", "lxml")
        assert isinstance(classify_section(soup.find("div")), Rejected)

    def test_table_headers_first_row_only(self):
        soup = BeautifulSoup(
            "<table><tr><th>Year</th><th>Film</th></tr><tr><th>1972</th><td>X</td></tr></table>", "lxml"
        )
        assert table_headers(soup.find("table")) == ["Year", "Film"]

    def test_table_headers_repeat_spanned_columns(self):
        soup = BeautifulSoup('<table><tr><th>Year</th><th colspan="2">Film</th><th>Producer</th></tr></table>', "lxml")
        headers = table_headers(soup.find("table"))
        assert headers == ["Year", "Film", "Film", "Producer"]
        assert classify_headers(headers).column_map == ColumnMap(title=1, year=0, attribution=3, year_explicit=True)

    def test_header_tokens(self):
        assert header_tokens("Total Nominations (wins)") == {"total", "nominations", "wins"}
