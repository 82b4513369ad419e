"""Tests for parse/special_awards.py: locating single-winner honours"""

import pytest
from bs4 import BeautifulSoup

from conftest import BASE_URL
from ingest_service.parse.extract import RawEntry
from ingest_service.parse.special_awards import PALME_D_OR, find_special_award_winner, merge_special_winner


def _find(html: str, year: int = 1994):
    return find_special_award_winner(BeautifulSoup(html, "lxml"), PALME_D_OR, year=year, base_url=BASE_URL)


class TestInfobox:
    def test_infobox_winner(self):
        winner = _find(
            '<table class="infobox"><tr><th>Palme d\'Or</th>'
            '<td><i><a href="/wiki/Pulp_Fiction">Pulp Fiction</a></i></td></tr></table>'
        )
        assert winner == RawEntry(
            title="Pulp Fiction",
            year=1994,
            is_winner=True,
            source_url="https://en.wikipedia.org/wiki/Pulp_Fiction",
        )

    def test_infobox_award_link_not_taken_as_title(self):
        """The award's own link is skipped; the film link is used"""
        winner = _find(
            '<table class="infobox"><tr><th>Awards</th>'
            '<td><a href="/wiki/Palme_d%27Or">Palme d\'Or</a>: <a href="/wiki/Pulp_Fiction">Pulp Fiction</a></td>'
            "</tr><tr><th>Palme d’Or</th><td><a href=\"/wiki/Palme_d%27Or\">Palme d'Or</a> "
            '<a href="/wiki/Pulp_Fiction">Pulp Fiction</a></td></tr></table>'
        )
        assert winner is not None
        assert winner.title == "Pulp Fiction"
        assert winner.source_url == "https://en.wikipedia.org/wiki/Pulp_Fiction"


class TestAwardSections:
    def test_list_item_with_italic_title(self):
        winner = _find(
            "<h2>Awards</h2><ul>"
            "<li>Grand Prix: <i>Burnt by the Sun</i></li>"
            "<li>Palme d'Or: <i>Pulp Fiction</i> by Quentin Tarantino</li></ul>"
        )
        assert winner is not None
        assert winner.title == "Pulp Fiction"
        assert winner.is_winner is True

    def test_list_item_prose_pattern(self):
        winner = _find("<h2>Official awards</h2><ul><li>Golden Palm – Pulp Fiction, Quentin Tarantino</li></ul>")
        assert winner is not None
        assert winner.title == "Pulp Fiction"

    @pytest.mark.parametrize(
        "item",
        [
            "Palme d'Or: Anatomy of a Fall by Justine Triet",
            "Palme d'Or – Anatomy of a Fall directed by Justine Triet",
            "Palme d'Or: Anatomy of a Fall",
        ],
    )
    def test_prose_title_stops_at_credit(self, item):
        winner = _find(f"<h2>Awards</h2><ul><li>{item}</li></ul>", year=2023)
        assert winner is not None
        assert winner.title == "Anatomy of a Fall"

    def test_mw_heading_wrapper(self):
        winner = _find(
            '<div class="mw-heading"><h2>Prizes</h2></div>'
            "<p>The following prizes were awarded.</p>"
            "<ul><li>Palme d'Or: <i>Pulp Fiction</i></li></ul>"
        )
        assert winner is not None
        assert winner.title == "Pulp Fiction"

    def test_table_row(self):
        winner = _find(
            "<h3>Awards</h3><table class=\"wikitable\">"
            "<tr><th>Award</th><th>Film</th></tr>"
            "<tr><td>Palme d'Or</td><td><i>Pulp Fiction</i></td></tr></table>"
        )
        assert winner is not None
        assert winner.title == "Pulp Fiction"

    def test_search_stops_at_next_heading(self):
        winner = _find("<h2>Awards</h2><p>None given.</p><h2>Other</h2><ul><li>Palme d'Or: <i>Pulp Fiction</i></li></ul>")
        assert winner is None

    def test_unrelated_sections_ignored(self):
        assert _find("<h2>Juries</h2><ul><li>Palme d'Or jury: <i>Someone</i></li></ul>") is None


class TestMerge:
    def test_matching_entry_flagged(self):
        entries = [RawEntry(title="Pulp Fiction", year=1994), RawEntry(title="Red", year=1994)]
        winner = RawEntry(title="pulp fiction", year=1994, is_winner=True, source_url="https://x/PF")
        merged = merge_special_winner(entries, winner)
        assert [(e.title, e.is_winner) for e in merged] == [("Pulp Fiction", True), ("Red", False)]
        assert merged[0].source_url == "https://x/PF"

    def test_unlisted_winner_appended(self):
        entries = [RawEntry(title="Red", year=1994)]
        merged = merge_special_winner(entries, RawEntry(title="Pulp Fiction", year=1994))
        assert merged[-1] == RawEntry(title="Pulp Fiction", year=1994, is_winner=True)
        assert len(merged) == 2

    def test_no_winner_keeps_entries(self):
        entries = [RawEntry(title="Red", year=1994)]
        assert merge_special_winner(entries, None) == entries
