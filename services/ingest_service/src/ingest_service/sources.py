"""Award sources: where each organization's ceremonies are published and how to read them."""

from __future__ import annotations

from dataclasses import dataclass

from ingest_service.parse.special_awards import PALME_D_OR, SpecialAward


@dataclass(frozen=True)
class CategorySpec:
    name: str
    short_name: str


@dataclass(frozen=True)
class AwardSource:
    key: str
    organization_name: str
    short_name: str
    country: str
    established_year: int
    # Ceremony sequence numbers count from this year.
    first_ceremony_year: int
    categories: tuple[CategorySpec, ...]
    # short_name of the category nominations are recorded under
    primary_category: str
    # Path on the reference site; "{year}" marks a per-year page.
    page_path: str
    table_selector: str = "table.wikitable"
    first_table_only: bool = False
    section_keywords: tuple[str, ...] = ()
    special_award: SpecialAward | None = None
    default_language: str = "en"

    @property
    def per_year(self) -> bool:
        return "{year}" in self.page_path

    def page_url(self, base_url: str, year: int | None = None) -> str:
        path = self.page_path
        if self.per_year:
            if year is None:
                raise ValueError(f"{self.key} publishes one page per year; a year is required")
            path = path.format(year=year)
        return f"{base_url.rstrip('/')}{path}"

    def sequence_number(self, year: int) -> int:
        return year - self.first_ceremony_year + 1

    def category(self, short_name: str) -> CategorySpec:
        for c in self.categories:
            if c.short_name == short_name:
                return c
        raise KeyError(f"{self.key} has no category {short_name!r}")


ACADEMY_AWARDS = AwardSource(
    key="academy-awards",
    organization_name="Academy Awards",
    short_name="Oscars",
    country="US",
    established_year=1929,
    first_ceremony_year=1928,
    categories=(CategorySpec(name="Best Picture", short_name="Best Picture"),),
    primary_category="Best Picture",
    page_path="/wiki/Academy_Award_for_Best_Picture",
    table_selector="table.wikitable.sortable",
)

CANNES_FILM_FESTIVAL = AwardSource(
    key="cannes",
    organization_name="Cannes Film Festival",
    short_name="Cannes",
    country="France",
    established_year=1946,
    first_ceremony_year=1946,
    categories=(
        CategorySpec(name="Palme d'Or", short_name="Palme d'Or"),
        CategorySpec(name="Grand Prix", short_name="Grand Prix"),
    ),
    # Films in competition are recorded as Palme d'Or nominees.
    primary_category="Palme d'Or",
    page_path="/wiki/{year}_Cannes_Film_Festival",
    table_selector="table.wikitable",
    first_table_only=True,
    section_keywords=("film", "official selection"),
    special_award=PALME_D_OR,
)

SOURCES: dict[str, AwardSource] = {s.key: s for s in (ACADEMY_AWARDS, CANNES_FILM_FESTIVAL)}


def get_source(key: str) -> AwardSource:
    try:
        return SOURCES[key]
    except KeyError:
        known = ", ".join(sorted(SOURCES))
        raise KeyError(f"Unknown award source {key!r} (known: {known})") from None
