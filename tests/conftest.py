"""
Shared fixtures: an in-memory SQLite catalogue, canned reference pages and a
recording document fetcher.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from laurels_core.db import models  # noqa: F401
from laurels_core.db.base import Base
from ingest_service.fetch.http_client import FetchResult
from ingest_service.reference_cache import MasterReferenceCache
from ingest_service.sources import ACADEMY_AWARDS

BASE_URL = "https://en.wikipedia.org"


ACADEMY_PAGE = """
<html><body>
<h2>Winners and nominees</h2>
<table class="wikitable sortable">
  <tr><th>Year</th><th>Film</th><th>Producer(s)</th></tr>
  <tr>
    <th rowspan="2"><a href="/wiki/1972_in_film">1972</a> (45th)</th>
    <td style="background:#FAEB86"><b><i><a href="/wiki/The_Godfather">The Godfather</a></i></b></td>
    <td>Albert S. Ruddy</td>
  </tr>
  <tr>
    <td><i><a href="/wiki/Cabaret_(1972_film)">Cabaret</a></i></td>
    <td>Cy Feuer</td>
  </tr>
  <tr>
    <th>1929/30 (3rd)</th>
    <td><b><i><a href="/wiki/All_Quiet_on_the_Western_Front_(1930_film)">All Quiet on the Western Front</a></i></b></td>
    <td>Carl Laemmle Jr.</td>
  </tr>
</table>
<h2>Statistics</h2>
<table class="wikitable sortable">
  <tr><th>Studio</th><th>Nominations</th><th>Wins</th></tr>
  <tr><td>Paramount</td><td>40</td><td>12</td></tr>
</table>
</body></html>
"""


CANNES_PAGE = """
<html><body>
<table class="infobox">
  <tr><th>Palme d'Or</th><td><i><a href="/wiki/Parasite_(2019_film)">Parasite</a></i></td></tr>
</table>
<h2>Juries</h2>
<table class="wikitable">
  <tr><th>Jury member</th><th>Country</th></tr>
  <tr><td>Alejandro G. Iñárritu</td><td>Mexico</td></tr>
</table>
<h2>Official selection</h2>
<h3>In competition</h3>
<table class="wikitable">
  <tr><th>English title</th><th>Original title</th><th>Director(s)</th></tr>
  <tr><td><i><a href="/wiki/Parasite_(2019_film)">Parasite</a></i></td><td>기생충</td><td>Bong Joon-ho</td></tr>
  <tr><td><i><a href="/wiki/Pain_and_Glory">Pain and Glory</a></i></td><td>Dolor y gloria</td><td>Pedro Almodóvar</td></tr>
</table>
</body></html>
"""


class StubFetcher:
    """Document fetcher serving canned pages by URL; unknown URLs are 404."""

    def __init__(self, pages: dict[str, str], *, failures: dict[str, int] | None = None) -> None:
        self.pages = pages
        self.failures = failures or {}
        self.requested: list[str] = []

    def fetch(self, url: str) -> FetchResult:
        self.requested.append(url)
        now = datetime.now(timezone.utc)
        if url in self.failures:
            status = self.failures[url]
            return FetchResult(url=url, status_code=status, text=None, content_type=None, fetched_at=now, error=f"HTTP {status}")
        if url not in self.pages:
            return FetchResult(url=url, status_code=404, text=None, content_type=None, fetched_at=now, error="HTTP 404")
        return FetchResult(url=url, status_code=200, text=self.pages[url], content_type="text/html", fetched_at=now)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def academy_cache():
    return MasterReferenceCache(ACADEMY_AWARDS)
