"""URL helpers for reference-page links."""

from __future__ import annotations

import re
from urllib.parse import urldefrag, urljoin, urlparse

_IMDB_TITLE_RE = re.compile(r"/title/(tt\d+)")


def absolute_url(href: str | None, *, base_url: str) -> str | None:
    """
    Resolve `href` against `base_url`, dropping fragments.

    Pure in-page anchors (citation links such as "#cite_note-3") yield None.
    """
    if not href:
        return None
    href = "".join(href.split())
    if not href or href.startswith("#"):
        return None
    url, _ = urldefrag(urljoin(base_url, href))
    if urlparse(url).scheme not in ("http", "https"):
        return None
    return url


def imdb_id_from_url(url: str | None) -> str | None:
    if not url or "imdb.com" not in url.lower():
        return None
    m = _IMDB_TITLE_RE.search(url)
    return m.group(1) if m else None


def imdb_title_url(imdb_id: str) -> str:
    return f"https://www.imdb.com/title/{imdb_id}/"
