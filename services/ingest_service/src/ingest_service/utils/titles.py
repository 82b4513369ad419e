from __future__ import annotations

import re
import unicodedata

_PAREN_RE = re.compile(r"\s*\([^)]*\)")
_BRACKET_RE = re.compile(r"\s*\[[^\]]*\]")
_WS_RE = re.compile(r"\s+")
_QUOTE_TRANSLATION = str.maketrans({"’": "'", "‘": "'", "“": '"', "”": '"'})


def clean_text(text: str) -> str:
    """Collapse whitespace (including non-breaking spaces)."""
    return _WS_RE.sub(" ", text.replace("\xa0", " ")).strip()


def clean_title(title: str) -> str:
    """
    Strip reference-page decoration from a title.

    Removes disambiguation parentheticals ("(film)"), footnote brackets ("[a]") and
    asterisk markers, then normalizes whitespace.
    """
    out = _PAREN_RE.sub("", title)
    out = _BRACKET_RE.sub("", out)
    out = out.replace("*", "")
    return clean_text(out)


def normalize_title(title: str) -> str:
    """Comparison key for titles: case-folded, NFKC, typographic quotes flattened."""
    out = unicodedata.normalize("NFKC", title).translate(_QUOTE_TRANSLATION)
    return clean_text(out).casefold()


def normalize_quotes(text: str) -> str:
    return text.translate(_QUOTE_TRANSLATION)
