"""Thin TMDB v3 client: one method per endpoint, JSON in, dicts out."""

from __future__ import annotations

from typing import Any

import httpx

from ingest_service.errors import MetadataServiceError, MissingConfigurationError
from ingest_service.metadata.http_cached import CachedHttpClient


class TmdbClient:
    def __init__(self, *, http: CachedHttpClient, api_key: str | None, base_url: str) -> None:
        if not api_key or not api_key.strip():
            raise MissingConfigurationError("TMDB API key is not set (LAURELS_TMDB_API_KEY)")
        self.http = http
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")

    def search_movie(self, query: str, *, year: int | None = None, language: str = "en-US") -> list[dict[str, Any]]:
        params: dict[str, Any] = {"query": query, "language": language}
        if year is not None:
            params["year"] = year
        data = self._get("/search/movie", params)
        results = data.get("results")
        return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []

    def find_by_imdb_id(self, imdb_id: str) -> list[dict[str, Any]]:
        data = self._get(f"/find/{imdb_id}", {"external_source": "imdb_id"})
        results = data.get("movie_results")
        return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []

    def movie_details(self, movie_id: int, *, language: str = "en-US") -> dict[str, Any]:
        return self._get(f"/movie/{movie_id}", {"language": language})

    def movie_images(self, movie_id: int) -> dict[str, Any]:
        return self._get(f"/movie/{movie_id}/images", {})

    def movie_translations(self, movie_id: int) -> list[dict[str, Any]]:
        data = self._get(f"/movie/{movie_id}/translations", {})
        translations = data.get("translations")
        return [t for t in translations if isinstance(t, dict)] if isinstance(translations, list) else []

    def configuration(self) -> dict[str, Any]:
        return self._get("/configuration", {})

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.http.get(url, params={**params, "api_key": self.api_key})
        except httpx.RequestError as exc:
            raise MetadataServiceError(f"GET {path} failed: {exc}") from exc
        if resp.status_code != 200:
            raise MetadataServiceError(f"GET {path} returned HTTP {resp.status_code}", status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError as exc:
            raise MetadataServiceError(f"GET {path} returned malformed JSON") from exc
        if not isinstance(data, dict):
            raise MetadataServiceError(f"GET {path} returned {type(data).__name__}, expected an object")
        return data
