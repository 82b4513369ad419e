from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LAURELS_", extra="ignore")

    data_dir: Path = Path("data")
    user_agent: str = "laurels-ingest/0.1 (award ceremony catalogue builder)"
    request_timeout_s: float = 30.0
    max_retries: int = 3

    wikipedia_base_url: str = "https://en.wikipedia.org"
    # Delay between document fetches.
    fetch_delay_s: float = 0.5
    # Delay between ceremony units.
    unit_delay_s: float = 1.0
    winners_only_delay_s: float = 0.5

    tmdb_api_key: str | None = None
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    tmdb_image_base_url: str = "https://image.tmdb.org/t/p/original"
    metadata_delay_s: float = 0.25
    metadata_cache_max_age_s: float | None = 7 * 24 * 3600
    default_language: str = "en"
    secondary_language: str | None = "ja"
    max_artwork: int = 5

    @property
    def metadata_cache_dir(self) -> Path:
        return self.data_dir / "cache" / "tmdb"


settings = Settings()
