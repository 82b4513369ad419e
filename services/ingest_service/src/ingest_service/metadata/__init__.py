from __future__ import annotations

__all__ = [
    "ArtworkCandidate",
    "MetadataResolver",
    "Resolution",
    "ResolutionStatus",
    "ResolvedMetadata",
    "TmdbClient",
]

from ingest_service.metadata.resolver import (
    ArtworkCandidate,
    MetadataResolver,
    Resolution,
    ResolutionStatus,
    ResolvedMetadata,
)
from ingest_service.metadata.tmdb import TmdbClient
