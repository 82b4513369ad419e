from __future__ import annotations

import enum


class TextKind(str, enum.Enum):
    title = "title"
    description = "description"


class SourceType(str, enum.Enum):
    wikipedia = "wikipedia"
    imdb = "imdb"
    official = "official"
    other = "other"


class ArtworkSource(str, enum.Enum):
    tmdb = "tmdb"
    other = "other"


class RunMode(str, enum.Enum):
    full = "full"
    winners_only = "winners_only"


class RunStatus(str, enum.Enum):
    started = "started"
    completed = "completed"
    completed_with_errors = "completed_with_errors"
    stopped = "stopped"
    failed = "failed"
