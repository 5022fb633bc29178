"""aics exception hierarchy.

All exceptions inherit from AicsError so callers can catch the base
class when they want to handle any aics-specific failure uniformly.
"""

from __future__ import annotations


class AicsError(Exception):
    """Base exception for all aics errors."""


class ConfigError(AicsError):
    """Configuration-related errors (missing config file, invalid values, etc.)."""


class IndexerError(AicsError):
    """Errors during file discovery, reading, or skeletonization of one file."""


class GrammarLoadError(AicsError):
    """A grammar or its query could not be loaded for a language."""

    def __init__(self, language_id: str, reason: str) -> None:
        super().__init__(f"Cannot load grammar for {language_id}: {reason}")
        self.language_id = language_id


class InferencePhaseError(AicsError):
    """The inference registry was used out of its ingest-then-enrich order."""


class LockFileError(AicsError):
    """Errors reading or writing the lockfile."""
