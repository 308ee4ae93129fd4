"""
Engine configuration.

Extends base configuration with normalization, paging and discovery settings.
"""

from __future__ import annotations

import pathlib

import pydantic

from transcript_stats.config.base import BaseTranscriptSettings, lazy_settings
from transcript_stats.schemas.types import MissingTimestampPolicy


class EngineSettings(BaseTranscriptSettings):
    """Settings consumed by the reconstructor, the stats service and the CLI."""

    # Root scanned by the discovery service (one subdirectory per project)
    PROJECTS_DIR: pathlib.Path = pathlib.Path('~/.claude/projects')

    # keep | drop | synthesize, applied to timestamp-bearing records without a timestamp
    MISSING_TIMESTAMP_POLICY: MissingTimestampPolicy = 'keep'

    DEFAULT_PAGE_SIZE: int = 100
    EXCLUDE_SIDECHAIN: bool = False

    # Thread-pool width for per-file reconstruction (1 = serial)
    MAX_WORKERS: int = 1

    @pydantic.field_validator('PROJECTS_DIR')
    @classmethod
    def expand_projects_dir(cls, v: pathlib.Path) -> pathlib.Path:
        return v.expanduser()

    @pydantic.field_validator('DEFAULT_PAGE_SIZE')
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """Validate page size is positive."""
        if v <= 0:
            raise ValueError('DEFAULT_PAGE_SIZE must be greater than 0')
        return v

    @pydantic.field_validator('MAX_WORKERS')
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Validate worker count is at least one."""
        if v < 1:
            raise ValueError('MAX_WORKERS must be at least 1')
        return v


# Module-level singleton (lazy-loaded)
settings = lazy_settings(EngineSettings)
