"""
Schema definitions for transcript-stats.

This package contains Pydantic models for:
- records: the permissive decode layer (one raw transcript line)
- messages: canonical message variants (normalized, UI-facing)
- operations: engine results (sessions, pages, statistics)
"""

from __future__ import annotations

from transcript_stats.schemas.base import StrictModel
from transcript_stats.schemas.messages import CanonicalMessage, CanonicalMessageAdapter, TokenUsage
from transcript_stats.schemas.records import RawRecord

__all__ = [
    'StrictModel',
    'CanonicalMessage',
    'CanonicalMessageAdapter',
    'TokenUsage',
    'RawRecord',
]
