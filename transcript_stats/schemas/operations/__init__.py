"""
Operation schemas for engine results.

This package contains Pydantic models for results returned by services:
session metadata and message pages, project listings, statistics at
session, project and global scope, and recent file edits.
"""

from __future__ import annotations

from transcript_stats.schemas.operations.edits import RecentEditsResult, RecentFileEdit
from transcript_stats.schemas.operations.session import MessagePage, ProjectSummary, SearchHit, Session
from transcript_stats.schemas.operations.stats import (
    ActivityHeatmap,
    DailyStats,
    DateRange,
    GlobalStatsSummary,
    ModelStats,
    ProjectRanking,
    ProjectStatsSummary,
    SessionComparison,
    SessionTokenStats,
    TokenDistribution,
    ToolUsageStats,
)

__all__ = [
    # Session
    'Session',
    'MessagePage',
    'ProjectSummary',
    'SearchHit',
    # Stats
    'SessionTokenStats',
    'TokenDistribution',
    'DailyStats',
    'ActivityHeatmap',
    'ToolUsageStats',
    'ModelStats',
    'ProjectRanking',
    'DateRange',
    'ProjectStatsSummary',
    'GlobalStatsSummary',
    'SessionComparison',
    # Edits
    'RecentFileEdit',
    'RecentEditsResult',
]
