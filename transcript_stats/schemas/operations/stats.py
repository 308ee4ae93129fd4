"""
Statistics operation schemas.

Derived, read-only views recomputed from canonical messages on every query.
All keys are snake_case on the wire; optional values are omitted when unset.

Levels:
- SessionTokenStats: one transcript file
- ProjectStatsSummary: fold of a project's sessions
- GlobalStatsSummary: fold of all projects
"""

from __future__ import annotations

from collections.abc import Sequence

from transcript_stats.schemas.base import StrictModel


class SessionTokenStats(StrictModel):
    """Token, cost and duration totals for one session."""

    session_id: str
    project_name: str
    total_input_tokens: int
    total_output_tokens: int
    total_cache_creation_tokens: int
    total_cache_read_tokens: int
    total_tokens: int  # Sum of the four categories
    message_count: int  # All messages, with or without usage
    first_message_time: str | None = None
    last_message_time: str | None = None
    total_cost_usd: float | None = None  # Only when some message reports costUSD
    total_duration_ms: int | None = None  # Only when some message reports durationMs


class TokenDistribution(StrictModel):
    input: int = 0
    output: int = 0
    cache_creation: int = 0
    cache_read: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output + self.cache_creation + self.cache_read


class DailyStats(StrictModel):
    """Activity for one UTC calendar date."""

    date: str  # YYYY-MM-DD
    total_tokens: int
    input_tokens: int
    output_tokens: int
    message_count: int
    session_count: int  # Distinct sessions touching the date
    active_hours: int  # Distinct hours of day with activity


class ActivityHeatmap(StrictModel):
    """Activity for one (hour-of-day, day-of-week) bucket. day 0 is Sunday."""

    hour: int
    day: int
    activity_count: int
    tokens_used: int


class ToolUsageStats(StrictModel):
    tool_name: str
    usage_count: int
    success_rate: float  # Fraction of invocations without an error marker
    avg_execution_time: float | None = None  # Milliseconds; omitted when never reported


class ModelStats(StrictModel):
    model_name: str
    message_count: int
    token_count: int
    input_tokens: int
    output_tokens: int
    cache_creation_tokens: int
    cache_read_tokens: int


class ProjectRanking(StrictModel):
    project_name: str
    sessions: int
    messages: int
    tokens: int


class DateRange(StrictModel):
    first_message: str | None = None
    last_message: str | None = None
    days_span: int = 0  # Inclusive; 0 when no timestamps


class ProjectStatsSummary(StrictModel):
    """Aggregate statistics for one project."""

    project_name: str
    total_sessions: int
    total_messages: int
    total_tokens: int
    avg_tokens_per_session: int
    avg_session_duration: int  # Minutes
    total_session_duration: int  # Minutes
    most_active_hour: int
    most_used_tools: Sequence[ToolUsageStats]
    daily_stats: Sequence[DailyStats]
    activity_heatmap: Sequence[ActivityHeatmap]
    token_distribution: TokenDistribution


class GlobalStatsSummary(StrictModel):
    """Aggregate statistics across every project."""

    total_projects: int
    total_sessions: int
    total_messages: int
    total_tokens: int
    total_session_duration_minutes: int
    date_range: DateRange
    token_distribution: TokenDistribution
    daily_stats: Sequence[DailyStats]
    activity_heatmap: Sequence[ActivityHeatmap]
    most_used_tools: Sequence[ToolUsageStats]
    model_distribution: Sequence[ModelStats]
    top_projects: Sequence[ProjectRanking]


class SessionComparison(StrictModel):
    """How one session compares with the rest of its project."""

    session_id: str
    percentage_of_project_tokens: float
    percentage_of_project_messages: float
    rank_by_tokens: int  # 1-based, descending
    rank_by_duration: int  # 1-based, descending
    is_above_average: bool
