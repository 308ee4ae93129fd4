"""
Rollup engine - per-session digests to project and global summaries.

Each session is digested independently into a StatsAccumulator (safe to run in
parallel, one worker per file). Project summaries fold their sessions' accumulators;
the global summary folds project accumulators. StatsAccumulator.merge only adds
counters and unions sets, so every additive field comes out the same whatever the
fold order or grouping.

Bucketing conventions:
- daily stats: UTC calendar date of each timestamped message
- heatmap: (hour 0-23, day 0-6 with 0 = Sunday), only non-empty buckets emitted
- models: assistant messages carrying a model name
- tools: invocations extracted by tool_calls.extract_tool_calls
Messages without a parseable timestamp count towards totals but not towards
any time bucket or the date range.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import attrs

from transcript_stats.exceptions import SessionNotFoundError
from transcript_stats.schemas.messages import AssistantMessage
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
from transcript_stats.services.reconstruct import ReconstructedSession
from transcript_stats.services.tool_calls import ErrorPredicate, default_error_predicate, extract_tool_calls
from transcript_stats.services.usage import message_usage, summarize_tokens
from transcript_stats.timestamps import day_of_week, minutes_between, parse_timestamp

# ==============================================================================
# Buckets
# ==============================================================================


@attrs.define
class _DayBucket:
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    message_count: int = 0
    sessions: set[str] = attrs.Factory(set)
    hours: set[int] = attrs.Factory(set)

    def merge(self, other: _DayBucket) -> None:
        self.total_tokens += other.total_tokens
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.message_count += other.message_count
        self.sessions |= other.sessions
        self.hours |= other.hours


@attrs.define
class _HeatBucket:
    activity_count: int = 0
    tokens_used: int = 0

    def merge(self, other: _HeatBucket) -> None:
        self.activity_count += other.activity_count
        self.tokens_used += other.tokens_used


@attrs.define
class _ToolBucket:
    usage_count: int = 0
    error_count: int = 0
    duration_total: float = 0.0
    duration_count: int = 0

    def merge(self, other: _ToolBucket) -> None:
        self.usage_count += other.usage_count
        self.error_count += other.error_count
        self.duration_total += other.duration_total
        self.duration_count += other.duration_count


@attrs.define
class _ModelBucket:
    message_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    def merge(self, other: _ModelBucket) -> None:
        self.message_count += other.message_count
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_creation_tokens += other.cache_creation_tokens
        self.cache_read_tokens += other.cache_read_tokens


@attrs.define
class _ProjectBucket:
    sessions: int = 0
    messages: int = 0
    tokens: int = 0

    def merge(self, other: _ProjectBucket) -> None:
        self.sessions += other.sessions
        self.messages += other.messages
        self.tokens += other.tokens


type _Moment = tuple[datetime.datetime, str]


def _merge_buckets(target: dict[Any, Any], source: Mapping[Any, Any], factory: type) -> None:
    for key, bucket in source.items():
        if key not in target:
            target[key] = factory()
        target[key].merge(bucket)


# ==============================================================================
# Accumulator
# ==============================================================================


@attrs.define
class StatsAccumulator:
    """Mergeable counters for any set of sessions."""

    session_ids: set[str] = attrs.Factory(set)
    message_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    duration_minutes: int = 0
    days: dict[str, _DayBucket] = attrs.Factory(dict)
    heatmap: dict[tuple[int, int], _HeatBucket] = attrs.Factory(dict)
    tools: dict[str, _ToolBucket] = attrs.Factory(dict)
    models: dict[str, _ModelBucket] = attrs.Factory(dict)
    projects: dict[str, _ProjectBucket] = attrs.Factory(dict)
    earliest: _Moment | None = None
    latest: _Moment | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens + self.cache_creation_tokens + self.cache_read_tokens

    def merge(self, other: StatsAccumulator) -> None:
        """Add other's counters into this accumulator (other is left untouched)."""
        self.session_ids |= other.session_ids
        self.message_count += other.message_count
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_creation_tokens += other.cache_creation_tokens
        self.cache_read_tokens += other.cache_read_tokens
        self.duration_minutes += other.duration_minutes
        _merge_buckets(self.days, other.days, _DayBucket)
        _merge_buckets(self.heatmap, other.heatmap, _HeatBucket)
        _merge_buckets(self.tools, other.tools, _ToolBucket)
        _merge_buckets(self.models, other.models, _ModelBucket)
        _merge_buckets(self.projects, other.projects, _ProjectBucket)
        if other.earliest is not None and (self.earliest is None or other.earliest < self.earliest):
            self.earliest = other.earliest
        if other.latest is not None and (self.latest is None or other.latest > self.latest):
            self.latest = other.latest

    # Views

    def token_distribution(self) -> TokenDistribution:
        return TokenDistribution(
            input=self.input_tokens,
            output=self.output_tokens,
            cache_creation=self.cache_creation_tokens,
            cache_read=self.cache_read_tokens,
        )

    def daily_stats(self) -> list[DailyStats]:
        return [
            DailyStats(
                date=date,
                total_tokens=bucket.total_tokens,
                input_tokens=bucket.input_tokens,
                output_tokens=bucket.output_tokens,
                message_count=bucket.message_count,
                session_count=len(bucket.sessions),
                active_hours=len(bucket.hours),
            )
            for date, bucket in sorted(self.days.items())
        ]

    def activity_heatmap(self) -> list[ActivityHeatmap]:
        return [
            ActivityHeatmap(hour=hour, day=day, activity_count=bucket.activity_count, tokens_used=bucket.tokens_used)
            for (day, hour), bucket in sorted(self.heatmap.items())
        ]

    def tool_usage(self) -> list[ToolUsageStats]:
        """Tools ordered by usage count (desc), then name."""
        stats = [
            ToolUsageStats(
                tool_name=name,
                usage_count=bucket.usage_count,
                success_rate=(bucket.usage_count - bucket.error_count) / bucket.usage_count,
                avg_execution_time=(
                    bucket.duration_total / bucket.duration_count if bucket.duration_count else None
                ),
            )
            for name, bucket in self.tools.items()
            if bucket.usage_count
        ]
        return sorted(stats, key=lambda s: (-s.usage_count, s.tool_name))

    def model_distribution(self) -> list[ModelStats]:
        """Models ordered by token count (desc), then name."""
        stats = [
            ModelStats(
                model_name=name,
                message_count=bucket.message_count,
                token_count=(
                    bucket.input_tokens
                    + bucket.output_tokens
                    + bucket.cache_creation_tokens
                    + bucket.cache_read_tokens
                ),
                input_tokens=bucket.input_tokens,
                output_tokens=bucket.output_tokens,
                cache_creation_tokens=bucket.cache_creation_tokens,
                cache_read_tokens=bucket.cache_read_tokens,
            )
            for name, bucket in self.models.items()
        ]
        return sorted(stats, key=lambda s: (-s.token_count, s.model_name))

    def project_ranking(self) -> list[ProjectRanking]:
        """Projects ordered by tokens (desc), messages (desc), then name (asc)."""
        ranking = [
            ProjectRanking(project_name=name, sessions=bucket.sessions, messages=bucket.messages, tokens=bucket.tokens)
            for name, bucket in self.projects.items()
        ]
        return sorted(ranking, key=lambda r: (-r.tokens, -r.messages, r.project_name))

    def date_range(self) -> DateRange:
        if self.earliest is None or self.latest is None:
            return DateRange()
        return DateRange(
            first_message=self.earliest[1],
            last_message=self.latest[1],
            days_span=(self.latest[0].date() - self.earliest[0].date()).days + 1,
        )

    def most_active_hour(self) -> int:
        """Hour of day with the most activity (lowest hour on ties; 0 when idle)."""
        per_hour: dict[int, int] = {}
        for (_, hour), bucket in self.heatmap.items():
            per_hour[hour] = per_hour.get(hour, 0) + bucket.activity_count
        if not per_hour:
            return 0
        return min(per_hour, key=lambda hour: (-per_hour[hour], hour))


# ==============================================================================
# Session Digest
# ==============================================================================


@attrs.define(frozen=True)
class SessionDigest:
    """Everything the rollup needs from one session, computed without shared state."""

    token_stats: SessionTokenStats
    duration_minutes: int
    accumulator: StatsAccumulator

    @property
    def session_id(self) -> str:
        return self.token_stats.session_id

    @property
    def project_name(self) -> str:
        return self.token_stats.project_name

    @property
    def total_tokens(self) -> int:
        return self.token_stats.total_tokens

    @property
    def message_count(self) -> int:
        return self.token_stats.message_count


def digest_session(
    reconstructed: ReconstructedSession,
    error_predicate: ErrorPredicate = default_error_predicate,
) -> SessionDigest:
    """
    Compute one session's token stats and rollup counters.

    Args:
        reconstructed: Output of SessionReconstructorService.reconstruct
        error_predicate: Decides whether a tool result carries an error marker

    Returns:
        SessionDigest ready to be merged into project/global accumulators
    """
    session = reconstructed.session
    messages = reconstructed.messages
    token_stats = summarize_tokens(session, messages)

    acc = StatsAccumulator(
        session_ids={session.session_id},
        message_count=token_stats.message_count,
        input_tokens=token_stats.total_input_tokens,
        output_tokens=token_stats.total_output_tokens,
        cache_creation_tokens=token_stats.total_cache_creation_tokens,
        cache_read_tokens=token_stats.total_cache_read_tokens,
        projects={
            session.project_name: _ProjectBucket(
                sessions=1, messages=token_stats.message_count, tokens=token_stats.total_tokens
            )
        },
    )

    moments: list[_Moment] = []
    for message in messages:
        usage = message_usage(message)

        if isinstance(message, AssistantMessage) and message.model:
            model = acc.models.setdefault(message.model, _ModelBucket())
            model.message_count += 1
            if usage is not None:
                model.input_tokens += usage.input_tokens or 0
                model.output_tokens += usage.output_tokens or 0
                model.cache_creation_tokens += usage.cache_creation_input_tokens or 0
                model.cache_read_tokens += usage.cache_read_input_tokens or 0

        moment = parse_timestamp(message.timestamp)
        if moment is None:
            continue
        moments.append((moment, message.timestamp))
        tokens = usage.total if usage is not None else 0

        day = acc.days.setdefault(moment.date().isoformat(), _DayBucket())
        day.total_tokens += tokens
        if usage is not None:
            day.input_tokens += usage.input_tokens or 0
            day.output_tokens += usage.output_tokens or 0
        day.message_count += 1
        day.sessions.add(session.session_id)
        day.hours.add(moment.hour)

        heat = acc.heatmap.setdefault((day_of_week(moment), moment.hour), _HeatBucket())
        heat.activity_count += 1
        heat.tokens_used += tokens

    for call in extract_tool_calls(messages, error_predicate):
        tool = acc.tools.setdefault(call.tool_name, _ToolBucket())
        tool.usage_count += 1
        tool.error_count += int(call.is_error)
        if call.duration_ms is not None:
            tool.duration_total += call.duration_ms
            tool.duration_count += 1

    duration = 0
    if moments:
        acc.earliest = min(moments)
        acc.latest = max(moments)
        duration = minutes_between(acc.earliest[0], acc.latest[0])
    acc.duration_minutes = duration

    return SessionDigest(token_stats=token_stats, duration_minutes=duration, accumulator=acc)


# ==============================================================================
# Folds
# ==============================================================================


def fold_digests(digests: Iterable[SessionDigest]) -> StatsAccumulator:
    """Merge session digests into a fresh accumulator."""
    acc = StatsAccumulator()
    for digest in digests:
        acc.merge(digest.accumulator)
    return acc


def build_project_summary(project_name: str, digests: Sequence[SessionDigest]) -> ProjectStatsSummary:
    """
    Fold a project's session digests into a ProjectStatsSummary.

    Averages use integer division by the session count (0 for an empty project).
    """
    acc = fold_digests(digests)
    session_count = len(acc.session_ids)
    total_tokens = acc.total_tokens

    return ProjectStatsSummary(
        project_name=project_name,
        total_sessions=session_count,
        total_messages=acc.message_count,
        total_tokens=total_tokens,
        avg_tokens_per_session=total_tokens // session_count if session_count else 0,
        avg_session_duration=acc.duration_minutes // session_count if session_count else 0,
        total_session_duration=acc.duration_minutes,
        most_active_hour=acc.most_active_hour(),
        most_used_tools=acc.tool_usage(),
        daily_stats=acc.daily_stats(),
        activity_heatmap=acc.activity_heatmap(),
        token_distribution=acc.token_distribution(),
    )


def build_global_summary(projects: Mapping[str, Sequence[SessionDigest]]) -> GlobalStatsSummary:
    """
    Fold every project's digests into a GlobalStatsSummary.

    Each project is folded on its own first, then the project accumulators are
    merged, so the result equals the fold of the project summaries.

    Args:
        projects: Session digests keyed by project name (empty projects still rank)

    Returns:
        GlobalStatsSummary
    """
    acc = StatsAccumulator()
    for project_name, digests in projects.items():
        project_acc = fold_digests(digests)
        project_acc.projects.setdefault(project_name, _ProjectBucket())
        acc.merge(project_acc)

    return GlobalStatsSummary(
        total_projects=len(projects),
        total_sessions=len(acc.session_ids),
        total_messages=acc.message_count,
        total_tokens=acc.total_tokens,
        total_session_duration_minutes=acc.duration_minutes,
        date_range=acc.date_range(),
        token_distribution=acc.token_distribution(),
        daily_stats=acc.daily_stats(),
        activity_heatmap=acc.activity_heatmap(),
        most_used_tools=acc.tool_usage(),
        model_distribution=acc.model_distribution(),
        top_projects=acc.project_ranking(),
    )


# ==============================================================================
# Session-level views
# ==============================================================================


def rank_session_tokens(digests: Iterable[SessionDigest]) -> list[SessionTokenStats]:
    """Session token stats ordered by total tokens (desc), then session id."""
    return [d.token_stats for d in sorted(digests, key=lambda d: (-d.total_tokens, d.session_id))]


def compare_session(digests: Sequence[SessionDigest], session_id: str) -> SessionComparison:
    """
    Compare one session against the other sessions of its project.

    Args:
        digests: Every session digest of the project
        session_id: Session to compare

    Returns:
        SessionComparison with 1-based ranks (ties broken by session id)

    Raises:
        SessionNotFoundError: If session_id is not among the digests
    """
    target = next((d for d in digests if d.session_id == session_id), None)
    if target is None:
        raise SessionNotFoundError(session_id)

    project_tokens = sum(d.total_tokens for d in digests)
    project_messages = sum(d.message_count for d in digests)
    by_tokens = [d.session_id for d in sorted(digests, key=lambda d: (-d.total_tokens, d.session_id))]
    by_duration = [d.session_id for d in sorted(digests, key=lambda d: (-d.duration_minutes, d.session_id))]

    return SessionComparison(
        session_id=session_id,
        percentage_of_project_tokens=target.total_tokens / project_tokens * 100 if project_tokens else 0.0,
        percentage_of_project_messages=target.message_count / project_messages * 100 if project_messages else 0.0,
        rank_by_tokens=by_tokens.index(session_id) + 1,
        rank_by_duration=by_duration.index(session_id) + 1,
        is_above_average=target.total_tokens * len(digests) > project_tokens,
    )
