"""
Token and usage aggregator - one session's messages to SessionTokenStats.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from transcript_stats.schemas.messages import CanonicalMessage, TokenUsage
from transcript_stats.schemas.operations.session import Session
from transcript_stats.schemas.operations.stats import SessionTokenStats


def message_usage(message: CanonicalMessage) -> TokenUsage | None:
    """The message's usage block, for the variants that can carry one."""
    return getattr(message, 'usage', None)


def summarize_tokens(session: Session, messages: Sequence[CanonicalMessage]) -> SessionTokenStats:
    """
    Fold a session's messages into per-category token totals.

    Every message counts towards message_count; only messages carrying usage
    contribute tokens. Absent categories contribute zero. Cost and duration are
    reported only when at least one message carries them.

    Args:
        session: Reconstructed session metadata (identity and time span)
        messages: The session's canonical messages

    Returns:
        SessionTokenStats with total_tokens equal to the sum of the four categories
    """
    input_tokens = output_tokens = cache_creation = cache_read = 0
    costs: list[float] = []
    durations: list[int] = []

    for message in messages:
        usage = message_usage(message)
        if usage is not None:
            input_tokens += usage.input_tokens or 0
            output_tokens += usage.output_tokens or 0
            cache_creation += usage.cache_creation_input_tokens or 0
            cache_read += usage.cache_read_input_tokens or 0
        if message.costUSD is not None:
            costs.append(message.costUSD)
        if message.durationMs is not None:
            durations.append(message.durationMs)

    return SessionTokenStats(
        session_id=session.session_id,
        project_name=session.project_name,
        total_input_tokens=input_tokens,
        total_output_tokens=output_tokens,
        total_cache_creation_tokens=cache_creation,
        total_cache_read_tokens=cache_read,
        total_tokens=input_tokens + output_tokens + cache_creation + cache_read,
        message_count=len(messages),
        first_message_time=session.first_message_time,
        last_message_time=session.last_message_time,
        total_cost_usd=math.fsum(costs) if costs else None,
        total_duration_ms=sum(durations) if durations else None,
    )
