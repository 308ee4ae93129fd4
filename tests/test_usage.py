"""Tests for per-session token aggregation."""

from __future__ import annotations

import pytest
from builders import assistant_record, reconstruct, user_record

from transcript_stats.services.usage import message_usage, summarize_tokens


def summarize(records: list) -> object:
    reconstructed = reconstruct(records)
    return summarize_tokens(reconstructed.session, reconstructed.messages)


def test_categories_are_summed_across_messages() -> None:
    stats = summarize(
        [
            user_record('u1', '2025-06-01T10:00:00Z'),
            assistant_record(
                'a1',
                '2025-06-01T10:00:05Z',
                usage={
                    'input_tokens': 100,
                    'output_tokens': 20,
                    'cache_creation_input_tokens': 30,
                    'cache_read_input_tokens': 400,
                },
            ),
            assistant_record('a2', '2025-06-01T10:01:00Z', usage={'input_tokens': 5, 'output_tokens': 1}),
        ]
    )

    assert stats.total_input_tokens == 105
    assert stats.total_output_tokens == 21
    assert stats.total_cache_creation_tokens == 30
    assert stats.total_cache_read_tokens == 400
    assert stats.total_tokens == 556
    assert stats.message_count == 3
    assert stats.first_message_time == '2025-06-01T10:00:00Z'
    assert stats.last_message_time == '2025-06-01T10:01:00Z'
    assert stats.session_id == '/projects/demo/session.jsonl'
    assert stats.project_name == 'demo'


def test_absent_and_invalid_counts_contribute_zero() -> None:
    stats = summarize(
        [
            assistant_record('a1', '2025-06-01T10:00:00Z', usage={'input_tokens': '10', 'output_tokens': -4}),
            assistant_record('a2', '2025-06-01T10:00:01Z', usage={'output_tokens': 3}),
            assistant_record('a3', '2025-06-01T10:00:02Z'),
        ]
    )

    assert stats.total_tokens == 3
    assert stats.message_count == 3


def test_session_without_messages_has_zero_totals() -> None:
    stats = summarize([])

    assert stats.total_tokens == 0
    assert stats.message_count == 0
    assert stats.first_message_time is None
    assert 'total_cost_usd' not in stats.to_wire()


def test_cost_and_duration_are_reported_only_when_present() -> None:
    without = summarize([assistant_record('a1', '2025-06-01T10:00:00Z')])
    with_cost = summarize(
        [
            assistant_record('a1', '2025-06-01T10:00:00Z', costUSD=0.1, durationMs=1000),
            assistant_record('a2', '2025-06-01T10:00:01Z', costUSD=0.2, durationMs=500),
        ]
    )

    assert without.total_cost_usd is None
    assert without.total_duration_ms is None
    assert with_cost.total_cost_usd == pytest.approx(0.3)
    assert with_cost.total_duration_ms == 1500


def test_message_usage_only_for_chat_variants() -> None:
    reconstructed = reconstruct(
        [
            {'type': 'summary', 'summary': 'S'},
            assistant_record('a1', '2025-06-01T10:00:00Z', usage={'input_tokens': 1}),
        ]
    )

    assert message_usage(reconstructed.messages[0]) is None
    usage = message_usage(reconstructed.messages[1])
    assert usage is not None and usage.total == 1
