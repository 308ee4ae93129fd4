"""Tests for session reconstruction, paging and the message index."""

from __future__ import annotations

import logging

import pytest
from builders import assistant_record, reconstruct, user_record

from transcript_stats.exceptions import (
    DecodeError,
    DroppedRecordWarning,
    MissingIdentityWarning,
    UnknownTypeTag,
)
from transcript_stats.schemas.messages import AssistantMessage, SummaryMessage, UserMessage
from transcript_stats.services.reconstruct import MessageIndex, paginate

THREE_RECORDS = [
    {'type': 'summary', 'summary': 'S', 'leafUuid': 'x'},
    user_record('u1', '2025-06-01T10:00:00Z'),
    assistant_record('a1', '2025-06-01T10:00:05Z', parentUuid='u1', usage={'input_tokens': 10, 'output_tokens': 5}),
]


# ==============================================================================
# Session metadata
# ==============================================================================


def test_three_record_session() -> None:
    reconstructed = reconstruct(THREE_RECORDS)
    session = reconstructed.session

    assert session.message_count == 3
    assert session.summary == 'S'
    assert session.first_message_time == '2025-06-01T10:00:00Z'
    assert session.last_message_time == '2025-06-01T10:00:05Z'
    assert session.actual_session_id == 's1'
    assert session.session_id == '/projects/demo/session.jsonl'
    assert session.file_path == '/projects/demo/session.jsonl'
    assert session.project_name == 'demo'
    assert session.has_tool_use is False
    assert session.has_errors is False
    assert [type(m) for m in reconstructed.messages] == [SummaryMessage, UserMessage, AssistantMessage]
    assert reconstructed.issues == ()


def test_malformed_line_is_skipped_and_recorded() -> None:
    reconstructed = reconstruct(
        [
            user_record('u1', '2025-06-01T10:00:00Z'),
            '{"type": "user", ',
            assistant_record('a1', '2025-06-01T10:00:05Z'),
        ]
    )

    assert [m.uuid for m in reconstructed.messages] == ['u1', 'a1']
    assert reconstructed.line_count == 3
    assert [e.line_number for e in reconstructed.decode_errors] == [2]
    assert isinstance(reconstructed.issues[0], DecodeError)


def test_empty_file_yields_empty_session() -> None:
    reconstructed = reconstruct([])
    session = reconstructed.session

    assert session.message_count == 0
    assert session.first_message_time is None
    assert session.last_message_time is None
    assert session.actual_session_id == ''
    assert session.summary is None
    assert reconstructed.line_count == 0


def test_last_summary_wins() -> None:
    reconstructed = reconstruct(
        [
            {'type': 'summary', 'summary': 'first'},
            user_record('u1', '2025-06-01T10:00:00Z'),
            {'type': 'summary', 'summary': 'second'},
        ]
    )

    assert reconstructed.session.summary == 'second'


def test_first_and_last_time_skip_empty_timestamps() -> None:
    reconstructed = reconstruct(
        [
            {'type': 'user', 'uuid': 'u0', 'sessionId': 's1'},
            user_record('u1', '2025-06-01T10:00:00Z'),
            assistant_record('a1', '2025-06-01T10:30:00Z'),
            {'type': 'system', 'uuid': 'x1', 'sessionId': 's1', 'content': 'late'},
        ]
    )

    assert reconstructed.session.first_message_time == '2025-06-01T10:00:00Z'
    assert reconstructed.session.last_message_time == '2025-06-01T10:30:00Z'


def test_actual_session_id_is_the_majority() -> None:
    reconstructed = reconstruct(
        [
            user_record('u1', '2025-06-01T10:00:00Z', session_id='old'),
            user_record('u2', '2025-06-01T10:01:00Z', session_id='new'),
            user_record('u3', '2025-06-01T10:02:00Z', session_id='new'),
        ]
    )

    assert reconstructed.session.actual_session_id == 'new'


def test_actual_session_id_tie_goes_to_first_seen() -> None:
    reconstructed = reconstruct(
        [
            user_record('u1', '2025-06-01T10:00:00Z', session_id='first'),
            user_record('u2', '2025-06-01T10:01:00Z', session_id='second'),
        ]
    )

    assert reconstructed.session.actual_session_id == 'first'


def test_tool_use_and_error_flags() -> None:
    reconstructed = reconstruct(
        [
            assistant_record(
                'a1',
                '2025-06-01T10:00:00Z',
                content=[{'type': 'tool_use', 'id': 't1', 'name': 'Bash', 'input': {}}],
            ),
            user_record(
                'u1',
                '2025-06-01T10:00:01Z',
                content=[{'type': 'tool_result', 'tool_use_id': 't1', 'is_error': True, 'content': 'boom'}],
            ),
        ]
    )

    assert reconstructed.session.has_tool_use is True
    assert reconstructed.session.has_errors is True


def test_custom_error_predicate_is_used() -> None:
    records = [user_record('u1', '2025-06-01T10:00:00Z', toolUseResult={'exitCode': 2})]

    assert reconstruct(records).session.has_errors is False
    flagged = reconstruct(
        records,
        error_predicate=lambda payload: isinstance(payload, dict) and payload.get('exitCode', 0) != 0,
    )
    assert flagged.session.has_errors is True


def test_reconstruction_is_deterministic() -> None:
    first = reconstruct(THREE_RECORDS)
    second = reconstruct(THREE_RECORDS)

    assert first.session == second.session
    assert [m.to_wire() for m in first.messages] == [m.to_wire() for m in second.messages]


# ==============================================================================
# Issues
# ==============================================================================


def test_unknown_type_is_kept_and_reported() -> None:
    reconstructed = reconstruct([{'type': 'custom-title', 'customTitle': 'x', 'sessionId': 's1'}])

    assert reconstructed.session.message_count == 1
    assert reconstructed.messages[0].type == 'custom-title'
    assert [(i.line_number, i.type_tag) for i in reconstructed.issues if isinstance(i, UnknownTypeTag)] == [
        (1, 'custom-title')
    ]


def test_missing_identity_is_reported_but_message_kept(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger='transcript_stats'):
        reconstructed = reconstruct([{'type': 'user', 'uuid': 'u1', 'message': {'role': 'user', 'content': 'x'}}])

    assert reconstructed.session.message_count == 1
    warnings = [i for i in reconstructed.issues if isinstance(i, MissingIdentityWarning)]
    assert len(warnings) == 1
    assert warnings[0].missing == ('sessionId', 'timestamp')
    assert 'missing' in caplog.text


def test_summary_without_identity_is_not_an_issue() -> None:
    reconstructed = reconstruct([{'type': 'summary', 'summary': 'S'}])

    assert reconstructed.issues == ()


# ==============================================================================
# Missing timestamp policy
# ==============================================================================

UNTIMED = [
    user_record('u1', '2025-06-01T10:00:00Z'),
    {'type': 'assistant', 'uuid': 'a1', 'sessionId': 's1', 'message': {'role': 'assistant'}},
    {'type': 'summary', 'summary': 'S'},
]


def test_keep_policy_leaves_timestamp_empty() -> None:
    reconstructed = reconstruct(UNTIMED, missing_timestamp_policy='keep')

    assert [m.timestamp for m in reconstructed.messages] == ['2025-06-01T10:00:00Z', '', '']


def test_drop_policy_skips_untimed_records() -> None:
    reconstructed = reconstruct(UNTIMED, missing_timestamp_policy='drop')

    # Summary records never carry a timestamp and are not dropped
    assert [m.uuid for m in reconstructed.messages] == ['u1', '']
    dropped = [i for i in reconstructed.issues if isinstance(i, DroppedRecordWarning)]
    assert [(d.line_number, d.record_type) for d in dropped] == [(2, 'assistant')]
    # A dropped record is reported once, not also as missing its timestamp
    assert not any(isinstance(i, MissingIdentityWarning) for i in reconstructed.issues)
    assert len(reconstructed.issues) == 1


def test_synthesize_policy_reuses_previous_timestamp() -> None:
    reconstructed = reconstruct(UNTIMED, missing_timestamp_policy='synthesize')

    assert [m.timestamp for m in reconstructed.messages] == ['2025-06-01T10:00:00Z', '2025-06-01T10:00:00Z', '']


def test_synthesize_policy_with_no_earlier_timestamp() -> None:
    reconstructed = reconstruct(
        [{'type': 'user', 'uuid': 'u1', 'sessionId': 's1'}],
        missing_timestamp_policy='synthesize',
    )

    assert reconstructed.messages[0].timestamp == ''


# ==============================================================================
# Paging
# ==============================================================================


def _numbered(count: int) -> list[dict]:
    return [user_record(f'u{i}', f'2025-06-01T10:00:{i:02d}Z') for i in range(count)]


def test_pages_cover_every_message_exactly_once() -> None:
    reconstructed = reconstruct(_numbered(7))

    seen: list[str] = []
    offset = 0
    while True:
        page = reconstructed.page(offset, 3)
        seen.extend(m.uuid for m in page.messages)
        assert page.total_count == 7
        if not page.has_more:
            break
        offset = page.next_offset

    assert seen == [f'u{i}' for i in range(7)]
    assert page.next_offset == 7


@pytest.mark.parametrize(
    ('offset', 'limit', 'expected_uuids', 'has_more', 'next_offset'),
    [
        (0, 10, ['u0', 'u1', 'u2', 'u3', 'u4'], False, 5),
        (0, 2, ['u0', 'u1'], True, 2),
        (4, 2, ['u4'], False, 5),
        (9, 2, [], False, 5),
    ],
)
def test_page_boundaries(offset: int, limit: int, expected_uuids: list[str], has_more: bool, next_offset: int) -> None:
    page = reconstruct(_numbered(5)).page(offset, limit)

    assert [m.uuid for m in page.messages] == expected_uuids
    assert page.has_more is has_more
    assert page.next_offset == next_offset


@pytest.mark.parametrize(('offset', 'limit'), [(-1, 10), (0, 0), (0, -5)])
def test_paginate_rejects_invalid_arguments(offset: int, limit: int) -> None:
    with pytest.raises(ValueError):
        paginate([], offset, limit)


def test_sidechain_messages_can_be_excluded_from_pages() -> None:
    reconstructed = reconstruct(
        [
            user_record('u1', '2025-06-01T10:00:00Z'),
            user_record('side', '2025-06-01T10:00:01Z', isSidechain=True),
            user_record('u2', '2025-06-01T10:00:02Z', isSidechain=False),
        ]
    )

    assert reconstructed.page(0, 10).total_count == 3
    page = reconstructed.page(0, 10, exclude_sidechain=True)
    assert [m.uuid for m in page.messages] == ['u1', 'u2']
    assert page.total_count == 2


def test_message_page_wire_form() -> None:
    wire = reconstruct(THREE_RECORDS).page(1, 1).to_wire()

    assert wire['total_count'] == 3
    assert wire['has_more'] is True
    assert wire['next_offset'] == 2
    assert wire['messages'][0]['uuid'] == 'u1'
    assert 'parentUuid' not in wire['messages'][0]


# ==============================================================================
# Message index
# ==============================================================================


def test_index_navigates_parent_links() -> None:
    reconstructed = reconstruct(
        [
            user_record('u1', '2025-06-01T10:00:00Z'),
            assistant_record('a1', '2025-06-01T10:00:01Z', parentUuid='u1'),
            user_record('u2', '2025-06-01T10:00:02Z', parentUuid='a1'),
            assistant_record('a2', '2025-06-01T10:00:03Z', parentUuid='a1'),
            {'type': 'summary', 'summary': 'S'},
        ]
    )
    index = reconstructed.index

    assert len(index) == 4
    assert 'a1' in index
    assert '' not in index
    assert [m.uuid for m in index.children('a1')] == ['u2', 'a2']
    assert [m.uuid for m in index.ancestors('u2')] == ['a1', 'u1']
    assert [m.uuid for m in index.roots()] == ['u1']
    assert index.get('missing') is None


def test_index_ancestors_stop_on_cycles_and_unknown_parents() -> None:
    reconstructed = reconstruct(
        [
            user_record('x', '2025-06-01T10:00:00Z', parentUuid='y'),
            user_record('y', '2025-06-01T10:00:01Z', parentUuid='x'),
            user_record('orphan', '2025-06-01T10:00:02Z', parentUuid='gone'),
        ]
    )
    index = MessageIndex(reconstructed.messages)

    assert [m.uuid for m in index.ancestors('x')] == ['y']
    assert index.ancestors('orphan') == []
    assert [m.uuid for m in index.roots()] == ['orphan']
