"""Tests for the message normalizer and the canonical wire form."""

from __future__ import annotations

import json

import pytest

from transcript_stats.schemas.messages import (
    AssistantMessage,
    CanonicalMessageAdapter,
    FileHistorySnapshotMessage,
    OpaqueMessage,
    ProgressMessage,
    QueueOperationMessage,
    SummaryMessage,
    SystemMessage,
    UserMessage,
)
from transcript_stats.services.decoder import decode_line
from transcript_stats.services.normalizer import normalize_record


def normalize(record: dict) -> object:
    return normalize_record(decode_line(json.dumps(record), 1))


@pytest.mark.parametrize(
    ('type_tag', 'expected_cls'),
    [
        ('user', UserMessage),
        ('assistant', AssistantMessage),
        ('summary', SummaryMessage),
        ('system', SystemMessage),
        ('file-history-snapshot', FileHistorySnapshotMessage),
        ('progress', ProgressMessage),
        ('queue-operation', QueueOperationMessage),
        ('custom-title', OpaqueMessage),
    ],
)
def test_each_type_tag_maps_to_its_variant(type_tag: str, expected_cls: type) -> None:
    message = normalize({'type': type_tag})

    assert type(message) is expected_cls
    assert message.type == type_tag


def test_missing_identity_becomes_empty_strings() -> None:
    message = normalize({'type': 'user', 'message': {'role': 'user', 'content': 'x'}})

    assert message.uuid == ''
    assert message.sessionId == ''
    assert message.timestamp == ''
    assert message.parentUuid is None


def test_nested_content_is_preferred_over_top_level() -> None:
    message = normalize({'type': 'user', 'content': 'top', 'message': {'role': 'user', 'content': 'nested'}})

    assert message.content == 'nested'


def test_top_level_content_is_the_fallback() -> None:
    system = normalize({'type': 'system', 'content': 'Stop hook feedback'})
    user = normalize({'type': 'user', 'content': 'top', 'message': {'role': 'user'}})

    assert system.content == 'Stop hook feedback'
    assert user.content == 'top'


def test_chat_fields_come_from_nested_message_only() -> None:
    message = normalize(
        {
            'type': 'assistant',
            'model': 'top-level-model',
            'stop_reason': 'top-level',
            'message': {
                'role': 'assistant',
                'model': 'claude-opus-4-20250514',
                'stop_reason': 'end_turn',
                'usage': {'input_tokens': 100, 'output_tokens': 50},
            },
        }
    )

    assert isinstance(message, AssistantMessage)
    assert message.model == 'claude-opus-4-20250514'
    assert message.stop_reason == 'end_turn'
    assert message.role == 'assistant'
    assert message.usage is not None
    assert message.usage.input_tokens == 100
    assert message.usage.cache_read_input_tokens is None
    assert message.usage.total == 150


def test_system_stop_reason_is_renamed() -> None:
    message = normalize(
        {
            'type': 'system',
            'subtype': 'stop_hook_summary',
            'level': 'info',
            'hookCount': 2,
            'hookInfos': [{'command': 'lint'}],
            'stopReason': 'blocked',
            'preventedContinuation': True,
            'compactMetadata': {'trigger': 'auto', 'preTokens': 1000},
        }
    )

    assert isinstance(message, SystemMessage)
    wire = message.to_wire()
    assert wire['stopReasonSystem'] == 'blocked'
    assert 'stopReason' not in wire
    assert wire['hookCount'] == 2
    assert wire['hookInfos'] == [{'command': 'lint'}]
    assert wire['preventedContinuation'] is True
    assert wire['compactMetadata'] == {'trigger': 'auto', 'preTokens': 1000}


def test_fields_irrelevant_to_a_variant_do_not_exist() -> None:
    message = normalize({'type': 'summary', 'summary': 'S', 'leafUuid': 'x', 'operation': 'enqueue', 'subtype': 'y'})

    assert isinstance(message, SummaryMessage)
    assert not hasattr(message, 'operation')
    assert not hasattr(message, 'subtype')
    assert not hasattr(message, 'usage')


def test_opaque_message_keeps_every_known_field() -> None:
    message = normalize(
        {
            'type': 'brand-new',
            'uuid': 'n1',
            'operation': 'enqueue',
            'subtype': 'x',
            'summary': 'S',
            'toolUseID': 't1',
            'message': {'role': 'assistant', 'model': 'm'},
        }
    )

    assert isinstance(message, OpaqueMessage)
    assert message.to_wire() == {
        'type': 'brand-new',
        'uuid': 'n1',
        'sessionId': '',
        'timestamp': '',
        'operation': 'enqueue',
        'subtype': 'x',
        'summary': 'S',
        'toolUseID': 't1',
        'role': 'assistant',
        'model': 'm',
    }


def test_wire_form_omits_unset_fields() -> None:
    message = normalize(
        {
            'type': 'user',
            'uuid': 'u1',
            'sessionId': 's1',
            'timestamp': '2025-06-01T10:00:00Z',
            'parentUuid': None,
            'message': {'role': 'user', 'content': 'hi'},
        }
    )

    assert message.to_wire() == {
        'type': 'user',
        'uuid': 'u1',
        'sessionId': 's1',
        'timestamp': '2025-06-01T10:00:00Z',
        'content': 'hi',
        'role': 'user',
    }
    assert 'null' not in message.to_wire_json()


def test_wire_form_uses_external_names() -> None:
    message = normalize(
        {
            'type': 'user',
            'uuid': 'u2',
            'parentUuid': 'u1',
            'sessionId': 's1',
            'timestamp': '2025-06-01T10:00:00Z',
            'isSidechain': False,
            'costUSD': 0.25,
            'durationMs': 1200,
            'toolUse': {'id': 't1', 'name': 'Bash'},
            'toolUseResult': {'stdout': 'ok', 'interrupted': None},
        }
    )

    wire = message.to_wire()
    assert wire['parentUuid'] == 'u1'
    assert wire['isSidechain'] is False
    assert wire['costUSD'] == 0.25
    assert wire['durationMs'] == 1200
    assert wire['toolUse'] == {'id': 't1', 'name': 'Bash'}
    # Nulls inside opaque payloads are preserved
    assert wire['toolUseResult'] == {'stdout': 'ok', 'interrupted': None}


def test_snapshot_and_progress_fields_pass_through() -> None:
    snapshot = normalize({'type': 'file-history-snapshot', 'messageId': 'm1', 'snapshot': {'a': 1}, 'isSnapshotUpdate': True})
    progress = normalize({'type': 'progress', 'data': {'type': 'hook_progress'}, 'toolUseID': 't2', 'parentToolUseID': 't1'})
    queue = normalize({'type': 'queue-operation', 'operation': 'dequeue'})

    assert snapshot.to_wire()['messageId'] == 'm1'
    assert snapshot.to_wire()['isSnapshotUpdate'] is True
    assert progress.to_wire()['toolUseID'] == 't2'
    assert progress.to_wire()['parentToolUseID'] == 't1'
    assert queue.to_wire()['operation'] == 'dequeue'


def test_normalization_is_idempotent_through_the_wire_form() -> None:
    message = normalize(
        {
            'type': 'assistant',
            'uuid': 'a1',
            'sessionId': 's1',
            'timestamp': '2025-06-01T10:00:05Z',
            'message': {'role': 'assistant', 'content': [{'type': 'text', 'text': 'hello'}], 'usage': {'input_tokens': 10}},
        }
    )

    restored = CanonicalMessageAdapter.validate_python(message.to_wire())

    assert restored == message
    assert restored.to_wire() == message.to_wire()


def test_replacement_timestamp_overrides_missing_one() -> None:
    message = normalize_record(decode_line('{"type":"user","uuid":"u1"}', 1), timestamp='2025-06-01T10:00:00Z')

    assert message.timestamp == '2025-06-01T10:00:00Z'
