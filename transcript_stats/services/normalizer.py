"""
Message normalizer - RawRecord to canonical message variant.

Resolution rules:
- content: nested message.content when present, else top-level content, else unset
- uuid/sessionId/timestamp: verbatim, or empty string when missing
- usage/role/model/stop_reason: nested message only (no top-level fallback)
- everything else passes through by name; top-level stopReason becomes stopReasonSystem

Fields that are None on the record are never set on the variant, so they are
omitted from the wire form.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from transcript_stats.schemas.messages import (
    AssistantMessage,
    CanonicalMessage,
    FileHistorySnapshotMessage,
    OpaqueMessage,
    ProgressMessage,
    QueueOperationMessage,
    SummaryMessage,
    SystemMessage,
    TokenUsage,
    UserMessage,
)
from transcript_stats.schemas.records import RawRecord, RawTokenUsage


def normalize_record(raw: RawRecord, *, timestamp: str | None = None) -> CanonicalMessage:
    """
    Map one decoded record to its canonical variant.

    Args:
        raw: Decoded record
        timestamp: Replacement timestamp, used by the reconstructor's synthesize policy

    Returns:
        The variant for raw.type, or OpaqueMessage for an unknown tag
    """
    fields = _common_fields(raw)
    if timestamp is not None:
        fields['timestamp'] = timestamp

    model_cls, builders = _VARIANTS.get(raw.type, (OpaqueMessage, _ALL_BUILDERS))
    for build in builders:
        fields.update(build(raw))

    return model_cls(**fields)


# ==============================================================================
# Field builders
# ==============================================================================


def _compact(**values: Any) -> dict[str, Any]:
    return {name: value for name, value in values.items() if value is not None}


def _common_fields(raw: RawRecord) -> dict[str, Any]:
    content = raw.message.content if raw.message is not None else None
    if content is None:
        content = raw.content

    return {
        'type': raw.type,
        'uuid': raw.uuid or '',
        'sessionId': raw.sessionId or '',
        'timestamp': raw.timestamp or '',
        **_compact(
            parentUuid=raw.parentUuid,
            content=content,
            toolUse=raw.toolUse,
            toolUseResult=raw.toolUseResult,
            isSidechain=raw.isSidechain,
            costUSD=raw.costUSD,
            durationMs=raw.durationMs,
        ),
    }


def _usage(usage: RawTokenUsage) -> TokenUsage:
    return TokenUsage(**_compact(**usage.model_dump()))


def _chat_fields(raw: RawRecord) -> dict[str, Any]:
    message = raw.message
    if message is None:
        return {}
    return _compact(
        usage=_usage(message.usage) if message.usage is not None else None,
        role=message.role,
        model=message.model,
        stop_reason=message.stop_reason,
    )


def _summary_fields(raw: RawRecord) -> dict[str, Any]:
    return _compact(summary=raw.summary, leafUuid=raw.leafUuid)


def _system_fields(raw: RawRecord) -> dict[str, Any]:
    return _compact(
        subtype=raw.subtype,
        level=raw.level,
        hookCount=raw.hookCount,
        hookInfos=raw.hookInfos,
        stopReasonSystem=raw.stopReason,
        preventedContinuation=raw.preventedContinuation,
        compactMetadata=raw.compactMetadata,
        microcompactMetadata=raw.microcompactMetadata,
    )


def _snapshot_fields(raw: RawRecord) -> dict[str, Any]:
    return _compact(messageId=raw.messageId, snapshot=raw.snapshot, isSnapshotUpdate=raw.isSnapshotUpdate)


def _progress_fields(raw: RawRecord) -> dict[str, Any]:
    return _compact(data=raw.data, toolUseID=raw.toolUseID, parentToolUseID=raw.parentToolUseID)


def _queue_fields(raw: RawRecord) -> dict[str, Any]:
    return _compact(operation=raw.operation)


type _Builder = Callable[[RawRecord], dict[str, Any]]

_ALL_BUILDERS: tuple[_Builder, ...] = (
    _chat_fields,
    _summary_fields,
    _system_fields,
    _snapshot_fields,
    _progress_fields,
    _queue_fields,
)

_VARIANTS: dict[str, tuple[type[Any], tuple[_Builder, ...]]] = {
    'user': (UserMessage, (_chat_fields,)),
    'assistant': (AssistantMessage, (_chat_fields,)),
    'summary': (SummaryMessage, (_summary_fields,)),
    'system': (SystemMessage, (_system_fields,)),
    'file-history-snapshot': (FileHistorySnapshotMessage, (_snapshot_fields,)),
    'progress': (ProgressMessage, (_progress_fields,)),
    'queue-operation': (QueueOperationMessage, (_queue_fields,)),
}
