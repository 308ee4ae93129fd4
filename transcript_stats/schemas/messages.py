"""
Canonical message variants.

The normalized unit consumed by the reconstructor, the aggregators and the UI. Each
record kind maps to one variant carrying the common identity/payload fields plus
only the fields relevant to that kind:

    UserMessage / AssistantMessage   usage, role, model, stop_reason
    SummaryMessage                   summary, leafUuid
    SystemMessage                    subtype, level, hookCount, hookInfos, stopReasonSystem,
                                     preventedContinuation, compactMetadata, microcompactMetadata
    FileHistorySnapshotMessage       messageId, snapshot, isSnapshotUpdate
    ProgressMessage                  data, toolUseID, parentToolUseID
    QueueOperationMessage            operation
    OpaqueMessage                    any unknown type tag; union of all of the above

Field names are the external wire names. uuid, sessionId and timestamp are always
present (possibly empty). Every other field is optional and, when never set, is
omitted from the wire form rather than written as null.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

import pydantic

from transcript_stats.schemas.types import JsonValue, TokenCount, WireModel

# ==============================================================================
# Token Usage
# ==============================================================================


class TokenUsage(WireModel):
    """Per-message token counts (each optional) plus service tier."""

    input_tokens: TokenCount | None = None
    output_tokens: TokenCount | None = None
    cache_creation_input_tokens: TokenCount | None = None
    cache_read_input_tokens: TokenCount | None = None
    service_tier: str | None = None

    @property
    def total(self) -> int:
        return (
            (self.input_tokens or 0)
            + (self.output_tokens or 0)
            + (self.cache_creation_input_tokens or 0)
            + (self.cache_read_input_tokens or 0)
        )


# ==============================================================================
# Variant Base
# ==============================================================================


class _CanonicalBase(WireModel):
    """Fields common to every canonical message."""

    uuid: str
    parentUuid: str | None = None
    sessionId: str
    timestamp: str
    content: JsonValue = None
    toolUse: JsonValue = None
    toolUseResult: JsonValue = None
    isSidechain: bool | None = None
    costUSD: float | None = None
    durationMs: TokenCount | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize under wire names, omitting every field that was never set.

        Nulls inside opaque payloads (toolUseResult, snapshot, ...) are kept as-is.
        """
        return self.model_dump(mode='json', exclude_unset=True)


class _ChatFields(pydantic.BaseModel):
    usage: TokenUsage | None = None
    role: str | None = None
    model: str | None = None
    stop_reason: str | None = None


class _SummaryFields(pydantic.BaseModel):
    summary: str | None = None
    leafUuid: str | None = None


class _SystemFields(pydantic.BaseModel):
    subtype: str | None = None
    level: str | None = None
    hookCount: TokenCount | None = None
    hookInfos: JsonValue = None
    stopReasonSystem: str | None = None
    preventedContinuation: bool | None = None
    compactMetadata: JsonValue = None
    microcompactMetadata: JsonValue = None


class _SnapshotFields(pydantic.BaseModel):
    messageId: str | None = None
    snapshot: JsonValue = None
    isSnapshotUpdate: bool | None = None


class _ProgressFields(pydantic.BaseModel):
    data: JsonValue = None
    toolUseID: str | None = None
    parentToolUseID: str | None = None


class _QueueFields(pydantic.BaseModel):
    operation: str | None = None


# ==============================================================================
# Variants
# ==============================================================================


class UserMessage(_CanonicalBase, _ChatFields):
    type: Literal['user']


class AssistantMessage(_CanonicalBase, _ChatFields):
    type: Literal['assistant']


class SummaryMessage(_CanonicalBase, _SummaryFields):
    type: Literal['summary']


class SystemMessage(_CanonicalBase, _SystemFields):
    type: Literal['system']


class FileHistorySnapshotMessage(_CanonicalBase, _SnapshotFields):
    type: Literal['file-history-snapshot']


class ProgressMessage(_CanonicalBase, _ProgressFields):
    type: Literal['progress']


class QueueOperationMessage(_CanonicalBase, _QueueFields):
    type: Literal['queue-operation']


class OpaqueMessage(
    _CanonicalBase,
    _ChatFields,
    _SummaryFields,
    _SystemFields,
    _SnapshotFields,
    _ProgressFields,
    _QueueFields,
):
    """A record with an unrecognized type tag, kept for forward compatibility."""

    type: str


# ==============================================================================
# Canonical Message (Union)
# ==============================================================================

# Union of all variants (validated left-to-right)
# NOTE: OpaqueMessage accepts any type tag and every field, so it must come last
CanonicalMessage = Annotated[
    UserMessage
    | AssistantMessage
    | SummaryMessage
    | SystemMessage
    | FileHistorySnapshotMessage
    | ProgressMessage
    | QueueOperationMessage
    | OpaqueMessage,
    pydantic.Field(union_mode='left_to_right'),
]

# Type adapter for reading canonical messages back from their wire form
CanonicalMessageAdapter: pydantic.TypeAdapter[CanonicalMessage] = pydantic.TypeAdapter(CanonicalMessage)

CHAT_MESSAGE_TYPES = (UserMessage, AssistantMessage, OpaqueMessage)
