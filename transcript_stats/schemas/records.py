"""
Pydantic models for raw transcript JSONL records.

This is the permissive decode layer. One model covers every record kind found in
transcript files because producers evolve the schema over time and different record
types populate disjoint subsets of fields:

- summary records carry summary + leafUuid and no uuid/timestamp/sessionId
- user/assistant records carry a nested message object with role/content/usage
- system records carry subtype/level/hook metadata and sometimes a top-level content
- file-history-snapshot records carry messageId + snapshot
- progress records carry data + toolUseID + parentToolUseID
- queue-operation records carry operation

Every field except the type tag is optional. Absent fields, explicit nulls and
type-mismatched values (e.g. a string where a count is expected, or a negative
token count) all decode to None. The decoder guarantees the type tag is a
non-empty string before a RawRecord is built.

Field names match the wire names exactly (camelCase at the record level,
snake_case inside the nested message object).
"""

from __future__ import annotations

from typing import get_args

from transcript_stats.schemas.types import JsonValue, KnownRecordType, LenientModel, TokenCount

KNOWN_RECORD_TYPES: frozenset[str] = frozenset(get_args(KnownRecordType))

# Record types that normally carry uuid/sessionId/timestamp (summary and snapshots do not)
IDENTITY_FIELDS_BY_TYPE: dict[str, tuple[str, ...]] = {
    'user': ('uuid', 'sessionId', 'timestamp'),
    'assistant': ('uuid', 'sessionId', 'timestamp'),
    'system': ('uuid', 'sessionId', 'timestamp'),
    'progress': ('uuid', 'sessionId', 'timestamp'),
    'queue-operation': ('sessionId', 'timestamp'),
}

# Record types subject to the missing-timestamp policy
TIMESTAMPED_RECORD_TYPES: frozenset[str] = frozenset(
    type_tag for type_tag, fields in IDENTITY_FIELDS_BY_TYPE.items() if 'timestamp' in fields
)


# ==============================================================================
# Nested Message
# ==============================================================================


class RawTokenUsage(LenientModel):
    """Token counts reported on a nested message. Absent means "not reported", not zero."""

    input_tokens: TokenCount | None = None
    output_tokens: TokenCount | None = None
    cache_creation_input_tokens: TokenCount | None = None
    cache_read_input_tokens: TokenCount | None = None
    service_tier: str | None = None


class RawMessage(LenientModel):
    """The nested API message object on user/assistant records."""

    role: str | None = None
    content: JsonValue = None  # String or list of content blocks
    id: str | None = None
    model: str | None = None
    stop_reason: str | None = None
    usage: RawTokenUsage | None = None


# ==============================================================================
# Raw Record
# ==============================================================================


class RawRecord(LenientModel):
    """One decoded, unnormalized transcript line."""

    type: str

    # Identity
    uuid: str | None = None
    parentUuid: str | None = None
    sessionId: str | None = None
    timestamp: str | None = None

    # Summary records
    summary: str | None = None
    leafUuid: str | None = None

    # Message payloads
    message: RawMessage | None = None
    content: JsonValue = None  # Top-level content (system record shapes)
    toolUse: JsonValue = None
    toolUseResult: JsonValue = None
    isSidechain: bool | None = None
    cwd: str | None = None

    # Cost and performance
    costUSD: float | None = None
    durationMs: TokenCount | None = None

    # File history snapshots
    messageId: str | None = None
    snapshot: JsonValue = None
    isSnapshotUpdate: bool | None = None

    # Progress
    data: JsonValue = None
    toolUseID: str | None = None
    parentToolUseID: str | None = None

    # Queue operations
    operation: str | None = None

    # System events
    subtype: str | None = None
    level: str | None = None
    hookCount: TokenCount | None = None
    hookInfos: JsonValue = None
    stopReason: str | None = None
    preventedContinuation: bool | None = None
    compactMetadata: JsonValue = None
    microcompactMetadata: JsonValue = None

    @property
    def is_known_type(self) -> bool:
        return self.type in KNOWN_RECORD_TYPES

    def missing_identity(self) -> list[str]:
        """Identity fields this record's type normally carries but which are absent or empty."""
        expected = IDENTITY_FIELDS_BY_TYPE.get(self.type, ())
        return [name for name in expected if not getattr(self, name)]
