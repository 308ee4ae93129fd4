"""
Session reconstructor - ordered lines of one transcript file to a Session.

Framework-agnostic service. Lines are handed in already read (see
TranscriptDiscoveryService); the reconstructor never touches disk.

Messages keep file order. Parent/child linkage is exposed through MessageIndex
(uuid -> message) rather than embedded references.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from functools import cached_property

import attrs

from transcript_stats.exceptions import (
    DecodeError,
    DroppedRecordWarning,
    MissingIdentityWarning,
    TranscriptStatsWarning,
    UnknownTypeTag,
)
from transcript_stats.schemas.messages import CanonicalMessage, SummaryMessage
from transcript_stats.schemas.operations.session import MessagePage, Session
from transcript_stats.schemas.records import TIMESTAMPED_RECORD_TYPES
from transcript_stats.schemas.types import MissingTimestampPolicy
from transcript_stats.services.decoder import iter_records
from transcript_stats.services.normalizer import normalize_record
from transcript_stats.services.tool_calls import (
    ErrorPredicate,
    default_error_predicate,
    message_has_error,
    message_has_tool_use,
)

logger = logging.getLogger(__name__)

type ReconstructionIssue = DecodeError | TranscriptStatsWarning


# ==============================================================================
# Inputs
# ==============================================================================


@attrs.define(frozen=True)
class SessionSource:
    """One transcript file's already-read content."""

    file_path: str
    project_name: str
    lines: Sequence[str]
    last_modified: str

    @property
    def session_id(self) -> str:
        """Stable identifier derived from the file's location."""
        return self.file_path


# ==============================================================================
# Paging
# ==============================================================================


def paginate(messages: Sequence[CanonicalMessage], offset: int, limit: int) -> MessagePage:
    """
    Slice messages into one page.

    Args:
        messages: Full message sequence in file order
        offset: Index of the first message (>= 0)
        limit: Maximum page size (> 0)

    Returns:
        MessagePage whose next_offset equals len(messages) on the final page

    Raises:
        ValueError: If offset is negative or limit is not positive
    """
    if offset < 0:
        raise ValueError(f'offset must be >= 0, got {offset}')
    if limit <= 0:
        raise ValueError(f'limit must be > 0, got {limit}')

    total = len(messages)
    end = min(offset + limit, total)
    return MessagePage(
        messages=list(messages[offset:end]),
        total_count=total,
        has_more=end < total,
        next_offset=end,
    )


# ==============================================================================
# Message Index
# ==============================================================================


class MessageIndex:
    """
    uuid -> message lookup with parent/child navigation.

    Messages with an empty uuid are not indexed. When a uuid repeats, the first
    occurrence in file order wins.
    """

    def __init__(self, messages: Sequence[CanonicalMessage]) -> None:
        self._by_uuid: dict[str, CanonicalMessage] = {}
        self._children: dict[str, list[str]] = {}
        for message in messages:
            if not message.uuid or message.uuid in self._by_uuid:
                continue
            self._by_uuid[message.uuid] = message
            if message.parentUuid:
                self._children.setdefault(message.parentUuid, []).append(message.uuid)

    def __contains__(self, uuid: object) -> bool:
        return uuid in self._by_uuid

    def __len__(self) -> int:
        return len(self._by_uuid)

    def get(self, uuid: str) -> CanonicalMessage | None:
        return self._by_uuid.get(uuid)

    def children(self, uuid: str) -> list[CanonicalMessage]:
        """Direct children in file order."""
        return [self._by_uuid[child] for child in self._children.get(uuid, ())]

    def ancestors(self, uuid: str) -> list[CanonicalMessage]:
        """Parent chain from the nearest parent to the root. Stops at unknown parents and cycles."""
        chain: list[CanonicalMessage] = []
        seen = {uuid}
        current = self._by_uuid.get(uuid)
        while current is not None and current.parentUuid and current.parentUuid not in seen:
            seen.add(current.parentUuid)
            current = self._by_uuid.get(current.parentUuid)
            if current is not None:
                chain.append(current)
        return chain

    def roots(self) -> list[CanonicalMessage]:
        """Indexed messages whose parent is absent or not in this session."""
        return [m for m in self._by_uuid.values() if not m.parentUuid or m.parentUuid not in self._by_uuid]


# ==============================================================================
# Reconstructed Session
# ==============================================================================


@attrs.define(frozen=True, slots=False)
class ReconstructedSession:
    """A Session plus its canonical messages and the issues found while decoding."""

    session: Session
    messages: tuple[CanonicalMessage, ...]
    issues: tuple[ReconstructionIssue, ...]
    line_count: int  # Non-blank lines read, decoded or not

    @cached_property
    def index(self) -> MessageIndex:
        return MessageIndex(self.messages)

    @property
    def decode_errors(self) -> list[DecodeError]:
        return [issue for issue in self.issues if isinstance(issue, DecodeError)]

    def visible_messages(self, *, exclude_sidechain: bool = False) -> tuple[CanonicalMessage, ...]:
        if not exclude_sidechain:
            return self.messages
        return tuple(m for m in self.messages if m.isSidechain is not True)

    def page(self, offset: int, limit: int, *, exclude_sidechain: bool = False) -> MessagePage:
        """Page through messages in file order; totals refer to the filtered sequence."""
        return paginate(self.visible_messages(exclude_sidechain=exclude_sidechain), offset, limit)


# ==============================================================================
# Reconstructor Service
# ==============================================================================


class SessionReconstructorService:
    """
    Service for rebuilding a Session from one file's lines.

    Pure domain logic - same lines always yield the same session, messages and issues.
    """

    def __init__(
        self,
        missing_timestamp_policy: MissingTimestampPolicy = 'keep',
        error_predicate: ErrorPredicate = default_error_predicate,
    ) -> None:
        self.missing_timestamp_policy = missing_timestamp_policy
        self.error_predicate = error_predicate

    def reconstruct(self, source: SessionSource) -> ReconstructedSession:
        """
        Decode, normalize and summarize one transcript file.

        Undecodable lines are skipped and recorded as issues; they never abort the file.

        Args:
            source: File location, project and already-read lines

        Returns:
            ReconstructedSession with messages in file order
        """
        messages: list[CanonicalMessage] = []
        issues: list[ReconstructionIssue] = []
        line_count = 0
        last_timestamp = ''

        for line_number, decoded in iter_records(source.lines):
            line_count += 1
            if isinstance(decoded, DecodeError):
                issues.append(decoded)
                continue

            raw = decoded
            if not raw.is_known_type:
                issues.append(UnknownTypeTag(line_number, raw.type))

            untimed = raw.type in TIMESTAMPED_RECORD_TYPES and not raw.timestamp
            if untimed and self.missing_timestamp_policy == 'drop':
                # One issue per record: the drop supersedes the identity warning
                issues.append(DroppedRecordWarning(line_number, raw.type))
                continue

            missing = raw.missing_identity()
            if missing:
                logger.debug('%s line %d: %s record missing %s', source.file_path, line_number, raw.type, missing)
                issues.append(MissingIdentityWarning(line_number, raw.type, missing))

            timestamp: str | None = None
            if untimed and self.missing_timestamp_policy == 'synthesize':
                timestamp = last_timestamp

            message = normalize_record(raw, timestamp=timestamp)
            if message.timestamp:
                last_timestamp = message.timestamp
            messages.append(message)

        session = self._build_session(source, messages)
        logger.info(
            'Reconstructed %s: %d messages from %d lines (%d issues)',
            source.file_path,
            session.message_count,
            line_count,
            len(issues),
        )
        return ReconstructedSession(
            session=session,
            messages=tuple(messages),
            issues=tuple(issues),
            line_count=line_count,
        )

    def _build_session(self, source: SessionSource, messages: Sequence[CanonicalMessage]) -> Session:
        timestamps = [m.timestamp for m in messages if m.timestamp]
        session_ids = Counter(m.sessionId for m in messages if m.sessionId)
        summaries = [m.summary for m in messages if isinstance(m, SummaryMessage) and m.summary is not None]

        return Session(
            session_id=source.session_id,
            actual_session_id=session_ids.most_common(1)[0][0] if session_ids else '',
            file_path=source.file_path,
            project_name=source.project_name,
            message_count=len(messages),
            first_message_time=timestamps[0] if timestamps else None,
            last_message_time=timestamps[-1] if timestamps else None,
            last_modified=source.last_modified,
            has_tool_use=any(message_has_tool_use(m) for m in messages),
            has_errors=any(message_has_error(m, self.error_predicate) for m in messages),
            summary=summaries[-1] if summaries else None,
        )
