"""
Session operation schemas.

Models for reconstructed session metadata, message pages and project listings.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from transcript_stats.schemas.base import StrictModel
from transcript_stats.schemas.messages import CanonicalMessage


class Session(StrictModel):
    """
    Metadata for one transcript file.

    session_id is derived from the file's location and is stable across queries;
    actual_session_id is the majority sessionId found inside the file. The two may
    differ when a file was renamed or moved.
    """

    # Identity
    session_id: str
    actual_session_id: str
    file_path: str
    project_name: str

    # Content
    message_count: int
    first_message_time: str | None = None  # First timestamped message in file order
    last_message_time: str | None = None  # Last timestamped message in file order
    last_modified: str

    # Flags
    has_tool_use: bool
    has_errors: bool
    summary: str | None = None  # Last summary record wins


class MessagePage(StrictModel):
    """One page of canonical messages in file order."""

    messages: Sequence[CanonicalMessage]
    total_count: int
    has_more: bool
    next_offset: int  # Equals total_count on the final page

    def to_wire(self) -> dict[str, Any]:
        return {
            'messages': [message.to_wire() for message in self.messages],
            'total_count': self.total_count,
            'has_more': self.has_more,
            'next_offset': self.next_offset,
        }


class ProjectSummary(StrictModel):
    """A project directory and its session files."""

    name: str
    path: str
    session_count: int
    message_count: int
    last_modified: str  # Latest session file modification time (UTC, ISO-8601)


class SearchHit(StrictModel):
    """One message matching a search query."""

    session_id: str
    project_name: str
    position: int  # Index of the message within its session (file order)
    match_count: int
    message: CanonicalMessage

    def to_wire(self) -> dict[str, Any]:
        return {
            'session_id': self.session_id,
            'project_name': self.project_name,
            'position': self.position,
            'match_count': self.match_count,
            'message': self.message.to_wire(),
        }
