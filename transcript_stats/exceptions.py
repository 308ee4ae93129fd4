"""
Shared exceptions for transcript-stats.

Domain-specific exceptions and non-fatal issue types used across services.

Exception Hierarchy:
    TranscriptStatsError (base)
    ├── DecodeError (one log line could not be decoded; scoped to that line)
    └── LookupFailedError (discovery lookups)
        ├── ProjectNotFoundError (no such project directory)
        └── SessionNotFoundError (no such session file / session id)

Issue Hierarchy (recorded on a reconstructed session, never raised):
    TranscriptStatsWarning (UserWarning)
    ├── MissingIdentityWarning (uuid/sessionId/timestamp absent where expected)
    ├── UnknownTypeTag (record passed through as an opaque message)
    └── DroppedRecordWarning (record skipped by the missing-timestamp policy)
"""

from __future__ import annotations

from collections.abc import Sequence


class TranscriptStatsError(Exception):
    """Base exception for all transcript-stats errors."""


class DecodeError(TranscriptStatsError):
    """Raised when a line is not valid JSON, not a JSON object, or has no usable type tag."""

    def __init__(self, line_number: int, reason: str) -> None:
        self.line_number = line_number
        self.reason = reason
        super().__init__(f'Line {line_number}: {reason}')


class LookupFailedError(TranscriptStatsError):
    """Base exception for project and session lookup failures."""


class ProjectNotFoundError(LookupFailedError):
    """Raised when a project directory does not exist under the projects root."""

    def __init__(self, project_name: str) -> None:
        self.project_name = project_name
        super().__init__(f'Project not found: {project_name}')


class SessionNotFoundError(LookupFailedError):
    """Raised when a session cannot be located within a project."""

    def __init__(self, session_id: str, project_name: str | None = None) -> None:
        self.session_id = session_id
        self.project_name = project_name
        where = f' in project {project_name}' if project_name else ''
        super().__init__(f'Session not found{where}: {session_id}')


# ==============================================================================
# Non-fatal issues
# ==============================================================================


class TranscriptStatsWarning(UserWarning):
    """Base class for non-fatal issues recorded during reconstruction."""

    line_number: int

    def __init__(self, line_number: int, message: str) -> None:
        self.line_number = line_number
        super().__init__(f'Line {line_number}: {message}')


class MissingIdentityWarning(TranscriptStatsWarning):
    """A record of an identity-bearing type lacks uuid, sessionId or timestamp."""

    def __init__(self, line_number: int, record_type: str, missing: Sequence[str]) -> None:
        self.record_type = record_type
        self.missing = tuple(missing)
        super().__init__(line_number, f'{record_type} record missing {", ".join(self.missing)}')


class UnknownTypeTag(TranscriptStatsWarning):
    """A record's type tag is not recognized; it was kept as an opaque message."""

    def __init__(self, line_number: int, type_tag: str) -> None:
        self.type_tag = type_tag
        super().__init__(line_number, f'unknown record type {type_tag!r}')


class DroppedRecordWarning(TranscriptStatsWarning):
    """A record was skipped because it has no timestamp and the policy is 'drop'."""

    def __init__(self, line_number: int, record_type: str) -> None:
        self.record_type = record_type
        super().__init__(line_number, f'{record_type} record without timestamp dropped')
