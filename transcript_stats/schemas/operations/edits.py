"""
Recent edit schemas.

File changes made through the Edit, MultiEdit and Write tools, as recorded in a
project's transcripts.
"""

from __future__ import annotations

from collections.abc import Sequence

from transcript_stats.schemas.base import StrictModel
from transcript_stats.schemas.types import EditOperation, IsoTimestamp, PathStr


class RecentFileEdit(StrictModel):
    """The most recent recorded change to one file."""

    file_path: PathStr
    timestamp: IsoTimestamp
    session_id: str  # sessionId of the record that made the change
    operation_type: EditOperation
    content_after_change: str  # Whole file when the transcript holds it, else the replacement text
    original_content: str | None = None  # File content before the change, when recorded
    lines_added: int
    lines_removed: int
    cwd: PathStr | None = None  # Working directory when the edit was made


class RecentEditsResult(StrictModel):
    """Recent edits of a project, most recent first."""

    files: Sequence[RecentFileEdit]
    total_edits_count: int  # Every successful edit, including superseded ones
    unique_files_count: int
    project_cwd: PathStr | None = None  # Most common working directory across the project's records
