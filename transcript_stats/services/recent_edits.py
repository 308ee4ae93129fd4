"""
Recent file edits - what the Edit, MultiEdit and Write tools changed.

Read-only: reports the transcript's record of each change. Files on disk are
never read or written.

An edit is assembled from two halves paired by tool_use id:
- the tool_use block on an assistant record (tool name, input.file_path, the
  old/new strings or the written content)
- the toolUseResult on the user record answering it (filePath, originalFile,
  structuredPatch)

Where both halves carry a value the result wins. An invocation answered with an
error marker changed nothing and is skipped. A result whose invocation is not in
the file is used on its own.

Works on decoded records rather than canonical messages because the working
directory (cwd) is not part of the canonical form.
"""

from __future__ import annotations

import datetime
import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import attrs

from transcript_stats.schemas.operations.edits import RecentEditsResult, RecentFileEdit
from transcript_stats.schemas.records import RawRecord
from transcript_stats.schemas.types import EditOperation
from transcript_stats.services.decoder import iter_records
from transcript_stats.services.reconstruct import SessionSource
from transcript_stats.services.tool_calls import ErrorPredicate, default_error_predicate, iter_content_blocks
from transcript_stats.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

EDIT_TOOL_OPERATIONS: dict[str, EditOperation] = {'Edit': 'edit', 'MultiEdit': 'edit', 'Write': 'write'}

_UNTIMED = datetime.datetime.min.replace(tzinfo=datetime.UTC)


@attrs.define(frozen=True)
class Replacement:
    """One old -> new string substitution of an Edit or MultiEdit call."""

    old: str
    new: str
    replace_all: bool = False

    def apply(self, text: str) -> str:
        if self.replace_all:
            return text.replace(self.old, self.new)
        return text.replace(self.old, self.new, 1)


# ==============================================================================
# Payload helpers
# ==============================================================================


def _first_str(*values: Any) -> str | None:
    return next((value for value in values if isinstance(value, str)), None)


def _record_content(record: RawRecord) -> Any:
    if record.message is not None and record.message.content is not None:
        return record.message.content
    return record.content


def count_lines(text: str) -> int:
    """Number of lines in text; a final line without a newline still counts."""
    if not text:
        return 0
    return text.count('\n') + (0 if text.endswith('\n') else 1)


def patch_line_counts(patch: Any) -> tuple[int, int] | None:
    """
    (added, removed) lines of a structuredPatch hunk list.

    Returns None when there is no non-empty hunk list to count, e.g. a Write
    that created a new file.
    """
    if not isinstance(patch, list) or not patch:
        return None
    added = removed = 0
    for hunk in patch:
        lines = hunk.get('lines') if isinstance(hunk, Mapping) else None
        if not isinstance(lines, list):
            continue
        for line in lines:
            if not isinstance(line, str):
                continue
            if line.startswith('+'):
                added += 1
            elif line.startswith('-'):
                removed += 1
    return added, removed


def _replacements(result: Mapping[str, Any], tool_input: Mapping[str, Any]) -> list[Replacement]:
    # Edit results echo the strings in camelCase; MultiEdit results and inputs use snake_case
    old, new = result.get('oldString'), result.get('newString')
    if isinstance(old, str) and isinstance(new, str):
        return [Replacement(old, new, result.get('replaceAll') is True)]

    for source in (result, tool_input):
        edits = source.get('edits')
        if isinstance(edits, list):
            return [
                Replacement(item['old_string'], item['new_string'], item.get('replace_all') is True)
                for item in edits
                if isinstance(item, Mapping)
                and isinstance(item.get('old_string'), str)
                and isinstance(item.get('new_string'), str)
            ]

    old, new = tool_input.get('old_string'), tool_input.get('new_string')
    if isinstance(old, str) and isinstance(new, str):
        return [Replacement(old, new, tool_input.get('replace_all') is True)]
    return []


def build_file_edit(
    tool_name: str | None,
    tool_input: Any,
    payload: Any,
    record: RawRecord,
) -> RecentFileEdit | None:
    """
    Assemble one edit from an invocation's input and its result payload.

    Args:
        tool_name: Edit, MultiEdit or Write; None for a result without its invocation
        tool_input: The tool_use input mapping, if known
        payload: The toolUseResult answering the invocation, if any
        record: Record whose timestamp, sessionId and cwd are reported

    Returns:
        The edit, or None when no file path or resulting content is recorded
    """
    tool_input = tool_input if isinstance(tool_input, Mapping) else {}
    result = payload if isinstance(payload, Mapping) else {}

    file_path = _first_str(result.get('filePath'), tool_input.get('file_path'))
    if not file_path:
        return None

    if tool_name is not None:
        operation = EDIT_TOOL_OPERATIONS[tool_name]
    elif 'oldString' in result or 'edits' in result:
        operation = 'edit'
    else:
        operation = 'write'

    original = _first_str(result.get('originalFile'))
    counts = patch_line_counts(result.get('structuredPatch'))

    if operation == 'write':
        after = _first_str(result.get('content'), tool_input.get('content'))
        if after is None:
            return None
        if counts is None:
            counts = (count_lines(after), count_lines(original or ''))
    else:
        replacements = _replacements(result, tool_input)
        if not replacements:
            return None
        if original is not None:
            after = original
            for replacement in replacements:
                after = replacement.apply(after)
        else:
            after = '\n'.join(replacement.new for replacement in replacements)
        if counts is None:
            counts = (
                sum(count_lines(r.new) for r in replacements),
                sum(count_lines(r.old) for r in replacements),
            )

    return RecentFileEdit(
        file_path=file_path,
        timestamp=record.timestamp or '',
        session_id=record.sessionId or '',
        operation_type=operation,
        content_after_change=after,
        original_content=original,
        lines_added=counts[0],
        lines_removed=counts[1],
        cwd=record.cwd,
    )


# ==============================================================================
# Extraction
# ==============================================================================


def _edit_tool_name(tool_use: Mapping[str, Any]) -> str | None:
    name = tool_use.get('name')
    return name if isinstance(name, str) and name in EDIT_TOOL_OPERATIONS else None


def extract_file_edits(
    records: Sequence[RawRecord],
    error_predicate: ErrorPredicate = default_error_predicate,
) -> list[RecentFileEdit]:
    """
    Every successful file edit of one session, in file order.

    Args:
        records: A session's decoded records in file order
        error_predicate: Decides whether a result carries an error marker

    Returns:
        One RecentFileEdit per change
    """
    # tool_use_id -> (answering record, its toolUseResult, failed)
    answers: dict[str, tuple[RawRecord, Any, bool]] = {}
    invoked: set[str] = set()
    for record in records:
        payload = record.toolUseResult
        for block in iter_content_blocks(_record_content(record)):
            if block.get('type') == 'tool_use' and _edit_tool_name(block) and isinstance(block.get('id'), str):
                invoked.add(block['id'])
            tool_use_id = block.get('tool_use_id')
            if block.get('type') == 'tool_result' and isinstance(tool_use_id, str):
                failed = error_predicate(block) or (payload is not None and error_predicate(payload))
                answers[tool_use_id] = (record, payload, failed)

    edits: list[RecentFileEdit | None] = []
    seen_ids: set[str] = set()
    for record in records:
        for block in iter_content_blocks(_record_content(record)):
            block_type = block.get('type')

            name = _edit_tool_name(block) if block_type == 'tool_use' else None
            if name is not None:
                tool_use_id = block.get('id') if isinstance(block.get('id'), str) else None
                if tool_use_id is not None:
                    if tool_use_id in seen_ids:
                        continue
                    seen_ids.add(tool_use_id)
                answer = answers.get(tool_use_id) if tool_use_id is not None else None
                if answer is None:
                    edits.append(build_file_edit(name, block.get('input'), None, record))
                elif not answer[2]:
                    answered_by, payload, _ = answer
                    edits.append(build_file_edit(name, block.get('input'), payload, answered_by))
                continue

            # A result whose invocation is not in this file: only a top-level filePath marks it as an edit
            tool_use_id = block.get('tool_use_id')
            payload = record.toolUseResult
            if (
                block_type != 'tool_result'
                or not isinstance(tool_use_id, str)
                or tool_use_id in invoked
                or tool_use_id in seen_ids
                or not isinstance(payload, Mapping)
                or 'filePath' not in payload
            ):
                continue
            if error_predicate(block) or error_predicate(payload):
                continue
            seen_ids.add(tool_use_id)
            edits.append(build_file_edit(None, None, payload, record))

        # Legacy shape: the record's own toolUseResult answers its toolUse
        tool_use = record.toolUse
        name = _edit_tool_name(tool_use) if isinstance(tool_use, Mapping) else None
        if name is not None:
            payload = record.toolUseResult
            if payload is None or not error_predicate(payload):
                edits.append(build_file_edit(name, tool_use.get('input'), payload, record))

    return [edit for edit in edits if edit is not None]


def decode_records(lines: Iterable[str]) -> list[RawRecord]:
    """Decodable records of a file; undecodable lines are dropped."""
    return [decoded for _, decoded in iter_records(lines) if isinstance(decoded, RawRecord)]


# ==============================================================================
# Summary
# ==============================================================================


def _moment(edit: RecentFileEdit) -> datetime.datetime:
    return parse_timestamp(edit.timestamp) or _UNTIMED


def summarize_recent_edits(edits: Iterable[RecentFileEdit], cwds: Iterable[str]) -> RecentEditsResult:
    """
    Keep the latest edit of each file, most recent first.

    Ties on timestamp go to the later edit in input order; untimed edits sort
    last. Files with equal timestamps are listed by path.

    Args:
        edits: Successful edits, in file order per session
        cwds: Working directories of the project's records, for the majority vote

    Returns:
        RecentEditsResult
    """
    total = 0
    latest: dict[str, RecentFileEdit] = {}
    for edit in edits:
        total += 1
        current = latest.get(edit.file_path)
        if current is None or _moment(edit) >= _moment(current):
            latest[edit.file_path] = edit

    by_path = sorted(latest.values(), key=lambda e: e.file_path)
    files = sorted(by_path, key=_moment, reverse=True)

    most_common = Counter(cwd for cwd in cwds if cwd).most_common(1)
    return RecentEditsResult(
        files=files,
        total_edits_count=total,
        unique_files_count=len(files),
        project_cwd=most_common[0][0] if most_common else None,
    )


def collect_recent_edits(
    sources: Iterable[SessionSource],
    error_predicate: ErrorPredicate = default_error_predicate,
) -> RecentEditsResult:
    """
    Recent edits across a project's session files.

    Args:
        sources: The project's session files
        error_predicate: Decides whether a result carries an error marker

    Returns:
        RecentEditsResult
    """
    edits: list[RecentFileEdit] = []
    cwds: list[str] = []
    for source in sources:
        records = decode_records(source.lines)
        session_edits = extract_file_edits(records, error_predicate)
        logger.debug('%s: %d file edits', source.file_path, len(session_edits))
        edits.extend(session_edits)
        cwds.extend(record.cwd for record in records if record.cwd)
    return summarize_recent_edits(edits, cwds)
