"""
Tool invocation extraction and error detection.

Tool-result payloads are owned by the upstream tool runner and are opaque to the
engine. Whether a payload signals an error is decided by a pluggable predicate;
default_error_predicate covers the shapes seen in transcript files.

Invocations come from two places:
- tool_use content blocks on assistant messages (matched to tool_result blocks by id)
- legacy top-level toolUse objects (the record's own toolUseResult is the result)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any

import attrs

from transcript_stats.schemas.messages import CanonicalMessage

type ErrorPredicate = Callable[[object], bool]

# toolUseResult keys that report execution time in milliseconds
_DURATION_KEYS = ('durationMs', 'duration_ms', 'totalDurationMs')


def default_error_predicate(payload: object) -> bool:
    """
    Default error marker detection for tool-result payloads.

    Fires on:
    - a mapping with truthy is_error/isError, success == False, or a non-empty string error
    - a string starting with 'Error'
    - a list any of whose items fire
    """
    if isinstance(payload, Mapping):
        if payload.get('is_error') or payload.get('isError'):
            return True
        if payload.get('success') is False:
            return True
        error = payload.get('error')
        return isinstance(error, str) and bool(error)
    if isinstance(payload, str):
        return payload.startswith('Error')
    if isinstance(payload, list):
        return any(default_error_predicate(item) for item in payload)
    return False


@attrs.define(frozen=True)
class ToolCall:
    """One tool invocation and what its result reported."""

    tool_name: str
    tool_use_id: str | None
    is_error: bool
    duration_ms: float | None


# ==============================================================================
# Content helpers
# ==============================================================================


def iter_content_blocks(content: Any) -> Iterator[Mapping[str, Any]]:
    """Yield the mapping blocks of a list-shaped content payload (string content yields nothing)."""
    if isinstance(content, list):
        for block in content:
            if isinstance(block, Mapping):
                yield block


def message_has_tool_use(message: CanonicalMessage) -> bool:
    if message.toolUse or message.toolUseResult:
        return True
    return any(block.get('type') == 'tool_use' for block in iter_content_blocks(message.content))


def message_has_error(message: CanonicalMessage, error_predicate: ErrorPredicate = default_error_predicate) -> bool:
    if message.toolUseResult is not None and error_predicate(message.toolUseResult):
        return True
    return any(
        block.get('type') == 'tool_result' and error_predicate(block) for block in iter_content_blocks(message.content)
    )


def reported_duration_ms(payload: Any) -> float | None:
    """Execution time reported by a toolUseResult mapping, if any."""
    if not isinstance(payload, Mapping):
        return None
    for key in _DURATION_KEYS:
        value = payload.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
            return float(value)
    return None


# ==============================================================================
# Extraction
# ==============================================================================


@attrs.define
class _Outcome:
    is_error: bool
    duration_ms: float | None


def extract_tool_calls(
    messages: Sequence[CanonicalMessage],
    error_predicate: ErrorPredicate = default_error_predicate,
) -> list[ToolCall]:
    """
    Extract every tool invocation of a session in file order.

    An invocation with no matching result counts as successful with no duration.

    Args:
        messages: A session's canonical messages in file order
        error_predicate: Decides whether a result payload carries an error marker

    Returns:
        One ToolCall per invocation
    """
    outcomes: dict[str, _Outcome] = {}
    for message in messages:
        result_failed = message.toolUseResult is not None and error_predicate(message.toolUseResult)
        duration = reported_duration_ms(message.toolUseResult)
        for block in iter_content_blocks(message.content):
            tool_use_id = block.get('tool_use_id')
            if block.get('type') != 'tool_result' or not isinstance(tool_use_id, str):
                continue
            outcomes[tool_use_id] = _Outcome(error_predicate(block) or result_failed, duration)

    calls: list[ToolCall] = []
    seen_ids: set[str] = set()
    for message in messages:
        for block in iter_content_blocks(message.content):
            name = block.get('name')
            if block.get('type') != 'tool_use' or not isinstance(name, str) or not name:
                continue
            tool_use_id = block.get('id') if isinstance(block.get('id'), str) else None
            if tool_use_id is not None:
                if tool_use_id in seen_ids:
                    continue
                seen_ids.add(tool_use_id)
            outcome = outcomes.get(tool_use_id) if tool_use_id is not None else None
            calls.append(
                ToolCall(
                    tool_name=name,
                    tool_use_id=tool_use_id,
                    is_error=outcome.is_error if outcome else False,
                    duration_ms=outcome.duration_ms if outcome else None,
                )
            )

        # Legacy shape: the record's own toolUseResult answers its toolUse
        tool_use = message.toolUse
        if not isinstance(tool_use, Mapping):
            continue
        name = tool_use.get('name')
        if not isinstance(name, str) or not name:
            continue
        tool_use_id = tool_use.get('id') if isinstance(tool_use.get('id'), str) else None
        if tool_use_id is not None:
            if tool_use_id in seen_ids:
                continue
            seen_ids.add(tool_use_id)
        result = message.toolUseResult
        calls.append(
            ToolCall(
                tool_name=name,
                tool_use_id=tool_use_id,
                is_error=result is not None and error_predicate(result),
                duration_ms=reported_duration_ms(result),
            )
        )

    return calls
