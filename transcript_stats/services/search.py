"""
Message search - case-insensitive substring search over canonical messages.

Two filters:
- content: text from string content, text/thinking blocks, toolUse.name and the
  toolUseResult string (or its stdout/stderr/content strings)
- toolId: tool_use block ids, tool_result block tool_use_ids and toolUse.id
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import attrs

from transcript_stats.schemas.messages import CanonicalMessage
from transcript_stats.schemas.types import SearchFilterType
from transcript_stats.services.tool_calls import iter_content_blocks


def extract_search_parts(message: CanonicalMessage) -> list[str]:
    """Searchable strings of a message, one per source field or block. Queries never span two parts."""
    parts: list[str] = []

    content = message.content
    if isinstance(content, str):
        parts.append(content)
    elif isinstance(content, list):
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, Mapping):
                parts.extend(item[key] for key in ('text', 'thinking') if isinstance(item.get(key), str))

    tool_use = message.toolUse
    if isinstance(tool_use, Mapping) and isinstance(tool_use.get('name'), str):
        parts.append(tool_use['name'])

    result = message.toolUseResult
    if isinstance(result, str):
        parts.append(result)
    elif isinstance(result, Mapping):
        parts.extend(result[key] for key in ('stdout', 'stderr', 'content') if isinstance(result.get(key), str))
    return parts


def extract_tool_ids(message: CanonicalMessage) -> list[str]:
    ids: list[str] = []
    for block in iter_content_blocks(message.content):
        if block.get('type') == 'tool_use' and isinstance(block.get('id'), str):
            ids.append(block['id'])
        if block.get('type') == 'tool_result' and isinstance(block.get('tool_use_id'), str):
            ids.append(block['tool_use_id'])

    tool_use = message.toolUse
    if isinstance(tool_use, Mapping) and isinstance(tool_use.get('id'), str):
        ids.append(tool_use['id'])
    return ids


@attrs.define(frozen=True)
class MessageMatch:
    """A matching message, its position in the session and how often the query occurs."""

    position: int
    message: CanonicalMessage
    match_count: int


def search_messages(
    messages: Sequence[CanonicalMessage],
    query: str,
    filter_type: SearchFilterType = 'content',
    limit: int | None = None,
) -> list[MessageMatch]:
    """
    Find messages whose searchable text contains query (case-insensitive).

    Args:
        messages: Messages in file order
        query: Substring to look for; an empty or blank query matches nothing
        filter_type: 'content' or 'toolId'
        limit: Maximum number of matches to return

    Returns:
        Matches in file order
    """
    needle = query.strip().lower()
    if not needle:
        return []

    matches: list[MessageMatch] = []
    for position, message in enumerate(messages):
        parts = extract_tool_ids(message) if filter_type == 'toolId' else extract_search_parts(message)
        count = sum(part.lower().count(needle) for part in parts)
        if count:
            matches.append(MessageMatch(position=position, message=message, match_count=count))
            if limit is not None and len(matches) >= limit:
                break
    return matches
