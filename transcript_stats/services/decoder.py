"""
Record decoder - one raw JSONL line to a RawRecord.

Pure functions; no I/O. Reading files is the discovery service's concern.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

import orjson

from transcript_stats.exceptions import DecodeError
from transcript_stats.schemas.records import RawRecord

logger = logging.getLogger(__name__)


def decode_line(line: str, line_number: int) -> RawRecord:
    """
    Decode one transcript line.

    Every field other than the type tag is optional; absent or mistyped fields
    decode to None.

    Args:
        line: Raw text of the line (surrounding whitespace is ignored)
        line_number: 1-based position of the line in its file

    Returns:
        Decoded RawRecord

    Raises:
        DecodeError: If the line is not valid JSON, not a JSON object, or has no
            non-empty string type tag
    """
    try:
        payload = orjson.loads(line.strip().lstrip('\ufeff'))
    except orjson.JSONDecodeError as e:
        raise DecodeError(line_number, f'invalid JSON ({e})') from e

    if not isinstance(payload, dict):
        raise DecodeError(line_number, f'expected a JSON object, got {type(payload).__name__}')

    type_tag = payload.get('type')
    if not isinstance(type_tag, str) or not type_tag:
        raise DecodeError(line_number, 'missing or non-string type tag')

    return RawRecord.model_validate(payload)


def iter_records(lines: Iterable[str]) -> Iterator[tuple[int, RawRecord | DecodeError]]:
    """
    Decode lines in order, yielding failures instead of raising them.

    Blank lines are skipped without being reported. Line numbers count every
    input line, blank or not, starting at 1.

    Yields:
        (line_number, RawRecord or the DecodeError for that line)
    """
    for line_number, line in enumerate(lines, 1):
        if not line.strip():
            continue
        try:
            yield line_number, decode_line(line, line_number)
        except DecodeError as e:
            logger.debug('Skipping undecodable line: %s', e)
            yield line_number, e
