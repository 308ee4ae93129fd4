"""
Shared type definitions for schemas.

Centralizes the base models and common type annotations used across the record,
message and statistics schemas.

Layering:
- This module provides FOUNDATION types (BaseStrictModel, LenientModel, WireModel)
- records.py decodes raw log lines with LenientModel (every field optional)
- messages.py and operations/ describe engine output with WireModel
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

import orjson
import pydantic

# ==============================================================================
# Base Strict Model (Foundation)
# ==============================================================================


class BaseStrictModel(pydantic.BaseModel):
    """
    Foundation strict model - output schemas inherit from this.

    Uses extra='forbid' to reject unknown fields - any field not modeled
    causes immediate validation failure (fail-fast).
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',  # Reject unknown fields (fail-fast)
        strict=True,  # Strict type coercion
        frozen=True,  # Immutable after creation
    )


# ==============================================================================
# Lenient Model (Decode Layer)
# ==============================================================================


class LenientModel(pydantic.BaseModel):
    """
    Foundation model for the permissive decode layer.

    Symmetry with BaseStrictModel:
    - BaseStrictModel: extra='forbid', mismatches raise
    - LenientModel: extra='ignore', mismatches decode to None

    Producers evolve the transcript schema over time, so a field that is missing
    or carries an unexpected type must degrade to "unset" instead of failing the
    whole record. Subclasses declare every field as ``X | None = None``.
    """

    model_config = pydantic.ConfigDict(
        extra='ignore',  # Unknown producer fields are dropped
        strict=True,  # No silent coercion ("2" is not 2)
        frozen=True,
        populate_by_name=True,
    )

    @pydantic.field_validator('*', mode='wrap')
    @classmethod
    def _unset_on_mismatch(cls, value: Any, handler: pydantic.ValidatorFunctionWrapHandler) -> Any:
        try:
            return handler(value)
        except pydantic.ValidationError:
            return None


# ==============================================================================
# Wire Model (Engine Output)
# ==============================================================================


class WireModel(BaseStrictModel):
    """
    Strict model with the external JSON shape.

    Fields whose wire name differs from the Python name declare an alias;
    both names are accepted on input. Optional fields left as None are omitted
    from the wire form, never emitted as null.
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',
        strict=True,
        frozen=True,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible data under the external field names."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)

    def to_wire_json(self, *, indent: bool = False) -> str:
        """Serialize to a JSON string (see to_wire)."""
        option = orjson.OPT_INDENT_2 if indent else 0
        return orjson.dumps(self.to_wire(), option=option).decode()


# ==============================================================================
# Primitive Types
# ==============================================================================

type JsonValue = Any
"""Opaque JSON payload passed through without interpretation (tool results, snapshots, hook infos)."""

type PathStr = str
"""A filesystem path (file or directory) as a string."""

type IsoTimestamp = str
"""ISO-8601 timestamp string as written by the producer (UTC, usually with a trailing Z)."""

TokenCount = Annotated[int, pydantic.Field(ge=0)]
"""Non-negative token count. Negative values in a log decode to unset."""

# Record type tags known to the normalizer. Anything else is passed through opaquely.
KnownRecordType = Literal[
    'summary',
    'user',
    'assistant',
    'system',
    'file-history-snapshot',
    'progress',
    'queue-operation',
]

MissingTimestampPolicy = Literal['keep', 'drop', 'synthesize']
"""How the reconstructor treats timestamp-bearing records that lack a timestamp."""

SearchFilterType = Literal['content', 'toolId']

EditOperation = Literal['edit', 'write']
"""Edit and MultiEdit report 'edit'; Write reports 'write'."""
