"""
Shared Pydantic base model for engine output.

All operation result schemas inherit from StrictModel.
This module re-exports WireModel as StrictModel for the operations/ package.
"""

from __future__ import annotations

from transcript_stats.schemas.types import WireModel


class StrictModel(WireModel):
    """Operations-layer strict model.

    Inherits from WireModel (extra='forbid', strict=True, frozen=True, None omitted on the wire).
    Used by transcript_stats/schemas/operations/ package.
    """

    pass
