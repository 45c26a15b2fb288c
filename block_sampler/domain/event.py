"""Event and Batch: the records a feed adapter pushes into the sampler.

An Event is one decoded system event as the node reports it in its
human-readable form: a discriminant (``method`` on the wire) plus an
arbitrary payload where numbers arrive as comma-grouped decimal strings.

A Batch groups the events of one block together with the block hash that
produced them.  Both are immutable; the sampler reads them once and drops
them.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# ── Event ────────────────────────────────────────────────────────────────────

class Event(BaseModel):
    """A single decoded system event."""

    kind: str = Field(..., alias="method", min_length=1, description="Event name, e.g. CandidateIncluded")
    section: Optional[str] = Field(default=None, description="Pallet the event belongs to, if reported")
    data: Any = Field(default=None, description="Decoded payload (nested mappings / sequences of primitives)")

    model_config = {"frozen": True, "populate_by_name": True}

    def __str__(self) -> str:
        if self.section:
            return f"{self.section}.{self.kind}"
        return self.kind


# ── Batch ────────────────────────────────────────────────────────────────────

class Batch(BaseModel):
    """All events observed for one unit of progress (one block)."""

    events: list[Event] = Field(default_factory=list)
    block_hash: Optional[str] = Field(
        default=None,
        alias="blockHash",
        description="Provenance token of the block the events belong to",
    )
    block_number: Optional[int] = Field(default=None, alias="blockNumber", ge=0)

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def event_count(self) -> int:
        return len(self.events)
