"""Pydantic models for sampling run results and HTTP run requests."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from block_sampler.models.network import NetworkContext


class SamplingResult(BaseModel):
    """Outcome of one completed sampling window."""

    run_id: UUID
    node_name: str = Field(default="", description="Node the events were read from")
    feed_name: str = Field(..., description="Feed the batches came from")
    target_event_kind: str
    verdict: bool = Field(..., description="True = accept, False = reject")
    counts: dict[str, int] = Field(default_factory=dict, description="Final count per bucket key")
    referenced_keys: list[str] = Field(default_factory=list, description="Buckets named by the predicate")
    acceptance_rules: str = Field(default="", description="Text form of the predicate, if it has one")
    batches_seen: int = Field(..., ge=0)
    batch_limit: int = Field(..., gt=0)
    skipped_events: int = Field(default=0, ge=0, description="Matching events whose key could not be extracted")
    started_at: datetime
    finished_at: datetime

    model_config = {"frozen": True}

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


class RunRequest(BaseModel):
    """Body of POST /api/runs."""

    node_name: str = Field(..., min_length=1)
    network: NetworkContext
    batch_limit: Optional[int] = Field(default=None, gt=0)
    acceptance_rules: Optional[str] = Field(default=None, min_length=1)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
