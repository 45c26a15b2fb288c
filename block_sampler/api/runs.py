"""REST endpoints for triggering and inspecting sampling runs.

Paths:
    POST /api/runs            run one window against a node, return the result
    GET  /api/runs            recent results, newest first
    GET  /api/runs/{run_id}   one recorded result

Infrastructure failures are reported with HTTP errors so they can never be
mistaken for a rejected verdict:
    404  node not in the network description
    422  acceptance rules that do not parse
    502  event feed failed (connect, subscribe, connection lost)
    504  window did not close before the deadline
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException

from block_sampler.core.acceptance import ThresholdPredicate
from block_sampler.core.sampler import SamplerConfig, SamplingTimeoutError
from block_sampler.feeds.base import AdapterError
from block_sampler.models.network import UnknownNodeError
from block_sampler.models.result import RunRequest, SamplingResult
from block_sampler.runner import FeedFactory, sample
from block_sampler.store.run_history import RunHistory

logger = logging.getLogger(__name__)


def create_runs_router(
    history: RunHistory,
    base_config: SamplerConfig,
    feed_factory: FeedFactory | None = None,
) -> APIRouter:
    """Factory that wires the run endpoints to a history and base config.

    Args:
        history: Where completed results are recorded.
        base_config: Configuration that request fields override.
        feed_factory: Optional override for feed construction (for testing).
    """

    router = APIRouter(prefix="/api", tags=["runs"])

    @router.post("/runs")
    async def start_run(request: RunRequest) -> SamplingResult:
        # ── Per-request overrides ─────────────────────────────────
        try:
            predicate = (
                ThresholdPredicate.parse(request.acceptance_rules)
                if request.acceptance_rules
                else None
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

        config = base_config.with_overrides(
            batch_limit=request.batch_limit,
            predicate=predicate,
            timeout=request.timeout_seconds,
        )

        # ── Run ───────────────────────────────────────────────────
        try:
            result = await sample(
                request.node_name,
                request.network,
                config=config,
                feed_factory=feed_factory,
            )
        except UnknownNodeError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except AdapterError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        except SamplingTimeoutError as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc

        await history.record(result)
        return result

    @router.get("/runs")
    async def list_runs(limit: int = 20) -> dict[str, Any]:
        results = await history.recent(limit)
        return {"runs": [r.model_dump(mode="json") for r in results], "count": len(results)}

    @router.get("/runs/{run_id}")
    async def get_run(run_id: UUID) -> SamplingResult:
        result = await history.get(run_id)
        if result is None:
            raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
        return result

    return router
