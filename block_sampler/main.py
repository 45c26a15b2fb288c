"""block-sampler: bounded event sampling over a node's event stream.

This is the HTTP application entry point.  It wires the run history and
the run endpoints together.  The command line entry point lives in
block_sampler.cli.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from block_sampler.api.runs import create_runs_router
from block_sampler.config import settings
from block_sampler.core.sampler import SamplerConfig
from block_sampler.store.run_history import RunHistory

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

# ── State ────────────────────────────────────────────────────────────────────

history = RunHistory(max_size=settings.history_size)
base_config = SamplerConfig.from_settings(settings)

# ── App ──────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="Bounded event sampling and acceptance checks for test networks",
    version="0.1.0",
    debug=settings.debug,
)

# ── Routes ───────────────────────────────────────────────────────────────────

app.include_router(create_runs_router(history, base_config))


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/health")
async def health() -> dict:
    last = await history.last()
    return {
        "status": "ok",
        "runs_recorded": await history.count(),
        "last_verdict": last.verdict if last is not None else None,
        "target_event_kind": base_config.target_event_kind,
        "batch_limit": base_config.batch_limit,
    }
