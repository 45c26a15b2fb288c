"""In-memory history of completed sampling runs.

Design notes:
    - An asyncio.Lock guards all mutations so concurrent HTTP handlers
      never corrupt the history.
    - The history is bounded; the oldest result is dropped first.
    - Nothing is persisted.  A restart forgets every run.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from uuid import UUID

from block_sampler.models.result import SamplingResult

logger = logging.getLogger(__name__)


class RunHistory:
    """Async-safe, bounded store of SamplingResults keyed by run id.

    Args:
        max_size: Number of results retained.
    """

    def __init__(self, max_size: int = 50) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._lock = asyncio.Lock()
        self._results: OrderedDict[UUID, SamplingResult] = OrderedDict()

    async def record(self, result: SamplingResult) -> None:
        async with self._lock:
            self._results[result.run_id] = result
            while len(self._results) > self._max_size:
                dropped, _ = self._results.popitem(last=False)
                logger.debug("Dropped run %s from history", dropped)

    async def get(self, run_id: UUID) -> SamplingResult | None:
        async with self._lock:
            return self._results.get(run_id)

    async def recent(self, limit: int | None = None) -> list[SamplingResult]:
        """Most recent results first."""
        async with self._lock:
            results = list(reversed(self._results.values()))
        return results[:limit] if limit is not None else results

    async def count(self) -> int:
        async with self._lock:
            return len(self._results)

    async def last(self) -> SamplingResult | None:
        async with self._lock:
            if not self._results:
                return None
            return next(reversed(self._results.values()))
