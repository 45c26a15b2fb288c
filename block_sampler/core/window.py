"""WindowController: the per-run state machine that closes the sampling window.

State machine:  RUNNING → CLOSED  (exactly once)

Design notes:
    - An asyncio.Lock serialises on_batch() so WindowState is never
      mutated by two deliveries at once.
    - The run is represented by one future.  It resolves with a
      BucketCounts snapshot when the window closes, or is rejected with an
      AdapterError by fail().  Whichever comes first wins; later outcomes
      are ignored.
    - Batches delivered after the window closed (the feed's unsubscribe is
      not instantaneous) are ignored.
    - Classification errors are per event: logged, counted as skipped,
      never fatal.
"""

from __future__ import annotations

import asyncio
import logging

from block_sampler.core.classifier import ClassificationError, EventClassifier
from block_sampler.diagnostics import report_match
from block_sampler.domain.enums import WindowPhase
from block_sampler.domain.event import Batch
from block_sampler.domain.window import BucketCounts, WindowState
from block_sampler.feeds.base import AdapterError, Subscription

logger = logging.getLogger(__name__)


class WindowController:
    """Owns the WindowState of one sampling run.

    Must be constructed inside a running event loop.

    Args:
        classifier: Classifier applied to every event of every batch.
        limit: Number of batches after which the window closes.
    """

    def __init__(self, classifier: EventClassifier, limit: int) -> None:
        self._classifier = classifier
        self._state = WindowState(limit)
        self._lock = asyncio.Lock()
        self._result: asyncio.Future[BucketCounts] = asyncio.get_running_loop().create_future()
        self._subscription: Subscription | None = None
        self._ignored_batches = 0

    # ── Public API ───────────────────────────────────────────────────────

    async def attach(self, subscription: Subscription) -> None:
        """Record the subscription to cancel when the window closes.

        If the window already closed (batches raced ahead of attach), the
        subscription is cancelled right away.
        """
        self._subscription = subscription
        if self._state.is_closed:
            await subscription.unsubscribe()

    async def on_batch(self, batch: Batch) -> None:
        """Process one batch.  This is the feed's handler."""
        async with self._lock:
            if self._state.is_closed or self._result.done():
                self._ignored_batches += 1
                logger.debug("Ignoring block %s delivered after the window closed", batch.block_hash)
                return

            offset = self._state.advance()
            for event in batch.events:
                try:
                    classification = self._classifier.classify(event)
                except ClassificationError as exc:
                    self._state.skipped += 1
                    logger.warning(
                        "Skipping %s in block %s (block_offset=%d): %s",
                        event, batch.block_hash, offset, exc,
                    )
                    continue
                if classification is None:
                    continue
                self._state.increment(classification.bucket_key)
                report_match(event.kind, classification, offset)

            if self._state.is_full:
                await self._close()

    def fail(self, error: AdapterError) -> None:
        """Abort the run with *error* unless it already resolved."""
        if self._result.done():
            logger.debug("Ignoring feed error after run resolved: %s", error)
            return
        logger.error("Sampling aborted after %d/%d blocks: %s",
                     self._state.batches_seen, self._state.limit, error)
        self._result.set_exception(error)

    async def wait(self) -> BucketCounts:
        """Wait for the window to close and return the final counts.

        Raises:
            AdapterError: If the feed failed first.
        """
        return await asyncio.shield(self._result)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def phase(self) -> WindowPhase:
        return self._state.phase

    @property
    def batches_seen(self) -> int:
        return self._state.batches_seen

    @property
    def limit(self) -> int:
        return self._state.limit

    @property
    def skipped(self) -> int:
        return self._state.skipped

    @property
    def ignored_batches(self) -> int:
        return self._ignored_batches

    def snapshot(self) -> BucketCounts:
        return self._state.snapshot()

    # ── Internals ────────────────────────────────────────────────────────

    async def _close(self) -> None:
        """Must be called while holding self._lock."""
        self._state.close()
        logger.info("Window closed after %d blocks", self._state.batches_seen)
        try:
            if self._subscription is not None:
                await self._subscription.unsubscribe()
        finally:
            if not self._result.done():
                self._result.set_result(self._state.snapshot())
