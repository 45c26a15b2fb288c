"""BoundedSampler: observe a feed for a fixed window and return a verdict.

Flow:
    feed ──batch──▶ WindowController ──counts──▶ evaluate(predicate)
      ▲                    │
      └──── unsubscribe ───┘

The sampler owns nothing between runs: every run() builds its own
classifier, controller and WindowState, so independent runs never share
state.

Fatal outcomes are exceptions, never a False verdict:
    - AdapterError          the feed failed before the window closed
    - SamplingTimeoutError  the window did not close within the deadline
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from block_sampler.core.acceptance import (
    Predicate,
    ThresholdPredicate,
    default_predicate,
    evaluate,
    referenced_keys,
)
from block_sampler.core.classifier import EventClassifier
from block_sampler.core.window import WindowController
from block_sampler.diagnostics import report_summary
from block_sampler.domain.enums import KeyTransform
from block_sampler.domain.paths import get_transform
from block_sampler.feeds.base import AdapterError, EventFeed
from block_sampler.foundation.clock import utc_now
from block_sampler.foundation.identifiers import new_run_id
from block_sampler.models.result import SamplingResult

if TYPE_CHECKING:
    from block_sampler.config import Settings

logger = logging.getLogger(__name__)


class SamplingTimeoutError(TimeoutError):
    """Raised when the window does not close before the run deadline."""

    def __init__(self, timeout: float, batches_seen: int, limit: int) -> None:
        self.timeout = timeout
        self.batches_seen = batches_seen
        self.limit = limit
        super().__init__(
            f"Sampling window not closed after {timeout:g}s ({batches_seen}/{limit} blocks seen)"
        )


def _default_aux_paths() -> dict[str, str]:
    return {"relay_parent": "data[0].descriptor.relayParent"}


@dataclass(frozen=True)
class SamplerConfig:
    """Everything that parameterises one sampling run."""

    target_event_kind: str = "CandidateIncluded"
    batch_limit: int = 12
    bucket_key_path: str = "data[0].descriptor.paraId"
    bucket_key_transform: KeyTransform = KeyTransform.GROUPED_INT
    aux_field_paths: Mapping[str, str] = field(default_factory=_default_aux_paths)
    predicate: Predicate = field(default_factory=default_predicate)
    # Deadline in seconds for the window to close; None waits forever
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.batch_limit <= 0:
            raise ValueError(f"batch_limit must be positive, got {self.batch_limit}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive or None, got {self.timeout}")
        object.__setattr__(self, "bucket_key_transform", KeyTransform(self.bucket_key_transform))
        if isinstance(self.predicate, ThresholdPredicate):
            # Rule keys must compare equal to the keys the classifier produces
            object.__setattr__(self, "predicate", self.predicate.rekeyed(get_transform(self.bucket_key_transform)))

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SamplerConfig":
        timeout = settings.run_timeout_seconds
        return cls(
            target_event_kind=settings.target_event_kind,
            batch_limit=settings.batch_limit,
            bucket_key_path=settings.bucket_key_path,
            bucket_key_transform=KeyTransform(settings.bucket_key_transform),
            aux_field_paths=dict(settings.aux_field_paths),
            predicate=ThresholdPredicate.parse(settings.acceptance_rules),
            timeout=timeout if timeout and timeout > 0 else None,
        )

    def with_overrides(self, **changes: Any) -> "SamplerConfig":
        """Copy with the given fields replaced; None values are ignored."""
        return dataclasses.replace(self, **{k: v for k, v in changes.items() if v is not None})

    def build_classifier(self) -> EventClassifier:
        return EventClassifier(
            target_kind=self.target_event_kind,
            key_path=self.bucket_key_path,
            key_transform=self.bucket_key_transform,
            aux_paths=self.aux_field_paths,
        )


class BoundedSampler:
    """Runs sampling windows with a fixed configuration.

    Usage:
        sampler = BoundedSampler(SamplerConfig(batch_limit=12))
        result = await sampler.run(feed, node_name="alice")
        assert result.verdict
    """

    def __init__(self, config: SamplerConfig | None = None) -> None:
        self._config = config or SamplerConfig()

    @property
    def config(self) -> SamplerConfig:
        return self._config

    async def run(self, feed: EventFeed, *, node_name: str = "") -> SamplingResult:
        """Sample *feed* until the window closes and evaluate the predicate.

        Raises:
            AdapterError: If the feed cannot subscribe or fails mid-window.
            SamplingTimeoutError: If the configured deadline passes first.
        """
        cfg = self._config
        run_id = new_run_id()
        started_at = utc_now()
        controller = WindowController(cfg.build_classifier(), cfg.batch_limit)

        logger.info(
            "Run %s: sampling %d blocks of %s events from %s",
            run_id, cfg.batch_limit, cfg.target_event_kind, feed.feed_name,
        )

        subscription = await feed.subscribe(controller.on_batch, controller.fail)
        try:
            await controller.attach(subscription)
            if cfg.timeout is None:
                counts = await controller.wait()
            else:
                counts = await asyncio.wait_for(controller.wait(), timeout=cfg.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Run %s timed out after %gs", run_id, cfg.timeout)
            raise SamplingTimeoutError(cfg.timeout, controller.batches_seen, cfg.batch_limit) from exc
        except AdapterError:
            logger.error("Run %s aborted by feed %s", run_id, feed.feed_name)
            raise
        finally:
            await subscription.unsubscribe()

        verdict = evaluate(counts, cfg.predicate)
        keys = referenced_keys(cfg.predicate)
        report_summary(counts, keys)
        logger.info("Run %s verdict: %s", run_id, "accept" if verdict else "reject")

        return SamplingResult(
            run_id=run_id,
            node_name=node_name,
            feed_name=feed.feed_name,
            target_event_kind=cfg.target_event_kind,
            verdict=verdict,
            counts=counts.to_dict(),
            referenced_keys=[str(k) for k in keys],
            acceptance_rules=str(cfg.predicate) if isinstance(cfg.predicate, ThresholdPredicate) else "",
            batches_seen=controller.batches_seen,
            batch_limit=cfg.batch_limit,
            skipped_events=controller.skipped,
            started_at=started_at,
            finished_at=utc_now(),
        )
