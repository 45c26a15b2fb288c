"""ScriptedEventFeed: delivers a fixed sequence of batches.

Used to replay recorded blocks through the sampler (``--replay`` on the
command line) and to drive the sampler deterministically in tests.

Expected replay file format (a JSON list, one entry per block):
[
    {
        "blockHash": "0x1a2b…",
        "blockNumber": 41,
        "events": [
            {"method": "CandidateIncluded", "section": "paraInclusion",
             "data": [{"descriptor": {"paraId": "2,000", "relayParent": "0x…"}}]}
        ]
    }
]
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from block_sampler.domain.event import Batch
from block_sampler.feeds.base import (
    AdapterError,
    BatchHandler,
    ErrorHandler,
    EventFeed,
    Subscription,
)

logger = logging.getLogger(__name__)


class ScriptedEventFeed(EventFeed):
    """Feed that plays back *batches* in order.

    Args:
        batches: Batches delivered while the subscription is active.
        late: Batches delivered after the script even if the subscriber has
            already unsubscribed; models an in-flight block racing the
            unsubscribe request.
        error: If set, reported through ``on_error`` once the script is
            exhausted and the subscription is still active.  Without it an
            exhausted script is reported as "replay exhausted".
        stall: Stay silent after the script instead of reporting it as
            exhausted; models a node that stops producing blocks.
        delay: Seconds to wait before each delivery.
        name: Feed name used in logs and errors.
    """

    def __init__(
        self,
        batches: Iterable[Batch | dict[str, Any]],
        *,
        late: Iterable[Batch | dict[str, Any]] = (),
        error: AdapterError | None = None,
        delay: float = 0.0,
        stall: bool = False,
        name: str = "scripted",
    ) -> None:
        self._batches = [_as_batch(b) for b in batches]
        self._late = [_as_batch(b) for b in late]
        self._error = error
        self._delay = delay
        self._stall = stall
        self._name = name
        self.subscriptions: list[ScriptedSubscription] = []

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> "ScriptedEventFeed":
        """Load a replay file (see module docstring for the format)."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise AdapterError(str(path), f"cannot read replay file: {exc}") from exc
        if not isinstance(raw, list):
            raise AdapterError(str(path), "replay file must contain a JSON list of batches")
        kwargs.setdefault("name", f"replay:{Path(path).name}")
        try:
            return cls(raw, **kwargs)
        except ValidationError as exc:
            raise AdapterError(str(path), f"invalid batch in replay file: {exc}") from exc

    @property
    def feed_name(self) -> str:
        return self._name

    async def subscribe(self, handler: BatchHandler, on_error: ErrorHandler) -> Subscription:
        subscription = ScriptedSubscription(self, handler, on_error)
        self.subscriptions.append(subscription)
        subscription.start()
        logger.debug("Scripted feed '%s' subscribed (%d batches)", self._name, len(self._batches))
        return subscription


class ScriptedSubscription(Subscription):
    """Delivery task for one subscriber of a ScriptedEventFeed."""

    def __init__(self, feed: ScriptedEventFeed, handler: BatchHandler, on_error: ErrorHandler) -> None:
        self._feed = feed
        self._handler = handler
        self._on_error = on_error
        self._active = True
        self._task: asyncio.Task | None = None
        self.unsubscribe_calls: int = 0
        self.delivered: list[Batch] = []

    def start(self) -> None:
        self._task = asyncio.create_task(self._deliver())

    @property
    def active(self) -> bool:
        return self._active

    async def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        self._active = False

    async def wait_drained(self) -> None:
        """Wait for the delivery task to finish (tests only)."""
        if self._task is not None:
            await self._task

    async def _deliver(self) -> None:
        for batch in self._feed._batches:
            await asyncio.sleep(self._feed._delay)
            if not self._active:
                break
            self.delivered.append(batch)
            await self._handler(batch)

        for batch in self._feed._late:
            await asyncio.sleep(self._feed._delay)
            self.delivered.append(batch)
            await self._handler(batch)

        if not self._active or self._feed._stall:
            return
        self._active = False
        if self._feed._error is not None:
            self._on_error(self._feed._error)
        else:
            self._on_error(AdapterError(self._feed._name, "replay exhausted"))


def _as_batch(value: Batch | dict[str, Any]) -> Batch:
    if isinstance(value, Batch):
        return value
    return Batch.model_validate(value)
