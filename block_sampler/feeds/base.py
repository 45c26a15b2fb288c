"""Abstract base for event feeds.

An event feed pushes one Batch per block into the sampler.  The sampler
never polls; it only reacts to pushed batches and tells the feed when to
stop.

Architectural rules:
    1. Batches are delivered in strictly increasing block order, each at
       most once, by awaiting the handler.
    2. At most one handler invocation runs at a time per subscription.
    3. Feed failures are reported through ``on_error`` as AdapterError,
       never raised into the handler.
    4. Subscription.unsubscribe() is idempotent and may be awaited from
       inside the handler.
    5. No classification logic lives inside a feed, only transport and
       decoding into Batch objects.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from block_sampler.domain.event import Batch

BatchHandler = Callable[[Batch], Awaitable[None]]
ErrorHandler = Callable[["AdapterError"], None]


class AdapterError(Exception):
    """Raised when a feed cannot deliver batches (connection, subscription, framing)."""

    def __init__(self, feed_name: str, reason: str) -> None:
        self.feed_name = feed_name
        self.reason = reason
        super().__init__(f"Feed '{feed_name}' failed: {reason}")


class Subscription(ABC):
    """Handle returned by EventFeed.subscribe()."""

    @abstractmethod
    async def unsubscribe(self) -> None:
        """Stop delivery.  Safe to call more than once."""
        ...

    @property
    @abstractmethod
    def active(self) -> bool:
        """True until unsubscribe() has been called or the feed failed."""
        ...


class EventFeed(ABC):
    """Base class for sources of per-block event batches."""

    @abstractmethod
    async def subscribe(self, handler: BatchHandler, on_error: ErrorHandler) -> Subscription:
        """Start delivering batches to *handler*.

        Raises:
            AdapterError: If the subscription cannot be established.
        """
        ...

    @property
    @abstractmethod
    def feed_name(self) -> str:
        """Human-readable name of the source this feed reads from."""
        ...
