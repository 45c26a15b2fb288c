"""Runner: clean interface for sampling one node of a running network.

Usage:
    from block_sampler.runner import run

    verdict = await run("alice", network_info)

The runner resolves the node in the network description, opens its event
feed, runs one BoundedSampler window and returns the verdict.  Transport
failures surface as AdapterError, never as a False verdict.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Union

from block_sampler.config import settings
from block_sampler.core.sampler import BoundedSampler, SamplerConfig
from block_sampler.feeds.base import EventFeed
from block_sampler.feeds.websocket import WebSocketEventFeed
from block_sampler.models.network import NetworkContext, NodeInfo
from block_sampler.models.result import SamplingResult

logger = logging.getLogger(__name__)

FeedFactory = Callable[[NodeInfo], EventFeed]
NetworkLike = Union[NetworkContext, Mapping[str, Any]]


def websocket_feed_factory(node: NodeInfo) -> EventFeed:
    """Open the node's JSON-RPC event subscription using application settings."""
    return WebSocketEventFeed(
        node,
        subscribe_method=settings.subscribe_method,
        unsubscribe_method=settings.unsubscribe_method,
        connect_timeout=settings.connect_timeout_seconds,
    )


async def sample(
    node_name: str,
    network_context: NetworkLike,
    *,
    config: SamplerConfig | None = None,
    feed_factory: FeedFactory | None = None,
) -> SamplingResult:
    """Run one sampling window against *node_name* and return the full result.

    Args:
        node_name: Node to observe, as named in the network description.
        network_context: NetworkContext or the raw harness dict.
        config: Sampling configuration; defaults to application settings.
        feed_factory: Optional override for feed construction (for testing
            and replay).

    Raises:
        UnknownNodeError: If the network has no such node.
        AdapterError: If the feed fails.
        SamplingTimeoutError: If the window does not close in time.
    """
    context = (
        network_context
        if isinstance(network_context, NetworkContext)
        else NetworkContext.model_validate(network_context)
    )
    node = context.node(node_name)
    cfg = config or SamplerConfig.from_settings(settings)
    factory = feed_factory or websocket_feed_factory

    logger.info("Sampling node %s at %s", node.name, node.ws_uri)
    return await BoundedSampler(cfg).run(factory(node), node_name=node.name)


async def run(
    node_name: str,
    network_context: NetworkLike,
    *,
    config: SamplerConfig | None = None,
    feed_factory: FeedFactory | None = None,
) -> bool:
    """Like sample(), but return only the verdict."""
    result = await sample(node_name, network_context, config=config, feed_factory=feed_factory)
    return result.verdict
