"""Command line entry point.

    block-sampler alice --network network.json
    block-sampler alice --network network.json --limit 12 --rules "2000>=7;2001<=4"
    block-sampler alice --network network.json --replay blocks.json

Exit codes:
    0  verdict accept
    1  verdict reject
    2  could not observe (unknown node, feed failure, timeout, bad config)
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from block_sampler.config import settings
from block_sampler.core.acceptance import ThresholdPredicate
from block_sampler.core.sampler import SamplerConfig, SamplingTimeoutError
from block_sampler.feeds.base import AdapterError, EventFeed
from block_sampler.feeds.scripted import ScriptedEventFeed
from block_sampler.models.network import NetworkContext, NodeInfo, UnknownNodeError
from block_sampler.runner import FeedFactory, sample

logger = logging.getLogger(__name__)

EXIT_ACCEPT = 0
EXIT_REJECT = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="block-sampler",
        description="Sample a node's event stream for a fixed number of blocks and check the counts.",
    )
    ap.add_argument("node", help="node name as listed in the network description")
    ap.add_argument("--network", required=True, help="path to the network description JSON")
    ap.add_argument("--limit", type=int, default=None, help=f"blocks to observe (default {settings.batch_limit})")
    ap.add_argument("--rules", default=None, help=f"acceptance rules (default {settings.acceptance_rules!r})")
    ap.add_argument("--event", default=None, help=f"event kind to count (default {settings.target_event_kind})")
    ap.add_argument("--timeout", type=float, default=None, help="seconds before giving up on the window (0 or less waits forever)")
    ap.add_argument("--replay", default=None, help="read batches from a JSON file instead of the node")
    ap.add_argument("--log-level", default=settings.log_level)
    return ap


def _replay_factory(path: str) -> FeedFactory:
    replay = ScriptedEventFeed.from_file(path)

    def factory(node: NodeInfo) -> EventFeed:
        logger.info("Replaying %s instead of reading from %s", path, node.ws_uri)
        return replay

    return factory


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    try:
        network = NetworkContext.from_file(args.network)
        config = SamplerConfig.from_settings(settings).with_overrides(
            batch_limit=args.limit,
            predicate=ThresholdPredicate.parse(args.rules) if args.rules else None,
            target_event_kind=args.event,
            timeout=args.timeout if args.timeout and args.timeout > 0 else None,
        )
        if args.timeout is not None and args.timeout <= 0:
            # Same rule as the settings: no deadline
            config = dataclasses.replace(config, timeout=None)
        feed_factory = _replay_factory(args.replay) if args.replay else None
        result = asyncio.run(sample(args.node, network, config=config, feed_factory=feed_factory))
    except SamplingTimeoutError as exc:
        logger.error("%s", exc)
        return EXIT_ERROR
    except AdapterError as exc:
        logger.error("Could not observe events: %s", exc)
        return EXIT_ERROR
    except UnknownNodeError as exc:
        logger.error("%s", exc)
        return EXIT_ERROR
    except (OSError, json.JSONDecodeError, ValidationError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_ERROR

    print(json.dumps(result.model_dump(mode="json"), indent=2, sort_keys=True))
    return EXIT_ACCEPT if result.verdict else EXIT_REJECT


if __name__ == "__main__":
    raise SystemExit(main())
