"""Human-readable diagnostic lines for sampling runs.

The exact text is not a compatibility surface, but every line carries the
bucket key, the block offset inside the window and the provenance of the
match so a failing run can be read straight from the test log.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from block_sampler.core.classifier import Classification
from block_sampler.domain.paths import BucketKey
from block_sampler.domain.window import BucketCounts

logger = logging.getLogger(__name__)


def format_match(kind: str, classification: Classification, block_offset: int) -> str:
    """One line per matched event."""
    parts = [f"{kind} for {classification.bucket_key}: block_offset={block_offset}"]
    for name, value in classification.aux.items():
        parts.append(f"{name}={_render(value)}")
    return " ".join(parts)


def format_summary(counts: BucketCounts, keys: Iterable[BucketKey] | None = None) -> str:
    """One line per run listing the final counts of *keys*.

    Falls back to every observed key when *keys* is empty or None.
    """
    selected = list(keys or ()) or sorted(counts, key=str)
    if not selected:
        return "Result: no matching events"
    return "Result: " + ", ".join(f"{k}: {counts[k]}" for k in selected)


def report_match(kind: str, classification: Classification, block_offset: int) -> None:
    logger.info(format_match(kind, classification, block_offset))


def report_summary(counts: BucketCounts, keys: Iterable[BucketKey] | None = None) -> None:
    logger.info(format_summary(counts, keys))


def _render(value: Any) -> str:
    return "-" if value is None else str(value)
