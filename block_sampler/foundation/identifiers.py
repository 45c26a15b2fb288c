"""Identifier generation for sampling runs and RPC requests."""

from __future__ import annotations

from itertools import count
from uuid import UUID, uuid4

_request_ids = count(1)


def new_run_id() -> UUID:
    """Generate a new random UUID v4 for a sampling run."""
    return uuid4()


def next_request_id() -> int:
    """Monotonic JSON-RPC request id, unique within the process."""
    return next(_request_ids)
