"""Window state and bucket count snapshots.

WindowState is the only mutable structure in a sampling run.  It is owned
by exactly one WindowController and mutated only while that controller
holds its lock.  Everything that leaves the controller is a BucketCounts
snapshot: an immutable copy, never a live view.

Invariant:  0 <= batches_seen <= limit
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from block_sampler.domain.enums import WindowPhase
from block_sampler.domain.paths import BucketKey


# ── BucketCounts ─────────────────────────────────────────────────────────────

class BucketCounts(Mapping):
    """Immutable mapping of bucket key → count.

    Keys that were never observed read as 0 through ``counts[key]`` and
    ``counts.get(key)``, so acceptance predicates never have to guard
    against missing buckets.  Membership (``key in counts``), iteration and
    ``len()`` cover only the keys that were actually observed.
    """

    __slots__ = ("_counts",)

    def __init__(self, counts: Mapping[BucketKey, int] | None = None) -> None:
        data = dict(counts or {})
        for key, value in data.items():
            if value < 0:
                raise ValueError(f"bucket {key!r} has negative count {value}")
        self._counts: dict[BucketKey, int] = data

    def __getitem__(self, key: BucketKey) -> int:
        return self._counts.get(key, 0)

    def get(self, key: BucketKey, default: Any = 0) -> Any:
        return self._counts.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._counts

    def __iter__(self) -> Iterator[BucketKey]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BucketCounts):
            return self._counts == other._counts
        if isinstance(other, Mapping):
            return self._counts == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._counts.items()))

    def __repr__(self) -> str:
        return f"BucketCounts({self._counts!r})"

    @property
    def total(self) -> int:
        """Sum of all bucket counts."""
        return sum(self._counts.values())

    def to_dict(self) -> dict[str, int]:
        """JSON-friendly copy; keys are rendered as strings."""
        return {str(k): v for k, v in self._counts.items()}


# ── WindowState ──────────────────────────────────────────────────────────────

class WindowState:
    """Mutable progress of one sampling window.

    Thread-safety note:
        WindowState is mutated *only* while the owning WindowController
        holds its lock.  It is not itself locked.
    """

    __slots__ = ("limit", "batches_seen", "skipped", "phase", "_counts")

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError(f"batch limit must be positive, got {limit}")
        self.limit: int = limit
        self.batches_seen: int = 0
        self.skipped: int = 0
        self.phase: WindowPhase = WindowPhase.RUNNING
        self._counts: dict[BucketKey, int] = {}

    # ── Mutation ─────────────────────────────────────────────────────────

    def advance(self) -> int:
        """Count one more batch and return the new offset."""
        if self.batches_seen >= self.limit:
            raise RuntimeError(f"window already holds {self.limit} batches")
        self.batches_seen += 1
        return self.batches_seen

    def increment(self, key: BucketKey) -> int:
        """Add one to *key*'s bucket and return its new count."""
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]

    def close(self) -> None:
        self.phase = WindowPhase.CLOSED

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def is_full(self) -> bool:
        return self.batches_seen == self.limit

    @property
    def is_closed(self) -> bool:
        return self.phase == WindowPhase.CLOSED

    def snapshot(self) -> BucketCounts:
        """Immutable copy of the current counts."""
        return BucketCounts(self._counts)
