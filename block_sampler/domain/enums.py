"""Controlled enumerations for the block-sampler domain."""

from __future__ import annotations

from enum import Enum


class WindowPhase(str, Enum):
    """Lifecycle of a sampling window.  RUNNING is initial; CLOSED is terminal."""

    RUNNING = "running"
    CLOSED = "closed"


class KeyTransform(str, Enum):
    """How a raw payload value becomes a bucket key."""

    GROUPED_INT = "grouped_int"
    STRING = "string"


class RuleOperator(str, Enum):
    """Comparison operators accepted in threshold rules."""

    GE = ">="
    LE = "<="
    GT = ">"
    LT = "<"
    EQ = "=="
