"""Acceptance evaluation over final bucket counts.

A predicate is any callable ``(BucketCounts) -> bool``.  The built-in
ThresholdPredicate is a conjunction of simple rules that can be written
as text, so thresholds live in configuration instead of code::

    "2000>=7;2001<=4"    →    counts[2000] >= 7 and counts[2001] <= 4

Missing buckets count as 0.  evaluate() is total: it always returns a
bool, and a predicate that blows up is logged and treated as a reject.
"""

from __future__ import annotations

import logging
import operator
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable

from block_sampler.domain.enums import RuleOperator
from block_sampler.domain.paths import BucketKey, parse_grouped_int
from block_sampler.domain.window import BucketCounts

logger = logging.getLogger(__name__)

Predicate = Callable[[BucketCounts], bool]

DEFAULT_RULES = "2000>=7;2001<=4"

_RULE = re.compile(r"^\s*(?P<key>[^<>=\s]+)\s*(?P<op>>=|<=|==|>|<)\s*(?P<value>\d+)\s*$")

_COMPARATORS: dict[RuleOperator, Callable[[int, int], bool]] = {
    RuleOperator.GE: operator.ge,
    RuleOperator.LE: operator.le,
    RuleOperator.GT: operator.gt,
    RuleOperator.LT: operator.lt,
    RuleOperator.EQ: operator.eq,
}


@dataclass(frozen=True)
class ThresholdRule:
    """``counts[key] <op> value``."""

    key: BucketKey
    op: RuleOperator
    value: int

    def holds(self, counts: BucketCounts) -> bool:
        return _COMPARATORS[self.op](counts[self.key], self.value)

    def __str__(self) -> str:
        return f"{self.key}{self.op.value}{self.value}"


class ThresholdPredicate:
    """All rules must hold."""

    __slots__ = ("_rules",)

    def __init__(self, rules: Iterable[ThresholdRule]) -> None:
        self._rules = tuple(rules)
        if not self._rules:
            raise ValueError("a threshold predicate needs at least one rule")

    @classmethod
    def parse(cls, text: str) -> "ThresholdPredicate":
        return cls(parse_rules(text))

    @property
    def rules(self) -> tuple[ThresholdRule, ...]:
        return self._rules

    @property
    def referenced_keys(self) -> tuple[BucketKey, ...]:
        """Bucket keys named by the rules, in first-mention order."""
        return tuple(dict.fromkeys(r.key for r in self._rules))

    def rekeyed(self, transform: Callable[[Any], BucketKey]) -> "ThresholdPredicate":
        """Copy whose rule keys are normalised the way event keys are.

        Keys the transform rejects are kept unchanged.
        """
        return ThresholdPredicate(
            ThresholdRule(key=_normalise_key(rule.key, transform), op=rule.op, value=rule.value)
            for rule in self._rules
        )

    def __call__(self, counts: BucketCounts) -> bool:
        return all(rule.holds(counts) for rule in self._rules)

    def __str__(self) -> str:
        return ";".join(str(r) for r in self._rules)

    def __repr__(self) -> str:
        return f"ThresholdPredicate({str(self)!r})"


def parse_rules(text: str) -> list[ThresholdRule]:
    """Parse ``;``-separated rules such as ``"2000>=7;2001<=4"``.

    Keys that read as integers (grouping separators allowed) become int
    keys; anything else stays a string key.

    Raises:
        ValueError: On an empty rule set or a rule that does not parse.
    """
    rules: list[ThresholdRule] = []
    for chunk in text.split(";"):
        if not chunk.strip():
            continue
        match = _RULE.match(chunk)
        if match is None:
            raise ValueError(f"cannot parse acceptance rule {chunk.strip()!r}")
        rules.append(ThresholdRule(
            key=_rule_key(match.group("key")),
            op=RuleOperator(match.group("op")),
            value=int(match.group("value")),
        ))
    if not rules:
        raise ValueError("no acceptance rules given")
    return rules


def default_predicate() -> ThresholdPredicate:
    """Para 2000 included in at least 7 blocks, para 2001 in at most 4."""
    return ThresholdPredicate.parse(DEFAULT_RULES)


def referenced_keys(predicate: Predicate) -> tuple[BucketKey, ...]:
    """Keys a predicate declares interest in; empty for opaque callables."""
    return tuple(getattr(predicate, "referenced_keys", ()))


def evaluate(counts: BucketCounts, predicate: Predicate) -> bool:
    """Apply *predicate* to *counts* and return the verdict.

    Never raises: a failing predicate is logged and yields False.
    """
    try:
        return bool(predicate(counts))
    except Exception:
        logger.exception("Acceptance predicate %r failed; treating as reject", predicate)
        return False


def _normalise_key(key: BucketKey, transform: Callable[[Any], BucketKey]) -> BucketKey:
    try:
        return transform(key)
    except ValueError:
        return key


def _rule_key(raw: str) -> BucketKey:
    try:
        return parse_grouped_int(raw)
    except ValueError:
        return raw
