"""Field paths and value transforms for pulling bucket keys out of payloads.

A field path is a dotted walk through nested mappings with optional
``[index]`` subscripts for sequences::

    data[0].descriptor.paraId

Paths are resolved against the event *root* mapping built by the
classifier (``method``, ``section``, ``data``), so a leading ``data``
segment walks into the event payload.

Resolution and transforms are total and side-effect free: they either
return a value or raise, never mutate the payload.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Union

from block_sampler.domain.enums import KeyTransform

BucketKey = Union[int, str]
PathStep = Union[str, int]

_SEGMENT = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*)?(?P<subs>(?:\[\d+\])*)$")
_SUBSCRIPT = re.compile(r"\[(\d+)\]")
_GROUPING = re.compile(r"[,_\s]")
_DECIMAL = re.compile(r"^[+-]?\d+$")


class PathLookupError(LookupError):
    """Raised when a path step does not exist in the payload."""

    def __init__(self, path: str, step: PathStep, reason: str) -> None:
        self.path = path
        self.step = step
        self.reason = reason
        super().__init__(f"{path}: step {step!r} {reason}")


class FieldPath:
    """A parsed, immutable field path."""

    __slots__ = ("text", "_steps")

    def __init__(self, text: str) -> None:
        if not text or not text.strip():
            raise ValueError("field path must not be empty")
        self.text = text.strip()
        self._steps = tuple(_parse(self.text))

    @property
    def steps(self) -> tuple[PathStep, ...]:
        return self._steps

    def resolve(self, root: Any) -> Any:
        """Walk *root* along this path and return the value found there.

        Raises:
            PathLookupError: If a key is missing, an index is out of range,
                or a step hits a value of the wrong shape.
        """
        current = root
        for step in self._steps:
            if isinstance(step, int):
                if isinstance(current, (str, bytes)) or not isinstance(current, Sequence):
                    raise PathLookupError(self.text, step, f"expects a sequence, got {type(current).__name__}")
                if step >= len(current):
                    raise PathLookupError(self.text, step, f"out of range (length {len(current)})")
                current = current[step]
            else:
                if not isinstance(current, Mapping):
                    raise PathLookupError(self.text, step, f"expects a mapping, got {type(current).__name__}")
                if step not in current:
                    raise PathLookupError(self.text, step, "is missing")
                current = current[step]
        return current

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FieldPath) and other._steps == self._steps

    def __hash__(self) -> int:
        return hash(self._steps)

    def __repr__(self) -> str:
        return f"FieldPath({self.text!r})"

    def __str__(self) -> str:
        return self.text


def _parse(text: str) -> list[PathStep]:
    steps: list[PathStep] = []
    for segment in text.split("."):
        match = _SEGMENT.match(segment)
        if match is None or segment == "":
            raise ValueError(f"malformed field path segment {segment!r} in {text!r}")
        if match.group("name"):
            steps.append(match.group("name"))
        steps.extend(int(i) for i in _SUBSCRIPT.findall(match.group("subs")))
    return steps


# ── Transforms ───────────────────────────────────────────────────────────────

def parse_grouped_int(raw: Any) -> int:
    """Parse a decimal integer that may carry grouping separators ("2,000")."""
    if isinstance(raw, bool):
        raise ValueError(f"expected an integer, got bool {raw!r}")
    if isinstance(raw, int):
        return raw
    if not isinstance(raw, str):
        raise ValueError(f"expected an integer string, got {type(raw).__name__}")
    cleaned = _GROUPING.sub("", raw)
    if not _DECIMAL.match(cleaned):
        raise ValueError(f"not a decimal integer: {raw!r}")
    return int(cleaned)


def parse_string_key(raw: Any) -> str:
    """Accept a non-empty string key as-is; integers are rendered in decimal."""
    if isinstance(raw, bool):
        raise ValueError(f"expected a string, got bool {raw!r}")
    if isinstance(raw, int):
        return str(raw)
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"expected a non-empty string, got {raw!r}")
    return raw.strip()


_TRANSFORMS: dict[KeyTransform, Callable[[Any], BucketKey]] = {
    KeyTransform.GROUPED_INT: parse_grouped_int,
    KeyTransform.STRING: parse_string_key,
}


def get_transform(name: KeyTransform | str) -> Callable[[Any], BucketKey]:
    """Look up a key transform by enum member or its string value."""
    return _TRANSFORMS[KeyTransform(name)]
