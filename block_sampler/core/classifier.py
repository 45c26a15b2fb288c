"""EventClassifier: decides which bucket, if any, an event belongs to.

Rules:
    1. Events whose kind differs from the target kind yield None, with no
       side effect.
    2. Matching events must yield a bucket key or raise ClassificationError.
    3. Aux fields are informational only; a missing aux field is None.
    4. The payload is never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from block_sampler.domain.enums import KeyTransform
from block_sampler.domain.event import Event
from block_sampler.domain.paths import (
    BucketKey,
    FieldPath,
    PathLookupError,
    get_transform,
)

logger = logging.getLogger(__name__)


class ClassificationError(ValueError):
    """Raised when a matching event's bucket key cannot be extracted."""

    def __init__(self, field: str, raw_value: Any, reason: str) -> None:
        self.field = field
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(f"Cannot classify on '{field}' (raw value {raw_value!r}): {reason}")


@dataclass(frozen=True)
class Classification:
    """Result of classifying one matching event."""

    bucket_key: BucketKey
    aux: dict[str, Any] = field(default_factory=dict)


class EventClassifier:
    """Pure classifier for one target event kind.

    Args:
        target_kind: Event kind to match (compared exactly).
        key_path: Field path to the bucket key.
        key_transform: Name of the transform turning the raw value into a key.
        aux_paths: Informational fields to carry along, name → field path.
    """

    def __init__(
        self,
        target_kind: str,
        key_path: str | FieldPath,
        key_transform: KeyTransform | str = KeyTransform.GROUPED_INT,
        aux_paths: Mapping[str, str | FieldPath] | None = None,
    ) -> None:
        if not target_kind:
            raise ValueError("target_kind must not be empty")
        self._target_kind = target_kind
        self._key_path = key_path if isinstance(key_path, FieldPath) else FieldPath(key_path)
        self._transform: Callable[[Any], BucketKey] = get_transform(key_transform)
        self._aux_paths: dict[str, FieldPath] = {
            name: p if isinstance(p, FieldPath) else FieldPath(p)
            for name, p in (aux_paths or {}).items()
        }

    @property
    def target_kind(self) -> str:
        return self._target_kind

    def matches(self, event: Event) -> bool:
        return event.kind == self._target_kind

    def classify(self, event: Event) -> Optional[Classification]:
        """Classify *event*.

        Returns:
            None for events of another kind, otherwise a Classification.

        Raises:
            ClassificationError: If the key path is missing or its value
                does not survive the transform.
        """
        if not self.matches(event):
            return None

        root = _event_root(event)
        try:
            raw = self._key_path.resolve(root)
        except PathLookupError as exc:
            raise ClassificationError(self._key_path.text, None, exc.reason) from exc

        try:
            key = self._transform(raw)
        except ValueError as exc:
            raise ClassificationError(self._key_path.text, raw, str(exc)) from exc

        aux: dict[str, Any] = {}
        for name, path in self._aux_paths.items():
            try:
                aux[name] = path.resolve(root)
            except PathLookupError:
                aux[name] = None
        return Classification(bucket_key=key, aux=aux)


def _event_root(event: Event) -> dict[str, Any]:
    return {"method": event.kind, "section": event.section, "data": event.data}
