"""
Response envelope parsing for the upstream advertising API.

List endpoints answer in one of three shapes: a bare JSON array, an object
keyed by the plural entity name (``{"networks": [...]}``, occasionally
``{"data": [...]}``), or a single bare object. ``parse_envelope`` decides
which one it got and returns either a ``NormalizedList`` or a
``MalformedResponse``; callers never inspect the raw payload themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class NormalizedList:
    """Records extracted from a recognised envelope, in upstream order."""

    records: list[dict[str, Any]] = field(default_factory=list)
    shape: str = "list"

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class MalformedResponse:
    """Payload that matched no known envelope."""

    shape: str


ParsedEnvelope = Union[NormalizedList, MalformedResponse]


def _records(items: list[Any]) -> list[dict[str, Any]]:
    # Non-object entries cannot carry an id
    return [item for item in items if isinstance(item, dict)]


def parse_envelope(payload: Any, plural: str) -> ParsedEnvelope:
    """
    Normalize an upstream payload for the ``plural`` endpoint.

    Args:
        payload: Decoded JSON body
        plural: Entity collection name, e.g. ``"advertisers"``
    """
    if isinstance(payload, list):
        return NormalizedList(_records(payload), shape="list")

    if isinstance(payload, dict):
        for key in (plural, "data"):
            items = payload.get(key)
            if isinstance(items, list):
                return NormalizedList(_records(items), shape=f"envelope:{key}")
        if not payload:
            return MalformedResponse(shape="empty object")
        return NormalizedList([payload], shape="object")

    return MalformedResponse(shape=type(payload).__name__)
