from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Any, Protocol


@dataclass(frozen=True)
class StoredState:
    value: Any
    ack: bool
    quality: int
    ts: int


def timestamp_ms() -> int:
    return int(time.time() * 1000)


class StateStore(Protocol):
    """What the bridge needs from the host object/state store."""

    async def declare_object(
        self, object_id: str, object_type: str, common: dict[str, Any]
    ) -> None: ...

    async def write_state(
        self, object_id: str, value: Any, ack: bool, quality: int
    ) -> None: ...

    async def close(self) -> None: ...


class MemoryStateStore:
    """In-process store used for dry runs."""

    def __init__(self) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self.states: dict[str, StoredState] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    async def declare_object(
        self, object_id: str, object_type: str, common: dict[str, Any]
    ) -> None:
        existing = self.objects.get(object_id, {})
        merged = dict(existing.get("common", {}))
        merged.update(common)
        self.objects[object_id] = {"type": object_type, "common": merged}
        self.logger.debug("Object %s declared as %s", object_id, object_type)

    async def write_state(
        self, object_id: str, value: Any, ack: bool, quality: int
    ) -> None:
        self.states[object_id] = StoredState(value, ack, quality, timestamp_ms())
        self.logger.debug("State %s = %r (q=%s)", object_id, value, quality)

    async def close(self) -> None:
        self.logger.debug(
            "Dry run finished with %s objects and %s states",
            len(self.objects), len(self.states),
        )
