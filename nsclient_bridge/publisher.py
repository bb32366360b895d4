from __future__ import annotations

import logging
from typing import Any, Iterable

from nsclient_bridge.exceptions import PublishError
from nsclient_bridge.parsers import Leaf
from nsclient_bridge.store import StateStore

OBJECT_DEVICE = "device"
OBJECT_FOLDER = "folder"
OBJECT_STATE = "state"


class StatePublisher:
    """Idempotent create-or-update of the object tree in a ``StateStore``.

    Structural nodes are declared once. A state object is (re)declared the
    first time it is written and whenever the declared value type changes.
    Failures are logged per object and never stop sibling writes.
    """

    def __init__(self, store: StateStore) -> None:
        self.store = store
        self.logger = logging.getLogger(self.__class__.__name__)
        self._structure: dict[str, str] = {}
        self._state_types: dict[str, str] = {}

    def declared_type(self, object_id: str) -> str | None:
        return self._state_types.get(object_id)

    async def _declare(
        self, object_id: str, object_type: str, common: dict[str, Any]
    ) -> bool:
        self.logger.debug("Declaring %s %s", object_type, object_id)
        try:
            await self.store.declare_object(object_id, object_type, common)
        except PublishError as err:
            self.logger.error('Error initializing object "%s": %s', object_id, err)
            return False
        return True

    async def ensure_device(self, object_id: str, name: str) -> None:
        if self._structure.get(object_id) == OBJECT_DEVICE:
            return
        if await self._declare(object_id, OBJECT_DEVICE, {"name": name}):
            self._structure[object_id] = OBJECT_DEVICE

    async def ensure_folder(self, object_id: str, name: str = "") -> None:
        if object_id in self._structure:
            return
        if await self._declare(object_id, OBJECT_FOLDER, {"name": name}):
            self._structure[object_id] = OBJECT_FOLDER

    async def upsert(
        self, object_id: str, value: Any, quality: int, common: dict[str, Any]
    ) -> bool:
        value_type = common["type"]
        if self._state_types.get(object_id) != value_type:
            if await self._declare(object_id, OBJECT_STATE, common):
                self._state_types[object_id] = value_type
        try:
            await self.store.write_state(object_id, value, True, quality)
        except PublishError as err:
            self.logger.error('Error writing state "%s": %s', object_id, err)
            return False
        self.logger.debug("State %s updated (value %s)", object_id, value)
        return True

    async def publish_leaves(self, root_id: str, leaves: Iterable[Leaf]) -> int:
        """Write leaves below ``root_id``, creating missing folders first.

        Returns the number of leaves written successfully.
        """
        written = 0
        for leaf in leaves:
            segments = leaf.path.split(".")
            root_depth = len(root_id.split("."))
            for depth in range(root_depth + 1, len(segments)):
                await self.ensure_folder(".".join(segments[:depth]))
            if await self.upsert(leaf.path, leaf.value, leaf.quality, leaf.common()):
                written += 1
        return written
