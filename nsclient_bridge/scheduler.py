from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from nsclient_bridge.config import DeviceConfig
from nsclient_bridge.device import DeviceContext, DevicePoller, online_common
from nsclient_bridge.naming import join_id
from nsclient_bridge.parsers import TYPE_BOOLEAN
from nsclient_bridge.publisher import StatePublisher

CONNECTION_ID = "info.connection"


def build_contexts(devices: Iterable[DeviceConfig]) -> list[DeviceContext]:
    return [DeviceContext.from_config(device) for device in devices if device.enabled]


class DeviceScheduler:
    """Owns the device contexts and their repeating poll timers.

    Every device gets an immediate poll followed by one poll per interval.
    Each poll runs as its own task, so a slow device never delays another
    one; overlapping polls of the same device are rejected by its busy flag.
    """

    def __init__(
        self,
        devices: Iterable[DeviceConfig],
        poller: DevicePoller,
        publisher: StatePublisher,
    ) -> None:
        self.contexts = build_contexts(devices)
        self.poller = poller
        self.publisher = publisher
        self.logger = logging.getLogger(self.__class__.__name__)
        self._in_flight: set[asyncio.Task] = set()

    async def set_connection(self, connected: bool) -> None:
        await self.publisher.ensure_folder("info")
        await self.publisher.upsert(
            CONNECTION_ID,
            connected,
            0,
            {
                "name": "Device or service connected",
                "type": TYPE_BOOLEAN,
                "role": "indicator.connected",
                "read": True,
                "write": False,
            },
        )

    async def init_base_objects(self) -> None:
        for ctx in self.contexts:
            self.logger.debug("[%s] creating base objects", ctx.name)
            await self.publisher.ensure_device(ctx.id, ctx.name)
            await self.publisher.ensure_folder(join_id(ctx.id, "info"))
            await self.poller.publish_online(ctx, False)

    def spawn_poll(self, ctx: DeviceContext) -> asyncio.Task:
        task = asyncio.create_task(self.poller.poll(ctx), name=f"poll-{ctx.id}")
        self._in_flight.add(task)
        task.add_done_callback(self._poll_done)
        return task

    def _poll_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        if (err := task.exception()) is not None:
            self.logger.error("Poll task %s failed: %s", task.get_name(), err, exc_info=err)

    async def _repeat(
        self, callback: Callable[[DeviceContext], object], interval_s: float, ctx: DeviceContext
    ) -> None:
        while True:
            await asyncio.sleep(interval_s)
            callback(ctx)

    def schedule_repeating(
        self, callback: Callable[[DeviceContext], object], interval_s: float, ctx: DeviceContext
    ) -> asyncio.Task:
        return asyncio.create_task(
            self._repeat(callback, interval_s, ctx), name=f"timer-{ctx.id}"
        )

    @staticmethod
    def cancel_repeating(handle: asyncio.Task | None) -> None:
        if handle is not None:
            handle.cancel()

    def start(self) -> None:
        self.logger.debug("Starting pollers for %s device(s)", len(self.contexts))
        for ctx in self.contexts:
            self.spawn_poll(ctx)
            ctx.poll_timer = self.schedule_repeating(
                self.spawn_poll, ctx.poll_interval_s, ctx
            )

    async def wait_idle(self) -> None:
        while self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def stop(self) -> None:
        timers = [ctx.poll_timer for ctx in self.contexts if ctx.poll_timer is not None]
        for ctx in self.contexts:
            self.cancel_repeating(ctx.poll_timer)
            ctx.poll_timer = None
        await asyncio.gather(*timers, return_exceptions=True)
        for task in list(self._in_flight):
            task.cancel()
        await self.wait_idle()
        for ctx in self.contexts:
            await self.publisher.upsert(ctx.online_id, False, 0, online_common(ctx))
            ctx.published_online = False
