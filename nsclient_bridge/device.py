from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import quote
import asyncio
import logging
from typing import Any

from nsclient_bridge.catalog import CATALOG, CheckKind, enabled_checks
from nsclient_bridge.config import DeviceConfig
from nsclient_bridge.exceptions import ParseError
from nsclient_bridge.http_client import HttpQueryClient, QueryResult
from nsclient_bridge.naming import join_id, name_to_id
from nsclient_bridge.parsers import TYPE_BOOLEAN
from nsclient_bridge.publisher import StatePublisher


def build_url(device: DeviceConfig) -> str:
    user = quote(device.user, safe="")
    password = quote(device.password, safe="")
    return f"https://{user}:{password}@{device.host}:{device.port}"


@dataclass
class DeviceContext:
    """Runtime state of one polled device."""

    name: str
    id: str
    url: str
    timeout_s: int
    poll_interval_s: int
    queries: list[CheckKind]
    busy: bool = False
    initialized: bool = False
    offline: bool = False
    published_online: bool | None = None
    poll_timer: asyncio.Task | None = field(default=None, repr=False)

    @classmethod
    def from_config(cls, device: DeviceConfig) -> DeviceContext:
        return cls(
            name=device.name,
            id=name_to_id(device.name),
            url=build_url(device),
            timeout_s=device.timeout_s,
            poll_interval_s=device.poll_interval_s,
            queries=enabled_checks(device),
        )

    @property
    def online_id(self) -> str:
        return join_id(self.id, "online")


def online_common(ctx: DeviceContext) -> dict[str, Any]:
    return {
        "name": f"{ctx.name} online",
        "type": TYPE_BOOLEAN,
        "role": "indicator.reachable",
        "read": True,
        "write": False,
    }


class DevicePoller:
    """Runs one poll cycle for a device.

    A device first has to answer the ``info`` query; until it does, no
    other check is attempted. Once initialized, the enabled checks run in
    catalog order and the first failed query ends the cycle.
    """

    def __init__(self, http: HttpQueryClient, publisher: StatePublisher) -> None:
        self.http = http
        self.publisher = publisher
        self.logger = logging.getLogger(self.__class__.__name__)

    async def publish_online(self, ctx: DeviceContext, online: bool) -> None:
        if ctx.published_online is online:
            return
        if await self.publisher.upsert(ctx.online_id, online, 0, online_common(ctx)):
            ctx.published_online = online

    async def handle_offline(self, ctx: DeviceContext, message: str) -> None:
        if not ctx.offline:
            if message:
                self.logger.warning("[%s] %s", ctx.name, message)
            self.logger.info("[%s] offline", ctx.name)
        ctx.offline = True
        await self.publish_online(ctx, False)

    async def handle_online(self, ctx: DeviceContext) -> None:
        if ctx.offline:
            self.logger.info("[%s] online", ctx.name)
        ctx.offline = False
        await self.publish_online(ctx, True)

    async def execute(self, ctx: DeviceContext, kind: CheckKind) -> QueryResult:
        self.logger.debug("[%s] executing query %s", ctx.name, kind.value)
        result = await self.http.query(ctx.url + CATALOG[kind].path, ctx.timeout_s)
        if result.ok:
            self.logger.debug("[%s] %s data retrieved", ctx.name, kind.value)
            await self.handle_online(ctx)
        else:
            self.logger.debug("[%s] %s", ctx.name, result.describe())
            await self.handle_offline(ctx, result.describe())
        return result

    async def process(self, ctx: DeviceContext, kind: CheckKind, result: QueryResult) -> Any:
        """Parse a successful response and publish its leaves.

        Returns the decoded body; raises ``ParseError`` on malformed payloads.
        """
        body = result.json(kind.value)
        leaves = CATALOG[kind].parser.parse(ctx, body)
        await self.publisher.publish_leaves(ctx.id, leaves)
        return body

    async def initialize(self, ctx: DeviceContext) -> None:
        result = await self.execute(ctx, CheckKind.INFO)
        if not result.ok:
            return
        try:
            body = await self.process(ctx, CheckKind.INFO, result)
        except ParseError as err:
            self.logger.error("[%s] invalid info response: %s", ctx.name, err)
            return
        self.logger.info(
            "[%s] device connected, client %s / %s",
            ctx.name, body["name"], body["version"],
        )
        ctx.initialized = True

    async def poll(self, ctx: DeviceContext) -> None:
        if ctx.busy:
            self.logger.warning(
                "[%s] device is still busy - poll interval should be increased",
                ctx.name,
            )
            return
        ctx.busy = True
        self.logger.debug("[%s] poll starting", ctx.name)
        try:
            if not ctx.initialized:
                await self.initialize(ctx)
            if not ctx.initialized:
                return
            for index, kind in enumerate(ctx.queries):
                result = await self.execute(ctx, kind)
                if not result.ok:
                    self.logger.debug(
                        "[%s] processing query [%s] %s aborted",
                        ctx.name, index, kind.value,
                    )
                    break
                try:
                    await self.process(ctx, kind, result)
                except ParseError as err:
                    self.logger.warning(
                        "[%s] invalid %s response: %s", ctx.name, kind.value, err
                    )
                    continue
                self.logger.debug(
                    "[%s] processing query [%s] %s completed",
                    ctx.name, index, kind.value,
                )
        finally:
            ctx.busy = False
            self.logger.debug("[%s] poll completed", ctx.name)
