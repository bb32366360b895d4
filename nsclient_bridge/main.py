from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from nsclient_bridge.config import AppConfig, load_config
from nsclient_bridge.device import DevicePoller
from nsclient_bridge.exceptions import ConfigError
from nsclient_bridge.http_client import HttpQueryClient
from nsclient_bridge.logging_utils import configure_logging, resolve_log_level
from nsclient_bridge.mqtt_client import MqttStateStore
from nsclient_bridge.publisher import StatePublisher
from nsclient_bridge.scheduler import DeviceScheduler
from nsclient_bridge.store import MemoryStateStore, StateStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NSClient++ to MQTT bridge")
    parser.add_argument(
        "--config",
        default="config/example.cfg",
        help="Path to CFG configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Keep states in memory instead of publishing to MQTT",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Poll every device a single time, then exit",
    )
    return parser


def create_store(config: AppConfig, dry_run: bool) -> StateStore:
    if dry_run:
        return MemoryStateStore()
    store = MqttStateStore(config.mqtt)
    store.connect()
    return store


async def run(config: AppConfig, store: StateStore, once: bool = False) -> None:
    logger = logging.getLogger("nsclient_bridge")
    publisher = StatePublisher(store)
    http = HttpQueryClient()
    scheduler = DeviceScheduler(config.devices, DevicePoller(http, publisher), publisher)

    await scheduler.set_connection(False)
    await scheduler.init_base_objects()
    logger.debug("Initialization completed")

    try:
        if once:
            for ctx in scheduler.contexts:
                scheduler.spawn_poll(ctx)
            await scheduler.wait_idle()
        else:
            scheduler.start()
            await scheduler.set_connection(True)
            logger.info(
                "NSClient bridge started, polling %s device(s).",
                len(scheduler.contexts),
            )
            await asyncio.Event().wait()
    finally:
        await scheduler.stop()
        await scheduler.set_connection(False)
        await http.close()
        await store.close()


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("nsclient_bridge")
    try:
        config = load_config(args.config)
    except ConfigError:
        logger.error("Invalid config, cannot continue")
        return 1

    try:
        store = create_store(config, args.dry_run)
    except OSError as err:
        logger.error(
            "Cannot connect to MQTT broker %s:%s: %s",
            config.mqtt.host, config.mqtt.port, err,
        )
        return 1
    try:
        asyncio.run(run(config, store, once=args.once))
    except KeyboardInterrupt:
        logger.info("NSClient bridge stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
