from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from nsclient_bridge.config import DeviceConfig
from nsclient_bridge.parsers import IdentityParser, Parser, PerformanceParser


class CheckKind(str, Enum):
    INFO = "info"
    CPU = "check_cpu"
    DRIVESIZE = "check_drivesize"
    MEMORY = "check_memory"


@dataclass(frozen=True)
class QueryDefinition:
    path: str
    parser: Parser


_PERFORMANCE = PerformanceParser()

# Iteration order is the order checks run in during a poll.
CATALOG: dict[CheckKind, QueryDefinition] = {
    CheckKind.INFO: QueryDefinition("/api/v1/info", IdentityParser()),
    CheckKind.CPU: QueryDefinition(
        "/api/v1/queries/check_cpu/commands/execute", _PERFORMANCE
    ),
    CheckKind.DRIVESIZE: QueryDefinition(
        "/api/v1/queries/check_drivesize/commands/execute", _PERFORMANCE
    ),
    CheckKind.MEMORY: QueryDefinition(
        "/api/v1/queries/check_memory/commands/execute", _PERFORMANCE
    ),
}


def enabled_checks(device: DeviceConfig) -> list[CheckKind]:
    flags = {
        CheckKind.CPU: device.check_cpu,
        CheckKind.DRIVESIZE: device.check_drives,
        CheckKind.MEMORY: device.check_memory,
    }
    return [kind for kind in CATALOG if flags.get(kind, False)]
