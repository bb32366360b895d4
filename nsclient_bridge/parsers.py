from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
import re
from typing import TYPE_CHECKING, Any

from nsclient_bridge.exceptions import ParseError
from nsclient_bridge.naming import join_id, segment_id
from nsclient_bridge.schema import INFO_SCHEMA, PERF_SCHEMA, validate_payload

if TYPE_CHECKING:
    from nsclient_bridge.device import DeviceContext

TYPE_BOOLEAN = "boolean"
TYPE_NUMBER = "number"
TYPE_STRING = "string"

SEVERITY_STATES = {0: "ok", 1: "warning", 2: "error", 3: "delayed"}

NUMERIC_RE = re.compile(r"[0-9]+(?:\.[0-9]+)?")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Leaf:
    """A single typed value destined for the store."""

    path: str
    value: Any
    type: str
    name: str
    role: str = "value"
    states: dict[int, str] | None = None
    quality: int = 0

    def common(self) -> dict[str, Any]:
        common: dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "role": self.role,
            "read": True,
            "write": False,
        }
        if self.states:
            common["states"] = dict(self.states)
        return common


def perf_value(raw: Any) -> tuple[str, Any]:
    """Return the declared type and value for a performance field.

    Only unsigned integer or decimal text is numeric; everything else,
    booleans and negative numbers included, is published as a string.
    """
    if isinstance(raw, bool) or raw is None:
        return TYPE_STRING, "" if raw is None else str(raw).lower()
    text = str(raw)
    if not NUMERIC_RE.fullmatch(text):
        return TYPE_STRING, text
    return TYPE_NUMBER, float(text) if "." in text else int(text)


class Parser(ABC):
    schema: str

    def validate(self, body: Any) -> None:
        errors = validate_payload(self.schema, body)
        if errors:
            raise ParseError(self.schema, errors)

    @abstractmethod
    def parse(self, ctx: DeviceContext, body: Any) -> list[Leaf]:
        """Turn a validated JSON body into leaves under the device id."""


class IdentityParser(Parser):
    schema = INFO_SCHEMA

    def parse(self, ctx: DeviceContext, body: Any) -> list[Leaf]:
        self.validate(body)
        return [
            Leaf(
                path=join_id(ctx.id, "info", "name"),
                value=body["name"],
                type=TYPE_STRING,
                name="client name",
                role="info.name",
            ),
            Leaf(
                path=join_id(ctx.id, "info", "version"),
                value=body["version"],
                type=TYPE_STRING,
                name="client version",
                role="info.version",
            ),
        ]


class PerformanceParser(Parser):
    """Parser shared by every ``check_*`` query."""

    schema = PERF_SCHEMA

    def parse(self, ctx: DeviceContext, body: Any) -> list[Leaf]:
        self.validate(body)
        base_id = join_id(ctx.id, segment_id(body["command"]))
        lines = body["lines"]
        if len(lines) > 1:
            # NSClient++ can answer with several lines; only the first is mapped.
            logger.debug(
                "[%s] %s returned %s lines, ignoring all but the first",
                ctx.name, body["command"], len(lines),
            )
        line = lines[0]

        leaves = [
            Leaf(
                path=join_id(base_id, "result"),
                value=body["result"],
                type=TYPE_NUMBER,
                name="result",
                role="value.severity",
                states=SEVERITY_STATES,
            ),
            Leaf(
                path=join_id(base_id, "message"),
                value=line["message"],
                type=TYPE_STRING,
                name="message",
                role="text",
            ),
        ]
        for counter, fields in line.get("perf", {}).items():
            counter_id = join_id(base_id, "perf", segment_id(counter))
            for field_name, raw in fields.items():
                value_type, value = perf_value(raw)
                leaves.append(
                    Leaf(
                        path=join_id(counter_id, segment_id(field_name)),
                        value=value,
                        type=value_type,
                        name=field_name,
                    )
                )
        return leaves
