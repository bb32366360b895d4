from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import configparser
import logging
import re

from nsclient_bridge.exceptions import ConfigError
from nsclient_bridge.naming import name_to_id

DEVICE_SECTION_PREFIX = "device:"
DEFAULT_PORT = 8443
DEFAULT_TIMEOUT_S = 5
DEFAULT_POLL_INTERVAL_S = 30
TIMEOUT_RANGE_S = (1, 600)
POLL_INTERVAL_RANGE_S = (5, 3600)
RESERVED_IDS = frozenset({"info"})

_IPV4_RE = re.compile(r"^\d+\.\d+\.\d+\.\d+(:\d+)?$")
_HOSTNAME_RE = re.compile(r"^[a-zA-Z0-9.-]+(:\d+)?$")
_UNSIGNED_RE = re.compile(r"^\d+$")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MqttConfig:
    host: str
    port: int
    base_topic: str
    client_id: str
    username: str | None
    password: str | None
    qos: int
    retain: bool
    tls_enabled: bool
    ca_cert: str | None
    keepalive: int


@dataclass(frozen=True)
class DeviceConfig:
    name: str
    host: str
    port: int
    user: str
    password: str
    timeout_s: int
    poll_interval_s: int
    check_cpu: bool
    check_memory: bool
    check_drives: bool
    enabled: bool = True

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class AppConfig:
    mqtt: MqttConfig
    devices: list[DeviceConfig]


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _split_address(address: str) -> tuple[str, int]:
    host, _, port = address.partition(":")
    return host, int(port) if port else DEFAULT_PORT


def _clamp(
    name: str, label: str, value: int, low: int, high: int, unit: str
) -> int:
    if value > high:
        logger.warning(
            'device "%s" - %s (%s) must be at most %s %s, using %s.',
            name, label, value, high, unit, high,
        )
        return high
    if value < low:
        logger.warning(
            'device "%s" - %s (%s) must be at least %s %s, using %s.',
            name, label, value, low, unit, low,
        )
        return low
    return value


def _get_flag(
    raw: configparser.SectionProxy, option: str, default: bool, errors: list[str]
) -> bool:
    try:
        return raw.getboolean(option, default)
    except ValueError:
        errors.append(f'section "{raw.name}" - {option} ({raw.get(option)}) must be a boolean')
        return default


def _parse_seconds(
    name: str, label: str, raw: str, default: int, errors: list[str]
) -> int:
    if not _UNSIGNED_RE.match(raw):
        errors.append(f'device "{name}" - {label} ({raw}) must be numeric')
        return default
    return int(raw) or default


def validate_device(
    raw: configparser.SectionProxy, name: str, errors: list[str]
) -> DeviceConfig:
    """Validate one enabled device section, appending problems to ``errors``."""
    address = raw.get("address", "").strip()

    if not name:
        errors.append("device name must not be empty")
    if name.startswith(".") or name.endswith("."):
        errors.append(f'device name "{name}" must not start or end with "."')
    if ".." in name:
        errors.append(f'device name "{name}" must not include consecutive dots')
    if name_to_id(name) in RESERVED_IDS:
        errors.append(f'device name "{name}" is reserved')

    port = DEFAULT_PORT
    host = address
    if _IPV4_RE.match(address) or _HOSTNAME_RE.match(address):
        host, port = _split_address(address)
        if not 0 < port < 65536:
            errors.append(f'address "{address}" has an invalid port')
    else:
        errors.append(f'address "{address}" has invalid format')

    timeout_s = _parse_seconds(
        name, "timeout", raw.get("timeout_s", str(DEFAULT_TIMEOUT_S)).strip(),
        DEFAULT_TIMEOUT_S, errors,
    )
    timeout_s = _clamp(name, "timeout", timeout_s, *TIMEOUT_RANGE_S, "seconds")

    poll_interval_s = _parse_seconds(
        name, "poll interval",
        raw.get("poll_interval_s", str(DEFAULT_POLL_INTERVAL_S)).strip(),
        DEFAULT_POLL_INTERVAL_S, errors,
    )
    poll_interval_s = _clamp(
        name, "poll interval", poll_interval_s, *POLL_INTERVAL_RANGE_S, "seconds"
    )
    if poll_interval_s <= timeout_s:
        logger.warning(
            'device "%s" - poll interval (%s) must be larger than timeout (%s), using %s.',
            name, poll_interval_s, timeout_s, timeout_s + 1,
        )
        poll_interval_s = timeout_s + 1

    return DeviceConfig(
        name=name,
        host=host,
        port=port,
        user=raw.get("user", "").strip(),
        password=raw.get("password", "").strip(),
        timeout_s=timeout_s,
        poll_interval_s=poll_interval_s,
        check_cpu=_get_flag(raw, "check_cpu", False, errors),
        check_memory=_get_flag(raw, "check_memory", False, errors),
        check_drives=_get_flag(raw, "check_drives", False, errors),
    )


def _disabled_device(raw: configparser.SectionProxy, name: str) -> DeviceConfig:
    return DeviceConfig(
        name=name,
        host=raw.get("address", "").strip(),
        port=DEFAULT_PORT,
        user="",
        password="",
        timeout_s=DEFAULT_TIMEOUT_S,
        poll_interval_s=DEFAULT_POLL_INTERVAL_S,
        check_cpu=False,
        check_memory=False,
        check_drives=False,
        enabled=False,
    )


def load_devices(parser: configparser.ConfigParser) -> list[DeviceConfig]:
    sections = [
        section for section in parser.sections()
        if section.startswith(DEVICE_SECTION_PREFIX)
    ]
    errors: list[str] = []
    if not sections:
        errors.append("no devices configured")

    devices: list[DeviceConfig] = []
    seen_ids: dict[str, str] = {}
    for section in sections:
        raw = parser[section]
        name = raw.get("name", section[len(DEVICE_SECTION_PREFIX):]).strip()
        if not _get_flag(raw, "enabled", True, errors):
            logger.debug('device "%s" is disabled, skipping validation', name)
            devices.append(_disabled_device(raw, name))
            continue

        device = validate_device(raw, name, errors)
        device_id = name_to_id(name)
        if device_id in seen_ids:
            errors.append(
                f'device names must be unique, "{name}" collides with "{seen_ids[device_id]}"'
            )
        seen_ids[device_id] = name
        logger.debug(
            "adding device %s (%s), timeout %ss, polling %ss",
            device.address, name, device.timeout_s, device.poll_interval_s,
        )
        devices.append(device)

    if errors:
        for error in errors:
            logger.error("%s, please correct configuration.", error)
        raise ConfigError(errors)
    return devices


def load_config(path: str | Path) -> AppConfig:
    parser = configparser.ConfigParser(interpolation=None)
    try:
        read_files = parser.read(path)
    except configparser.Error as err:
        logger.error("%s, please correct configuration.", err)
        raise ConfigError([str(err)]) from err
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        mqtt = _load_mqtt(parser)
    except ValueError as err:
        logger.error("mqtt - %s, please correct configuration.", err)
        raise ConfigError([f"mqtt - {err}"]) from err

    return AppConfig(mqtt=mqtt, devices=load_devices(parser))


def _load_mqtt(parser: configparser.ConfigParser) -> MqttConfig:
    return MqttConfig(
        host=parser.get("mqtt", "host", fallback="localhost"),
        port=parser.getint("mqtt", "port", fallback=1883),
        base_topic=parser.get("mqtt", "base_topic", fallback="nsclient"),
        client_id=parser.get("mqtt", "client_id", fallback="nsclient-bridge"),
        username=_get_optional(parser.get("mqtt", "username", fallback=None)),
        password=_get_optional(parser.get("mqtt", "password", fallback=None)),
        qos=parser.getint("mqtt", "qos", fallback=0),
        retain=parser.getboolean("mqtt", "retain", fallback=True),
        tls_enabled=parser.getboolean("mqtt", "tls", fallback=False),
        ca_cert=_get_optional(parser.get("mqtt", "ca_cert", fallback=None)),
        keepalive=parser.getint("mqtt", "keepalive", fallback=60),
    )
