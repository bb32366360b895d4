"""NSClient++ to MQTT bridge."""

from nsclient_bridge.config import AppConfig, DeviceConfig, load_config
from nsclient_bridge.device import DeviceContext, DevicePoller
from nsclient_bridge.mqtt_client import MqttStateStore
from nsclient_bridge.publisher import StatePublisher
from nsclient_bridge.scheduler import DeviceScheduler

__all__ = [
    "AppConfig",
    "DeviceConfig",
    "DeviceContext",
    "DevicePoller",
    "DeviceScheduler",
    "MqttStateStore",
    "StatePublisher",
    "load_config",
]
