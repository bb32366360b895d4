from __future__ import annotations

import json
import logging
import ssl
from typing import Any

import paho.mqtt.client as mqtt

from nsclient_bridge.config import MqttConfig
from nsclient_bridge.exceptions import PublishError
from nsclient_bridge.store import timestamp_ms


class MqttStateStore:
    """Mirrors the object/state tree onto retained MQTT topics.

    ``Srv1.check_cpu.result`` is published to
    ``<base_topic>/states/Srv1/check_cpu/result``; its object declaration
    goes to the matching path under ``<base_topic>/objects``.
    """

    def __init__(self, config: MqttConfig) -> None:
        self.config = config
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        self.logger = logging.getLogger(self.__class__.__name__)
        self._connected = False

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        if config.username:
            self.client.username_pw_set(config.username, config.password)
        if config.tls_enabled:
            self.client.tls_set(
                ca_certs=config.ca_cert,
                cert_reqs=ssl.CERT_REQUIRED,
            )

        self.client.will_set(
            self._availability_topic,
            payload="offline",
            qos=1,
            retain=True,
        )
        self.client.reconnect_delay_set(min_delay=1, max_delay=120)

    @property
    def _availability_topic(self) -> str:
        return f"{self.config.base_topic}/status"

    @property
    def connected(self) -> bool:
        return self._connected

    def topic_for(self, kind: str, object_id: str) -> str:
        # wildcards and level separators are legal in ids but not in topic levels
        for char in "+#/":
            object_id = object_id.replace(char, "_")
        segments = object_id.split(".")
        return "/".join([self.config.base_topic, kind, *segments])

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if not reason_code.is_failure:
            self._connected = True
            self.logger.info(
                "Connected to MQTT broker %s:%s", self.config.host, self.config.port
            )
            self.client.publish(
                self._availability_topic,
                payload="online",
                qos=1,
                retain=True,
            )
        else:
            self._connected = False
            self.logger.error(
                "Failed to connect to MQTT broker, reason: %s", reason_code
            )

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        self._connected = False
        if not reason_code.is_failure:
            self.logger.info("Disconnected from MQTT broker (clean)")
        else:
            self.logger.warning(
                "Unexpectedly disconnected from MQTT broker, reason: %s. "
                "Will attempt to reconnect.",
                reason_code,
            )

    def connect(self) -> None:
        self.logger.info(
            "Connecting to MQTT broker %s:%s", self.config.host, self.config.port
        )
        self.client.connect(
            self.config.host,
            self.config.port,
            keepalive=self.config.keepalive,
        )
        self.client.loop_start()

    def _publish(self, topic: str, payload: dict[str, Any]) -> None:
        if not self._connected:
            self.logger.debug("Not connected to MQTT broker, message will be queued")
        try:
            result = self.client.publish(
                topic,
                payload=json.dumps(payload),
                qos=self.config.qos,
                retain=self.config.retain,
            )
        except (TypeError, ValueError) as err:
            raise PublishError(f"publish to {topic} failed: {err}") from err
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"publish to {topic} failed with code {result.rc}")

    async def declare_object(
        self, object_id: str, object_type: str, common: dict[str, Any]
    ) -> None:
        topic = self.topic_for("objects", object_id)
        self.logger.debug("Declaring %s %s on %s", object_type, object_id, topic)
        self._publish(topic, {"type": object_type, "common": common})

    async def write_state(
        self, object_id: str, value: Any, ack: bool, quality: int
    ) -> None:
        self._publish(
            self.topic_for("states", object_id),
            {"val": value, "ack": ack, "q": quality, "ts": timestamp_ms()},
        )

    async def close(self) -> None:
        if self._connected:
            self.client.publish(
                self._availability_topic,
                payload="offline",
                qos=1,
                retain=True,
            )
        self.client.disconnect()
        self.client.loop_stop()
        self.logger.info("Disconnected from MQTT broker")
