"""
publishers/mqtt_publisher.py

Publishes decoded readings to an MQTT broker, one message per reading on
``{topic_prefix}/{device name}``.

The paho network thread owns the socket and drives the connection callbacks, so
the connection state is shared with the BLE event loop and guarded by a lock.
Readings that arrive while the broker is unreachable are dropped, never queued.
"""
from __future__ import annotations

import enum
import logging
import threading
from typing import Callable

import paho.mqtt.client as mqtt

from models.reading import Reading
from settings import BrokerTarget

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def build_client(target: BrokerTarget) -> mqtt.Client:
    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=target.client_id,
        protocol=mqtt.MQTTv311,
    )
    if target.username:
        client.username_pw_set(target.username, target.password)
    # 1s doubling up to the cap; paho resets the delay once a connection succeeds
    client.reconnect_delay_set(
        min_delay=target.reconnect_min_delay,
        max_delay=target.reconnect_max_delay,
    )
    return client


class MqttPublisher:
    """Single long-lived broker connection with at-most-once publishing.

    State transitions::

        DISCONNECTED --connect()--> CONNECTING --accepted--> CONNECTED
        CONNECTING --rejected--> DISCONNECTED (--auto reconnect--> CONNECTING)
        CONNECTED --transport lost--> DISCONNECTED (--auto reconnect--> CONNECTING)
    """

    def __init__(
        self,
        target: BrokerTarget,
        client_factory: Callable[[BrokerTarget], mqtt.Client] = build_client,
    ) -> None:
        self.target = target
        self._client = client_factory(target)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_publish = self._on_publish

        self._lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._loop_running = False
        self._planned_disconnect = False

        self.published_count = 0
        self.dropped_count = 0

        logger.info("[MQTT] Configured client for %s:%d", target.host, target.port)

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def topic_for(self, reading: Reading) -> str:
        return f"{self.target.topic_prefix}/{reading.name}"

    def connect(self) -> None:
        """Start connecting in the background. Returns immediately."""
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                logger.debug("[MQTT] connect() ignored", extra={"state": self._state.value})
                return
            self._state = ConnectionState.CONNECTING
            self._planned_disconnect = False
            start_loop = not self._loop_running
            self._loop_running = True

        logger.info("[MQTT] Connecting to %s:%d...", self.target.host, self.target.port)
        self._client.connect_async(self.target.host, self.target.port, keepalive=self.target.keepalive)
        if start_loop:
            self._client.loop_start()

    def disconnect(self) -> None:
        with self._lock:
            already_down = self._state is ConnectionState.DISCONNECTED and not self._loop_running
            self._planned_disconnect = True
            self._state = ConnectionState.DISCONNECTED
            stop_loop = self._loop_running
            self._loop_running = False
        if already_down:
            return

        try:
            self._client.disconnect()
        except OSError as exc:
            logger.warning("[MQTT] Disconnect error: %s", exc)
        if stop_loop:
            self._client.loop_stop()
        logger.info("[MQTT] Disconnected")

    def publish(self, reading: Reading) -> bool:
        """Send one reading with QoS 0. Returns False when the reading was dropped."""
        topic = self.topic_for(reading)
        if not self.is_connected:
            self.dropped_count += 1
            logger.warning(
                "[MQTT] Not connected, reading dropped",
                extra={"device": reading.name, "state": self.state.value},
            )
            return False

        payload = reading.to_json()
        try:
            info = self._client.publish(topic, payload, qos=0, retain=False)
        except (OSError, ValueError) as exc:
            self.dropped_count += 1
            logger.warning("[MQTT] Publish failed: %s", exc, extra={"topic": topic})
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self.dropped_count += 1
            logger.warning(
                "[MQTT] Publish rejected by transport: %s",
                mqtt.error_string(info.rc),
                extra={"topic": topic},
            )
            return False

        self.published_count += 1
        logger.info("[MQTT] Published to %s: %s", topic, payload)
        return True

    # paho callbacks, invoked on the network thread

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error("[MQTT] Connection rejected: %s", reason_code, extra={"reason": reason_code})
            self._connection_lost()
            return
        with self._lock:
            if self._planned_disconnect:
                return
            self._state = ConnectionState.CONNECTED
        logger.info("[MQTT] Connected successfully")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        if self._connection_lost():
            logger.warning("[MQTT] Disconnected unexpectedly (%s), reconnecting", reason_code)

    def _on_publish(self, client, userdata, mid, reason_code=None, properties=None):
        logger.debug("[MQTT] Publish %d handed to broker", mid)

    def _connection_lost(self) -> bool:
        """Record a transport loss; returns True when a reconnect will follow."""
        with self._lock:
            self._state = ConnectionState.DISCONNECTED
            if self._planned_disconnect or not self._loop_running:
                return False
            # the paho loop retries on its own with the configured backoff
            self._state = ConnectionState.CONNECTING
            return True
