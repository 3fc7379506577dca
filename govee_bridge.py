#!/usr/bin/env python3
"""
govee_bridge.py

Relays Govee BLE thermo-hygrometer readings to an MQTT broker.

Every advertisement from a matching sensor is decoded and published as one JSON
document on ``{MQTT_TOPIC}/{device name}``. Configuration comes from the
environment (see settings.py); the process runs until SIGINT or SIGTERM.

Usage:
  pip install -e .
  MQTT_HOST=broker.local govee-bridge
"""
from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Callable, Optional

from logging_config import configure_logging
from publishers.mqtt_publisher import MqttPublisher
from scanners.ble_scanner import GoveeScanner
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


class GoveeBridge:
    """Wires the BLE scanner to the MQTT publisher and owns their lifetimes."""

    def __init__(
        self,
        settings: Settings,
        publisher_factory: Callable[..., MqttPublisher] = MqttPublisher,
        scanner_factory: Callable[..., GoveeScanner] = GoveeScanner,
    ) -> None:
        self.settings = settings
        self._publisher_factory = publisher_factory
        self._scanner_factory = scanner_factory
        self.publisher: Optional[MqttPublisher] = None
        self.scanner: Optional[GoveeScanner] = None
        self._shut_down = False

    def start(self) -> None:
        # the broker connection comes up in the background while the radio powers on
        self.publisher = self._publisher_factory(self.settings.broker)
        self.publisher.connect()
        self.scanner = self._scanner_factory(
            self.publisher,
            name_prefix=self.settings.name_prefix,
            retry_interval=self.settings.radio_retry_interval,
            watchdog_timeout=self.settings.radio_watchdog_timeout,
        )

    async def run(self, stop_event: asyncio.Event) -> None:
        if self.scanner is None:
            self.start()
        try:
            await self.scanner.run(stop_event)
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop discovery, then drop the broker connection. Safe to call repeatedly."""
        if self._shut_down:
            return
        self._shut_down = True

        if self.scanner is not None:
            await self.scanner.stop()
        if self.publisher is not None:
            self.publisher.disconnect()

        if self.scanner is not None and self.publisher is not None:
            logger.info(
                "[Main] Seen %d advertisements, %d from sensors, %d undecodable; "
                "published %d, dropped %d",
                self.scanner.seen_count,
                self.scanner.matched_count,
                self.scanner.decode_failures,
                self.publisher.published_count,
                self.publisher.dropped_count,
            )


def log_settings(settings: Settings) -> None:
    broker = settings.broker
    logger.info("[Config] MQTT Host: %s:%d", broker.host, broker.port)
    logger.info("[Config] MQTT Topic: %s", broker.topic_prefix)
    logger.info("[Config] MQTT Client ID: %s", broker.client_id)
    if broker.username:
        logger.info("[Config] MQTT Username: %s", broker.username)
    logger.info("[Config] Device name prefix: %s", settings.name_prefix)


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    def _request_stop(signame: str) -> None:
        logger.info("[Main] Received %s, shutting down...", signame)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, _request_stop, signum.name)
        except NotImplementedError:
            # Windows event loops; Ctrl+C still arrives as KeyboardInterrupt
            pass


async def _serve(settings: Settings) -> None:
    stop_event = asyncio.Event()
    _install_signal_handlers(asyncio.get_running_loop(), stop_event)

    bridge = GoveeBridge(settings)
    logger.info("[Main] Press Ctrl+C to stop scanning...")
    await bridge.run(stop_event)


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("[Main] Launching Govee BLE observer")
    log_settings(settings)

    try:
        asyncio.run(_serve(settings))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
