#!/usr/bin/env python3
"""
scanners/ble_scanner.py

BLE scanner using bleak that watches for Govee thermo-hygrometer advertisements,
decodes their manufacturer data and hands every reading to a publisher.

Only devices whose advertised name starts with the configured prefix (GV5179 by
default) are considered. Duplicate advertisements are not suppressed: every
broadcast is a fresh sample.

bleak has no adapter power-state notification, so the radio is probed by trying
to start discovery and retried every few seconds until it succeeds. A session that
goes quiet for longer than the watchdog timeout is treated as an adapter reset
and restarted.

Usage:
  pip install bleak
  python3 -m scanners.ble_scanner
"""
from __future__ import annotations

import asyncio
import enum
import logging
import sys
import time
from typing import Callable, Optional

from bleak import BleakScanner
from bleak.exc import BleakError

from models.reading import AdvertisementEvent, Reading
from scanners.govee_decoder import DecodeError, decode

logger = logging.getLogger(__name__)

DEFAULT_NAME_PREFIX = "GV5179"
DEFAULT_WATCHDOG_TIMEOUT = 60.0


class RadioState(enum.Enum):
    UNKNOWN = "unknown"
    POWERED_ON = "powered_on"
    POWERED_OFF = "powered_off"
    UNAUTHORIZED = "unauthorized"
    UNSUPPORTED = "unsupported"
    RESETTING = "resetting"


_STATE_MESSAGES = {
    RadioState.UNKNOWN: "Bluetooth state is unknown",
    RadioState.POWERED_ON: "Bluetooth is powered on",
    RadioState.POWERED_OFF: "Bluetooth is powered off",
    RadioState.UNAUTHORIZED: "Bluetooth use is not authorized",
    RadioState.UNSUPPORTED: "Bluetooth is not supported on this device",
    RadioState.RESETTING: "Bluetooth is resetting",
}

# BleakBluetoothNotAvailableReason member names
_REASON_STATES = {
    "POWERED_OFF": RadioState.POWERED_OFF,
    "NO_BLUETOOTH": RadioState.UNSUPPORTED,
    "DENIED_BY_USER": RadioState.UNAUTHORIZED,
    "DENIED_BY_SYSTEM": RadioState.UNAUTHORIZED,
}


def radio_state_for(exc: Exception) -> RadioState:
    # OSError: no system bus or bluetoothd, nothing to classify
    reason = getattr(exc, "reason", None)
    return _REASON_STATES.get(getattr(reason, "name", ""), RadioState.UNKNOWN)


def adv_to_event(device, advertisement) -> AdvertisementEvent:
    # bleak strips the company id off manufacturer data; the decoder offsets count it
    data = None
    md = advertisement.manufacturer_data
    if md:
        company_id, blob = next(iter(md.items()))
        data = company_id.to_bytes(2, "little") + bytes(blob)

    return AdvertisementEvent(
        name=advertisement.local_name or device.name,
        manufacturer_data=data,
        rssi=advertisement.rssi,
        address=device.address,
    )


class GoveeScanner:
    """Owns the BLE discovery session and forwards decoded readings."""

    def __init__(
        self,
        publisher,
        name_prefix: str = DEFAULT_NAME_PREFIX,
        retry_interval: float = 5.0,
        scanner_factory: Callable[..., BleakScanner] = BleakScanner,
        watchdog_timeout: Optional[float] = DEFAULT_WATCHDOG_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._publisher = publisher
        self.name_prefix = name_prefix
        self._retry_interval = retry_interval
        self._scanner_factory = scanner_factory
        self._watchdog_timeout = watchdog_timeout
        self._clock = clock

        self._bleak: Optional[BleakScanner] = None
        self._state = RadioState.UNKNOWN
        self._scanning = False
        self._closed = False
        self._last_activity = 0.0

        self.seen_count = 0
        self.matched_count = 0
        self.decode_failures = 0

    @property
    def state(self) -> RadioState:
        return self._state

    @property
    def scanning(self) -> bool:
        return self._scanning

    def handle_advertisement(self, event: AdvertisementEvent) -> Optional[Reading]:
        if self._closed:
            return None
        self.seen_count += 1

        name = event.name
        if not name or not name.startswith(self.name_prefix):
            return None
        self.matched_count += 1

        if not event.manufacturer_data:
            return None

        try:
            reading = decode(event.manufacturer_data, name)
        except DecodeError as exc:
            self.decode_failures += 1
            logger.debug(
                "[BLE] Discarding advertisement: %s",
                exc,
                extra={
                    "device": name,
                    "address": event.address,
                    "rssi": event.rssi,
                    "length": len(event.manufacturer_data),
                },
            )
            return None

        logger.debug(
            "[BLE] Decoded reading",
            extra={"device": name, "address": event.address, "rssi": event.rssi},
        )
        self._publisher.publish(reading)
        return reading

    def _on_detection(self, device, advertisement) -> None:
        self._last_activity = self._clock()
        self.handle_advertisement(adv_to_event(device, advertisement))

    async def update_power_state(self, state: RadioState) -> None:
        """Apply a radio power-state transition."""
        self._set_state(state)
        if state is RadioState.POWERED_ON:
            if not self._scanning and not self._closed:
                await self._probe_radio()
        elif self._scanning:
            # the platform has already halted discovery; release the session anyway
            await self._stop_discovery()

    def _set_state(self, state: RadioState) -> None:
        if state is self._state:
            return
        self._state = state
        message = _STATE_MESSAGES[state]
        if state is RadioState.POWERED_ON:
            logger.info("[BLE] %s", message, extra={"state": state.value})
        else:
            logger.warning("[BLE] %s", message, extra={"state": state.value})

    async def _probe_radio(self) -> bool:
        scanner = self._scanner_factory(
            detection_callback=self._on_detection,
            scanning_mode="active",
            bluez={"filters": {"DuplicateData": False}},
        )
        try:
            await scanner.start()
        except (BleakError, OSError) as exc:
            logger.debug("[BLE] Unable to start discovery: %s", exc)
            self._set_state(radio_state_for(exc))
            return False

        if self._closed:
            await scanner.stop()
            return False

        self._bleak = scanner
        self._scanning = True
        self._last_activity = self._clock()
        self._set_state(RadioState.POWERED_ON)
        logger.info("[BLE] Starting scan for Govee devices...", extra={"device": self.name_prefix})
        return True

    async def _stop_discovery(self) -> None:
        scanner, self._bleak = self._bleak, None
        self._scanning = False
        if scanner is None:
            return
        try:
            await scanner.stop()
        except (BleakError, OSError) as exc:
            logger.warning("[BLE] Error while stopping scan: %s", exc)
        logger.info("[BLE] Scan stopped")

    async def run(self, stop_event: asyncio.Event) -> None:
        """Keep discovery running until ``stop_event`` is set."""
        while not stop_event.is_set() and not self._closed:
            if self._scanning and self._watchdog_expired():
                logger.warning(
                    "[BLE] No advertisements for %.0fs, restarting discovery",
                    self._watchdog_timeout,
                )
                await self.update_power_state(RadioState.RESETTING)
            if not self._scanning:
                await self._probe_radio()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._retry_interval)
            except asyncio.TimeoutError:
                pass

    def _watchdog_expired(self) -> bool:
        if not self._watchdog_timeout:
            return False
        return self._clock() - self._last_activity > self._watchdog_timeout

    async def stop(self) -> None:
        self._closed = True
        await self._stop_discovery()


class _PrintPublisher:
    def publish(self, reading: Reading) -> bool:
        print(reading.to_json(), flush=True)
        return True


async def run() -> None:
    scanner = GoveeScanner(_PrintPublisher())
    stop_event = asyncio.Event()
    try:
        await scanner.run(stop_event)
    except asyncio.CancelledError:
        pass
    finally:
        await scanner.stop()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        sys.exit(0)
