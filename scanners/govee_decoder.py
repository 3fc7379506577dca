"""
scanners/govee_decoder.py

Decoder for the manufacturer data broadcast by Govee GV5179 thermo-hygrometers.

Layout (manufacturer data including the 2-byte company id, big-endian fields):
  0-3  vendor framing, ignored
  4-6  temperature and humidity packed as one 24-bit integer: temp_x10 * 1000 + hum_x10
  7    battery percentage
"""
from __future__ import annotations

from models.reading import Reading

MIN_PAYLOAD_LENGTH = 8


class DecodeError(ValueError):
    """Raised when manufacturer data cannot be turned into a reading."""


class InsufficientDataError(DecodeError):
    def __init__(self, length: int) -> None:
        super().__init__(f"payload too short: {length} bytes, need {MIN_PAYLOAD_LENGTH}")
        self.length = length


def decode(payload: bytes, name: str) -> Reading:
    data = bytes(payload)
    if len(data) < MIN_PAYLOAD_LENGTH:
        raise InsufficientDataError(len(data))

    # NOTE: the packed field is read unsigned, so sub-zero readings (sign bit set by the
    # sensor) come out as large positive temperatures. Kept as-is for output compatibility.
    raw = data[4] << 16 | data[5] << 8 | data[6]
    temperature_raw = raw // 1000
    humidity_raw = raw % 1000

    return Reading(
        name=name,
        temperature=temperature_raw / 10.0,
        humidity=humidity_raw / 10.0,
        battery=data[7],
    )
