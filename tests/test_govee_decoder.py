from __future__ import annotations

import pytest

from models.reading import Reading
from scanners.govee_decoder import MIN_PAYLOAD_LENGTH, DecodeError, InsufficientDataError, decode


def _payload(packed: int, battery: int, framing: bytes = b"\x00\x00\x00\x00") -> bytes:
    return framing + packed.to_bytes(3, "big") + bytes([battery])


def test_decode_reference_frame() -> None:
    payload = bytes([0x00, 0x00, 0x00, 0x00, 0x00, 0x9C, 0x4D, 0x55])

    reading = decode(payload, "GV5179-Test")

    assert reading == Reading(name="GV5179-Test", temperature=4.0, humidity=1.3, battery=85)
    assert reading.to_json() == (
        '{"name":"GV5179-Test","temperature":4.0,"humidity":1.3,"battery":85}'
    )


def test_decode_typical_room_reading() -> None:
    # 21.7 C, 45.3 %RH
    reading = decode(_payload(217453, 100), "GV5179_A1B2")

    assert reading.temperature == 21.7
    assert reading.humidity == 45.3
    assert reading.battery == 100


@pytest.mark.parametrize("length", range(MIN_PAYLOAD_LENGTH))
def test_short_payload_is_rejected(length: int) -> None:
    with pytest.raises(InsufficientDataError) as excinfo:
        decode(bytes(range(length)), "GV5179")

    assert excinfo.value.length == length
    assert isinstance(excinfo.value, DecodeError)


def test_battery_byte_is_passed_through_unmodified() -> None:
    for battery in range(256):
        assert decode(_payload(250500, battery), "GV5179").battery == battery


def test_framing_and_trailing_bytes_are_ignored() -> None:
    base = decode(_payload(123456, 42), "GV5179")
    framed = decode(_payload(123456, 42, framing=b"\x88\xec\xff\x01") + b"\xde\xad", "GV5179")

    assert framed == base


def test_decode_is_deterministic() -> None:
    payload = bytes([0x88, 0xEC, 0x00, 0x01, 0x03, 0x5B, 0x60, 0x3F])

    assert decode(payload, "GV5179") == decode(payload, "GV5179")


def test_accepts_bytes_like_input() -> None:
    raw = _payload(40013, 85)

    assert decode(bytearray(raw), "GV5179") == decode(memoryview(raw), "GV5179")


def test_top_bit_is_not_treated_as_sign() -> None:
    # 0x800000 = 8388608: sensors use this bit for sub-zero values, the decoder reads it unsigned
    reading = decode(_payload(0x800000, 50), "GV5179")

    assert reading.temperature == 838.8
    assert reading.humidity == 60.8


def test_largest_packed_value() -> None:
    reading = decode(_payload(0xFFFFFF, 0), "GV5179")

    assert reading.temperature == 1677.7
    assert reading.humidity == 21.5
