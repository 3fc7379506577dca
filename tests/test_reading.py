from __future__ import annotations

import json

import pytest

from models.reading import Reading


def test_json_keeps_field_order_and_one_decimal() -> None:
    reading = Reading(name="GV5179-Test", temperature=20.0, humidity=55.0, battery=7)

    assert reading.to_json() == '{"name":"GV5179-Test","temperature":20.0,"humidity":55.0,"battery":7}'
    assert list(json.loads(reading.to_json())) == ["name", "temperature", "humidity", "battery"]


def test_json_escapes_device_name() -> None:
    reading = Reading(name='GV5179 "attic"', temperature=1.5, humidity=0.0, battery=0)

    assert json.loads(reading.to_json())["name"] == 'GV5179 "attic"'


def test_to_dict_matches_json() -> None:
    reading = Reading(name="GV5179", temperature=12.3, humidity=45.6, battery=99)

    assert reading.to_dict() == json.loads(reading.to_json())


def test_reading_is_immutable() -> None:
    reading = Reading(name="GV5179", temperature=12.3, humidity=45.6, battery=99)

    with pytest.raises(AttributeError):
        reading.battery = 1  # type: ignore[misc]
