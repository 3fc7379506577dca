from __future__ import annotations

import logging

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("scanners.ble_scanner", logging.INFO, __file__, 1, "[BLE] hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_context_fields_are_appended_in_order() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    output = formatter.format(_record(topic="govee/sensors/GV5179", device="GV5179", unrelated="x"))

    assert output == "[BLE] hello | device=GV5179 topic=govee/sensors/GV5179"


def test_plain_message_without_context() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")

    assert formatter.format(_record(device=None)) == "INFO [BLE] hello"
