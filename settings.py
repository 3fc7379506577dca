from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


_ENV_FILE_ENV = "GOVEE_ENV_FILE"
_HOST_ENV = "MQTT_HOST"
_PORT_ENV = "MQTT_PORT"
_USERNAME_ENV = "MQTT_USERNAME"
_PASSWORD_ENV = "MQTT_PASSWORD"
_TOPIC_ENV = "MQTT_TOPIC"
_CLIENT_ID_ENV = "MQTT_CLIENT_ID"
_KEEPALIVE_ENV = "MQTT_KEEPALIVE"
_RECONNECT_MIN_ENV = "MQTT_RECONNECT_MIN_DELAY"
_RECONNECT_MAX_ENV = "MQTT_RECONNECT_MAX_DELAY"
_NAME_PREFIX_ENV = "GOVEE_NAME_PREFIX"
_RETRY_INTERVAL_ENV = "BLE_RETRY_INTERVAL"
_WATCHDOG_TIMEOUT_ENV = "BLE_WATCHDOG_TIMEOUT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_PORT = 1883
DEFAULT_TOPIC = "govee/sensors"
DEFAULT_NAME_PREFIX = "GV5179"


@dataclass(frozen=True)
class BrokerTarget:
    host: str
    port: int
    username: Optional[str]
    password: Optional[str]
    topic_prefix: str
    client_id: str
    keepalive: int = 60
    reconnect_min_delay: int = 1
    reconnect_max_delay: int = 120


@dataclass(frozen=True)
class Settings:
    broker: BrokerTarget
    name_prefix: str
    radio_retry_interval: float
    log_level: str
    radio_watchdog_timeout: float = 60.0


def default_client_id() -> str:
    return f"GoveeBLE-{uuid.uuid4().hex[:8].upper()}"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _read_int_env(name: str, default: int, minimum: int = 1, maximum: Optional[int] = None) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    if parsed < minimum or (maximum is not None and parsed > maximum):
        return default
    return parsed


def _read_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _load_env_file() -> None:
    # Real environment variables always win over the file.
    env_file = os.getenv(_ENV_FILE_ENV, ".env")
    if env_file and Path(env_file).is_file():
        load_dotenv(env_file, override=False)


@lru_cache
def get_settings() -> Settings:
    _load_env_file()

    reconnect_min = _read_int_env(_RECONNECT_MIN_ENV, 1)
    reconnect_max = max(_read_int_env(_RECONNECT_MAX_ENV, 120), reconnect_min)

    broker = BrokerTarget(
        host=_read_str_env(_HOST_ENV, "localhost"),
        port=_read_int_env(_PORT_ENV, DEFAULT_PORT, maximum=65535),
        username=_read_optional_env(_USERNAME_ENV),
        password=_read_optional_env(_PASSWORD_ENV),
        topic_prefix=_read_str_env(_TOPIC_ENV, DEFAULT_TOPIC).rstrip("/") or DEFAULT_TOPIC,
        client_id=_read_str_env(_CLIENT_ID_ENV, default_client_id()),
        keepalive=_read_int_env(_KEEPALIVE_ENV, 60),
        reconnect_min_delay=reconnect_min,
        reconnect_max_delay=reconnect_max,
    )
    return Settings(
        broker=broker,
        name_prefix=_read_str_env(_NAME_PREFIX_ENV, DEFAULT_NAME_PREFIX),
        radio_retry_interval=_read_float_env(_RETRY_INTERVAL_ENV, 5.0),
        log_level=_read_str_env(_LOG_LEVEL_ENV, "INFO").upper(),
        radio_watchdog_timeout=_read_float_env(_WATCHDOG_TIMEOUT_ENV, 60.0),
    )
