from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Reading:
    """One decoded sensor sample."""

    name: str
    temperature: float
    humidity: float
    battery: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "battery": self.battery,
        }

    def to_json(self) -> str:
        # Consumers expect exactly one fractional digit, so the floats are formatted by hand
        return (
            f'{{"name":{json.dumps(self.name)},'
            f'"temperature":{self.temperature:.1f},'
            f'"humidity":{self.humidity:.1f},'
            f'"battery":{self.battery:d}}}'
        )


@dataclass(frozen=True)
class AdvertisementEvent:
    name: Optional[str]
    manufacturer_data: Optional[bytes]
    rssi: Optional[int] = None
    address: Optional[str] = None
