"""Home Assistant MQTT discovery documents.

Each action is announced as a ``button`` entity.  The document is
published retained so Home Assistant picks it up after its own
restarts.

Payload schema::

    {
        "name": "Open Gate",
        "unique_id": "open_gate",
        "command_topic": "mqttbridge/host1/open_gate/call",
        "availability_topic": "mqttbridge/host1/available",
        "icon": "mdi:gate",                       ← optional
        "device": {
            "name": "mqtt-bridge @ host1",
            "identifiers": ["host1"],
            "manufacturer": "...",                ← optional
            "model": "..."                        ← optional
        }
    }

Optional fields that are ``None`` are left out of the encoding
entirely; Home Assistant treats ``null`` differently from a missing key.
``payload_press`` is never sent, so the controller default applies.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

DEVICE_NAME_PREFIX = "mqtt-bridge @ "


def _drop_none(data: dict[str, object]) -> dict[str, object]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """Device block grouping every action of one host."""

    name: str
    identifiers: tuple[str, ...]
    manufacturer: str | None = None
    model: str | None = None

    @classmethod
    def for_host(cls, host: str) -> DeviceInfo:
        """Build the device block identifying *host*."""
        return cls(name=f"{DEVICE_NAME_PREFIX}{host}", identifiers=(host,))

    def to_dict(self) -> dict[str, object]:
        return _drop_none(
            {
                "name": self.name,
                "identifiers": list(self.identifiers),
                "manufacturer": self.manufacturer,
                "model": self.model,
            },
        )


@dataclass(frozen=True, slots=True)
class DiscoveryDocument:
    """Immutable discovery payload for one button entity."""

    name: str
    unique_id: str
    command_topic: str
    availability_topic: str
    device: DeviceInfo
    icon: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Return the document as a plain dict, absent fields omitted."""
        return _drop_none(
            {
                "name": self.name,
                "unique_id": self.unique_id,
                "command_topic": self.command_topic,
                "device": self.device.to_dict(),
                "availability_topic": self.availability_topic,
                "icon": self.icon,
            },
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def encode(self) -> bytes:
        """Return the UTF-8 wire form."""
        return self.to_json().encode("utf-8")
