"""Availability signalling with last-will backing.

Topic::

    mqttbridge/{instance}/available   ← "online" | "offline" (retained, QoS 1)

The bridge publishes ``"online"`` once the session is open.  The
``"offline"`` side is owned by the broker: :func:`build_will_config`
produces the last-will registered at connect time, so a crash or a
network loss still flips the topic without any cooperation from the
process.

A clean DISCONNECT does not fire the last-will, so whenever the bridge
leaves the session, after a signal or a fatal error, it publishes
``"offline"`` itself.

Availability publishes are fire-and-forget: a failure is logged and
never stops startup.  The last-will still reports the process as gone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mqttbridge._errors import TransportError
from mqttbridge._session import MqttPort, WillConfig
from mqttbridge._topics import (
    PAYLOAD_OFFLINE,
    PAYLOAD_ONLINE,
    QOS_AT_LEAST_ONCE,
    availability_topic,
)

logger = logging.getLogger(__name__)


def build_will_config(instance_name: str) -> WillConfig:
    """Return the last-will for *instance_name*'s availability topic.

    ``"offline"``, QoS 1, retained, matching the
    ``"online"`` marker published by :meth:`Liveness.publish_online`.
    """
    return WillConfig(
        topic=availability_topic(instance_name),
        payload=PAYLOAD_OFFLINE,
        qos=QOS_AT_LEAST_ONCE,
        retain=True,
    )


@dataclass
class Liveness:
    """Publishes the instance's availability marker.

    Args:
        mqtt: Port used for publishing.
        instance_name: Instance whose availability topic is maintained.
    """

    mqtt: MqttPort
    instance_name: str

    @property
    def topic(self) -> str:
        return availability_topic(self.instance_name)

    async def publish_online(self) -> bool:
        """Publish the retained ``"online"`` marker.

        Returns:
            Whether the publish succeeded.
        """
        published = await self._safe_publish(PAYLOAD_ONLINE)
        if published:
            logger.info("Initialized client, availability topic: %s", self.topic)
        return published

    async def publish_offline(self) -> bool:
        """Publish the retained ``"offline"`` marker before the session closes."""
        logger.info("Publishing offline to %s", self.topic)
        return await self._safe_publish(PAYLOAD_OFFLINE)

    async def _safe_publish(self, payload: str) -> bool:
        try:
            await self.mqtt.publish(
                self.topic,
                payload,
                qos=QOS_AT_LEAST_ONCE,
                retain=True,
            )
        except TransportError as exc:
            logger.error("Failed to publish %r to %s: %s", payload, self.topic, exc)
            return False
        return True
