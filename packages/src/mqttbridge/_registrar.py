"""Startup registration of actions with the broker.

For every action, in configuration order, the registrar:

1. subscribes to the action's command topic (QoS 1), then
2. publishes the retained discovery document (QoS 1).

Both calls are awaited before the next action starts, so registration
of action *i* happens-before registration of action *i+1*, and all of
it happens-before the dispatcher reads its first event.  Either
failure is fatal.

Slug uniqueness is checked when the registrar is constructed, before
any broker traffic, because two actions sharing a slug would also
share every topic.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence

from mqttbridge._action import Action
from mqttbridge._errors import DuplicateSlugError, RegistrationError, TransportError
from mqttbridge._index import TopicIndex
from mqttbridge._session import MqttPort
from mqttbridge._topics import QOS_AT_LEAST_ONCE

logger = logging.getLogger(__name__)


def check_unique_slugs(actions: Iterable[Action]) -> None:
    """Raise :class:`DuplicateSlugError` for the first colliding slug."""
    names_by_slug: defaultdict[str, list[str]] = defaultdict(list)
    for action in actions:
        names_by_slug[action.slug].append(action.name)
    for slug, names in names_by_slug.items():
        if len(names) > 1:
            raise DuplicateSlugError(slug, names)


class Registrar:
    """Announces and subscribes every configured action.

    Args:
        actions: Actions in configuration order.

    Raises:
        DuplicateSlugError: If two action names share a slug.
    """

    def __init__(self, actions: Sequence[Action]) -> None:
        check_unique_slugs(actions)
        self._actions = tuple(actions)

    @property
    def actions(self) -> tuple[Action, ...]:
        return self._actions

    async def register(self, mqtt: MqttPort) -> TopicIndex:
        """Subscribe and publish discovery for each action, in order.

        Returns:
            The topic index covering every registered action.

        Raises:
            RegistrationError: With stage ``"subscribe"`` or
                ``"discovery"`` when the broker call fails.
        """
        for action in self._actions:
            await self._register_one(mqtt, action)
        index = TopicIndex.from_actions(self._actions)
        logger.info("Registered %d action(s)", len(index))
        return index

    @staticmethod
    async def _register_one(mqtt: MqttPort, action: Action) -> None:
        logger.info("Initializing %s", action)

        try:
            await mqtt.subscribe(action.command_topic, qos=QOS_AT_LEAST_ONCE)
        except TransportError as exc:
            msg = f"unable to subscribe to {action.command_topic} for {action}: {exc.message}"
            raise RegistrationError(msg, stage="subscribe") from exc
        logger.info("Subscribed to %s for %s", action.command_topic, action)

        try:
            await mqtt.publish(
                action.discovery_topic,
                action.discovery_payload(),
                qos=QOS_AT_LEAST_ONCE,
                retain=True,
            )
        except TransportError as exc:
            msg = f"unable to publish discovery to {action.discovery_topic}: {exc.message}"
            raise RegistrationError(msg, stage="discovery") from exc
        logger.info("Published discovery info to %s", action.discovery_topic)
