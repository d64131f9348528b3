"""Topic layout and identifier derivations.

Every broker topic the bridge touches is a pure function of the
instance name and an action's display name.  Keeping the derivations
here, away from the Action value object, lets the registrar, the
dispatcher, and the last-will builder agree on one source of truth.

Topic layout::

    mqttbridge/{instance}/available                  ← availability (retained)
    mqttbridge/{instance}/{slug}/call                ← command trigger
    homeassistant/button/{instance}/{slug}/config    ← discovery (retained)
"""

from __future__ import annotations

TOPIC_ROOT = "mqttbridge"
"""First segment of every topic owned by the bridge."""

DISCOVERY_PREFIX = "homeassistant"
"""Home Assistant MQTT discovery prefix."""

DISCOVERY_COMPONENT = "button"

PAYLOAD_ONLINE = "online"
PAYLOAD_OFFLINE = "offline"

QOS_AT_LEAST_ONCE = 1


def slugify(name: str) -> str:
    """Return the topic-safe identifier for an action name.

    Lowercases *name* and replaces ASCII spaces with underscores.  No
    other normalisation is applied, so ``slugify`` is idempotent.

    >>> slugify("Open Gate")
    'open_gate'
    """
    return name.lower().replace(" ", "_")


def topic_base(instance_name: str) -> str:
    """Return ``mqttbridge/{instance_name}``."""
    return f"{TOPIC_ROOT}/{instance_name}"


def availability_topic(instance_name: str) -> str:
    """Return the retained availability topic shared by an instance."""
    return f"{topic_base(instance_name)}/available"


def command_topic(instance_name: str, name: str) -> str:
    """Return the topic that triggers the action called *name*."""
    return f"{topic_base(instance_name)}/{slugify(name)}/call"


def discovery_topic(instance_name: str, name: str) -> str:
    """Return the Home Assistant discovery topic for *name*."""
    return (
        f"{DISCOVERY_PREFIX}/{DISCOVERY_COMPONENT}/"
        f"{instance_name}/{slugify(name)}/config"
    )
