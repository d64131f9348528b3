"""Action value object: one binding of a topic to a local command.

An :class:`Action` is built from its configuration entry once the
instance name and host are known.  All topic names and the discovery
document are derived from ``(instance_name, name)`` on demand, so two
copies of the same action always agree.

Actions are frozen.  The dispatcher still hands each spawned task its
own copy (:func:`dataclasses.replace`) so a running execution never
shares state with the topic index.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mqttbridge import _topics
from mqttbridge._discovery import DeviceInfo, DiscoveryDocument
from mqttbridge._executor import ExecutionResult, run_command

if TYPE_CHECKING:
    from mqttbridge._clock import ClockPort
    from mqttbridge._settings import ActionSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Action:
    """A named binding of a command topic to a shell-style command.

    Attributes:
        name: Display label, also the source of the slug.
        command: Command line, split at execution time.
        instance_name: Per-deployment label folded into every topic.
        host: Host name used for the discovery device identity.
        icon: Optional Home Assistant icon (e.g. ``"mdi:gate"``).
    """

    name: str
    command: str
    instance_name: str
    host: str
    icon: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: ActionSettings,
        *,
        instance_name: str,
        host: str | None = None,
    ) -> Action:
        """Bind a configured action to its instance.

        *host* defaults to :func:`socket.gethostname`.
        """
        return cls(
            name=settings.name,
            command=settings.command,
            icon=settings.icon,
            instance_name=instance_name,
            host=host if host is not None else socket.gethostname(),
        )

    def __str__(self) -> str:
        return f"<Action {self.name}>"

    # -- Derived identifiers ------------------------------------------------

    @property
    def slug(self) -> str:
        return _topics.slugify(self.name)

    @property
    def command_topic(self) -> str:
        """Topic whose publishes trigger this action."""
        return _topics.command_topic(self.instance_name, self.name)

    @property
    def discovery_topic(self) -> str:
        """Topic carrying the retained Home Assistant discovery document."""
        return _topics.discovery_topic(self.instance_name, self.name)

    @property
    def availability_topic(self) -> str:
        return _topics.availability_topic(self.instance_name)

    # -- Discovery ----------------------------------------------------------

    def discovery_document(self) -> DiscoveryDocument:
        return DiscoveryDocument(
            name=self.name,
            unique_id=self.slug,
            command_topic=self.command_topic,
            availability_topic=self.availability_topic,
            icon=self.icon,
            device=DeviceInfo.for_host(self.host),
        )

    def discovery_payload(self) -> bytes:
        """Return the JSON discovery document as UTF-8 bytes."""
        return self.discovery_document().encode()

    # -- Execution ----------------------------------------------------------

    async def execute(self, *, clock: ClockPort | None = None) -> ExecutionResult | None:
        """Run the bound command to completion.

        Failures are logged, never raised.  Returns ``None`` when no
        child process was started.

        Args:
            clock: Clock timing the execution, ``time.monotonic`` by default.
        """
        logger.info("Executing %s", self)
        logger.debug("Executing command: %s", self.command)
        return await run_command(self.command, label=str(self), clock=clock)
