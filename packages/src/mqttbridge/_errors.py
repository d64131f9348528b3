"""Exception hierarchy for mqttbridge.

Every error the bridge raises derives from :class:`BridgeError` and
carries the name of the *stage* that failed.  The CLI turns a fatal
error into a single diagnostic line of the form ``{stage}: {message}``
and an exit code chosen by the exception class.

Stages::

    config      ← reading or validating the YAML document
    registrar   ← slug collision between configured actions
    connect     ← opening the broker session
    subscribe   ← subscribing to an action's command topic
    discovery   ← publishing an action's discovery document
    transport   ← publish/subscribe/stream failure reported by aiomqtt
    dispatch    ← inbound event stream ended
    execute     ← command line could not be turned into a child process
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all mqttbridge errors.

    Args:
        message: Human-readable description.
        stage: Failing stage.  Defaults to the class-level ``stage``.
    """

    stage: str = "startup"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"


class ConfigError(BridgeError):
    """Configuration file is missing, unreadable, or invalid."""

    stage = "config"


class DuplicateSlugError(BridgeError):
    """Two configured action names collapse to the same slug."""

    stage = "registrar"

    def __init__(self, slug: str, names: list[str]) -> None:
        self.slug = slug
        self.names = names
        quoted = ", ".join(repr(n) for n in names)
        super().__init__(f"actions {quoted} share the slug '{slug}'")


class TransportError(BridgeError):
    """The MQTT transport reported a failure."""

    stage = "transport"


class ConnectError(TransportError):
    """The broker session could not be opened."""

    stage = "connect"


class RegistrationError(BridgeError):
    """Subscribing or publishing discovery for an action failed.

    ``stage`` is ``"subscribe"`` or ``"discovery"``.
    """


class DispatchError(BridgeError):
    """The inbound event stream ended while dispatching."""

    stage = "dispatch"


class CommandError(BridgeError):
    """A command line cannot be split into a program and arguments."""

    stage = "execute"
