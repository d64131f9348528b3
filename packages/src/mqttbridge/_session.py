"""Broker session port and adapters.

Provides :class:`MqttPort` (Protocol) and two implementations:

- :class:`BrokerSession`: the real aiomqtt-backed session
- :class:`MockBroker`: in-memory test double that records calls

The bridge holds exactly one session for its whole life.  There is no
reconnect loop: a lost connection ends the event stream with a
:class:`TransportError` and the process exits, leaving the restart to
the service supervisor.  The broker-side last-will covers the gap.

Connection parameters are fixed by the wire contract::

    client id   mqttbridge-{pid}
    port        1883 (plain TCP)
    keep-alive  5 s
    last-will   {availability topic} ← "offline", QoS 1, retained

aiomqtt errors never leak out of this module; they are translated to
:class:`~mqttbridge._errors.TransportError` (or
:class:`~mqttbridge._errors.ConnectError` while opening the session).
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Protocol, Self, cast, runtime_checkable

import aiomqtt

from mqttbridge._errors import ConnectError, TransportError
from mqttbridge._settings import MqttSettings
from mqttbridge._topics import PAYLOAD_OFFLINE, QOS_AT_LEAST_ONCE, TOPIC_ROOT

logger = logging.getLogger(__name__)

MQTT_PORT = 1883
KEEPALIVE_S = 5
OUTBOUND_QUEUE_DEPTH = 10

_SUBACK_FAILURE = 0x80

Payload = str | bytes

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WillConfig:
    """Last-will message registered with the broker at connect time.

    Keeps ``aiomqtt.Will`` out of the rest of the code base; the session
    translates it when the client is constructed.
    """

    topic: str
    payload: str = PAYLOAD_OFFLINE
    qos: int = QOS_AT_LEAST_ONCE
    retain: bool = True


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """One inbound publish: topic and raw payload."""

    topic: str
    payload: bytes = b""


def default_client_id() -> str:
    """Return ``mqttbridge-{pid}``."""
    return f"{TOPIC_ROOT}-{os.getpid()}"


# ---------------------------------------------------------------------------
# Port (Protocol)
# ---------------------------------------------------------------------------


@runtime_checkable
class MqttPort(Protocol):
    """Publish/subscribe surface used by the registrar and liveness."""

    async def publish(
        self,
        topic: str,
        payload: Payload,
        *,
        qos: int = QOS_AT_LEAST_ONCE,
        retain: bool = False,
    ) -> None: ...

    async def subscribe(self, topic: str, *, qos: int = QOS_AT_LEAST_ONCE) -> None: ...


@runtime_checkable
class EventSource(Protocol):
    """Stream of inbound publishes consumed by the dispatcher."""

    def events(self) -> AsyncIterator[InboundMessage]: ...


def _as_bytes(payload: Any) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    return str(payload).encode("utf-8")


def _suback_rejected(granted: Any) -> bool:
    """Whether any SUBACK return code signals a refused subscription.

    MQTT 3.1.1 returns plain ints, MQTT 5 returns reason-code objects;
    both expose failure as a value of 0x80 or above.
    """
    if granted is None:
        return False
    for code in granted:
        value = getattr(code, "value", code)
        if isinstance(value, int) and value >= _SUBACK_FAILURE:
            return True
    return False


# ---------------------------------------------------------------------------
# Real adapter
# ---------------------------------------------------------------------------


class BrokerSession:
    """Single long-lived broker session backed by *aiomqtt*.

    Use as an async context manager::

        will = WillConfig(topic="mqttbridge/host1/available")
        async with BrokerSession(settings.mqtt, will=will) as session:
            await session.subscribe("mqttbridge/host1/open_gate/call")
            async for message in session.events():
                ...

    Args:
        settings: Broker host and credentials.
        will: Last-will registered at connect time.
        client_id: Client identifier, defaults to ``mqttbridge-{pid}``.
    """

    def __init__(
        self,
        settings: MqttSettings,
        *,
        will: WillConfig | None = None,
        client_id: str | None = None,
    ) -> None:
        self.settings = settings
        self.will = will
        self.client_id = client_id or default_client_id()
        self._client: aiomqtt.Client | None = None

    def _build_client(self) -> aiomqtt.Client:
        will: aiomqtt.Will | None = None
        if self.will is not None:
            will = aiomqtt.Will(
                topic=self.will.topic,
                payload=self.will.payload,
                qos=self.will.qos,
                retain=self.will.retain,
            )
        return aiomqtt.Client(
            hostname=self.settings.host,
            port=MQTT_PORT,
            username=self.settings.username,
            password=self.settings.password.get_secret_value(),
            identifier=self.client_id,
            keepalive=KEEPALIVE_S,
            will=will,
            max_queued_outgoing_messages=OUTBOUND_QUEUE_DEPTH,
        )

    # -- Lifecycle ----------------------------------------------------------

    async def __aenter__(self) -> Self:
        client = self._build_client()
        try:
            await client.__aenter__()
        except aiomqtt.MqttError as exc:
            msg = f"cannot connect to {self.settings.host}:{MQTT_PORT}: {exc}"
            raise ConnectError(msg) from exc
        self._client = client
        logger.info(
            "Connected to %s:%d as %s",
            self.settings.host,
            MQTT_PORT,
            self.client_id,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.__aexit__(exc_type, exc, tb)
        except aiomqtt.MqttError:
            # The connection is already gone; the broker posts the will.
            logger.debug("Disconnect after connection loss", exc_info=True)

    def _require_client(self) -> aiomqtt.Client:
        if self._client is None:
            msg = "broker session is not open"
            raise TransportError(msg)
        return self._client

    # -- MqttPort methods ---------------------------------------------------

    async def publish(
        self,
        topic: str,
        payload: Payload,
        *,
        qos: int = QOS_AT_LEAST_ONCE,
        retain: bool = False,
    ) -> None:
        """Publish *payload* on *topic*.

        Raises:
            TransportError: If the session is closed or aiomqtt fails.
        """
        client = self._require_client()
        try:
            await client.publish(topic, payload=payload, qos=qos, retain=retain)
        except aiomqtt.MqttError as exc:
            msg = f"publish to {topic} failed: {exc}"
            raise TransportError(msg) from exc
        logger.debug("Published to %s (qos=%d, retain=%s)", topic, qos, retain)

    async def subscribe(self, topic: str, *, qos: int = QOS_AT_LEAST_ONCE) -> None:
        """Subscribe to *topic*.

        Raises:
            TransportError: If the session is closed, aiomqtt fails, or
                the broker refuses the subscription.
        """
        client = self._require_client()
        try:
            granted = await client.subscribe(topic, qos=qos)
        except aiomqtt.MqttError as exc:
            msg = f"subscribe to {topic} failed: {exc}"
            raise TransportError(msg) from exc
        if _suback_rejected(granted):
            msg = f"broker refused subscription to {topic}"
            raise TransportError(msg)
        logger.debug("Subscribed to %s (qos=%d)", topic, qos)

    # -- EventSource --------------------------------------------------------

    async def events(self) -> AsyncIterator[InboundMessage]:
        """Yield inbound publishes in delivery order.

        Raises:
            TransportError: When the connection is lost.
        """
        client = self._require_client()
        try:
            async for message in client.messages:
                yield InboundMessage(
                    topic=message.topic.value,
                    payload=_as_bytes(message.payload),
                )
        except aiomqtt.MqttError as exc:
            msg = f"inbound stream failed: {exc}"
            raise TransportError(msg) from exc


# ---------------------------------------------------------------------------
# Mock / test-double adapter
# ---------------------------------------------------------------------------

_STREAM_END = object()


@dataclass
class MockBroker:
    """In-memory test double that records broker interactions.

    Usable anywhere a :class:`BrokerSession` is, including as an async
    context manager.  ``calls`` keeps every operation in order so tests
    can assert on interleaving, while ``published`` and
    ``subscriptions`` hold the individual records.

    Failure injection:

    - ``connect_error``: raised from ``__aenter__``.
    - ``fail_subscribe`` / ``fail_publish``: topics whose operation
      raises :class:`TransportError`.
    - :meth:`fail_stream`: ends :meth:`events` with an error.
    """

    published: list[tuple[str, Payload, int, bool]] = field(default_factory=list)
    subscriptions: list[tuple[str, int]] = field(default_factory=list)
    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_subscribe: set[str] = field(default_factory=set)
    fail_publish: set[str] = field(default_factory=set)
    connect_error: Exception | None = None
    will: WillConfig | None = None
    connected: bool = False
    settings: MqttSettings | None = None
    _inbound: asyncio.Queue[object] = field(
        default_factory=asyncio.Queue,
        init=False,
        repr=False,
    )

    # -- Lifecycle ----------------------------------------------------------

    def __call__(
        self,
        settings: MqttSettings,
        *,
        will: WillConfig | None = None,
    ) -> Self:
        """Act as a session factory: remember *settings* and *will*."""
        self.settings = settings
        self.will = will
        return self

    async def __aenter__(self) -> Self:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        self.calls.append(("connect", ""))
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.connected = False
        self.calls.append(("disconnect", ""))

    # -- MqttPort methods ---------------------------------------------------

    async def publish(
        self,
        topic: str,
        payload: Payload,
        *,
        qos: int = QOS_AT_LEAST_ONCE,
        retain: bool = False,
    ) -> None:
        """Record a publish, or raise if *topic* is set to fail."""
        if topic in self.fail_publish:
            msg = f"publish to {topic} refused"
            raise TransportError(msg)
        self.published.append((topic, payload, qos, retain))
        self.calls.append(("publish", topic))

    async def subscribe(self, topic: str, *, qos: int = QOS_AT_LEAST_ONCE) -> None:
        """Record a subscription, or raise if *topic* is set to fail."""
        if topic in self.fail_subscribe:
            msg = f"broker refused subscription to {topic}"
            raise TransportError(msg)
        self.subscriptions.append((topic, qos))
        self.calls.append(("subscribe", topic))

    # -- EventSource --------------------------------------------------------

    async def events(self) -> AsyncIterator[InboundMessage]:
        """Yield delivered messages until :meth:`close` or :meth:`fail_stream`."""
        while True:
            item = await self._inbound.get()
            if item is _STREAM_END:
                return
            if isinstance(item, BaseException):
                raise item
            yield cast("InboundMessage", item)

    # -- Test helpers -------------------------------------------------------

    def deliver(self, topic: str, payload: Payload = b"") -> None:
        """Queue an inbound publish for :meth:`events`."""
        data = payload.encode("utf-8") if isinstance(payload, str) else payload
        self._inbound.put_nowait(InboundMessage(topic=topic, payload=data))

    def fail_stream(self, error: Exception | None = None) -> None:
        """End the event stream with *error* (a TransportError by default)."""
        self._inbound.put_nowait(error or TransportError("connection lost"))

    def close(self) -> None:
        """End the event stream without error."""
        self._inbound.put_nowait(_STREAM_END)

    def get_messages_for(self, topic: str) -> list[tuple[Payload, int, bool]]:
        """Return ``(payload, qos, retain)`` tuples published on *topic*."""
        return [
            (payload, qos, retain)
            for t, payload, qos, retain in self.published
            if t == topic
        ]

    @property
    def publish_count(self) -> int:
        return len(self.published)

    @property
    def subscribe_count(self) -> int:
        return len(self.subscriptions)
