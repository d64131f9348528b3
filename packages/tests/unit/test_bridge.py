"""Tests for mqttbridge._bridge: lifecycle from connect to shutdown.

Test Techniques Used:
    - Integration with Test Doubles: MockBroker as the session factory
    - Interaction Ordering: availability, subscribe, discovery sequence
    - State Transition Testing: shutdown event and fatal errors
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Iterator
from unittest.mock import AsyncMock, patch

import pytest

from mqttbridge._bridge import Bridge
from mqttbridge._errors import (
    ConnectError,
    DispatchError,
    DuplicateSlugError,
    RegistrationError,
    TransportError,
)
from mqttbridge._session import MockBroker, WillConfig
from mqttbridge._settings import Settings
from mqttbridge.testing import FakeClock, make_settings

AVAILABLE = "mqttbridge/host1/available"
CALL = "mqttbridge/host1/open_gate/call"
CONFIG = "homeassistant/button/host1/open_gate/config"


@pytest.fixture
def run_command() -> Iterator[AsyncMock]:
    with patch("mqttbridge._action.run_command", new_callable=AsyncMock) as mock:
        mock.return_value = None
        yield mock


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


async def _start(
    settings: Settings,
    broker: MockBroker,
) -> tuple[Bridge, asyncio.Event, asyncio.Task[None]]:
    bridge = Bridge(settings, session_factory=broker, host="host1")
    stop = asyncio.Event()
    task = asyncio.create_task(bridge.run(shutdown_event=stop))
    await _settle()
    return bridge, stop, task


class TestStartup:
    """From INIT to DISPATCH."""

    async def test_registration_sequence(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        _, stop, task = await _start(bridge_settings, mock_broker)
        assert mock_broker.calls == [
            ("connect", ""),
            ("publish", AVAILABLE),
            ("subscribe", CALL),
            ("publish", CONFIG),
        ]
        stop.set()
        await task

    async def test_will_and_settings_passed_to_factory(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        _, stop, task = await _start(bridge_settings, mock_broker)
        assert mock_broker.will == WillConfig(topic=AVAILABLE)
        assert mock_broker.settings == bridge_settings.mqtt
        stop.set()
        await task

    async def test_online_retained(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        _, stop, task = await _start(bridge_settings, mock_broker)
        assert mock_broker.get_messages_for(AVAILABLE) == [("online", 1, True)]
        stop.set()
        await task

    def test_build_actions_in_order(self) -> None:
        settings = make_settings(
            actions=[{"name": "B", "command": "b"}, {"name": "A", "command": "a"}],
        )
        actions = Bridge(settings, host="box").build_actions()
        assert [a.name for a in actions] == ["B", "A"]
        assert all(a.instance_name == "host1" for a in actions)
        assert all(a.host == "box" for a in actions)

    async def test_duplicate_slug_before_any_traffic(self, mock_broker: MockBroker) -> None:
        settings = make_settings(
            actions=[
                {"name": "Light On", "command": "a"},
                {"name": "light on", "command": "b"},
            ],
        )
        bridge = Bridge(settings, session_factory=mock_broker, host="host1")
        with pytest.raises(DuplicateSlugError):
            await bridge.run(shutdown_event=asyncio.Event())
        assert mock_broker.calls == []
        assert mock_broker.will is None

    async def test_connect_error(self, bridge_settings: Settings) -> None:
        broker = MockBroker(connect_error=ConnectError("refused"))
        bridge = Bridge(bridge_settings, session_factory=broker, host="host1")
        with pytest.raises(ConnectError):
            await bridge.run(shutdown_event=asyncio.Event())
        assert broker.published == []


class TestAvailabilityOnFailure:
    """Availability ends "offline" on every fatal exit after "online".

    Technique: State Transition Testing. A clean DISCONNECT discards the
    last-will, so the final retained marker must come from the bridge.
    """

    async def test_subscribe_refused(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        mock_broker.fail_subscribe.add(CALL)
        bridge = Bridge(bridge_settings, session_factory=mock_broker, host="host1")
        with pytest.raises(RegistrationError) as exc_info:
            await bridge.run(shutdown_event=asyncio.Event())
        assert exc_info.value.stage == "subscribe"
        assert mock_broker.get_messages_for(AVAILABLE) == [
            ("online", 1, True),
            ("offline", 1, True),
        ]
        assert mock_broker.calls[-2:] == [("publish", AVAILABLE), ("disconnect", "")]

    async def test_discovery_refused(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        mock_broker.fail_publish.add(CONFIG)
        bridge = Bridge(bridge_settings, session_factory=mock_broker, host="host1")
        with pytest.raises(RegistrationError) as exc_info:
            await bridge.run(shutdown_event=asyncio.Event())
        assert exc_info.value.stage == "discovery"
        assert mock_broker.get_messages_for(AVAILABLE)[-1] == ("offline", 1, True)

    async def test_offline_failure_keeps_original_error(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        """A failing offline publish is logged; the registration error wins."""
        mock_broker.fail_subscribe.add(CALL)
        bridge = Bridge(bridge_settings, session_factory=mock_broker, host="host1")

        original_publish = mock_broker.publish

        async def publish(topic: str, payload: object, **kwargs: object) -> None:
            if payload == "offline":
                raise TransportError("connection lost")
            await original_publish(topic, payload, **kwargs)  # type: ignore[arg-type]

        with (
            patch.object(mock_broker, "publish", publish),
            pytest.raises(RegistrationError),
        ):
            await bridge.run(shutdown_event=asyncio.Event())


class TestDispatchPhase:
    """Running, stopping and failing."""

    async def test_trigger_executes(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
        run_command: AsyncMock,
    ) -> None:
        _, stop, task = await _start(bridge_settings, mock_broker)
        mock_broker.deliver(CALL, "PRESS")
        await _settle()
        run_command.assert_awaited_once()
        assert run_command.call_args.args == ("/usr/bin/true",)
        stop.set()
        await task

    async def test_clock_reaches_executions(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
        run_command: AsyncMock,
        fake_clock: FakeClock,
    ) -> None:
        bridge = Bridge(
            bridge_settings,
            session_factory=mock_broker,
            host="host1",
            clock=fake_clock,
        )
        stop = asyncio.Event()
        task = asyncio.create_task(bridge.run(shutdown_event=stop))
        await _settle()
        mock_broker.deliver(CALL)
        await _settle()
        assert run_command.call_args.kwargs["clock"] is fake_clock
        assert all(not hasattr(a, "clock") for a in bridge.build_actions())
        stop.set()
        await task

    async def test_shutdown_publishes_offline_and_disconnects(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        _, stop, task = await _start(bridge_settings, mock_broker)
        stop.set()
        await task
        assert mock_broker.calls[-2:] == [("publish", AVAILABLE), ("disconnect", "")]
        assert mock_broker.get_messages_for(AVAILABLE)[-1] == ("offline", 1, True)

    async def test_stream_error_is_fatal(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        _, _stop, task = await _start(bridge_settings, mock_broker)
        mock_broker.fail_stream()
        with pytest.raises(TransportError):
            await task
        assert mock_broker.get_messages_for(AVAILABLE)[-1] == ("offline", 1, True)
        assert mock_broker.calls[-2:] == [("publish", AVAILABLE), ("disconnect", "")]

    async def test_stream_end_is_fatal(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        _, _stop, task = await _start(bridge_settings, mock_broker)
        mock_broker.close()
        with pytest.raises(DispatchError):
            await task
        assert mock_broker.get_messages_for(AVAILABLE)[-1] == ("offline", 1, True)

    async def test_dispatcher_exposed(
        self,
        bridge_settings: Settings,
        mock_broker: MockBroker,
    ) -> None:
        bridge, stop, task = await _start(bridge_settings, mock_broker)
        assert bridge.dispatcher is not None
        assert bridge.dispatcher.inflight == 0
        stop.set()
        await task

    async def test_no_actions_still_runs(self, mock_broker: MockBroker) -> None:
        _, stop, task = await _start(make_settings(), mock_broker)
        assert mock_broker.calls == [("connect", ""), ("publish", AVAILABLE)]
        stop.set()
        await task


class TestSignalHandlers:
    """SIGTERM/SIGINT wiring."""

    async def test_given_event_returned_unchanged(self) -> None:
        event = asyncio.Event()
        assert Bridge._install_signal_handlers(event) is event

    async def test_handlers_set_event(self) -> None:
        loop = asyncio.get_running_loop()
        event = Bridge._install_signal_handlers(None)
        try:
            assert not event.is_set()
            signal.raise_signal(signal.SIGTERM)
            await _settle()
            assert event.is_set()
        finally:
            loop.remove_signal_handler(signal.SIGTERM)
            loop.remove_signal_handler(signal.SIGINT)
