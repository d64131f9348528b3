"""Composition root and process lifecycle.

:class:`Bridge` wires settings, broker session, liveness, registrar and
dispatcher together and drives the process state machine::

    INIT ──open session──▶ CONNECTING ──registrar ok──▶ DISPATCH
      │                        │                           │
      ▼ ConfigError /          ▼ ConnectError /            ▼ TransportError /
        DuplicateSlugError       RegistrationError           DispatchError

Every arrow out of the happy path raises; the CLI maps the exception
to a diagnostic line and an exit code.  The only clean way out of
DISPATCH is SIGTERM/SIGINT.  Once ``"online"`` has been published,
every exit, clean or fatal, publishes ``"offline"`` before the session
closes, because the broker drops the last-will on a clean DISCONNECT.
In-flight children are not awaited on the way out.

Typical usage::

    settings = load_settings(Path("/etc/mqttbridge.yaml"))
    asyncio.run(Bridge(settings).run())

Tests inject a :class:`~mqttbridge._session.MockBroker` as the session
factory and their own ``asyncio.Event`` as the shutdown signal.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import socket
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any, TypeAlias

from mqttbridge._action import Action
from mqttbridge._clock import ClockPort
from mqttbridge._dispatcher import Dispatcher
from mqttbridge._liveness import Liveness, build_will_config
from mqttbridge._registrar import Registrar
from mqttbridge._session import BrokerSession, WillConfig
from mqttbridge._settings import MqttSettings, Settings

logger = logging.getLogger(__name__)

SessionFactory: TypeAlias = Callable[..., AbstractAsyncContextManager[Any]]
"""Callable ``(settings, *, will) -> async context manager`` yielding a session."""


class Bridge:
    """Runs one bridge instance from startup to shutdown.

    Args:
        settings: Loaded configuration.
        session_factory: Builds the broker session from
            ``(MqttSettings, will=WillConfig)``.  Defaults to
            :class:`BrokerSession`.
        host: Host name for discovery device identity.  Defaults to
            :func:`socket.gethostname`.
        clock: Clock handed to the dispatcher for timing executions.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        session_factory: SessionFactory | None = None,
        host: str | None = None,
        clock: ClockPort | None = None,
    ) -> None:
        self.settings = settings
        self._session_factory: SessionFactory = session_factory or BrokerSession
        self._host = host if host is not None else socket.gethostname()
        self._clock = clock
        self.dispatcher: Dispatcher | None = None

    @property
    def instance_name(self) -> str:
        return self.settings.mqtt.instance_name

    def build_actions(self) -> list[Action]:
        """Bind every configured action to this instance, in order."""
        return [
            Action.from_settings(
                entry,
                instance_name=self.instance_name,
                host=self._host,
            )
            for entry in self.settings.actions
        ]

    def will(self) -> WillConfig:
        return build_will_config(self.instance_name)

    async def run(self, *, shutdown_event: asyncio.Event | None = None) -> None:
        """Run until shutdown is requested or a fatal error occurs.

        Args:
            shutdown_event: Stops the bridge when set.  When ``None``,
                SIGTERM and SIGINT handlers setting a fresh event are
                installed.

        Raises:
            DuplicateSlugError: Two actions share a slug.
            ConnectError: The broker session cannot be opened.
            RegistrationError: A subscribe or discovery publish failed.
            TransportError: The inbound stream failed while dispatching.
            DispatchError: The inbound stream ended while dispatching.
        """
        # --- INIT ---
        registrar = Registrar(self.build_actions())
        shutdown_event = self._install_signal_handlers(shutdown_event)
        mqtt_settings: MqttSettings = self.settings.mqtt

        # --- CONNECTING ---
        async with self._session_factory(mqtt_settings, will=self.will()) as session:
            liveness = Liveness(mqtt=session, instance_name=self.instance_name)
            await liveness.publish_online()
            # A clean DISCONNECT discards the last-will, so every way out
            # of the session retracts "online" itself.
            try:
                index = await registrar.register(session)

                # --- DISPATCH ---
                self.dispatcher = Dispatcher(session, index, clock=self._clock)
                await self._dispatch_until(self.dispatcher, shutdown_event)
            finally:
                await liveness.publish_offline()

        logger.info("Shutdown complete")

    @staticmethod
    async def _dispatch_until(
        dispatcher: Dispatcher,
        shutdown_event: asyncio.Event,
    ) -> None:
        """Run *dispatcher* until *shutdown_event* is set.

        The dispatcher only ever ends by raising, and its error
        propagates from here.
        """
        dispatch_task = asyncio.create_task(dispatcher.run(), name="dispatcher")
        stop_task = asyncio.create_task(shutdown_event.wait(), name="shutdown")
        try:
            done, _ = await asyncio.wait(
                {dispatch_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (dispatch_task, stop_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        if dispatch_task in done:
            dispatch_task.result()
        logger.info("Shutdown requested, %d execution(s) still running", dispatcher.inflight)

    @staticmethod
    def _install_signal_handlers(
        shutdown_event: asyncio.Event | None,
    ) -> asyncio.Event:
        """Install SIGTERM/SIGINT handlers. Returns the shutdown event."""
        if shutdown_event is not None:
            return shutdown_event
        event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, event.set)
        return event
