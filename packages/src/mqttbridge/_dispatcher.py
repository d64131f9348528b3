"""Inbound event dispatch.

The dispatcher is the single consumer of the session's event stream.
For each inbound publish it looks the topic up in the
:class:`~mqttbridge._index.TopicIndex` and starts an independent task
running the matching action.  The payload is never inspected.

The loop never awaits a child: it returns to the stream as soon as the
task is created, so a burst of triggers runs concurrently and repeated
triggers of one action are not serialised.  Running tasks are kept in
a set until they finish; otherwise the event loop would only hold weak
references to them.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging

from mqttbridge._clock import ClockPort
from mqttbridge._errors import DispatchError
from mqttbridge._executor import ExecutionResult
from mqttbridge._index import TopicIndex
from mqttbridge._session import EventSource, InboundMessage

logger = logging.getLogger(__name__)


class Dispatcher:
    """Routes inbound publishes to action executions.

    Args:
        events: Source of inbound publishes (the broker session).
        index: Read-only topic index built by the registrar.
        clock: Clock handed to every execution for timing.
    """

    def __init__(
        self,
        events: EventSource,
        index: TopicIndex,
        *,
        clock: ClockPort | None = None,
    ) -> None:
        self._events = events
        self._index = index
        self._clock = clock
        self._tasks: set[asyncio.Task[ExecutionResult | None]] = set()

    @property
    def inflight(self) -> int:
        """Number of executions that have not finished yet."""
        return len(self._tasks)

    async def run(self) -> None:
        """Consume the event stream until it fails.

        Raises:
            TransportError: When the stream reports a hard error.
            DispatchError: When the stream ends without an error.
        """
        logger.info("Init done, starting the listening loop.")
        async for message in self._events.events():
            self.dispatch(message)
        msg = "inbound event stream closed"
        raise DispatchError(msg)

    def dispatch(
        self,
        message: InboundMessage,
    ) -> asyncio.Task[ExecutionResult | None] | None:
        """Start the action bound to *message*'s topic.

        Returns:
            The spawned task, or ``None`` if the topic is unknown.
        """
        logger.debug("Received on %s: %r", message.topic, message.payload)
        action = self._index.get(message.topic)
        if action is None:
            logger.warning("No action registered for topic %s, dropping", message.topic)
            return None

        task = asyncio.create_task(
            dataclasses.replace(action).execute(clock=self._clock),
            name=f"execute:{action.slug}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def join(self) -> None:
        """Wait until every execution started so far has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _task_done(self, task: asyncio.Task[ExecutionResult | None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Execution task %s failed",
                task.get_name(),
                exc_info=exc,
            )
