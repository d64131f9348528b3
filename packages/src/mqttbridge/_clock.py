"""Clock port used to time command executions.

Durations are measured with ``time.monotonic()`` so NTP steps or manual
clock changes never produce negative or inflated run times.  Tests swap
in :class:`mqttbridge.testing.FakeClock`.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class ClockPort(Protocol):
    """Source of monotonic seconds.  Only differences are meaningful."""

    def now(self) -> float: ...


class SystemClock:
    """:class:`ClockPort` backed by ``time.monotonic()``."""

    def now(self) -> float:
        return time.monotonic()
