"""Unit tests for mqttbridge._clock: clock port and system adapter.

Test Techniques Used:
    - Protocol Conformance: isinstance checks for structural subtyping
    - Boundary Value Analysis: monotonic ordering
"""

from __future__ import annotations

from mqttbridge._clock import ClockPort, SystemClock
from mqttbridge.testing import FakeClock


class TestSystemClock:
    """Production clock.

    Technique: Specification-based Testing.
    """

    def test_satisfies_clock_port(self) -> None:
        assert isinstance(SystemClock(), ClockPort)

    def test_now_is_monotonic(self) -> None:
        clock = SystemClock()
        first = clock.now()
        second = clock.now()
        assert isinstance(first, float)
        assert second >= first


class TestFakeClockConformance:
    def test_fake_clock_is_clock_port(self) -> None:
        assert isinstance(FakeClock(), ClockPort)
