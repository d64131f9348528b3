"""Public test-support utilities for mqttbridge.

Provided symbols:

- :class:`MockBroker`: in-memory broker session that records calls.
- :class:`FakeClock`: deterministic clock for timing tests.
- :func:`make_settings`: factory for ``Settings`` without a YAML file
  or environment variables.
- :func:`make_action`: factory for bound :class:`~mqttbridge.Action`
  instances.
"""

from mqttbridge._session import MockBroker
from mqttbridge.testing._clock import FakeClock
from mqttbridge.testing._settings import make_action, make_settings

__all__ = [
    "FakeClock",
    "MockBroker",
    "make_action",
    "make_settings",
]
