"""Pytest configuration and shared fixtures."""

import pytest

# The mqttbridge testing plugin is registered through a ``pytest11``
# entry point for external consumers.  Our own suite disables it
# (``-p no:mqttbridge``) and loads it here, so the import happens
# after coverage tracing has started.
pytest_plugins = ["mqttbridge.testing._plugin"]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (spawn real child processes)"
    )
