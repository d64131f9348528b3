"""Test factories for settings and actions.

:func:`make_settings` builds :class:`~mqttbridge._settings.Settings`
from keyword arguments only.  Environment variables and ``.env`` files
are ignored so tests behave the same on every machine.
"""

from __future__ import annotations

from typing import Any

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from mqttbridge._action import Action
from mqttbridge._settings import ActionSettings, Settings

TEST_INSTANCE = "host1"
TEST_HOST = "host1"


class _IsolatedSettings(Settings):
    """Settings subclass reading only its init arguments."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],  # noqa: ARG003
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)


def make_settings(
    actions: list[dict[str, Any]] | None = None,
    **overrides: Any,
) -> Settings:
    """Create ``Settings`` with test defaults.

    The broker defaults to ``localhost`` with user ``test``/``secret``
    and instance name ``host1``.  ``mqtt`` in *overrides* is merged
    over those defaults; any other key replaces the model default.

    Example::

        settings = make_settings(
            actions=[{"name": "Open Gate", "command": "/usr/bin/true"}],
        )
        assert settings.mqtt.instance_name == "host1"
    """
    mqtt: dict[str, Any] = {
        "host": "localhost",
        "username": "test",
        "password": "secret",
        "instance_name": TEST_INSTANCE,
    }
    mqtt.update(overrides.pop("mqtt", {}))
    return _IsolatedSettings(
        mqtt=mqtt,
        actions=actions or [],
        **overrides,
    )


def make_action(
    name: str = "Open Gate",
    command: str = "/usr/bin/true",
    *,
    icon: str | None = None,
    instance_name: str = TEST_INSTANCE,
    host: str = TEST_HOST,
    **kwargs: Any,
) -> Action:
    """Create a bound :class:`Action` for tests."""
    return Action.from_settings(
        ActionSettings(name=name, command=command, icon=icon),
        instance_name=instance_name,
        host=host,
        **kwargs,
    )
