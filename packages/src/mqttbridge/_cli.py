"""Command-line entry point (Typer-based).

Usage::

    mqttbridge [-c PATH] [-d ...] [--version] [--help]

``-d`` may be repeated; any count raises the log level from the
configured value to ``DEBUG``.

Exit codes:

- ``0``: terminated by SIGTERM/SIGINT while dispatching.
- ``1``: configuration error (missing file, bad YAML, invalid field).
- ``2``: startup error (duplicate slug, connect, subscribe, discovery).
- ``3``: runtime error (the inbound stream failed).

Every fatal error is reported as one log line naming the failing stage.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

from mqttbridge._bridge import Bridge
from mqttbridge._errors import (
    BridgeError,
    ConfigError,
    ConnectError,
    DispatchError,
    TransportError,
)
from mqttbridge._logging import configure_logging
from mqttbridge._settings import LoggingSettings, Settings, default_config_path, load_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_STARTUP_ERROR = 2
EXIT_RUNTIME_ERROR = 3

PROG_NAME = "mqttbridge"
DESCRIPTION = "execute predefined shell commands on incoming MQTT messages"


def exit_code_for(error: BridgeError) -> int:
    """Map a fatal error to the process exit code."""
    if isinstance(error, ConfigError):
        return EXIT_CONFIG_ERROR
    if isinstance(error, ConnectError):
        return EXIT_STARTUP_ERROR
    if isinstance(error, (TransportError, DispatchError)):
        return EXIT_RUNTIME_ERROR
    return EXIT_STARTUP_ERROR


def _apply_debug(settings: LoggingSettings, debug: int) -> LoggingSettings:
    if debug > 0:
        return settings.model_copy(update={"level": "DEBUG"})
    return settings


def build_cli(version: str) -> typer.Typer:
    """Construct the Typer application.

    Args:
        version: Version string printed by ``--version``.
    """
    cli = typer.Typer(
        help=f'"{PROG_NAME}" -- {DESCRIPTION}',
        add_completion=False,
    )

    @cli.command()
    def main(
        config: Annotated[
            Path,
            typer.Option(
                "--config",
                "-c",
                help="Configuration file.",
                show_default=True,
            ),
        ] = default_config_path(),
        debug: Annotated[
            int,
            typer.Option(
                "--debug",
                "-d",
                count=True,
                help="Debug level, more is more.",
            ),
        ] = 0,
        version_flag: Annotated[
            bool | None,
            typer.Option(
                "--version",
                is_eager=True,
                help="Show version and exit.",
            ),
        ] = None,
    ) -> None:
        if version_flag:
            typer.echo(f"{PROG_NAME} {version}")
            raise typer.Exit()

        # Log config errors with the default format before the file is read.
        configure_logging(
            _apply_debug(LoggingSettings(), debug),
            service=PROG_NAME,
            version=version,
        )

        try:
            settings: Settings = load_settings(config)
        except ConfigError as exc:
            logger.error("Configuration error: %s", exc)
            raise typer.Exit(EXIT_CONFIG_ERROR) from exc

        configure_logging(
            _apply_debug(settings.logging, debug),
            service=PROG_NAME,
            version=version,
        )
        logger.debug("Config: %r", settings)

        try:
            asyncio.run(Bridge(settings).run())
        except BridgeError as exc:
            logger.error("Fatal error: %s", exc)
            raise typer.Exit(exit_code_for(exc)) from exc

    return cli


def main() -> None:
    """Console-script entry point."""
    from mqttbridge import __version__

    build_cli(__version__)(prog_name=PROG_NAME)
