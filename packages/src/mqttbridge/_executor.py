"""Child-process execution for action commands.

A command line is split with :func:`shlex.split` (POSIX rules: single
and double quotes, backslash escapes) into ``[program, *args]`` and
launched with :func:`asyncio.create_subprocess_exec`.  No shell is
involved, so pipes and redirections in the command string are passed
through as literal arguments.

The child inherits the daemon's environment, working directory, and
stdout/stderr.  Nothing is captured and nothing is reported back to
the broker; the outcome only reaches the log.

Failure behaviour:

- Empty or unsplittable command → logged at ERROR, no child.
- Spawn failure (ENOENT, EACCES, ...) → logged at WARNING, no child.
- Non-zero exit status → logged at INFO like any other exit.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass
from datetime import UTC, datetime

from mqttbridge._clock import ClockPort, SystemClock
from mqttbridge._errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Outcome of one finished child process."""

    argv: tuple[str, ...]
    returncode: int
    started_at: datetime
    duration_s: float

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def split_command(command: str) -> list[str]:
    """Split *command* into ``[program, *args]``.

    Raises:
        CommandError: If the command has unbalanced quotes or yields
            no tokens at all.
    """
    try:
        argv = shlex.split(command)
    except ValueError as exc:
        msg = f"cannot split command {command!r}: {exc}"
        raise CommandError(msg) from exc
    if not argv:
        msg = f"command {command!r} is empty"
        raise CommandError(msg)
    return argv


async def run_command(
    command: str,
    *,
    label: str = "",
    clock: ClockPort | None = None,
) -> ExecutionResult | None:
    """Run *command* to completion and log its outcome.

    Args:
        command: Shell-style command line.
        label: Prefix identifying the caller in log lines.
        clock: Monotonic clock used for the duration.

    Returns:
        The :class:`ExecutionResult`, or ``None`` when no child could
        be started.
    """
    resolved_clock = clock if clock is not None else SystemClock()
    label = label or command

    try:
        argv = split_command(command)
    except CommandError as exc:
        logger.error("Not executing %s: %s", label, exc.message)
        return None

    started_at = datetime.now(UTC)
    start = resolved_clock.now()
    logger.debug("Spawning %s with arguments %s", argv[0], argv[1:])

    try:
        process = await asyncio.create_subprocess_exec(*argv)
    except OSError as exc:
        logger.warning("Failed to execute %s: %s", label, exc)
        return None

    returncode = await process.wait()
    result = ExecutionResult(
        argv=tuple(argv),
        returncode=returncode,
        started_at=started_at,
        duration_s=resolved_clock.now() - start,
    )
    logger.info(
        "Execution of %s (pid %s, started %s) finished with exit status %d in %.3fs",
        label,
        process.pid,
        started_at.isoformat(),
        returncode,
        result.duration_s,
    )
    return result
