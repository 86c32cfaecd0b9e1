"""
Invoker - Bounded-time execution of external tools.

Every call to the Poppler toolchain goes through `invoke`. The process
runs with stdin closed and both output streams buffered in memory; a
watchdog kills it (SIGKILL) once its time budget is spent. There are no
retries here, callers decide what a failure means.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from .errors import ToolInvocationError


logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Captured output of a successful tool run."""
    stdout: str
    stderr: str


# Signature shared by `invoke` and the fakes used in tests
InvokeFn = Callable[[str, Sequence[str], float], Awaitable[ToolResult]]


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill the process if it is still running and wait for it to exit."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def invoke(command: str, args: Sequence[str], timeout: float) -> ToolResult:
    """
    Run `command args...` and return its output.

    Args:
        command: Executable name or path
        args: Arguments passed verbatim
        timeout: Watchdog budget in seconds

    Returns:
        ToolResult with decoded stdout and stderr

    Raises:
        ToolInvocationError: on launch failure, nonzero exit, or watchdog kill
    """
    argv = [command, *args]
    display = " ".join(argv)

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ToolInvocationError(
            f"Cannot launch {command}: {e}", command=display
        ) from e

    try:
        out, err = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Watchdog killed {command} after {timeout:g}s")
        raise ToolInvocationError(
            f"Timed out after {timeout:g}s: {display}",
            command=display,
            timed_out=True,
        ) from None
    finally:
        # Runs on success, timeout and cancellation alike
        await _reap(proc)

    stdout = _decode(out)
    stderr = _decode(err)

    if proc.returncode != 0:
        logger.debug(f"{command} exited with {proc.returncode}: {stderr.strip()}")
        raise ToolInvocationError(
            stderr.strip() or f"Command failed: {display}",
            command=display,
            returncode=proc.returncode,
            stderr=stderr,
        )

    return ToolResult(stdout=stdout, stderr=stderr)
