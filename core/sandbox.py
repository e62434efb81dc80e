"""Async subprocess runner with command allowlist and timeout."""

import asyncio
import os

from config.defaults import DEFAULTS
from core.state import CompileOutput


async def run_in_sandbox(command, cwd, timeout=None):
    """Run a command in a subprocess and wait for it.

    Args:
        command: Command as a list of strings, e.g. ["mvn", "-B", "package"]
        cwd: Working directory (must exist)
        timeout: Seconds before killing the process (default from config)

    Returns:
        CompileOutput. A missing executable or a timeout is reported as
        exit code -1 with the reason in stderr, never raised.

    Raises:
        ValueError: If command is not in the allowlist or cwd is invalid.
    """
    if timeout is None:
        timeout = DEFAULTS["build_timeout"]

    if not command or not isinstance(command, list):
        raise ValueError("Command must be a non-empty list of strings")

    executable = command[0]
    allowed = DEFAULTS["allowed_commands"]
    if os.path.basename(executable) not in allowed:
        raise ValueError(
            f"Command '{executable}' not in allowlist: {allowed}"
        )

    cwd = os.path.realpath(cwd)
    if not os.path.isdir(cwd):
        raise ValueError(f"Working directory does not exist: {cwd}")

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return CompileOutput(-1, "", f"Command not found: {executable}")
    except PermissionError:
        return CompileOutput(-1, "", f"Command not executable: {executable}")

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return CompileOutput(-1, "", f"Command timed out after {timeout}s", timed_out=True)
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    return CompileOutput(
        exit_code=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
