"""Runs the docker compose CLI.

Every invocation returns the captured output with terminal escape codes
removed. A non-zero exit becomes a ``DockerCommandError`` whose message is
the cleaned error output, so callers and logs see plain text only.
"""

import asyncio
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from rich.text import Text

from regnet.exceptions import DockerCommandError
from regnet.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_COMPOSE_COMMAND = ("docker", "compose")


def strip_ansi(text: str) -> str:
    """Remove color and cursor control sequences from terminal output."""
    if not text:
        return ""
    return Text.from_ansi(text).plain


@dataclass(frozen=True)
class ComposeResult:
    exit_code: int
    out: str
    err: str

    @property
    def output(self) -> str:
        """Whichever stream has content; compose logs progress on stderr."""
        return self.out or self.err


class ComposeRunner:
    """Invokes compose in a network folder.

    Args:
        executable_path: Custom compose executable; empty uses ``docker compose``
    """

    def __init__(self, executable_path: str = ""):
        self.executable_path = executable_path

    @property
    def base_command(self) -> list[str]:
        if self.executable_path:
            return [self.executable_path]
        return list(DEFAULT_COMPOSE_COMMAND)

    def build_env(self) -> dict[str, str]:
        """Process environment plus host user/group ids on Linux.

        The compose file passes ``USERID``/``GROUPID`` into the containers so
        files written to the volumes stay owned by the host user.
        """
        env = dict(os.environ)
        if sys.platform.startswith("linux"):
            env["USERID"] = str(os.getuid())
            env["GROUPID"] = str(os.getgid())
        return env

    async def run(self, *args: str, cwd: Path | None = None) -> ComposeResult:
        """Run ``compose <args>`` and return its cleaned output.

        Raises:
            DockerCommandError: if compose cannot be started or exits non-zero
        """
        command = [*self.base_command, *args]
        logger.debug("docker_cmd", command=command, cwd=str(cwd) if cwd else None)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(cwd) if cwd else None,
                env=self.build_env(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            raw_out, raw_err = await process.communicate()
        except OSError as e:
            logger.info("docker_cmd_failed", command=command, error=str(e))
            raise DockerCommandError(str(e), command=command, original_error=e) from e

        result = ComposeResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            out=strip_ansi(raw_out.decode("utf-8", errors="replace")),
            err=strip_ansi(raw_err.decode("utf-8", errors="replace")),
        )
        if result.exit_code != 0:
            message = result.err.strip() or result.out.strip() or f"exit code {result.exit_code}"
            logger.info(
                "docker_cmd_failed",
                command=command,
                exit_code=result.exit_code,
                error=message,
            )
            raise DockerCommandError(message, command=command, exit_code=result.exit_code)
        return result
