"""
Thin wrapper around the external Apple toolchain (xcodebuild, xcrun).

Every external process goes through ``ToolchainRunner.run`` so callers see
one result type, and tests can substitute a scripted runner.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from freezeray.errors import ToolchainTimeout, ToolNotFound
from freezeray.timeouts import SUBPROCESS_DEFAULT_TIMEOUT_S

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Exit status and output of one finished command."""

    cmd: List[str]
    returncode: int
    output: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ToolchainRunner:
    """Run toolchain commands with consistent error handling."""

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
        timeout: float = SUBPROCESS_DEFAULT_TIMEOUT_S,
        merge_stderr: bool = True,
        context: str = "",
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        A non-zero exit is returned, not raised; callers classify it.

        Args:
            args: Full command line (e.g., ["xcrun", "simctl", "list"])
            cwd: Working directory
            timeout: Seconds before the command is abandoned
            merge_stderr: Interleave stderr into the output (xcodebuild
                reports failures on both streams)
            context: What the command is doing, for error messages
            env: Extra environment variables for the command

        Raises:
            ToolNotFound: If the executable is not in PATH
            ToolchainTimeout: If the command exceeds ``timeout``
        """
        cmd = list(args)
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                encoding="utf-8",
                # Tool output may carry bytes that are not UTF-8
                errors="replace",
                timeout=timeout,
                env={**os.environ, **env} if env else None,
            )
        except FileNotFoundError:
            raise ToolNotFound(cmd)
        except subprocess.TimeoutExpired as e:
            partial = e.output or ""
            if isinstance(partial, bytes):
                partial = partial.decode("utf-8", errors="replace")
            raise ToolchainTimeout(cmd, timeout, output=partial, context=context)

        return CommandResult(
            cmd=cmd,
            returncode=result.returncode,
            output=result.stdout or "",
            stderr="" if merge_stderr else (result.stderr or ""),
        )
