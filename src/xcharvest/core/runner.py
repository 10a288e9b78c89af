"""External command execution using the invoke library."""

from __future__ import annotations

import shlex
import shutil
from pathlib import Path

from invoke import Context
from invoke.exceptions import CommandTimedOut

from xcharvest.core.errors import ToolNotInstalledError
from xcharvest.core.log import logger
from xcharvest.core.result import CommandResult


class Runner(Context):
    """invoke.Context with an argv-based execute() method.

    invoke kills a command that outlives its timeout and drains its
    output streams before raising CommandTimedOut, so a decoder that
    hangs never outlives the call.
    """

    def execute(
        self,
        argv: list[str],
        cwd: Path | None = None,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            argv: Executable followed by its arguments
            cwd: Working directory for the command
            timeout: Maximum execution time in seconds
            env: Extra environment variables (merged into os.environ)

        Returns:
            CommandResult; exit code -1 and timed_out=True on timeout

        Raises:
            ToolNotInstalledError: If argv[0] cannot be found on PATH
        """
        if shutil.which(argv[0]) is None:
            raise ToolNotInstalledError(argv[0])

        command = shlex.join(argv)
        kwargs = {
            "hide": True,
            "warn": True,  # Non-zero exit is data, not an exception
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env

        logger.debug("Running command", command=command, timeout=timeout)

        timed_out = False
        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            result = e.result
            timed_out = True

        exit_code = -1 if timed_out else result.exited
        logger.debug(
            "Command finished",
            command=command,
            exit_code=exit_code,
            timed_out=timed_out,
            stdout_bytes=len(result.stdout),
            stderr_bytes=len(result.stderr),
        )

        return CommandResult(
            argv=argv,
            exit_code=exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            timed_out=timed_out,
        )
