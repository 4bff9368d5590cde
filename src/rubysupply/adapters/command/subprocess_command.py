"""Subprocess-backed command runner implementing CommandPort."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

from rubysupply.core.exceptions import CommandError
from rubysupply.core.ports import NullBuildLogger


if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from rubysupply.core.ports import BuildLogger


# Lines of output kept for error reports from streamed commands.
_TAIL_LINES = 50


class SubprocessCommand:
    """Runs external commands with an explicit environment.

    ``env`` replaces the child's environment entirely; pass the overlay's
    ``as_dict()`` so children see exactly what the supplier configured.
    """

    def __init__(self, log: BuildLogger | None = None) -> None:
        """Initialize the runner.

        Args:
            log: Logger that receives streamed output from run().
        """
        self._log: BuildLogger = log if log is not None else NullBuildLogger()

    def output(
        self,
        cwd: Path | str,
        *args: str,
        env: Mapping[str, str] | None = None,
    ) -> str:
        """Run a command and return stdout and stderr combined.

        Raises:
            CommandError: If the command cannot start or exits non-zero.
        """
        try:
            result = subprocess.run(
                list(args),
                cwd=cwd,
                env=dict(env) if env is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as e:
            raise CommandError(args, cause=e) from e
        if result.returncode != 0:
            raise CommandError(args, returncode=result.returncode, output=result.stdout)
        return result.stdout

    def run(
        self,
        args: Sequence[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Run a command, streaming each output line to the build log.

        Raises:
            CommandError: If the command cannot start or exits non-zero.
        """
        tail: list[str] = []
        try:
            with subprocess.Popen(
                list(args),
                cwd=cwd,
                env=dict(env) if env is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            ) as proc:
                for line in proc.stdout or ():
                    line = line.rstrip("\n")
                    self._log.info(line)
                    tail.append(line)
                    del tail[:-_TAIL_LINES]
                returncode = proc.wait()
        except OSError as e:
            raise CommandError(args, cause=e) from e
        if returncode != 0:
            raise CommandError(args, returncode=returncode, output="\n".join(tail))
