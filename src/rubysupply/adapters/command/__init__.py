"""Process execution and scratch directory adapters."""

from rubysupply.adapters.command.subprocess_command import SubprocessCommand
from rubysupply.adapters.command.tempdir import LinkTempDir


__all__ = ["LinkTempDir", "SubprocessCommand"]
