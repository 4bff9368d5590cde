"""Domain exceptions for rubysupply.

All library errors inherit from RubySupplyError, allowing callers to catch
any supply failure with a single except clause. Each exception provides
a recovery_hint property with guidance on resolving the error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path


class RubySupplyError(Exception):
    """Base class for all rubysupply exceptions.

    Catch this to handle any error raised while supplying dependencies.
    """

    @property
    def recovery_hint(self) -> str | None:
        """Optional guidance on how to resolve this error."""
        return None


class ResolutionError(RubySupplyError):
    """Raised when no available version satisfies a version constraint.

    Attributes:
        constraint: The constraint that could not be satisfied.
        candidates: The versions that were considered.
        name: Dependency name, when known.
    """

    def __init__(
        self,
        constraint: str,
        candidates: Sequence[str] = (),
        name: str | None = None,
        message: str | None = None,
    ) -> None:
        self.constraint = constraint
        self.candidates = list(candidates)
        self.name = name
        if message is None:
            subject = f" for {name}" if name else ""
            message = f"No matching version{subject}: '{constraint}'"
        super().__init__(message)

    @property
    def recovery_hint(self) -> str:
        """List the versions that were available."""
        if self.candidates:
            return f"Available versions: {', '.join(self.candidates)}"
        return "No versions are available in the buildpack manifest"


class UnsupportedEngineError(RubySupplyError):
    """Raised when the Gemfile asks for a Ruby engine we cannot supply.

    Attributes:
        engine: The engine name declared by the application.
    """

    def __init__(self, engine: str) -> None:
        self.engine = engine
        super().__init__(f"Sorry, we do not support engine: {engine}")

    @property
    def recovery_hint(self) -> str:
        """Name the supported engines."""
        return "Supported engines are 'ruby' and 'jruby'"


class InstallError(RubySupplyError):
    """Raised when a dependency archive cannot be installed.

    Attributes:
        name: Dependency name.
        version: Dependency version, if resolved.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        name: str,
        version: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.name = name
        self.version = version
        self.cause = cause
        super().__init__(message)

    @property
    def recovery_hint(self) -> str:
        """Suggest checking the manifest entry."""
        return f"Check the manifest entry for '{self.name}' and its download URI"


class StorageError(RubySupplyError):
    """Raised when a dependency archive cannot be fetched from storage.

    Attributes:
        source: The storage URI that caused the error.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        source: str,
        cause: Exception | None = None,
    ) -> None:
        self.source = source
        self.cause = cause
        super().__init__(message)


class StorageNotFoundError(StorageError):
    """Raised when the requested archive doesn't exist in storage."""

    @property
    def recovery_hint(self) -> str:
        """Suggest verifying the URI."""
        return f"Verify the dependency URI exists: {self.source}"


class StorageAccessError(StorageError):
    """Raised when access to storage is denied (permissions, credentials)."""

    @property
    def recovery_hint(self) -> str:
        """Suggest checking permissions."""
        return "Check credentials and bucket/path permissions"


class CompatibilityCheckError(RubySupplyError):
    """Raised when Bundler compatibility could not be determined.

    A negative compatibility result is not an error; this covers failures
    of the inspection itself (unreadable Gemfile.lock and similar).
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class CacheIOError(RubySupplyError):
    """Raised when the application cache cannot be restored or saved.

    Attributes:
        path: The cache path involved.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        path: Path,
        cause: Exception | None = None,
    ) -> None:
        self.path = path
        self.cause = cause
        super().__init__(message)

    @property
    def recovery_hint(self) -> str:
        """Suggest clearing the cache."""
        return f"Clear the application cache at {self.path} and restage"


class CacheCorruptError(CacheIOError):
    """Raised when cache metadata is corrupt or unreadable."""

    @property
    def recovery_hint(self) -> str:
        """Suggest deleting the corrupt metadata file."""
        return f"Delete {self.path} and restage"


class EnvWriteError(RubySupplyError):
    """Raised when an environment file or profile.d script cannot be written.

    Attributes:
        name: Variable or script name.
        cause: The underlying exception, if any.
    """

    def __init__(self, name: str, cause: Exception | None = None) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"Unable to write environment for '{name}': {cause}")


class CommandError(RubySupplyError):
    """Raised when an external command is missing or exits non-zero.

    Attributes:
        command: The command line that was executed.
        returncode: Exit status, or None when the command could not start.
        output: Captured output, when available.
    """

    def __init__(
        self,
        command: Sequence[str],
        returncode: int | None = None,
        output: str = "",
        cause: Exception | None = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        self.cause = cause
        rendered = " ".join(self.command)
        if returncode is None:
            message = f"Could not run '{rendered}': {cause}"
        else:
            message = f"'{rendered}' exited with status {returncode}"
        super().__init__(message)


class ConfigurationError(RubySupplyError):
    """Raised for configuration problems (missing directories, no manifest)."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        self._hint = hint
        super().__init__(message)

    @property
    def recovery_hint(self) -> str | None:
        """Return the hint supplied when the error was raised."""
        return self._hint


class SupplyStepError(RubySupplyError):
    """Raised by the supplier when one of its steps fails.

    Attributes:
        step: Name of the failing step.
        cause: The exception raised by the step.
    """

    def __init__(self, step: str, message: str, cause: Exception) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"{message}: {cause}")

    @property
    def recovery_hint(self) -> str | None:
        """Delegate to the underlying error's hint."""
        if isinstance(self.cause, RubySupplyError):
            return self.cause.recovery_hint
        return None
