"""Port interfaces for hexagonal architecture.

Ports define contracts that adapters must implement. The core domain
depends only on these protocols, never on concrete implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable


if TYPE_CHECKING:
    from collections.abc import Mapping, MutableMapping, Sequence
    from pathlib import Path

    from rubysupply.core.models import CacheMetadata, Dependency


@runtime_checkable
class CatalogPort(Protocol):
    """Catalog of dependency versions shipped with the buildpack."""

    def all_versions(self, name: str) -> list[str]:
        """List every available version of ``name`` (possibly empty)."""
        ...

    def default_version(self, name: str) -> Dependency:
        """Return the default version of ``name``.

        Raises:
            ResolutionError: If no default is declared or it matches nothing.
        """
        ...


@runtime_checkable
class InstallerPort(Protocol):
    """Materializes dependency archives into directories."""

    def install(self, dependency: Dependency, target_dir: Path) -> None:
        """Install ``dependency`` into ``target_dir``.

        Raises:
            InstallError: If the archive cannot be fetched or extracted.
        """
        ...

    def install_only_version(self, name: str, target_dir: Path) -> None:
        """Install the single available version of ``name``.

        Raises:
            InstallError: If the catalog lists zero or several versions.
        """
        ...


@runtime_checkable
class StoragePort(Protocol):
    """Fetches dependency archives from a URI."""

    def download(self, source: str, dest: Path) -> None:
        """Download ``source`` to the local file ``dest``.

        Raises:
            StorageNotFoundError: If the source does not exist.
            StorageAccessError: If access is denied.
            StorageError: For other storage failures.
        """
        ...


@runtime_checkable
class VersionsPort(Protocol):
    """Read-only view over the application's Gemfile and Gemfile.lock."""

    def gemfile(self) -> Path:
        """Path to the Gemfile (honours BUNDLE_GEMFILE)."""
        ...

    def engine(self) -> str:
        """Engine named by the Gemfile's ruby directive ("ruby" by default)."""
        ...

    def version(self) -> str:
        """Resolved MRI version the Gemfile asks for, or "" if undeclared."""
        ...

    def jruby_version(self) -> str:
        """Resolved JRuby manifest version the Gemfile asks for."""
        ...

    def has_gem_version(self, gem: str, *constraints: str) -> bool:
        """True when the lock file pins ``gem`` at a version meeting constraints."""
        ...

    def check_bundler2_compatibility(self) -> bool:
        """True when the app can be installed with Bundler 2.

        Raises:
            CompatibilityCheckError: If the inspection itself fails.
        """
        ...

    def has_windows_gemfile_lock(self) -> bool:
        """True when the lock file was generated on Windows."""
        ...


@runtime_checkable
class StagerPort(Protocol):
    """Layout of the build and dependency directories."""

    @property
    def build_dir(self) -> Path:
        """The application's staging directory."""
        ...

    @property
    def dep_dir(self) -> Path:
        """This buildpack's dependency area."""
        ...

    @property
    def deps_idx(self) -> str:
        """Index of this buildpack within the deps directory."""
        ...

    def link_directory_in_dep_dir(self, dest_dir: Path, dep_subdir: str) -> None:
        """Symlink every entry of ``dest_dir`` into ``dep_dir/dep_subdir``."""
        ...

    def write_env_file(self, name: str, value: str) -> None:
        """Persist one environment variable for the finalize stage."""
        ...

    def write_profile_d(self, name: str, contents: str) -> None:
        """Write (or overwrite) one named startup shell fragment."""
        ...

    def set_staging_environment(self, env: MutableMapping[str, str]) -> None:
        """Point PATH and library paths in ``env`` at every deps directory."""
        ...


@runtime_checkable
class CommandPort(Protocol):
    """Runs external commands."""

    def output(
        self,
        cwd: Path | str,
        *args: str,
        env: Mapping[str, str] | None = None,
    ) -> str:
        """Run a command and return its combined output.

        Raises:
            CommandError: If the command cannot start or exits non-zero.
        """
        ...

    def run(
        self,
        args: Sequence[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Run a command streaming its output, indented, to the console.

        Raises:
            CommandError: If the command cannot start or exits non-zero.
        """
        ...


@runtime_checkable
class TempDirPort(Protocol):
    """Creates scratch copies of directories."""

    def copy_dir_to_temp(self, directory: Path) -> Path:
        """Copy ``directory`` into a fresh temporary directory.

        Returns:
            Path of the copy, named like ``directory`` inside the temp dir.
            Callers own the copy's parent directory and must remove it.
        """
        ...


@runtime_checkable
class CachePort(Protocol):
    """Per-application cache of installed artifacts plus metadata."""

    @property
    def metadata(self) -> CacheMetadata:
        """Mutable metadata record persisted by save()."""
        ...

    def restore(self) -> None:
        """Restore cached artifacts into the dependency area.

        Absence of a previous cache is not an error.

        Raises:
            CacheIOError: If reading the cache fails.
        """
        ...

    def save(self) -> None:
        """Persist the dependency area's artifacts and metadata.

        Raises:
            CacheIOError: If writing the cache fails.
        """
        ...


@runtime_checkable
class BuildLogger(Protocol):
    """Reports staging progress to the user.

    The core domain uses this to log without depending on any specific
    console library.
    """

    def begin_step(self, message: str) -> None:
        """Announce a new top-level step."""
        ...

    def info(self, message: str) -> None:
        """Report detail within the current step."""
        ...

    def warning(self, message: str) -> None:
        """Report a problem that does not stop staging."""
        ...

    def error(self, message: str) -> None:
        """Report a fatal problem."""
        ...

    def debug(self, message: str) -> None:
        """Report diagnostics, shown only when debugging is enabled."""
        ...


class NullBuildLogger:
    """A BuildLogger that produces no output.

    Used as the default when no logging is desired.
    """

    def begin_step(self, message: str) -> None:
        """Do nothing."""
        _ = message

    def info(self, message: str) -> None:
        """Do nothing."""
        _ = message

    def warning(self, message: str) -> None:
        """Do nothing."""
        _ = message

    def error(self, message: str) -> None:
        """Do nothing."""
        _ = message

    def debug(self, message: str) -> None:
        """Do nothing."""
        _ = message
