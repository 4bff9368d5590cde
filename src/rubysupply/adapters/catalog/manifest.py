"""Buildpack manifest catalog adapter implementing CatalogPort."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from rubysupply.core.exceptions import ConfigurationError, ResolutionError
from rubysupply.core.models import Dependency
from rubysupply.core.versions import find_matching_version


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """One installable archive listed in the manifest.

    Attributes:
        name: Dependency name.
        version: Concrete version.
        uri: Where the archive lives (https://, s3://, file:// or a path).
        sha256: Expected hex digest of the archive, empty if unknown.
        cf_stacks: Stacks the archive was built for.
    """

    name: str
    version: str
    uri: str
    sha256: str = ""
    cf_stacks: tuple[str, ...] = ()

    @property
    def dependency(self) -> Dependency:
        """Return the Dependency this entry installs."""
        return Dependency(self.name, self.version)


class ManifestCatalog:
    """Version catalog backed by a buildpack ``manifest.yml``.

    Entries built for other stacks are invisible when a stack is given.
    Relative file URIs are resolved against the manifest's directory, as in
    cached (offline) buildpacks.

    Example:
        >>> catalog = ManifestCatalog.from_file(Path("manifest.yml"), stack="cflinuxfs3")
        >>> catalog.default_version("ruby")
        Dependency(name='ruby', version='2.6.3')
    """

    def __init__(
        self,
        data: dict[str, Any],
        stack: str = "",
        root: Path | None = None,
    ) -> None:
        """Initialize from parsed manifest data.

        Args:
            data: Parsed YAML mapping.
            stack: Stack to filter entries by; empty means no filtering.
            root: Directory relative archive paths are resolved against.
        """
        self._stack = stack
        self._root = root
        self._defaults: dict[str, str] = {
            str(item["name"]): str(item["version"])
            for item in data.get("default_versions") or []
        }
        self._entries: list[ManifestEntry] = []
        for item in data.get("dependencies") or []:
            entry = ManifestEntry(
                name=str(item["name"]),
                version=str(item["version"]),
                uri=str(item.get("uri", "")),
                sha256=str(item.get("sha256") or ""),
                cf_stacks=tuple(str(s) for s in item.get("cf_stacks") or ()),
            )
            if stack and entry.cf_stacks and stack not in entry.cf_stacks:
                continue
            self._entries.append(entry)

    @classmethod
    def from_file(cls, path: Path, stack: str = "") -> ManifestCatalog:
        """Load a manifest from disk.

        Raises:
            ConfigurationError: If the file is missing or not valid YAML.
        """
        try:
            with path.open() as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(
                f"Unable to read manifest {path}: {e}",
                hint="Pass --manifest or set BUILDPACK_DIR",
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid manifest {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid manifest {path}: expected a mapping")
        return cls(data, stack=stack, root=path.parent)

    def all_versions(self, name: str) -> list[str]:
        """List every version of ``name`` available on this stack."""
        return [entry.version for entry in self._entries if entry.name == name]

    def default_version(self, name: str) -> Dependency:
        """Resolve the manifest's default version pattern for ``name``.

        Raises:
            ResolutionError: If no default is declared or it matches nothing.
        """
        pattern = self._defaults.get(name)
        if pattern is None:
            raise ResolutionError(
                "",
                self.all_versions(name),
                name=name,
                message=f"No default version declared for {name}",
            )
        version = find_matching_version(pattern, self.all_versions(name), name=name)
        return Dependency(name, version)

    def entry(self, dependency: Dependency) -> ManifestEntry:
        """Return the manifest entry for an exact dependency.

        Raises:
            ResolutionError: If the manifest has no such entry.
        """
        for entry in self._entries:
            if entry.name == dependency.name and entry.version == dependency.version:
                return self._localize(entry)
        raise ResolutionError(
            dependency.version,
            self.all_versions(dependency.name),
            name=dependency.name,
        )

    def _localize(self, entry: ManifestEntry) -> ManifestEntry:
        if self._root is None or "://" in entry.uri or Path(entry.uri).is_absolute():
            return entry
        return ManifestEntry(
            name=entry.name,
            version=entry.version,
            uri=str(self._root / entry.uri),
            sha256=entry.sha256,
            cf_stacks=entry.cf_stacks,
        )
