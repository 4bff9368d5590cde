"""Configuration for a supply run.

The platform invokes supply with four directories; everything else comes
from the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from rubysupply.core.exceptions import ConfigurationError


MANIFEST_NAME = "manifest.yml"


def find_buildpack_root(start: Path | None = None) -> Path | None:
    """Find the buildpack root by walking up from start directory.

    The root is the nearest directory holding a ``manifest.yml``.

    Args:
        start: Directory to start searching from. If None, uses current directory.

    Returns:
        Path to the buildpack root, or None if no manifest was found.

    Example:
        >>> from rubysupply.config import find_buildpack_root
        >>> root = find_buildpack_root()
        >>> manifest = root / "manifest.yml"
    """
    if start is None:
        start = Path.cwd()

    current = start.resolve()
    for parent in [current, *current.parents]:
        if (parent / MANIFEST_NAME).is_file():
            return parent
    return None


def resolve_manifest(
    manifest: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """Locate the buildpack manifest.

    Priority: explicit path, then ``$BUILDPACK_DIR/manifest.yml``, then the
    nearest ``manifest.yml`` above the working directory.

    Raises:
        ConfigurationError: If no manifest can be found.
    """
    environ = os.environ if environ is None else environ
    if manifest is not None:
        if not manifest.is_file():
            raise ConfigurationError(f"Manifest not found: {manifest}")
        return manifest

    buildpack_dir = environ.get("BUILDPACK_DIR")
    if buildpack_dir:
        candidate = Path(buildpack_dir) / MANIFEST_NAME
        if candidate.is_file():
            return candidate

    root = find_buildpack_root()
    if root is None:
        raise ConfigurationError(
            "Unable to find buildpack manifest.yml",
            hint="Pass --manifest or set BUILDPACK_DIR",
        )
    return root / MANIFEST_NAME


@dataclass(frozen=True, slots=True)
class SupplyConfig:
    """Validated inputs of one supply run.

    Attributes:
        build_dir: Application directory.
        cache_dir: Platform cache directory for this app.
        deps_dir: Parent of all buildpacks' dependency areas.
        deps_idx: This buildpack's index in the pipeline.
        manifest: Path to the buildpack manifest.
        stack: Stack name from CF_STACK.
        debug: Whether BP_DEBUG is set.
        gemfile_name: Gemfile name from BUNDLE_GEMFILE.
    """

    build_dir: Path
    cache_dir: Path
    deps_dir: Path
    deps_idx: str
    manifest: Path
    stack: str = ""
    debug: bool = False
    gemfile_name: str = "Gemfile"

    @property
    def dep_dir(self) -> Path:
        """This buildpack's dependency area."""
        return self.deps_dir / self.deps_idx


def load_config(
    build_dir: Path,
    cache_dir: Path,
    deps_dir: Path,
    deps_idx: str,
    manifest: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SupplyConfig:
    """Validate arguments and build a SupplyConfig.

    Creates the dependency area and the cache directory if missing.

    Raises:
        ConfigurationError: If a directory is missing or the index is invalid.
    """
    environ = os.environ if environ is None else environ

    if not build_dir.is_dir():
        raise ConfigurationError(
            f"Build directory does not exist: {build_dir}",
            hint="Pass the application directory as BUILD_DIR",
        )
    if not deps_dir.is_dir():
        raise ConfigurationError(
            f"Deps directory does not exist: {deps_dir}",
            hint="Pass an existing DEPS_DIR",
        )
    if not deps_idx.isdigit():
        raise ConfigurationError(f"Invalid deps index: '{deps_idx}'")

    config = SupplyConfig(
        build_dir=build_dir.resolve(),
        cache_dir=cache_dir.resolve(),
        deps_dir=deps_dir.resolve(),
        deps_idx=deps_idx,
        manifest=resolve_manifest(manifest, environ),
        stack=environ.get("CF_STACK", ""),
        debug=bool(environ.get("BP_DEBUG")),
        gemfile_name=environ.get("BUNDLE_GEMFILE") or "Gemfile",
    )

    try:
        config.dep_dir.mkdir(parents=True, exist_ok=True)
        config.cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Unable to create staging directories: {e}") from e
    return config
