"""Dependency-area layout adapter implementing StagerPort."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path


# Environment variable to the dep dir subdirectory it searches.
STAGING_PATHS = {
    "PATH": "bin",
    "LD_LIBRARY_PATH": "lib",
    "LIBRARY_PATH": "lib",
    "CPATH": "include",
    "PKG_CONFIG_PATH": "pkgconfig",
}


class Stager:
    """Lays out the dependency area shared with later buildpacks.

    Each buildpack in a multi-buildpack pipeline owns ``deps_dir/<idx>``,
    containing ``bin``, ``lib``, ``env`` (one file per variable) and
    ``profile.d`` (startup shell fragments).

    Attributes:
        deps_dir: Parent of every buildpack's dependency area.
    """

    def __init__(self, build_dir: Path, deps_dir: Path, deps_idx: str) -> None:
        self._build_dir = build_dir
        self.deps_dir = deps_dir
        self._deps_idx = deps_idx

    @property
    def build_dir(self) -> Path:
        """The application's staging directory."""
        return self._build_dir

    @property
    def dep_dir(self) -> Path:
        """This buildpack's dependency area."""
        return self.deps_dir / self._deps_idx

    @property
    def deps_idx(self) -> str:
        """Index of this buildpack within the deps directory."""
        return self._deps_idx

    def link_directory_in_dep_dir(self, dest_dir: Path, dep_subdir: str) -> None:
        """Symlink every entry of ``dest_dir`` into ``dep_dir/dep_subdir``.

        Links are relative so the dependency area can be relocated.
        Existing links of the same name are replaced.
        """
        link_dir = self.dep_dir / dep_subdir
        link_dir.mkdir(parents=True, exist_ok=True)
        for entry in sorted(dest_dir.iterdir()):
            link = link_dir / entry.name
            if link.is_symlink():
                link.unlink()
            link.symlink_to(os.path.relpath(entry, link_dir))

    def write_env_file(self, name: str, value: str) -> None:
        """Write ``env/<name>`` containing ``value``."""
        env_dir = self.dep_dir / "env"
        env_dir.mkdir(parents=True, exist_ok=True)
        (env_dir / name).write_text(value)

    def write_profile_d(self, name: str, contents: str) -> None:
        """Write ``profile.d/<name>``, replacing only that script."""
        profile_dir = self.dep_dir / "profile.d"
        profile_dir.mkdir(parents=True, exist_ok=True)
        (profile_dir / name).write_text(contents)

    def _dep_dirs(self) -> list[Path]:
        if not self.deps_dir.is_dir():
            return []
        return sorted(
            (d for d in self.deps_dir.iterdir() if d.is_dir() and d.name.isdigit()),
            key=lambda d: int(d.name),
        )

    def set_staging_environment(self, env: MutableMapping[str, str]) -> None:
        """Point search paths in ``env`` at every buildpack's dep dir.

        Existing directories are prepended once; values already present are
        not repeated. Variables persisted under ``env/`` are then applied.
        """
        dep_dirs = self._dep_dirs()
        for var, subdir in STAGING_PATHS.items():
            current = [p for p in env.get(var, "").split(os.pathsep) if p]
            additions = [
                str(d / subdir)
                for d in dep_dirs
                if (d / subdir).is_dir() and str(d / subdir) not in current
            ]
            if additions:
                env[var] = os.pathsep.join(additions + current)

        for dep_dir in dep_dirs:
            env_dir = dep_dir / "env"
            if not env_dir.is_dir():
                continue
            for env_file in sorted(env_dir.iterdir()):
                if env_file.is_file():
                    env[env_file.name] = env_file.read_text()
