"""Gemfile and Gemfile.lock inspection implementing VersionsPort."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from rubysupply.core.exceptions import CompatibilityCheckError, ResolutionError
from rubysupply.core.versions import find_matching_version, version_satisfies


if TYPE_CHECKING:
    from rubysupply.core.ports import CatalogPort


_RUBY_DIRECTIVE = re.compile(r"""^\s*ruby\b\s*\(?\s*(?P<args>.*)$""", re.MULTILINE)
_FIRST_STRING = re.compile(r"""^(['"])(?P<value>[^'"]*)\1""")
_OPTION = r"""(?::{key}\s*=>|\b{key}:)\s*(['"])(?P<value>[^'"]*)\1"""
_PATCHLEVEL = re.compile(r"p\d+$")
_SPEC_LINE = re.compile(r"^    (?P<name>[^\s(]+) \((?P<version>[^)]+)\)\s*$")
_LOCK_RUBY = re.compile(r"^\s*ruby (?P<version>\S+)")

MIN_BUNDLER2_RUBY = "2.3.0"

_WINDOWS_PLATFORM = re.compile(r"(^|-)(mingw|mswin)")

# Lockfile sections whose specs: list resolved gems.
_SOURCE_SECTIONS = ("GEM", "GIT", "PATH", "PLUGIN SOURCE")


def _option(args: str, key: str) -> str | None:
    match = re.search(_OPTION.format(key=key), args)
    return match.group("value") if match else None


@dataclass(frozen=True, slots=True)
class RubyDirective:
    """The ``ruby`` line of a Gemfile.

    Attributes:
        version: Version constraint for the Ruby language, if any.
        engine: Engine name ("ruby" unless ``engine:`` says otherwise).
        engine_version: Engine version for non-MRI engines.
    """

    version: str | None = None
    engine: str = "ruby"
    engine_version: str | None = None


def parse_ruby_directive(gemfile_text: str, root: Path | None = None) -> RubyDirective:
    """Extract the ``ruby`` directive from Gemfile source.

    Supports ``ruby "2.6.3"``, ``ruby "~> 2.6.0", engine: "jruby",
    engine_version: "9.2.13.0"`` and ``ruby file: ".ruby-version"``.

    Args:
        gemfile_text: Gemfile contents.
        root: Directory ``file:`` paths are relative to.
    """
    for match in _RUBY_DIRECTIVE.finditer(gemfile_text):
        args = match.group("args").strip()
        version_match = _FIRST_STRING.match(args)
        version = version_match.group("value") if version_match else None

        version_file = _option(args, "file")
        if version is None and version_file and root is not None:
            version = (root / version_file).read_text().strip().removeprefix("ruby-")

        if version is None and not version_file:
            continue
        return RubyDirective(
            version=version,
            engine=_option(args, "engine") or "ruby",
            engine_version=_option(args, "engine_version"),
        )
    return RubyDirective()


def parse_lockfile(text: str) -> dict[str, list[str]]:
    """Split Gemfile.lock contents into its top-level sections.

    Returns:
        Section header (e.g. "GEM", "PLATFORMS", "BUNDLED WITH") to the raw
        lines beneath it.
    """
    sections: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in text.splitlines():
        if not line.strip():
            current = None
            continue
        if not line[0].isspace():
            current = sections.setdefault(line.strip(), [])
            continue
        if current is not None:
            current.append(line.rstrip("\r"))
    return sections


class GemfileVersions:
    """Answers version questions about an application's Gemfile.

    Implements VersionsPort by parsing the Gemfile's ``ruby`` directive and
    the Gemfile.lock sections; Ruby versions are resolved against the
    catalog so callers always get an installable version.
    """

    def __init__(
        self,
        build_dir: Path,
        catalog: CatalogPort,
        gemfile_name: str = "Gemfile",
    ) -> None:
        """Initialize the inspector.

        Args:
            build_dir: Application directory.
            catalog: Catalog used to resolve Ruby and JRuby versions.
            gemfile_name: Value of BUNDLE_GEMFILE, relative to build_dir.
        """
        self._build_dir = build_dir
        self._catalog = catalog
        self._gemfile_name = gemfile_name or "Gemfile"

    def gemfile(self) -> Path:
        """Path to the Gemfile."""
        return self._build_dir / self._gemfile_name

    def _lockfile(self) -> Path:
        gemfile = self.gemfile()
        return gemfile.with_name(f"{gemfile.name}.lock")

    def _directive(self) -> RubyDirective:
        gemfile = self.gemfile()
        if not gemfile.exists():
            return RubyDirective()
        return parse_ruby_directive(gemfile.read_text(), root=gemfile.parent)

    def _lock_sections(self) -> dict[str, list[str]]:
        lockfile = self._lockfile()
        if not lockfile.exists():
            return {}
        return parse_lockfile(lockfile.read_text())

    def _lock_ruby_version(self) -> str | None:
        for line in self._lock_sections().get("RUBY VERSION", []):
            match = _LOCK_RUBY.match(line)
            if match:
                return _PATCHLEVEL.sub("", match.group("version"))
        return None

    def engine(self) -> str:
        """Engine named by the Gemfile, "ruby" by default."""
        return self._directive().engine

    def version(self) -> str:
        """Resolve the Gemfile's Ruby version against the catalog.

        Falls back to the RUBY VERSION section of Gemfile.lock.

        Returns:
            A catalog version, or "" when the app declares none.

        Raises:
            ResolutionError: If the declared version is not available.
        """
        constraint = self._directive().version or self._lock_ruby_version()
        if not constraint:
            return ""
        constraint = _PATCHLEVEL.sub("", constraint)
        return find_matching_version(
            constraint, self._catalog.all_versions("ruby"), name="ruby"
        )

    def jruby_version(self) -> str:
        """Return the JRuby manifest version, e.g. "9.2.13.0-ruby-2.5".

        Raises:
            ResolutionError: If the Gemfile lacks engine details or the
                catalog has no matching JRuby.
        """
        directive = self._directive()
        available = self._catalog.all_versions("jruby")
        if not directive.engine_version or not directive.version:
            raise ResolutionError(
                "",
                available,
                name="jruby",
                message="JRuby apps must declare both a ruby version and engine_version",
            )
        major_minor = ".".join(directive.version.split(".")[:2])
        wanted = f"{directive.engine_version}-ruby-{major_minor}"
        if wanted not in available:
            raise ResolutionError(wanted, available, name="jruby")
        return wanted

    def has_gem_version(self, gem: str, *constraints: str) -> bool:
        """True when Gemfile.lock pins ``gem`` at a version meeting constraints.

        Gems from git, path and plugin sources count as well as rubygems ones.
        """
        sections = self._lock_sections()
        for section in _SOURCE_SECTIONS:
            for line in sections.get(section, []):
                match = _SPEC_LINE.match(line)
                if match and match.group("name") == gem:
                    return version_satisfies(match.group("version"), *constraints)
        return False

    def bundled_with(self) -> str | None:
        """Bundler version recorded in Gemfile.lock, if any."""
        lines = self._lock_sections().get("BUNDLED WITH", [])
        return lines[0].strip() if lines else None

    def check_bundler2_compatibility(self) -> bool:
        """True when the app's Ruby and lock file allow Bundler 2.

        Raises:
            CompatibilityCheckError: If the Gemfile or lock cannot be read.
        """
        try:
            if self.engine() == "jruby":
                ruby = self.jruby_version().rsplit("-ruby-", 1)[-1]
            else:
                ruby = self.version() or self._catalog.default_version("ruby").version
            bundled_with = self.bundled_with()
        except (OSError, ResolutionError) as e:
            raise CompatibilityCheckError(
                f"Unable to inspect Gemfile for Bundler 2 compatibility: {e}",
                cause=e,
            ) from e

        if bundled_with and bundled_with.startswith("1."):
            return False
        return version_satisfies(ruby, f">= {MIN_BUNDLER2_RUBY}")

    def has_windows_gemfile_lock(self) -> bool:
        """True when Gemfile.lock lists only Windows platforms."""
        platforms = [
            line.strip() for line in self._lock_sections().get("PLATFORMS", [])
        ]
        if not platforms:
            return False
        return all(_WINDOWS_PLATFORM.search(p) for p in platforms)
