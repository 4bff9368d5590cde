"""Core domain models for rubysupply.

These models are plain Python dataclasses with no I/O dependencies.
They carry the state the supplier threads from one step to the next.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Self


if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True, slots=True)
class Dependency:
    """A single installable unit from the buildpack manifest.

    Attributes:
        name: Dependency name (e.g., "ruby", "bundler", "node").
        version: A concrete resolved version, never a constraint.

    Example:
        >>> Dependency(name="bundler", version="1.17.3")
        Dependency(name='bundler', version='1.17.3')
    """

    name: str
    version: str

    def __post_init__(self) -> None:
        """Validate dependency fields after initialization."""
        if not self.name:
            raise ValueError("Dependency name cannot be empty")
        if not self.version:
            raise ValueError("Dependency version cannot be empty")


class RubyEngine(str, Enum):
    """Ruby implementations the buildpack can supply."""

    RUBY = "ruby"
    JRUBY = "jruby"


_RUBY_COMPAT = re.compile(r"-ruby-(\d+)\.(\d+)")
_MAJOR_MINOR = re.compile(r"^(\d+)\.(\d+)")


@dataclass(frozen=True, slots=True)
class RuntimeSelection:
    """The Ruby engine and version chosen for this run.

    Attributes:
        engine: MRI ("ruby") or JRuby ("jruby").
        version: Manifest version of the engine. For JRuby this carries the
            Ruby compatibility suffix, e.g. "9.2.13.0-ruby-2.5".
    """

    engine: RubyEngine
    version: str

    @property
    def abi_version(self) -> str:
        """Return the Ruby ABI directory name used under gems/ (e.g. "2.6.0").

        Raises:
            ValueError: If the version does not expose a major.minor pair.
        """
        match = _RUBY_COMPAT.search(self.version)
        if match is None:
            match = _MAJOR_MINOR.match(self.version)
        if match is None:
            raise ValueError(f"Cannot derive Ruby ABI version from '{self.version}'")
        return f"{match.group(1)}.{match.group(2)}.0"

    def as_dependency(self) -> Dependency:
        """Return the manifest dependency that installs this runtime."""
        return Dependency(name=self.engine.value, version=self.version)


class BundlerState(str, Enum):
    """Progress of the Bundler 1/2 negotiation within one run.

    Transitions only move forward; the two terminal states are
    SECONDARY_ACTIVE and PRIMARY_ACTIVE.
    """

    NONE = "no_package_manager"
    PRIMARY_INSTALLED = "primary_installed"
    SECONDARY_INSTALLED = "secondary_installed"
    SECONDARY_ACTIVE = "secondary_active"
    PRIMARY_ACTIVE = "primary_active"


_BUNDLER_TRANSITIONS: dict[BundlerState, frozenset[BundlerState]] = {
    BundlerState.NONE: frozenset({BundlerState.PRIMARY_INSTALLED}),
    BundlerState.PRIMARY_INSTALLED: frozenset(
        {BundlerState.SECONDARY_INSTALLED, BundlerState.PRIMARY_ACTIVE}
    ),
    BundlerState.SECONDARY_INSTALLED: frozenset(
        {BundlerState.SECONDARY_ACTIVE, BundlerState.PRIMARY_ACTIVE}
    ),
    BundlerState.SECONDARY_ACTIVE: frozenset(),
    BundlerState.PRIMARY_ACTIVE: frozenset(),
}


@dataclass(frozen=True, slots=True)
class BundlerSelection:
    """Which Bundler versions are installed and which one is active.

    Attributes:
        state: Current negotiation state.
        primary_version: Installed Bundler 1.x version.
        secondary_version: Installed Bundler 2.x version, if attempted.
        active_version: Version linked into the executable path.
    """

    state: BundlerState = BundlerState.NONE
    primary_version: str | None = None
    secondary_version: str | None = None
    active_version: str | None = None

    def advance(self, state: BundlerState, **changes: str | None) -> Self:
        """Return a copy moved to ``state``.

        Args:
            state: The next state.
            **changes: Version fields to update alongside the state.

        Raises:
            ValueError: If ``state`` is not reachable from the current state.
        """
        if state not in _BUNDLER_TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid bundler transition {self.state.value} -> {state.value}"
            )
        return replace(self, state=state, **changes)


@dataclass(slots=True)
class CacheMetadata:
    """Small structured record persisted with the application cache.

    Mutable on purpose: steps fill in generate-once values (such as the
    Rails secret) before the cache is saved.

    Attributes:
        secret_key_base: Rails secret generated on first need.
        stack: Stack name the cached artifacts were built on.
    """

    secret_key_base: str = ""
    stack: str = ""

    def to_dict(self) -> dict[str, str]:
        """Serialize to a JSON-compatible dictionary."""
        return {"secret_key_base": self.secret_key_base, "stack": self.stack}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> CacheMetadata:
        """Build metadata from a parsed JSON sidecar, ignoring unknown keys."""
        return cls(
            secret_key_base=str(data.get("secret_key_base") or ""),
            stack=str(data.get("stack") or ""),
        )


@dataclass(frozen=True, slots=True)
class RunContext:
    """Facts about the application computed once at the start of a run.

    Attributes:
        build_dir: The application's staging directory.
        dep_dir: This buildpack's dependency area (deps_dir / deps_idx).
        deps_idx: Index of this buildpack in a multi-buildpack pipeline.
        gemfile: Path to the application's Gemfile.
        has_gemfile: Whether the Gemfile exists.
        has_gemfile_lock: Whether the Gemfile.lock exists.
        stack: Stack name (CF_STACK), empty when unknown.
    """

    build_dir: Path
    dep_dir: Path
    deps_idx: str
    gemfile: Path
    has_gemfile: bool
    has_gemfile_lock: bool
    stack: str = ""

    @property
    def gemfile_lock(self) -> Path:
        """Path to the lock file that accompanies the Gemfile."""
        return self.gemfile.with_name(f"{self.gemfile.name}.lock")


@dataclass(frozen=True, slots=True)
class SupplyState:
    """State threaded through the supplier's pipeline of steps.

    Each step receives the state produced by the previous one and returns
    a (possibly updated) copy.

    Attributes:
        context: Immutable facts about the application.
        bundler: Bundler negotiation result.
        runtime: Selected Ruby engine and version, once determined.
        checksum_before: Build dir fingerprint taken before supply.
        snapshot_before: Per-file digests taken before supply.
    """

    context: RunContext
    bundler: BundlerSelection = field(default_factory=BundlerSelection)
    runtime: RuntimeSelection | None = None
    checksum_before: str | None = None
    snapshot_before: dict[str, str] = field(default_factory=dict)

    def require_runtime(self) -> RuntimeSelection:
        """Return the runtime selection or fail if it is not yet determined."""
        if self.runtime is None:
            raise RuntimeError("Ruby runtime has not been determined yet")
        return self.runtime
