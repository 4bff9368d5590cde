"""Pytest configuration and shared fixtures.

This module registers custom markers for CI job separation and provides
fake ports shared by the test suite.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from rubysupply.core.exceptions import CommandError, InstallError
from rubysupply.core.models import CacheMetadata, Dependency
from rubysupply.core.versions import find_matching_version, version_satisfies


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "core: Core models, ports, and services")
    config.addinivalue_line("markers", "storage: Storage adapters (http, s3, filesystem)")
    config.addinivalue_line("markers", "cache: File cache adapter")
    config.addinivalue_line("markers", "adapters: Catalog, installer, gemfile and stager adapters")
    config.addinivalue_line("markers", "cli: CLI tests")
    config.addinivalue_line(
        "markers", "tra: Test Responsibility Anchor (TRA) - namespace.Anchor format"
    )
    config.addinivalue_line(
        "markers",
        "tier: Test tier for CI job separation (0=instant, 1=fast, 2=standard, 3=slow, 4=manual)",
    )


DEFAULT_MANIFEST_VERSIONS = {
    "ruby": ["2.5.5", "2.6.3", "2.6.5"],
    "jruby": ["9.2.7.0-ruby-2.5"],
    "bundler": ["1.17.3", "2.0.1"],
    "node": ["10.16.0", "12.4.0"],
    "yarn": ["1.16.0"],
    "rubygems": ["3.0.3"],
    "openjdk1.8-latest": ["1.8.0"],
    "freetds": ["1.1.6"],
}

DEFAULT_MANIFEST_DEFAULTS = {"ruby": "2.6.x", "freetds": "1.1.6"}


class FakeCatalog:
    """CatalogPort over in-memory version lists."""

    def __init__(
        self,
        versions: Mapping[str, Sequence[str]] | None = None,
        defaults: Mapping[str, str] | None = None,
    ) -> None:
        source = DEFAULT_MANIFEST_VERSIONS if versions is None else versions
        self.versions = {name: list(v) for name, v in source.items()}
        self.defaults = dict(DEFAULT_MANIFEST_DEFAULTS if defaults is None else defaults)

    def all_versions(self, name: str) -> list[str]:
        return list(self.versions.get(name, []))

    def default_version(self, name: str) -> Dependency:
        version = find_matching_version(
            self.defaults[name], self.all_versions(name), name=name
        )
        return Dependency(name, version)


def _write(path: Path, contents: str, mode: int = 0o755) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents)
    path.chmod(mode)


class FakeInstaller:
    """InstallerPort that lays out a plausible tree for each dependency."""

    def __init__(self, catalog: FakeCatalog) -> None:
        self.catalog = catalog
        self.installed: list[tuple[str, str, Path]] = []
        self.fail_on: set[str] = set()

    def install(self, dependency: Dependency, target_dir: Path) -> None:
        if dependency.name in self.fail_on:
            raise InstallError(
                f"could not install {dependency.name}",
                name=dependency.name,
                version=dependency.version,
            )
        self.installed.append((dependency.name, dependency.version, target_dir))
        target_dir.mkdir(parents=True, exist_ok=True)
        name, version = dependency.name, dependency.version
        if name == "bundler":
            _write(target_dir / "bin" / "bundle", "#!/usr/bin/env ruby\n")
            _write(target_dir / "gems" / f"bundler-{version}" / "lib" / "bundler.rb", "")
            _write(target_dir / "specifications" / f"bundler-{version}.gemspec", "")
        elif name in ("ruby", "jruby"):
            _write(target_dir / "bin" / "ruby", "ELF")
            _write(target_dir / "bin" / "irb", f"#!{target_dir}/bin/ruby\nputs 'irb'\n")
        elif name == "node":
            _write(target_dir / f"node-v{version}-linux-x64" / "bin" / "node", "ELF")
        elif name == "yarn":
            _write(target_dir / f"yarn-v{version}" / "bin" / "yarn", "#!/bin/sh\n")
        elif name == "rubygems":
            _write(target_dir / f"rubygems-{version}" / "setup.rb", "")
        elif name == "openjdk1.8-latest":
            _write(target_dir / "bin" / "java", "ELF")
        elif name == "freetds":
            _write(target_dir / "lib" / "libsybdb.so", "ELF")

    def install_only_version(self, name: str, target_dir: Path) -> None:
        versions = self.catalog.all_versions(name)
        if len(versions) != 1:
            raise InstallError(f"expected one version of {name}", name=name)
        self.install(Dependency(name, versions[0]), target_dir)

    def names(self) -> list[str]:
        return [name for name, _, _ in self.installed]


class FakeVersions:
    """VersionsPort with canned answers and call counting."""

    def __init__(self, build_dir: Path) -> None:
        self.build_dir = build_dir
        self.engine_name = "ruby"
        self.ruby_version = ""
        self.jruby = "9.2.7.0-ruby-2.5"
        self.gems: dict[str, str] = {}
        self.compatible = True
        self.compatibility_error: Exception | None = None
        self.windows_lock = False
        self.gem_queries: Counter[str] = Counter()

    def gemfile(self) -> Path:
        return self.build_dir / "Gemfile"

    def engine(self) -> str:
        return self.engine_name

    def version(self) -> str:
        return self.ruby_version

    def jruby_version(self) -> str:
        return self.jruby

    def has_gem_version(self, gem: str, *constraints: str) -> bool:
        self.gem_queries[gem] += 1
        if gem not in self.gems:
            return False
        return version_satisfies(self.gems[gem], *constraints)

    def check_bundler2_compatibility(self) -> bool:
        if self.compatibility_error is not None:
            raise self.compatibility_error
        return self.compatible

    def has_windows_gemfile_lock(self) -> bool:
        return self.windows_lock


class FakeCache:
    """CachePort that counts calls."""

    def __init__(self) -> None:
        self.metadata_record = CacheMetadata()
        self.restored = 0
        self.saved = 0

    @property
    def metadata(self) -> CacheMetadata:
        return self.metadata_record

    def restore(self) -> None:
        self.restored += 1

    def save(self) -> None:
        self.saved += 1


class FakeCommand:
    """CommandPort simulating ruby tooling.

    ``bundle install`` drops an executable with an absolute ruby shebang into
    the vendor bundle and a binstub; ``bundle binstubs`` writes the bundler
    binstub. Node is not on the PATH unless ``node_on_path`` is set.
    """

    def __init__(self) -> None:
        self.outputs: list[tuple[str, ...]] = []
        self.runs: list[list[str]] = []
        self.run_envs: list[dict[str, str]] = []
        self.run_cwds: list[Path] = []
        self.gem_version = "3.0.3"
        self.secret = "s3cr3t"
        self.node_on_path = False
        self.fail_on_run: str | None = None

    def output(
        self,
        cwd: Path | str,
        *args: str,
        env: Mapping[str, str] | None = None,
    ) -> str:
        self.outputs.append(args)
        if args[:2] == ("gem", "--version"):
            return f"{self.gem_version}\n"
        if args[:2] == ("node", "--version"):
            if self.node_on_path:
                return "v12.4.0\n"
            raise CommandError(args, cause=FileNotFoundError("node"))
        if args == ("bundle", "exec", "rake", "secret"):
            return f"{self.secret}\n"
        return ""

    def run(
        self,
        args: Sequence[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> None:
        args = list(args)
        self.runs.append(args)
        self.run_envs.append(dict(env or {}))
        self.run_cwds.append(cwd)
        if self.fail_on_run and " ".join(args).startswith(self.fail_on_run):
            raise CommandError(args, returncode=1, output="boom")
        if args[:2] == ["bundle", "install"]:
            vendor = Path(args[args.index("--path") + 1])
            binstubs = Path(args[args.index("--binstubs") + 1])
            _write(
                vendor / "ruby" / "2.6.0" / "bin" / "rake",
                "#!/tmp/build/ruby/bin/ruby\nload 'rake'\n",
            )
            _write(binstubs / "rake", "#!/usr/bin/env ruby\n")
        elif args[:3] == ["bundle", "binstubs", "bundler"]:
            binstubs = Path(args[args.index("--path") + 1])
            _write(binstubs / "bundle", "#!/usr/bin/env ruby\n# regenerated\n")

    def ran(self, prefix: str) -> bool:
        return any(" ".join(args).startswith(prefix) for args in self.runs)


class RecordingLogger:
    """BuildLogger that records every message by level."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    def begin_step(self, message: str) -> None:
        self.records.append(("step", message))

    def info(self, message: str) -> None:
        self.records.append(("info", message))

    def warning(self, message: str) -> None:
        self.records.append(("warning", message))

    def error(self, message: str) -> None:
        self.records.append(("error", message))

    def debug(self, message: str) -> None:
        self.records.append(("debug", message))

    def messages(self, level: str) -> list[str]:
        return [message for lvl, message in self.records if lvl == level]


@dataclass
class SupplyHarness:
    """Directories plus fakes for driving a Supplier end to end."""

    build_dir: Path
    cache_dir: Path
    deps_dir: Path
    scratch_base: Path
    catalog: FakeCatalog
    installer: FakeInstaller
    versions: FakeVersions
    cache: FakeCache
    command: FakeCommand
    log: RecordingLogger
    env: dict[str, str] = field(default_factory=dict)
    deps_idx: str = "0"

    @property
    def dep_dir(self) -> Path:
        return self.deps_dir / self.deps_idx

    def write_gemfile(self, lock: bool = False) -> None:
        (self.build_dir / "Gemfile").write_text("source 'https://rubygems.org'\n")
        if lock:
            (self.build_dir / "Gemfile.lock").write_text("GEM\n  specs:\n")

    def supplier(self):
        from rubysupply.adapters.command import LinkTempDir
        from rubysupply.adapters.stager import Stager
        from rubysupply.core.environment import EnvironmentOverlay
        from rubysupply.core.services import Supplier

        return Supplier(
            stager=Stager(self.build_dir, self.deps_dir, self.deps_idx),
            catalog=self.catalog,
            installer=self.installer,
            versions=self.versions,
            cache=self.cache,
            command=self.command,
            tempdir=LinkTempDir(self.scratch_base),
            env=EnvironmentOverlay(self.env),
            log=self.log,
            stack="cflinuxfs3",
        )


@pytest.fixture
def recording_logger() -> RecordingLogger:
    """Logger that records messages for assertions."""
    return RecordingLogger()


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    """Catalog with a realistic set of manifest versions."""
    return FakeCatalog()


@pytest.fixture
def harness(tmp_path: Path) -> SupplyHarness:
    """A build dir, cache dir and deps dir wired to fake ports."""
    build_dir = tmp_path / "build"
    cache_dir = tmp_path / "cache"
    deps_dir = tmp_path / "deps"
    scratch_base = tmp_path / "scratch"
    for directory in (build_dir, cache_dir, deps_dir / "0", scratch_base):
        directory.mkdir(parents=True)
    (build_dir / "app.rb").write_text("puts 'hello'\n")

    catalog = FakeCatalog()
    return SupplyHarness(
        build_dir=build_dir,
        cache_dir=cache_dir,
        deps_dir=deps_dir,
        scratch_base=scratch_base,
        catalog=catalog,
        installer=FakeInstaller(catalog),
        versions=FakeVersions(build_dir),
        cache=FakeCache(),
        command=FakeCommand(),
        log=RecordingLogger(),
        env={"PATH": "/usr/bin:/bin"},
    )
