"""Core domain services for rubysupply."""

from __future__ import annotations

import os
import re
import shutil
import tempfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rubysupply.core.compatibility import BundlerNegotiator
from rubysupply.core.environment import EnvironmentMaterializer, EnvironmentOverlay
from rubysupply.core.exceptions import (
    CommandError,
    InstallError,
    SupplyStepError,
    UnsupportedEngineError,
)
from rubysupply.core.fingerprint import changed_files, compute_fingerprint, snapshot_tree
from rubysupply.core.models import (
    Dependency,
    RubyEngine,
    RunContext,
    RuntimeSelection,
    SupplyState,
)
from rubysupply.core.ports import NullBuildLogger
from rubysupply.core.versions import find_matching_version, version_satisfies


if TYPE_CHECKING:
    from rubysupply.config import SupplyConfig
    from rubysupply.core.ports import (
        BuildLogger,
        CachePort,
        CatalogPort,
        CommandPort,
        InstallerPort,
        StagerPort,
        TempDirPort,
        VersionsPort,
    )


StepFunc = Callable[[SupplyState], SupplyState]

_RUBY_SHEBANG = re.compile(rb"^#!/.*/ruby.*")
_PORTABLE_SHEBANG = b"#!/usr/bin/env ruby"

# Gems whose presence means the app compiles assets with Node.js.
NODE_GEMS = ("webpacker", "execjs")

FREETDS_PROFILE = """#!/bin/bash
export FREETDS_DIR="$( cd /home/vcap/deps/*/freetds && pwd )"
export SYBASE=$FREETDS_DIR

export LD_LIBRARY_PATH="${FREETDS_DIR}/lib:${LD_LIBRARY_PATH:-/usr/local/lib}"
export LD_RUN_PATH="${FREETDS_DIR}/lib:${LD_RUN_PATH:-/usr/local/lib}"
export LIBRARY_PATH="${FREETDS_DIR}/lib:${LIBRARY_PATH:-/usr/local/lib}"
"""

JRUBY_PROFILE = """
if ! [[ "${JAVA_OPTS}" == *-Xmx* ]]; then
  export JAVA_MEM=${JAVA_MEM:--Xmx${JVM_MAX_HEAP:-384}m}
fi
export JAVA_OPTS=${JAVA_OPTS:--Xss512k -XX:+UseCompressedOops -Dfile.encoding=UTF-8}
export JRUBY_OPTS=${JRUBY_OPTS:--Xcompile.invokedynamic=false}
"""

RUBY_PROFILE = """
export LANG=${{LANG:-en_US.UTF-8}}
export RAILS_ENV=${{RAILS_ENV:-production}}
export RACK_ENV=${{RACK_ENV:-production}}
export RAILS_SERVE_STATIC_FILES=${{RAILS_SERVE_STATIC_FILES:-enabled}}
export RAILS_LOG_TO_STDOUT=${{RAILS_LOG_TO_STDOUT:-enabled}}
export BUNDLE_GEMFILE=${{BUNDLE_GEMFILE:-$HOME/Gemfile}}

export GEM_HOME=${{GEM_HOME:-$DEPS_DIR/{idx}/gem_home}}
export GEM_PATH=${{GEM_PATH:-$DEPS_DIR/{idx}/vendor_bundle/{engine}/{abi}:$DEPS_DIR/{idx}/gem_home:$DEPS_DIR/{idx}/bundler}}
export BUNDLE_PATH=${{BUNDLE_PATH:-$DEPS_DIR/{idx}/vendor_bundle/{engine}/{abi}}}

## Change to current DEPS_DIR
bundle config PATH "$DEPS_DIR/{idx}/vendor_bundle" > /dev/null
bundle config WITHOUT "{without}" > /dev/null
"""

MISSING_RUBY_VERSION_WARNING = (
    "You have not declared a Ruby version in your Gemfile.\n"
    "Defaulting to {version}\n"
    "See http://docs.cloudfoundry.org/buildpacks/ruby/index.html#runtime "
    "for more information."
)

BUNDLE_CONFIG_WARNING = (
    "You have the `.bundle/config` file checked into your repository\n"
    "It contains local state like the location of the installed bundle\n"
    "as well as configured git local gems, and other settings that should\n"
    "not be shared between multiple checkouts of a single repo. Please\n"
    "remove the `.bundle/` folder from your repo and add it to your "
    "`.gitignore` file."
)

WINDOWS_LOCK_WARNING = (
    "Removing `Gemfile.lock` because it was generated on Windows.\n"
    "Bundler will do a full resolve so native gems are handled properly.\n"
    "This may result in unexpected gem versions being used in your app.\n"
    "If you are using multi buildpacks, subsequent buildpacks may fail.\n"
    "In rare occasions Bundler may not be able to resolve your dependencies "
    "at all.\n"
    "https://docs.cloudfoundry.org/buildpacks/ruby/windows.html"
)


@dataclass(frozen=True, slots=True)
class SupplyStep:
    """One named stage of the supply pipeline.

    Attributes:
        name: Identifier reported in SupplyStepError.step.
        failure_message: Prefix logged when the step fails.
        func: The step itself.
    """

    name: str
    failure_message: str
    func: StepFunc


class Supplier:
    """Orchestrates the supply phase as an ordered pipeline of steps.

    Steps run strictly in order and each one receives the SupplyState the
    previous one returned. The first failure is logged, wrapped in
    SupplyStepError and re-raised; later steps never run and nothing that
    already happened is rolled back.
    """

    def __init__(
        self,
        stager: StagerPort,
        catalog: CatalogPort,
        installer: InstallerPort,
        versions: VersionsPort,
        cache: CachePort,
        command: CommandPort,
        tempdir: TempDirPort,
        env: EnvironmentOverlay | None = None,
        log: BuildLogger | None = None,
        stack: str = "",
    ) -> None:
        self._stager = stager
        self._catalog = catalog
        self._installer = installer
        self._versions = versions
        self._cache = cache
        self._command = command
        self._tempdir = tempdir
        self._env = env if env is not None else EnvironmentOverlay()
        self._log: BuildLogger = log if log is not None else NullBuildLogger()
        self._stack = stack
        self._materializer = EnvironmentMaterializer(self._env, stager)
        self._negotiator = BundlerNegotiator(
            catalog, installer, stager, versions, self._log
        )
        self._needs_node: bool | None = None

    @classmethod
    def from_config(
        cls,
        config: SupplyConfig,
        log: BuildLogger | None = None,
        environ: Mapping[str, str] | None = None,
        s3_client: Any | None = None,
    ) -> Supplier:
        """Create a Supplier wired to the default adapters.

        Args:
            config: Validated run configuration.
            log: Build logger shared by every adapter.
            environ: Base environment; the process environment if None.
            s3_client: Optional boto3 S3 client for s3:// archives.

        Returns:
            Supplier using the manifest catalog, RouterStorage, FileCache,
            Stager, GemfileVersions and subprocess commands.
        """
        from rubysupply.adapters.cache import FileCache
        from rubysupply.adapters.catalog import ManifestCatalog
        from rubysupply.adapters.command import LinkTempDir, SubprocessCommand
        from rubysupply.adapters.gemfile import GemfileVersions
        from rubysupply.adapters.installer import ManifestInstaller
        from rubysupply.adapters.stager import Stager
        from rubysupply.adapters.storage import create_router

        log = log if log is not None else NullBuildLogger()
        catalog = ManifestCatalog.from_file(config.manifest, stack=config.stack)
        stager = Stager(config.build_dir, config.deps_dir, config.deps_idx)
        return cls(
            stager=stager,
            catalog=catalog,
            installer=ManifestInstaller(catalog, create_router(s3_client=s3_client), log),
            versions=GemfileVersions(config.build_dir, catalog, config.gemfile_name),
            cache=FileCache(config.cache_dir, stager.dep_dir, stack=config.stack, log=log),
            command=SubprocessCommand(log),
            tempdir=LinkTempDir(),
            env=EnvironmentOverlay(os.environ if environ is None else environ),
            log=log,
            stack=config.stack,
        )

    @property
    def env(self) -> EnvironmentOverlay:
        """The environment overlay threaded through every step."""
        return self._env

    @property
    def dep_dir(self) -> Path:
        """This buildpack's dependency area."""
        return self._stager.dep_dir

    def steps(self) -> list[SupplyStep]:
        """Return the pipeline in execution order."""
        return [
            SupplyStep("supply_freetds", "Unable to supply FreeTDS", self.supply_freetds),
            SupplyStep(
                "checksum_before", "Unable to compute checksum", self.checksum_before
            ),
            SupplyStep(
                "prepare_environment",
                "Unable to setup environment variables",
                self.prepare_environment,
            ),
            SupplyStep("restore_cache", "Unable to restore cache", self.restore_cache),
            SupplyStep("install_bundler", "Unable to install bundler", self.install_bundler),
            SupplyStep(
                "create_default_env",
                "Unable to setup default environment",
                self.create_default_env,
            ),
            SupplyStep(
                "enable_ld_library_path",
                "Unable to enable ld_library_path env",
                self.enable_ld_library_path,
            ),
            SupplyStep("determine_ruby", "Unable to determine ruby", self.determine_ruby),
            SupplyStep("install_jvm", "Unable to install JVM", self.install_jvm),
            SupplyStep("install_ruby", "Unable to install ruby", self.install_ruby),
            SupplyStep(
                "post_ruby_install_env",
                "Unable to add bundler and gem path to default environment",
                self.post_ruby_install_env,
            ),
            SupplyStep("update_rubygems", "Unable to update rubygems", self.update_rubygems),
            SupplyStep("install_node", "Unable to install node", self.install_node),
            SupplyStep("install_yarn", "Unable to install yarn", self.install_yarn),
            SupplyStep("install_gems", "Unable to install gems", self.install_gems),
            SupplyStep(
                "rewrite_shebangs", "Unable to rewrite shebangs", self.rewrite_shebangs
            ),
            SupplyStep(
                "symlink_bundler_into_rubygems",
                "Unable to symlink bundler into rubygems",
                self.symlink_bundler_into_rubygems,
            ),
            SupplyStep("write_profile_d", "Unable to write profile.d", self.write_profile_d),
            SupplyStep("save_cache", "Unable to save cache", self.save_cache),
            SupplyStep(
                "set_staging_environment",
                "Unable to setup environment variables",
                self.set_staging_environment,
            ),
            SupplyStep("checksum_after", "Unable to compute checksum", self.checksum_after),
        ]

    def run(self) -> SupplyState:
        """Run every step in order.

        Returns:
            The final SupplyState.

        Raises:
            SupplyStepError: Wrapping the first failure, with ``step`` naming
                the stage that failed.
        """
        try:
            context = self.detect_context()
        except Exception as e:
            self._log.error(f"Error during setup: {e}")
            raise SupplyStepError("setup", "Error during setup", e) from e

        state = SupplyState(context=context)
        for step in self.steps():
            try:
                state = step.func(state)
            except Exception as e:
                self._log.error(f"{step.failure_message}: {e}")
                raise SupplyStepError(step.name, step.failure_message, e) from e
        return state

    def detect_context(self) -> RunContext:
        """Check for the Gemfile and its lock once, up front."""
        gemfile = self._versions.gemfile()
        return RunContext(
            build_dir=self._stager.build_dir,
            dep_dir=self._stager.dep_dir,
            deps_idx=self._stager.deps_idx,
            gemfile=gemfile,
            has_gemfile=gemfile.is_file(),
            has_gemfile_lock=gemfile.with_name(f"{gemfile.name}.lock").is_file(),
            stack=self._stack,
        )

    def supply_freetds(self, state: SupplyState) -> SupplyState:
        """Install FreeTDS when the manifest ships it."""
        if not self._catalog.all_versions("freetds"):
            self._log.debug("Skipping FreeTDS, not listed in the manifest")
            return state

        self._log.begin_step("Supplying FreeTDS")
        freetds = self._catalog.default_version("freetds")
        self._installer.install(freetds, self.dep_dir / "freetds")
        self._materializer.write_fragment("finalize_freetds.sh", FREETDS_PROFILE)
        return state

    def checksum_before(self, state: SupplyState) -> SupplyState:
        """Record the build dir fingerprint before anything changes."""
        self._log.begin_step("Supplying Ruby")
        build_dir = state.context.build_dir
        try:
            checksum = compute_fingerprint(build_dir)
            snapshot = snapshot_tree(build_dir)
        except OSError as e:
            self._log.debug(f"Unable to checksum BuildDir: {e}")
            return state
        self._log.debug(f"BuildDir Checksum Before Supply: {checksum}")
        return replace(state, checksum_before=checksum, snapshot_before=snapshot)

    def prepare_environment(self, state: SupplyState) -> SupplyState:
        """Put the deps directories on PATH before any tool runs.

        ``dep_dir/bin`` is created first so executables linked there later
        in the run are found by the commands that follow.
        """
        (self.dep_dir / "bin").mkdir(parents=True, exist_ok=True)
        self._stager.set_staging_environment(self._env)
        return state

    def restore_cache(self, state: SupplyState) -> SupplyState:
        """Restore artifacts from the previous deployment, if any."""
        self._cache.restore()
        return state

    def install_bundler(self, state: SupplyState) -> SupplyState:
        """Install Bundler and settle on the active major version."""
        selection = self._negotiator.negotiate(state.context)
        return replace(state, bundler=selection)

    def create_default_env(self, state: SupplyState) -> SupplyState:
        """Apply environment defaults without clobbering user settings."""
        dep_dir = self.dep_dir
        defaults = {
            "RAILS_ENV": "production",
            "RACK_ENV": "production",
            "RAILS_GROUPS": "assets",
            "BUNDLE_WITHOUT": "development:test",
            "BUNDLE_GEMFILE": "Gemfile",
            "BUNDLE_BIN": str(dep_dir / "binstubs"),
            "BUNDLE_CONFIG": str(dep_dir / "bundle_config"),
            "GEM_HOME": str(dep_dir / "gem_home"),
            "GEM_PATH": os.pathsep.join(
                [str(dep_dir / "bundler"), str(dep_dir / "gem_home")]
            ),
        }
        self._materializer.apply(defaults, overwrite=False)
        return state

    def enable_ld_library_path(self, state: SupplyState) -> SupplyState:
        """Prepend the app's ``ld_library_path`` directory when it has one."""
        lib_dir = state.context.build_dir / "ld_library_path"
        if not lib_dir.exists():
            return state

        value = str(lib_dir)
        existing = self._env.get("LD_LIBRARY_PATH", "")
        if existing:
            value = f"{value}:{existing}"
        self._materializer.apply({"LD_LIBRARY_PATH": value}, overwrite=True)

        script = (
            'export LD_LIBRARY_PATH="$HOME/ld_library_path'
            '$([[ ! -z "${LD_LIBRARY_PATH:-}" ]] && echo ":$LD_LIBRARY_PATH")"'
        )
        self._materializer.write_fragment("app_lib_path.sh", script)
        return state

    def determine_ruby(self, state: SupplyState) -> SupplyState:
        """Pick the Ruby engine and version for this run.

        Without a Gemfile the manifest default is used. With one, the
        Gemfile's engine decides; an MRI app without a declared version gets
        the default plus a warning.

        Raises:
            UnsupportedEngineError: If the engine is neither ruby nor jruby.
            ResolutionError: If the declared version is not in the manifest.
        """
        if not state.context.has_gemfile:
            default = self._catalog.default_version("ruby")
            runtime = RuntimeSelection(RubyEngine.RUBY, default.version)
            return replace(state, runtime=runtime)

        engine_name = self._versions.engine()
        try:
            engine = RubyEngine(engine_name)
        except ValueError:
            raise UnsupportedEngineError(engine_name) from None

        if engine is RubyEngine.JRUBY:
            version = self._versions.jruby_version()
        else:
            version = self._versions.version()
            if not version:
                version = self._catalog.default_version("ruby").version
                self._log.warning(MISSING_RUBY_VERSION_WARNING.format(version=version))

        return replace(state, runtime=RuntimeSelection(engine, version))

    def install_jvm(self, state: SupplyState) -> SupplyState:
        """Install a JVM for JRuby apps that do not bring their own."""
        if state.require_runtime().engine is not RubyEngine.JRUBY:
            return state

        if (state.context.build_dir / ".jdk").exists():
            self._log.info("Using pre-installed JDK")
            return state

        jvm_dir = self.dep_dir / "jvm"
        self._installer.install_only_version("openjdk1.8-latest", jvm_dir)
        self._stager.link_directory_in_dep_dir(jvm_dir / "bin", "bin")
        self._materializer.write_fragment("jruby.sh", JRUBY_PROFILE)
        return state

    def install_ruby(self, state: SupplyState) -> SupplyState:
        """Install the selected runtime and expose its executables."""
        runtime = state.require_runtime()
        ruby_dir = self.dep_dir / "ruby"
        self._installer.install(runtime.as_dependency(), ruby_dir)

        self.rewrite_installed_shebangs()

        ruby_exe = ruby_dir / "bin" / "ruby.exe"
        if not os.path.lexists(ruby_exe):
            ruby_exe.symlink_to("ruby")

        self._stager.link_directory_in_dep_dir(ruby_dir / "bin", "bin")
        return state

    def post_ruby_install_env(self, state: SupplyState) -> SupplyState:
        """Point BUNDLE_PATH and GEM_PATH at the engine-specific bundle."""
        runtime = state.require_runtime()
        dep_dir = self.dep_dir
        bundle_path = dep_dir / "vendor_bundle" / runtime.engine.value / runtime.abi_version
        defaults = {
            "BUNDLE_PATH": str(bundle_path),
            "GEM_PATH": os.pathsep.join(
                [
                    str(dep_dir / "bundler"),
                    str(bundle_path),
                    str(dep_dir / "gem_home"),
                ]
            ),
        }
        self._log.debug(f"Setting post ruby install env: {defaults}")
        self._materializer.apply(defaults, overwrite=True)
        return state

    def update_rubygems(self, state: SupplyState) -> SupplyState:
        """Upgrade RubyGems when the manifest ships a newer one.

        Raises:
            InstallError: If the manifest lists more than one rubygems.
            CommandError: If ``gem`` or ``ruby setup.rb`` fails.
        """
        versions = self._catalog.all_versions("rubygems")
        if not versions:
            return state
        if len(versions) > 1:
            raise InstallError("Too many versions of rubygems in manifest", name="rubygems")
        dep = Dependency("rubygems", versions[0])

        current = self._command.output("/", "gem", "--version", env=self._env.as_dict())
        current = current.strip()
        if version_satisfies(current, f">= {dep.version}"):
            return state

        if state.require_runtime().engine is RubyEngine.JRUBY:
            self._log.debug("Skipping update of rubygems since jruby")
            return state

        self._log.begin_step(f"Update rubygems from {current} to {dep.version}")
        temp_dir = Path(tempfile.mkdtemp(prefix="rubygems"))
        try:
            self._installer.install(dep, temp_dir)
            (self.dep_dir / "gem_home").mkdir(parents=True, exist_ok=True)
            setup_dir = temp_dir / f"rubygems-{dep.version}"
            try:
                self._command.output(setup_dir, "ruby", "setup.rb", env=self._env.as_dict())
            except CommandError as e:
                self._log.error(e.output)
                raise
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
        return state

    def needs_node(self) -> bool:
        """Decide once per run whether Node.js must be supplied.

        Node is needed when it is not already available and the app bundles
        a gem that shells out to a JavaScript runtime.
        """
        if self._needs_node is not None:
            return self._needs_node
        self._needs_node = False

        if self._node_supplied():
            self._log.begin_step("Skipping install of nodejs since it has been supplied")
            return self._needs_node

        for name in NODE_GEMS:
            self._log.debug(f"Test {name} in gemfile")
            if self._versions.has_gem_version(name, ">=0.0.0"):
                self._log.debug(f"Found {name} in gemfile")
                self._needs_node = True
                break
        return self._needs_node

    def _node_supplied(self) -> bool:
        if (self.dep_dir / "node" / "bin" / "node").exists():
            return True
        try:
            self._command.output(
                self._stager.build_dir, "node", "--version", env=self._env.as_dict()
            )
        except CommandError:
            return False
        return True

    def install_node(self, state: SupplyState) -> SupplyState:
        """Install the newest Node.js from the manifest when needed."""
        if not self.needs_node():
            return state

        version = find_matching_version("x", self._catalog.all_versions("node"), name="node")
        node_dir = self.dep_dir / "node"
        temp_dir = Path(tempfile.mkdtemp(prefix="node"))
        try:
            self._installer.install(Dependency("node", version), temp_dir)
            shutil.move(str(temp_dir / f"node-v{version}-linux-x64"), str(node_dir))
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        self._stager.link_directory_in_dep_dir(node_dir / "bin", "bin")
        return state

    def install_yarn(self, state: SupplyState) -> SupplyState:
        """Install Yarn for Node apps that carry a yarn.lock."""
        if not self.needs_node():
            return state
        if not (state.context.build_dir / "yarn.lock").exists():
            return state

        yarn_dir = self.dep_dir / "yarn"
        temp_dir = Path(tempfile.mkdtemp(prefix="yarn"))
        try:
            self._installer.install_only_version("yarn", temp_dir)
            dists = sorted(temp_dir.glob("yarn-v*"))
            if len(dists) != 1:
                raise InstallError("Unable to find yarn distribution dir", name="yarn")
            shutil.move(str(dists[0]), str(yarn_dir))
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        self._stager.link_directory_in_dep_dir(yarn_dir / "bin", "bin")
        return state

    def install_gems(self, state: SupplyState) -> SupplyState:
        """Run ``bundle install`` against a scratch copy of the build dir.

        The scratch copy is always removed, whether or not the install
        succeeds, so the build dir itself is never touched by Bundler.
        """
        context = state.context
        if not context.has_gemfile:
            return state

        self._warn_bundle_config(context)
        self._warn_windows_gemfile(context)

        scratch = self._tempdir.copy_dir_to_temp(context.build_dir)
        try:
            self._bundle_install(state, scratch)
        finally:
            shutil.rmtree(scratch.parent, ignore_errors=True)
        return state

    def _bundle_install(self, state: SupplyState, app_dir: Path) -> None:
        context = state.context
        dep_dir = self.dep_dir
        relative_gemfile = context.gemfile.relative_to(context.build_dir)
        gemfile_lock = app_dir / relative_gemfile.with_name(f"{relative_gemfile.name}.lock")

        if self._versions.has_windows_gemfile_lock():
            self._log.debug(f"Remove {gemfile_lock}")
            self._log.warning(WINDOWS_LOCK_WARNING)
            gemfile_lock.unlink()

        # Replace the hard-linked copy so Bundler never writes into the app.
        local_config = app_dir / ".bundle" / "config"
        if local_config.exists():
            local_config.unlink()
            shutil.copyfile(context.build_dir / ".bundle" / "config", local_config)

        args = [
            "install",
            "--without",
            self._env.get("BUNDLE_WITHOUT", ""),
            "--jobs=4",
            "--retry=4",
            "--path",
            str(dep_dir / "vendor_bundle"),
            "--binstubs",
            str(dep_dir / "binstubs"),
        ]
        if gemfile_lock.exists():
            args.append("--deployment")

        self._log.begin_step(
            f"Installing dependencies using bundler {state.bundler.active_version}"
        )
        self._log.info(f"Running: bundle {' '.join(args)}")

        env = self._env.with_overrides(
            NOKOGIRI_USE_SYSTEM_LIBRARIES="true",
            FREETDS_DIR=str(dep_dir / "freetds"),
        )
        self._command.run(["bundle", *args], cwd=app_dir, env=env)
        self._regenerate_bundler_binstub(app_dir, env)

        self._log.info("Cleaning up the bundler cache.")
        self._command.run(["bundle", "clean"], cwd=app_dir, env=env)

        self._copy_binstubs()
        self._save_bundle_config(local_config)
        self._save_gemfile_lock(gemfile_lock)

    def _regenerate_bundler_binstub(self, app_dir: Path, env: dict[str, str]) -> None:
        self._log.begin_step("Regenerating bundler binstubs...")
        binstubs = self.dep_dir / "binstubs"
        self._command.run(
            ["bundle", "binstubs", "bundler", "--force", "--path", str(binstubs)],
            cwd=app_dir,
            env=env,
        )
        bin_dir = self.dep_dir / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(binstubs / "bundle", bin_dir / "bundle")

    def _copy_binstubs(self) -> None:
        binstubs = self.dep_dir / "binstubs"
        if not binstubs.is_dir():
            return
        bin_dir = self.dep_dir / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        for source in sorted(binstubs.iterdir()):
            target = bin_dir / source.name
            if not os.path.lexists(target):
                shutil.copy2(source, target)

    def _save_bundle_config(self, local_config: Path) -> None:
        global_config = self._env.get("BUNDLE_CONFIG", "")
        if not global_config or not local_config.exists():
            return
        self._log.debug(f"SaveBundleConfig; {local_config} -> {global_config}")
        Path(global_config).parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(local_config), global_config)

    def _save_gemfile_lock(self, gemfile_lock: Path) -> None:
        target = self.dep_dir / "Gemfile.lock"
        if gemfile_lock.exists():
            self._log.debug(f"SaveGemfileLock; {gemfile_lock} -> {target}")
            shutil.copy2(gemfile_lock, target)

    def _warn_bundle_config(self, context: RunContext) -> None:
        if (context.build_dir / ".bundle" / "config").exists():
            self._log.warning(BUNDLE_CONFIG_WARNING)

    def _warn_windows_gemfile(self, context: RunContext) -> None:
        try:
            body = context.gemfile.read_bytes()
        except OSError:
            return
        if b"\r\n" in body:
            self._log.warning(
                "Windows line endings detected in Gemfile. Your app may fail to "
                "stage. Please use UNIX line endings."
            )

    def rewrite_shebangs(self, state: SupplyState) -> SupplyState:
        """Rewrite shebangs of executables gems installed."""
        self.rewrite_installed_shebangs()
        return state

    def rewrite_installed_shebangs(self) -> list[Path]:
        """Make installed Ruby scripts start with ``#!/usr/bin/env ruby``.

        Returns:
            The files that were rewritten.
        """
        dep_dir = self.dep_dir
        candidates = sorted(dep_dir.glob("bin/*")) + sorted(
            dep_dir.glob("vendor_bundle/ruby/*/bin/*")
        )
        rewritten: list[Path] = []
        for path in candidates:
            if path.is_dir():
                continue
            contents = path.read_bytes()
            updated = _RUBY_SHEBANG.sub(_PORTABLE_SHEBANG, contents, count=1)
            if updated != contents:
                path.write_bytes(updated)
                path.chmod(0o755)
                rewritten.append(path)
        return rewritten

    def symlink_bundler_into_rubygems(self, state: SupplyState) -> SupplyState:
        """Make the active Bundler visible to Ruby's own RubyGems."""
        self._log.debug("SymlinkBundlerIntoRubygems")
        runtime = state.require_runtime()
        version = state.bundler.active_version
        if version is None:
            return state

        dest_dir = self.dep_dir / "ruby" / "lib" / "ruby" / "gems" / runtime.abi_version / "gems"
        dest_dir.mkdir(parents=True, exist_ok=True)
        source = self.dep_dir / "bundler" / "gems" / f"bundler-{version}"
        dest = dest_dir / f"bundler-{version}"
        if os.path.lexists(dest):
            self._log.debug("Skipping linking bundler since destination exists")
            return state

        dest.symlink_to(os.path.relpath(source, dest_dir))
        return state

    def write_profile_d(self, state: SupplyState) -> SupplyState:
        """Write ruby.sh, generating SECRET_KEY_BASE once for Rails >= 4.1."""
        self._log.begin_step("Creating runtime environment")
        runtime = state.require_runtime()
        context = state.context
        script = RUBY_PROFILE.format(
            idx=context.deps_idx,
            engine=runtime.engine.value,
            abi=runtime.abi_version,
            without=self._env.get("BUNDLE_WITHOUT", ""),
        )

        if context.has_gemfile and context.has_gemfile_lock:
            if self._versions.has_gem_version("rails", ">=4.1.0.beta1"):
                secret = self._secret_key_base(context)
                script += f"\nexport SECRET_KEY_BASE=${{SECRET_KEY_BASE:-{secret}}}\n"

        self._materializer.write_fragment("ruby.sh", script)
        return state

    def _secret_key_base(self, context: RunContext) -> str:
        metadata = self._cache.metadata
        if not metadata.secret_key_base:
            output = self._command.output(
                context.build_dir,
                "bundle",
                "exec",
                "rake",
                "secret",
                env=self._env.as_dict(),
            )
            metadata.secret_key_base = output.strip()
        return metadata.secret_key_base

    def save_cache(self, state: SupplyState) -> SupplyState:
        """Persist artifacts and metadata for the next deployment."""
        self._cache.save()
        return state

    def set_staging_environment(self, state: SupplyState) -> SupplyState:
        """Refresh PATH and friends now that everything is installed."""
        self._stager.set_staging_environment(self._env)
        return state

    def checksum_after(self, state: SupplyState) -> SupplyState:
        """Log the final fingerprint and which files supply changed."""
        build_dir = state.context.build_dir
        try:
            checksum = compute_fingerprint(build_dir)
            snapshot = snapshot_tree(build_dir)
        except OSError as e:
            self._log.debug(f"Unable to checksum BuildDir: {e}")
            return state
        self._log.debug(f"BuildDir Checksum After Supply: {checksum}")
        changed = changed_files(state.snapshot_before, snapshot)
        if state.checksum_before is not None and changed:
            self._log.debug("Below files changed:")
            self._log.debug("\n".join(changed))
        return state
