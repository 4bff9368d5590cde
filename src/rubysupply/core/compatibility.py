"""Bundler 1/2 negotiation.

Bundler 1.x is always installed. Apps with a Gemfile additionally get
Bundler 2.x installed side by side inside the Bundler 1 gem tree; if the
app turns out to be incompatible with Bundler 2, its files are removed
again and Bundler 1 stays active.
"""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

from rubysupply.core.exceptions import (
    CompatibilityCheckError,
    InstallError,
    RubySupplyError,
)
from rubysupply.core.models import BundlerSelection, BundlerState, Dependency
from rubysupply.core.versions import find_matching_version


if TYPE_CHECKING:
    from pathlib import Path

    from rubysupply.core.models import RunContext
    from rubysupply.core.ports import (
        BuildLogger,
        CatalogPort,
        InstallerPort,
        StagerPort,
        VersionsPort,
    )


PRIMARY_CONSTRAINT = "1.X.X"
SECONDARY_CONSTRAINT = "2.X.X"


class BundlerNegotiator:
    """Installs Bundler and decides which major version stays active."""

    def __init__(
        self,
        catalog: CatalogPort,
        installer: InstallerPort,
        stager: StagerPort,
        versions: VersionsPort,
        log: BuildLogger,
    ) -> None:
        self._catalog = catalog
        self._installer = installer
        self._stager = stager
        self._versions = versions
        self._log = log

    @property
    def bundler_dir(self) -> Path:
        """Install location of the primary Bundler."""
        return self._stager.dep_dir / "bundler"

    def _resolve(self, constraint: str) -> str:
        return find_matching_version(
            constraint, self._catalog.all_versions("bundler"), name="bundler"
        )

    def negotiate(self, context: RunContext) -> BundlerSelection:
        """Run the negotiation to a terminal state.

        Args:
            context: Run facts; only ``has_gemfile`` is consulted.

        Returns:
            A terminal BundlerSelection.

        Raises:
            ResolutionError: If the manifest has no matching Bundler.
            InstallError: If an install fails.
            CompatibilityCheckError: If compatibility cannot be determined.
            InstallError: If rolling back Bundler 2 fails.
        """
        selection = BundlerSelection()
        primary = self.install_primary()
        selection = selection.advance(
            BundlerState.PRIMARY_INSTALLED,
            primary_version=primary,
            active_version=primary,
        )

        if not context.has_gemfile:
            return selection.advance(BundlerState.PRIMARY_ACTIVE)

        secondary = self.install_secondary()
        selection = selection.advance(
            BundlerState.SECONDARY_INSTALLED,
            secondary_version=secondary,
            active_version=secondary,
        )

        try:
            compatible = self._versions.check_bundler2_compatibility()
        except CompatibilityCheckError:
            raise
        except (OSError, RubySupplyError) as e:
            raise CompatibilityCheckError(
                f"Unable to determine Bundler 2 compatibility: {e}", cause=e
            ) from e

        if compatible:
            return selection.advance(BundlerState.SECONDARY_ACTIVE)

        self._log.warning("Ruby version not compatible with Bundler 2")
        self.uninstall_secondary(secondary)
        return selection.advance(BundlerState.PRIMARY_ACTIVE, active_version=primary)

    def install_primary(self) -> str:
        """Install Bundler 1.x into the dep dir and link its executables."""
        version = self._resolve(PRIMARY_CONSTRAINT)
        self._installer.install(Dependency("bundler", version), self.bundler_dir)
        self._stager.link_directory_in_dep_dir(self.bundler_dir / "bin", "bin")
        return version

    def install_secondary(self) -> str:
        """Install Bundler 2.x as an extra gem inside the primary's tree."""
        version = self._resolve(SECONDARY_CONSTRAINT)
        scratch = self._stager.dep_dir / "bundler2"
        gem_name = f"bundler-{version}"
        try:
            self._installer.install(Dependency("bundler", version), scratch)
            dest = self.bundler_dir / "gems" / gem_name
            dest.mkdir(parents=True, exist_ok=True)
            shutil.copytree(scratch / "gems" / gem_name, dest, dirs_exist_ok=True)
            spec_dir = self.bundler_dir / "specifications"
            spec_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(
                scratch / "specifications" / f"{gem_name}.gemspec",
                spec_dir / f"{gem_name}.gemspec",
            )
        except OSError as e:
            raise InstallError(
                f"Unable to add {gem_name} to the Bundler gem tree: {e}",
                name="bundler",
                version=version,
                cause=e,
            ) from e
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
        return version

    def uninstall_secondary(self, version: str) -> None:
        """Remove only the files install_secondary added.

        Raises:
            InstallError: If the gem dir or gemspec cannot be removed.
        """
        gem_name = f"bundler-{version}"
        gem_dir = self.bundler_dir / "gems" / gem_name
        try:
            if gem_dir.exists():
                shutil.rmtree(gem_dir)
            (self.bundler_dir / "specifications" / f"{gem_name}.gemspec").unlink(
                missing_ok=True
            )
        except OSError as e:
            raise InstallError(
                f"Unable to remove {gem_name} from the Bundler gem tree: {e}",
                name="bundler",
                version=version,
                cause=e,
            ) from e
