"""Core domain module for rubysupply.

This module contains the supply pipeline, the version resolver, the Bundler
negotiator and the port definitions. It touches the filesystem only through
the dependency area and can be tested with fake ports.
"""

from rubysupply.core.models import (
    BundlerSelection,
    BundlerState,
    CacheMetadata,
    Dependency,
    RubyEngine,
    RunContext,
    RuntimeSelection,
    SupplyState,
)
from rubysupply.core.ports import (
    BuildLogger,
    CachePort,
    CatalogPort,
    CommandPort,
    InstallerPort,
    StagerPort,
    StoragePort,
    TempDirPort,
    VersionsPort,
)


__all__ = [
    "BuildLogger",
    "BundlerSelection",
    "BundlerState",
    "CacheMetadata",
    "CachePort",
    "CatalogPort",
    "CommandPort",
    "Dependency",
    "InstallerPort",
    "RubyEngine",
    "RunContext",
    "RuntimeSelection",
    "StagerPort",
    "StoragePort",
    "SupplyState",
    "TempDirPort",
    "VersionsPort",
]
