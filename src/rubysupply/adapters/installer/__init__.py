"""Dependency installer adapters."""

from rubysupply.adapters.installer.manifest_installer import ManifestInstaller


__all__ = ["ManifestInstaller"]
