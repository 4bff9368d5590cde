"""Dependency catalog adapters."""

from rubysupply.adapters.catalog.manifest import ManifestCatalog, ManifestEntry


__all__ = ["ManifestCatalog", "ManifestEntry"]
