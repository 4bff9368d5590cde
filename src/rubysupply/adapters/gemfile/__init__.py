"""Gemfile inspection adapters."""

from rubysupply.adapters.gemfile.versions import GemfileVersions


__all__ = ["GemfileVersions"]
