"""Dependency-area stager adapters."""

from rubysupply.adapters.stager.stager import Stager


__all__ = ["Stager"]
