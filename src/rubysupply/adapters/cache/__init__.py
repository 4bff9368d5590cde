"""Cache adapters."""

from rubysupply.adapters.cache.file_cache import FileCache


__all__ = ["FileCache"]
