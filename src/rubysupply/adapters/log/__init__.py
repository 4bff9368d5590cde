"""Build logger adapters."""

from rubysupply.adapters.log.rich_logger import RichBuildLogger


__all__ = ["RichBuildLogger"]
