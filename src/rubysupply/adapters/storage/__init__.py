"""Storage backend adapters."""

from rubysupply.adapters.storage.filesystem import FilesystemStorage
from rubysupply.adapters.storage.http import HttpStorage
from rubysupply.adapters.storage.router import RouterStorage, create_router
from rubysupply.adapters.storage.s3 import S3Storage


__all__ = ["FilesystemStorage", "HttpStorage", "RouterStorage", "S3Storage", "create_router"]
