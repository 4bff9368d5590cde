"""Filesystem storage adapter for local dependency archives."""

from __future__ import annotations

from pathlib import Path

from rubysupply.core.exceptions import StorageAccessError, StorageNotFoundError


# Chunk size for reading files (64KB)
_CHUNK_SIZE = 64 * 1024


class FilesystemStorage:
    """Storage adapter for local filesystem operations.

    Implements StoragePort for manifests whose URIs point at local paths,
    as in cached (offline) buildpacks and in tests.
    """

    def download(self, source: str, dest: Path) -> None:
        """Copy a file from source to destination.

        Args:
            source: Path to source file.
            dest: Destination path.

        Raises:
            StorageNotFoundError: If source file does not exist.
            StorageAccessError: If source file cannot be read.
        """
        source_path = Path(source)
        try:
            src = source_path.open("rb")
        except FileNotFoundError as e:
            raise StorageNotFoundError(
                f"File not found: {source}",
                source=source,
                cause=e,
            ) from e
        except PermissionError as e:
            raise StorageAccessError(
                f"Access denied: {source}",
                source=source,
                cause=e,
            ) from e

        with src, dest.open("wb") as dst:
            for chunk in iter(lambda: src.read(_CHUNK_SIZE), b""):
                dst.write(chunk)
