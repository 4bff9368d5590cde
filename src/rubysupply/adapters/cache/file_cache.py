"""File-based cache adapter implementing CachePort."""

from __future__ import annotations

import json
import shutil
from typing import TYPE_CHECKING

from rubysupply.core.exceptions import CacheCorruptError, CacheIOError
from rubysupply.core.models import CacheMetadata
from rubysupply.core.ports import NullBuildLogger


if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from rubysupply.core.ports import BuildLogger


# Directories of the dep dir that survive between deployments.
DEFAULT_CACHED_DIRS = ("vendor_bundle",)

METADATA_FILE = "metadata.meta.json"


class FileCache:
    """Application cache stored in the platform's cache directory.

    Cached directories are copied whole between the dep dir and the cache
    dir. A JSON sidecar records the stack the artifacts were built on and
    generate-once values such as the Rails secret.

    Attributes:
        cache_dir: Directory where cached artifacts are stored.
        dep_dir: Dependency area artifacts are restored into.
    """

    def __init__(
        self,
        cache_dir: Path,
        dep_dir: Path,
        stack: str = "",
        log: BuildLogger | None = None,
        dirs: Sequence[str] = DEFAULT_CACHED_DIRS,
    ) -> None:
        """Initialize the cache.

        Args:
            cache_dir: Directory where cached artifacts are stored.
            dep_dir: Dependency area to restore into and save from.
            stack: Current stack; a cache from another stack is not restored.
            log: Optional build logger.
            dirs: Names of dep dir subdirectories to cache.
        """
        self.cache_dir = cache_dir
        self.dep_dir = dep_dir
        self._stack = stack
        self._log: BuildLogger = log if log is not None else NullBuildLogger()
        self._dirs = tuple(dirs)
        self._metadata = CacheMetadata()

    @property
    def metadata(self) -> CacheMetadata:
        """Metadata loaded by restore() and written by save()."""
        return self._metadata

    def _meta_path(self) -> Path:
        return self.cache_dir / METADATA_FILE

    def _load_metadata(self) -> CacheMetadata | None:
        meta_path = self._meta_path()
        if not meta_path.exists():
            return None
        try:
            with meta_path.open() as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CacheCorruptError(
                f"Cache metadata corrupt: {meta_path}",
                path=meta_path,
                cause=e,
            ) from e
        except OSError as e:
            raise CacheIOError(
                f"Unable to read cache metadata: {e}",
                path=meta_path,
                cause=e,
            ) from e
        if not isinstance(data, dict):
            raise CacheCorruptError(
                f"Cache metadata corrupt: {meta_path}", path=meta_path
            )
        return CacheMetadata.from_dict(data)

    def restore(self) -> None:
        """Copy cached directories back into the dep dir.

        Raises:
            CacheCorruptError: If the metadata sidecar is not valid JSON.
            CacheIOError: If reading or copying fails.
        """
        metadata = self._load_metadata()
        if metadata is None:
            self._log.debug("No cache metadata found, nothing to restore")
            return
        self._metadata = metadata

        if metadata.stack and self._stack and metadata.stack != self._stack:
            self._log.info(
                f"Skipping restoring cache, stack changed from {metadata.stack} "
                f"to {self._stack}"
            )
            return

        for name in self._dirs:
            source = self.cache_dir / name
            if not source.exists():
                continue
            dest = self.dep_dir / name
            self._log.info(f"Restoring {name} from cache")
            try:
                if dest.exists():
                    shutil.rmtree(dest)
                shutil.copytree(source, dest, symlinks=True)
            except OSError as e:
                raise CacheIOError(
                    f"Unable to restore {name} from cache: {e}",
                    path=source,
                    cause=e,
                ) from e

    def save(self) -> None:
        """Replace the cached copies with the dep dir's current directories.

        Raises:
            CacheIOError: If copying or writing metadata fails.
        """
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            for name in self._dirs:
                source = self.dep_dir / name
                dest = self.cache_dir / name
                if dest.exists():
                    shutil.rmtree(dest)
                if source.exists():
                    self._log.info(f"Saving {name} to cache")
                    shutil.copytree(source, dest, symlinks=True)

            self._metadata.stack = self._stack
            with self._meta_path().open("w") as f:
                json.dump(self._metadata.to_dict(), f)
        except OSError as e:
            raise CacheIOError(
                f"Unable to save cache: {e}",
                path=self.cache_dir,
                cause=e,
            ) from e

