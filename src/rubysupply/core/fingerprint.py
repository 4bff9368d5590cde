"""Content fingerprints of directory trees.

The supplier fingerprints the build directory before and after supply and
logs both digests plus the files that changed. The digests are diagnostic
only; no step is skipped based on them.
"""

from __future__ import annotations

import hashlib
import os
import stat
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from pathlib import Path


# Buildpack bookkeeping written by the platform into the build dir.
DEFAULT_EXCLUDES = (".cloudfoundry/",)

# Chunk size for reading files (64KB)
_CHUNK_SIZE = 64 * 1024


def _is_excluded(relpath: str, exclude_prefixes: Sequence[str]) -> bool:
    # Prefixes match whole path components: "vendor" skips vendor/ only.
    relpath = relpath.rstrip("/")
    for prefix in exclude_prefixes:
        prefix = prefix.rstrip("/")
        if prefix and (relpath == prefix or relpath.startswith(f"{prefix}/")):
            return True
    return False


def iter_regular_files(
    root: Path, exclude_prefixes: Sequence[str] = DEFAULT_EXCLUDES
) -> Iterator[tuple[str, str]]:
    """Yield (relative path, absolute path) for every regular file under root.

    Traversal order is sorted by name at every level, so two walks over an
    unchanged tree yield the same sequence. Symlinks are not followed and
    are not reported.

    Args:
        root: Directory to walk.
        exclude_prefixes: Relative path prefixes (POSIX separators) to skip.
    """
    base = os.fspath(root)
    for dirpath, dirnames, filenames in os.walk(base):
        reldir = os.path.relpath(dirpath, base)
        reldir = "" if reldir == "." else reldir.replace(os.sep, "/") + "/"
        dirnames[:] = sorted(
            d for d in dirnames if not _is_excluded(f"{reldir}{d}/", exclude_prefixes)
        )
        for name in sorted(filenames):
            relpath = f"{reldir}{name}"
            if _is_excluded(relpath, exclude_prefixes):
                continue
            path = os.path.join(dirpath, name)
            if stat.S_ISREG(os.lstat(path).st_mode):
                yield relpath, path


def _feed_file(digest: hashlib._Hash, path: str) -> None:
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)


def compute_fingerprint(
    root: Path, exclude_prefixes: Sequence[str] = DEFAULT_EXCLUDES
) -> str:
    """Compute an MD5 digest over the relative path and bytes of every file.

    Args:
        root: Directory to fingerprint.
        exclude_prefixes: Relative path prefixes to leave out.

    Returns:
        Hex digest. Identical trees give identical digests; adding,
        removing, renaming or editing any non-excluded file changes it.
    """
    digest = hashlib.md5()
    for relpath, path in iter_regular_files(root, exclude_prefixes):
        digest.update(relpath.encode())
        _feed_file(digest, path)
    return digest.hexdigest()


def snapshot_tree(
    root: Path, exclude_prefixes: Sequence[str] = DEFAULT_EXCLUDES
) -> dict[str, str]:
    """Map each regular file's relative path to the MD5 of its contents."""
    snapshot: dict[str, str] = {}
    for relpath, path in iter_regular_files(root, exclude_prefixes):
        digest = hashlib.md5()
        _feed_file(digest, path)
        snapshot[relpath] = digest.hexdigest()
    return snapshot


def changed_files(before: dict[str, str], after: dict[str, str]) -> list[str]:
    """List paths added, removed or modified between two snapshots, sorted."""
    paths = set(before) | set(after)
    return sorted(p for p in paths if before.get(p) != after.get(p))
