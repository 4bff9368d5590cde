"""Scratch directory adapter implementing TempDirPort."""

from __future__ import annotations

import errno
import os
import shutil
import tempfile
from pathlib import Path


# Hard links fail with these across filesystems or on restrictive mounts.
_LINK_FALLBACK_ERRNOS = frozenset({errno.EXDEV, errno.EPERM, errno.EMLINK, errno.ENOTSUP})


def link_or_copy(src: str, dst: str) -> str:
    """Hard-link ``src`` to ``dst``, copying when linking is not possible."""
    try:
        os.link(src, dst)
    except OSError as e:
        if e.errno not in _LINK_FALLBACK_ERRNOS:
            raise
        shutil.copy2(src, dst)
    return dst


class LinkTempDir:
    """Copies directories into fresh temp dirs using hard links.

    Hard-linked files share bytes with the original, so callers must
    replace (not edit in place) any file they intend to modify.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        """Initialize the adapter.

        Args:
            base_dir: Where temp dirs are created; the system default if None.
        """
        self._base_dir = base_dir

    def copy_dir_to_temp(self, directory: Path) -> Path:
        """Copy ``directory`` into a new temp dir.

        Returns:
            ``<tempdir>/<directory name>``. The caller removes its parent.

        Raises:
            OSError: If the copy fails; the temp dir is removed first.
        """
        parent = Path(tempfile.mkdtemp(prefix="app", dir=self._base_dir))
        dest = parent / directory.name
        try:
            shutil.copytree(directory, dest, symlinks=True, copy_function=link_or_copy)
        except OSError:
            shutil.rmtree(parent, ignore_errors=True)
            raise
        return dest
