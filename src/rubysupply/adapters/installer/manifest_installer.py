"""Installer adapter that fetches manifest archives and unpacks them."""

from __future__ import annotations

import hashlib
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING

from rubysupply.core.exceptions import InstallError, ResolutionError, StorageError
from rubysupply.core.models import Dependency
from rubysupply.core.ports import NullBuildLogger


if TYPE_CHECKING:
    from rubysupply.adapters.catalog.manifest import ManifestCatalog, ManifestEntry
    from rubysupply.core.ports import BuildLogger, StoragePort


# Chunk size for hashing archives (64KB)
_CHUNK_SIZE = 64 * 1024


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of a file."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def extract_archive(archive: Path, target_dir: Path, uri: str) -> None:
    """Unpack a .tgz/.tar.gz/.tar or .zip archive into ``target_dir``.

    The archive type is taken from ``uri`` since downloaded temp files carry
    no meaningful name.

    Raises:
        ValueError: If the archive type is not supported.
    """
    target_dir.mkdir(parents=True, exist_ok=True)
    if uri.endswith(".zip"):
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                extracted = Path(zf.extract(info, target_dir))
                mode = (info.external_attr >> 16) & 0o777
                if mode and not info.is_dir():
                    extracted.chmod(mode)
        return
    if uri.endswith((".tgz", ".tar.gz", ".tar")):
        with tarfile.open(archive) as tf:
            tf.extractall(target_dir, filter="tar")
        return
    raise ValueError(f"Unsupported archive type: {uri}")


class ManifestInstaller:
    """Installs manifest dependencies into directories.

    Implements InstallerPort. Archives are downloaded through a StoragePort,
    verified against the manifest's sha256 and extracted in place.
    """

    def __init__(
        self,
        catalog: ManifestCatalog,
        storage: StoragePort,
        log: BuildLogger | None = None,
    ) -> None:
        """Initialize the installer.

        Args:
            catalog: Manifest providing URIs and checksums.
            storage: Backend used to fetch archives.
            log: Optional build logger.
        """
        self._catalog = catalog
        self._storage = storage
        self._log: BuildLogger = log if log is not None else NullBuildLogger()

    def install(self, dependency: Dependency, target_dir: Path) -> None:
        """Download, verify and extract ``dependency`` into ``target_dir``.

        Raises:
            InstallError: If the entry is unknown or fetching, verification or
                extraction fails.
        """
        try:
            entry = self._catalog.entry(dependency)
        except ResolutionError as e:
            raise InstallError(
                f"{dependency.name} {dependency.version} is not in the manifest",
                name=dependency.name,
                version=dependency.version,
                cause=e,
            ) from e

        self._log.begin_step(f"Installing {dependency.name} {dependency.version}")
        self._log.info(f"Download [{entry.uri}]")

        with tempfile.TemporaryDirectory(prefix="rubysupply-") as tmp:
            archive = Path(tmp) / "archive"
            try:
                self._storage.download(entry.uri, archive)
            except (StorageError, ValueError) as e:
                raise self._install_error(entry, f"Could not download: {e}", e) from e

            self._verify(entry, archive)

            try:
                extract_archive(archive, target_dir, entry.uri)
            except (OSError, ValueError, tarfile.TarError, zipfile.BadZipFile) as e:
                raise self._install_error(entry, f"Could not extract: {e}", e) from e

    def install_only_version(self, name: str, target_dir: Path) -> None:
        """Install the one version of ``name`` the manifest lists.

        Raises:
            InstallError: If there are zero or several versions.
        """
        versions = self._catalog.all_versions(name)
        if len(versions) != 1:
            raise InstallError(
                f"Expected exactly one version of {name} in the manifest, "
                f"found {len(versions)}",
                name=name,
            )
        self.install(Dependency(name, versions[0]), target_dir)

    def _verify(self, entry: ManifestEntry, archive: Path) -> None:
        if not entry.sha256:
            return
        actual = sha256_file(archive)
        if actual != entry.sha256.lower():
            raise self._install_error(
                entry, f"dependency sha256 mismatch: expected {entry.sha256}, got {actual}"
            )

    @staticmethod
    def _install_error(
        entry: ManifestEntry, message: str, cause: Exception | None = None
    ) -> InstallError:
        return InstallError(
            f"{entry.name} {entry.version}: {message}",
            name=entry.name,
            version=entry.version,
            cause=cause,
        )
