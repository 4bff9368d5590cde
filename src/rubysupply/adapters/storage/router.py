"""RouterStorage composite adapter for URI scheme-based routing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from pathlib import Path

    import requests

    from rubysupply.core.ports import StoragePort


def parse_uri_scheme(uri: str) -> str | None:
    """Extract the URI scheme from a source string.

    Args:
        uri: Source URI or file path.

    Returns:
        The scheme (e.g., 'https', 's3', 'file') or None for local paths.
    """
    if "://" in uri:
        scheme = uri.split("://", 1)[0]
        # Avoid confusing Windows drive letters (C:) with schemes
        if len(scheme) > 1:
            return scheme.lower()
    return None


def strip_file_scheme(uri: str) -> str:
    """Strip file:// prefix from URI, returning plain path."""
    if uri.startswith("file://"):
        return uri[7:]  # len("file://") == 7
    return uri


class RouterStorage:
    """Storage adapter that routes to backends based on URI scheme.

    Implements StoragePort by delegating to scheme-specific adapters.
    """

    def __init__(self, backends: dict[str | None, StoragePort]) -> None:
        """Initialize with scheme-to-adapter mapping.

        Args:
            backends: Mapping of scheme (e.g., 'https', 's3', 'file') to
                StoragePort adapter. Use None as key for local paths.
        """
        self._backends = backends

    def _get_backend_and_path(self, uri: str) -> tuple[StoragePort, str]:
        """Get the appropriate backend and normalized path for a URI."""
        scheme = parse_uri_scheme(uri)
        if scheme in self._backends:
            path = strip_file_scheme(uri) if scheme == "file" else uri
            return self._backends[scheme], path
        if scheme is None and None in self._backends:
            return self._backends[None], uri
        scheme_display = f"'{scheme}'" if scheme else "local path"
        raise ValueError(f"No storage backend registered for scheme {scheme_display}")

    def download(self, source: str, dest: Path) -> None:
        """Download by delegating to the appropriate backend."""
        backend, path = self._get_backend_and_path(source)
        backend.download(path, dest)


def create_router(
    s3_client: Any | None = None,
    session: requests.Session | None = None,
) -> RouterStorage:
    """Create a RouterStorage with default backends.

    Args:
        s3_client: Optional boto3 S3 client. If not provided, creates default.
        session: Optional requests session for http(s) downloads.

    Returns:
        RouterStorage configured with HTTP, S3 and filesystem backends.
    """
    from rubysupply.adapters.storage import FilesystemStorage, HttpStorage, S3Storage

    fs = FilesystemStorage()
    http = HttpStorage(session=session)
    return RouterStorage(
        backends={
            "https": http,
            "http": http,
            "s3": S3Storage(client=s3_client),
            "file": fs,
            None: fs,
        }
    )
