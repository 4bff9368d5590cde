"""HTTP(S) storage adapter using requests."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import requests

from rubysupply.core.exceptions import (
    StorageAccessError,
    StorageError,
    StorageNotFoundError,
)


if TYPE_CHECKING:
    from pathlib import Path


# Chunk size for streaming downloads (64KB)
_CHUNK_SIZE = 64 * 1024

DEFAULT_TIMEOUT = 30
DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY = 0.3


class HttpStorage:
    """Storage adapter for archives served over http:// and https://.

    Implements StoragePort. Responses are streamed to disk. Connection
    errors and 5xx responses are retried with exponential backoff; 4xx
    responses fail immediately.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Initialize HTTP storage.

        Args:
            session: Optional requests session. If not provided, creates one.
            timeout: Connect and read timeout in seconds.
            retries: Total number of attempts per download (at least one).
            retry_delay: Delay before the first retry; doubled each time.
        """
        self._session = session or requests.Session()
        self._timeout = timeout
        self._retries = max(1, retries)
        self._retry_delay = retry_delay

    def download(self, source: str, dest: Path) -> None:
        """Download a URL to a local path.

        Raises:
            StorageNotFoundError: On HTTP 404.
            StorageAccessError: On HTTP 401/403.
            StorageError: For other HTTP or connection failures, once all
                attempts are used up.
        """
        last_error: requests.RequestException | None = None
        for attempt in range(self._retries):
            if attempt:
                time.sleep(self._retry_delay * 2 ** (attempt - 1))
            try:
                self._fetch(source, dest)
                return
            except requests.RequestException as e:
                last_error = e
                response = getattr(e, "response", None)
                if response is not None and response.status_code < 500:
                    break

        raise StorageError(
            f"Could not download {source} after {attempt + 1} attempt(s): {last_error}",
            source=source,
            cause=last_error,
        ) from last_error

    def _fetch(self, source: str, dest: Path) -> None:
        response = self._session.get(source, stream=True, timeout=self._timeout)
        with response:
            if response.status_code == 404:
                raise StorageNotFoundError(f"Not found: {source}", source=source)
            if response.status_code in (401, 403):
                raise StorageAccessError(f"Access denied: {source}", source=source)
            response.raise_for_status()
            with dest.open("wb") as f:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    f.write(chunk)
