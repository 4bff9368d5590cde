"""S3 storage adapter using boto3."""

from __future__ import annotations

from typing import TYPE_CHECKING

import boto3
from botocore.exceptions import ClientError

from rubysupply.core.exceptions import (
    StorageAccessError,
    StorageError,
    StorageNotFoundError,
)


if TYPE_CHECKING:
    from pathlib import Path

    from mypy_boto3_s3 import S3Client


# Chunk size for streaming downloads (64KB)
_CHUNK_SIZE = 64 * 1024


class S3Storage:
    """Storage adapter for dependency archives mirrored to S3.

    Implements StoragePort for ``s3://bucket/key`` URIs.
    """

    def __init__(self, client: S3Client | None = None) -> None:
        """Initialize S3 storage.

        Args:
            client: Optional boto3 S3 client. If not provided, creates a default client.
        """
        self._client = client or boto3.client("s3")

    def download(self, source: str, dest: Path) -> None:
        """Download an object from S3 to a local path.

        Args:
            source: S3 URI (s3://bucket/key).
            dest: Local destination path.

        Raises:
            StorageNotFoundError: If object does not exist.
            StorageAccessError: If access is denied.
            StorageError: For other S3 errors.
        """
        bucket, key = self._parse_s3_uri(source)

        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise self._translate_client_error(e, source) from e

        body = response["Body"]
        with dest.open("wb") as f:
            for chunk in iter(lambda: body.read(_CHUNK_SIZE), b""):
                f.write(chunk)

    def _parse_s3_uri(self, uri: str) -> tuple[str, str]:
        """Parse an S3 URI into bucket and key.

        Args:
            uri: S3 URI in format s3://bucket/key.

        Returns:
            Tuple of (bucket, key).

        Raises:
            ValueError: If URI is not a valid S3 URI.
        """
        if not uri.startswith("s3://"):
            raise ValueError(f"Invalid S3 URI: {uri}")

        parts = uri[5:].split("/", 1)
        if len(parts) != 2 or not parts[1]:
            raise ValueError(f"Invalid S3 URI (missing key): {uri}")

        bucket, key = parts
        return bucket, key

    def _translate_client_error(self, error: ClientError, source: str) -> StorageError:
        """Translate botocore ClientError to domain exception."""
        code = error.response.get("Error", {}).get("Code", "")

        if code in ("404", "NoSuchKey", "NoSuchBucket"):
            return StorageNotFoundError(
                f"Object not found: {source}",
                source=source,
                cause=error,
            )

        if code in ("403", "AccessDenied"):
            return StorageAccessError(
                f"Access denied: {source}",
                source=source,
                cause=error,
            )

        return StorageError(
            f"S3 error ({code}): {error}",
            source=source,
            cause=error,
        )
