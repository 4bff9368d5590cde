"""Shared fixtures for integration tests."""

from __future__ import annotations

import io
import tarfile
from collections.abc import Callable

import boto3
import pytest
from moto import mock_aws


@pytest.fixture
def s3_client():
    """Create a mocked S3 client with a test bucket."""
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket="test-bucket")
        yield client


@pytest.fixture
def make_tgz() -> Callable[[dict[str, bytes]], bytes]:
    """Return a builder for in-memory gzipped tarballs of executable files."""

    def build(files: dict[str, bytes]) -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
            for name, data in files.items():
                info = tarfile.TarInfo(name)
                info.size = len(data)
                info.mode = 0o755
                tf.addfile(info, io.BytesIO(data))
        return buffer.getvalue()

    return build
