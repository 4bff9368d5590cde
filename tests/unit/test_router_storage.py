"""Tests for RouterStorage composite adapter."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest


@pytest.mark.storage
@pytest.mark.tra("Adapter.RouterStorage")
@pytest.mark.tier(1)
class TestParseUriScheme:
    """Tests for URI scheme extraction."""

    def test_extracts_https_scheme(self) -> None:
        from rubysupply.adapters.storage.router import parse_uri_scheme

        assert parse_uri_scheme("https://buildpacks.example.com/ruby-2.6.5.tgz") == "https"

    def test_extracts_s3_scheme(self) -> None:
        from rubysupply.adapters.storage.router import parse_uri_scheme

        assert parse_uri_scheme("s3://bucket/ruby-2.6.5.tgz") == "s3"

    def test_returns_none_for_paths(self) -> None:
        """Absolute and relative paths have no scheme."""
        from rubysupply.adapters.storage.router import parse_uri_scheme

        assert parse_uri_scheme("/buildpack/dependencies/ruby.tgz") is None
        assert parse_uri_scheme("dependencies/ruby.tgz") is None

    def test_returns_none_for_windows_path(self) -> None:
        """Should not confuse a drive letter with a scheme."""
        from rubysupply.adapters.storage.router import parse_uri_scheme

        assert parse_uri_scheme("C://deps/ruby.tgz") is None

    def test_normalizes_scheme_to_lowercase(self) -> None:
        from rubysupply.adapters.storage.router import parse_uri_scheme

        assert parse_uri_scheme("HTTPS://example.com/a.tgz") == "https"

    def test_strip_file_scheme(self) -> None:
        from rubysupply.adapters.storage.router import strip_file_scheme

        assert strip_file_scheme("file:///deps/ruby.tgz") == "/deps/ruby.tgz"
        assert strip_file_scheme("/deps/ruby.tgz") == "/deps/ruby.tgz"


@pytest.mark.storage
@pytest.mark.tra("Adapter.RouterStorage")
@pytest.mark.tier(1)
class TestRouterStorageDownload:
    """Tests for RouterStorage.download() routing."""

    def test_routes_https_uri(self, tmp_path: Path) -> None:
        from rubysupply.adapters.storage.router import RouterStorage

        http = Mock()
        router = RouterStorage(backends={"https": http})
        dest = tmp_path / "archive"

        router.download("https://example.com/ruby.tgz", dest)

        http.download.assert_called_once_with("https://example.com/ruby.tgz", dest)

    def test_file_uri_is_stripped_before_delegating(self, tmp_path: Path) -> None:
        from rubysupply.adapters.storage.router import RouterStorage

        fs = Mock()
        router = RouterStorage(backends={"file": fs})
        dest = tmp_path / "archive"

        router.download("file:///deps/ruby.tgz", dest)

        fs.download.assert_called_once_with("/deps/ruby.tgz", dest)

    def test_local_path_uses_none_backend(self, tmp_path: Path) -> None:
        from rubysupply.adapters.storage.router import RouterStorage

        fs = Mock()
        router = RouterStorage(backends={None: fs})

        router.download("/deps/ruby.tgz", tmp_path / "archive")

        fs.download.assert_called_once()

    def test_unknown_scheme_raises(self, tmp_path: Path) -> None:
        from rubysupply.adapters.storage.router import RouterStorage

        router = RouterStorage(backends={None: Mock()})

        with pytest.raises(ValueError, match="'ftp'"):
            router.download("ftp://example.com/ruby.tgz", tmp_path / "archive")

    def test_local_path_without_backend_raises(self, tmp_path: Path) -> None:
        from rubysupply.adapters.storage.router import RouterStorage

        router = RouterStorage(backends={"s3": Mock()})

        with pytest.raises(ValueError, match="local path"):
            router.download("/deps/ruby.tgz", tmp_path / "archive")


@pytest.mark.storage
@pytest.mark.tra("Adapter.RouterStorage")
@pytest.mark.tier(1)
class TestCreateRouter:
    """Tests for create_router()."""

    def test_default_backends(self) -> None:
        from rubysupply.adapters.storage import (
            FilesystemStorage,
            HttpStorage,
            S3Storage,
            create_router,
        )

        router = create_router(s3_client=Mock(), session=Mock())

        backends = router._backends
        assert isinstance(backends["https"], HttpStorage)
        assert backends["http"] is backends["https"]
        assert isinstance(backends["s3"], S3Storage)
        assert isinstance(backends["file"], FilesystemStorage)
        assert backends[None] is backends["file"]

    def test_router_downloads_local_file(self, tmp_path: Path) -> None:
        from rubysupply.adapters.storage import create_router

        source = tmp_path / "ruby.tgz"
        source.write_bytes(b"archive")
        dest = tmp_path / "copy"

        create_router(s3_client=Mock(), session=Mock()).download(f"file://{source}", dest)

        assert dest.read_bytes() == b"archive"
