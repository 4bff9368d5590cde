"""Unit tests for the manifest catalog."""

from __future__ import annotations

from pathlib import Path

import pytest

from rubysupply.core.exceptions import ConfigurationError, ResolutionError
from rubysupply.core.models import Dependency


MANIFEST = """---
language: ruby
default_versions:
- name: ruby
  version: 2.6.x
dependencies:
- name: ruby
  version: 2.5.5
  uri: https://buildpacks.example.com/ruby-2.5.5-cflinuxfs3.tgz
  sha256: aaaa
  cf_stacks:
  - cflinuxfs3
- name: ruby
  version: 2.6.5
  uri: https://buildpacks.example.com/ruby-2.6.5-cflinuxfs3.tgz
  sha256: bbbb
  cf_stacks:
  - cflinuxfs3
- name: ruby
  version: 2.6.6
  uri: https://buildpacks.example.com/ruby-2.6.6-cflinuxfs4.tgz
  cf_stacks:
  - cflinuxfs4
- name: bundler
  version: 1.17.3
  uri: dependencies/bundler-1.17.3.tgz
- name: bundler
  version: 2.0.1
  uri: file:///buildpack/dependencies/bundler-2.0.1.tgz
"""


@pytest.fixture
def manifest(tmp_path: Path) -> Path:
    path = tmp_path / "manifest.yml"
    path.write_text(MANIFEST)
    return path


@pytest.mark.adapters
@pytest.mark.tra("Adapter.ManifestCatalog")
@pytest.mark.tier(1)
class TestManifestCatalog:
    """Tests for ManifestCatalog."""

    def test_versions_are_filtered_by_stack(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        catalog = ManifestCatalog.from_file(manifest, stack="cflinuxfs3")

        assert catalog.all_versions("ruby") == ["2.5.5", "2.6.5"]

    def test_no_stack_sees_everything(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        catalog = ManifestCatalog.from_file(manifest)

        assert catalog.all_versions("ruby") == ["2.5.5", "2.6.5", "2.6.6"]

    def test_entries_without_stacks_are_always_visible(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        catalog = ManifestCatalog.from_file(manifest, stack="cflinuxfs3")

        assert catalog.all_versions("bundler") == ["1.17.3", "2.0.1"]

    def test_unknown_name_has_no_versions(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        assert ManifestCatalog.from_file(manifest).all_versions("freetds") == []

    def test_default_version_resolves_pattern(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        catalog = ManifestCatalog.from_file(manifest, stack="cflinuxfs3")

        assert catalog.default_version("ruby") == Dependency("ruby", "2.6.5")

    def test_default_version_follows_stack(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        catalog = ManifestCatalog.from_file(manifest, stack="cflinuxfs4")

        assert catalog.default_version("ruby") == Dependency("ruby", "2.6.6")

    def test_missing_default_raises(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        with pytest.raises(ResolutionError, match="No default version declared for node"):
            ManifestCatalog.from_file(manifest).default_version("node")

    def test_entry_carries_uri_and_checksum(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        entry = ManifestCatalog.from_file(manifest).entry(Dependency("ruby", "2.6.5"))

        assert entry.uri == "https://buildpacks.example.com/ruby-2.6.5-cflinuxfs3.tgz"
        assert entry.sha256 == "bbbb"
        assert entry.cf_stacks == ("cflinuxfs3",)
        assert entry.dependency == Dependency("ruby", "2.6.5")

    def test_relative_uri_is_resolved_against_manifest_dir(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        entry = ManifestCatalog.from_file(manifest).entry(Dependency("bundler", "1.17.3"))

        assert entry.uri == str(manifest.parent / "dependencies" / "bundler-1.17.3.tgz")

    def test_file_uri_is_left_alone(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        entry = ManifestCatalog.from_file(manifest).entry(Dependency("bundler", "2.0.1"))

        assert entry.uri == "file:///buildpack/dependencies/bundler-2.0.1.tgz"

    def test_unknown_entry_raises(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        with pytest.raises(ResolutionError) as exc_info:
            ManifestCatalog.from_file(manifest).entry(Dependency("ruby", "1.9.3"))

        assert exc_info.value.candidates == ["2.5.5", "2.6.5", "2.6.6"]

    def test_is_catalog_port(self, manifest: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog
        from rubysupply.core.ports import CatalogPort

        assert isinstance(ManifestCatalog.from_file(manifest), CatalogPort)


@pytest.mark.adapters
@pytest.mark.tra("Adapter.ManifestCatalog")
@pytest.mark.tier(1)
class TestFromFileErrors:
    """Tests for manifest loading failures."""

    def test_missing_file(self, tmp_path: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        with pytest.raises(ConfigurationError) as exc_info:
            ManifestCatalog.from_file(tmp_path / "manifest.yml")

        assert "--manifest" in exc_info.value.recovery_hint

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        path = tmp_path / "manifest.yml"
        path.write_text("dependencies: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid manifest"):
            ManifestCatalog.from_file(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        path = tmp_path / "manifest.yml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="expected a mapping"):
            ManifestCatalog.from_file(path)

    def test_empty_file_is_an_empty_catalog(self, tmp_path: Path) -> None:
        from rubysupply.adapters.catalog import ManifestCatalog

        path = tmp_path / "manifest.yml"
        path.write_text("")

        assert ManifestCatalog.from_file(path).all_versions("ruby") == []
