"""Tests for directory fingerprints."""

from pathlib import Path

import pytest

from rubysupply.core.fingerprint import (
    changed_files,
    compute_fingerprint,
    snapshot_tree,
)


def _tree(root: Path) -> Path:
    (root / "app").mkdir(parents=True)
    (root / "app" / "main.rb").write_text("puts 1\n")
    (root / "Gemfile").write_text("source 'https://rubygems.org'\n")
    (root / ".cloudfoundry").mkdir()
    (root / ".cloudfoundry" / "state").write_text("one")
    return root


@pytest.mark.core
@pytest.mark.tra("Domain.Fingerprint")
@pytest.mark.tier(0)
class TestComputeFingerprint:
    """Tests for compute_fingerprint()."""

    def test_stable_on_unchanged_tree(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)

        assert compute_fingerprint(root) == compute_fingerprint(root)

    def test_identical_trees_have_identical_digests(self, tmp_path: Path) -> None:
        a = _tree(tmp_path / "a")
        b = _tree(tmp_path / "b")

        assert compute_fingerprint(a) == compute_fingerprint(b)

    def test_byte_change_changes_digest(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)
        before = compute_fingerprint(root)

        (root / "app" / "main.rb").write_text("puts 2\n")

        assert compute_fingerprint(root) != before

    def test_added_file_changes_digest(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)
        before = compute_fingerprint(root)

        (root / "Rakefile").write_text("")

        assert compute_fingerprint(root) != before

    def test_removed_file_changes_digest(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)
        before = compute_fingerprint(root)

        (root / "Gemfile").unlink()

        assert compute_fingerprint(root) != before

    def test_rename_changes_digest(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)
        before = compute_fingerprint(root)

        (root / "Gemfile").rename(root / "Gemfile2")

        assert compute_fingerprint(root) != before

    def test_excluded_subtree_does_not_affect_digest(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)
        before = compute_fingerprint(root)

        (root / ".cloudfoundry" / "state").write_text("two")
        (root / ".cloudfoundry" / "extra").write_text("three")

        assert compute_fingerprint(root) == before

    def test_custom_exclude_prefix(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)
        before = compute_fingerprint(root, ("app/",))

        (root / "app" / "main.rb").write_text("changed")

        assert compute_fingerprint(root, ("app/",)) == before

    def test_exclude_prefix_matches_whole_components(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)
        (root / "vendor").mkdir()
        (root / "vendor" / "cache.gem").write_text("gem")
        (root / "vendorized").mkdir()
        (root / "vendorized" / "a.rb").write_text("one")
        before = compute_fingerprint(root, ("vendor",))

        (root / "vendor" / "cache.gem").write_text("other gem")
        assert compute_fingerprint(root, ("vendor",)) == before

        (root / "vendorized" / "a.rb").write_text("two")
        assert compute_fingerprint(root, ("vendor",)) != before

    def test_symlinks_are_not_followed(self, tmp_path: Path) -> None:
        root = _tree(tmp_path / "app")
        outside = tmp_path / "outside.txt"
        outside.write_text("a")
        (root / "link").symlink_to(outside)
        before = compute_fingerprint(root)

        outside.write_text("b")

        assert compute_fingerprint(root) == before

    def test_bytes_property(self, tmp_path: Path) -> None:
        """Any single-file content change alters the digest."""
        from hypothesis import given, settings
        from hypothesis.strategies import binary

        root = tmp_path / "prop"
        root.mkdir()
        target = root / "data.bin"

        @settings(max_examples=25)
        @given(binary(max_size=64), binary(max_size=64))
        def check(first: bytes, second: bytes) -> None:
            target.write_bytes(first)
            digest_first = compute_fingerprint(root)
            target.write_bytes(second)
            digest_second = compute_fingerprint(root)
            assert (digest_first == digest_second) == (first == second)

        check()


@pytest.mark.core
@pytest.mark.tra("Domain.Fingerprint")
@pytest.mark.tier(0)
class TestChangedFiles:
    """Tests for snapshot_tree() and changed_files()."""

    def test_reports_added_removed_and_modified(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)
        before = snapshot_tree(root)

        (root / "app" / "main.rb").write_text("modified")
        (root / "Gemfile").unlink()
        (root / "new.rb").write_text("")

        assert changed_files(before, snapshot_tree(root)) == [
            "Gemfile",
            "app/main.rb",
            "new.rb",
        ]

    def test_unchanged_tree_reports_nothing(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)

        assert changed_files(snapshot_tree(root), snapshot_tree(root)) == []

    def test_snapshot_skips_excluded(self, tmp_path: Path) -> None:
        root = _tree(tmp_path)

        assert ".cloudfoundry/state" not in snapshot_tree(root)
