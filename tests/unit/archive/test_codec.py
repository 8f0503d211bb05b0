"""Tests for the workspace archive codec."""

from __future__ import annotations

import hashlib
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from nodeyard.archive import ArchiveCodec
from nodeyard.archive.codec import METADATA_NAME
from nodeyard.archive.metadata import dump_workspace
from nodeyard.errors import ArchiveFormatError
from nodeyard.models import Workspace
from nodeyard.workspace import ProjectDirectoryService


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _materialise(directory: ProjectDirectoryService, workspace: Workspace) -> dict[str, Path]:
    roots = {}
    for node in workspace.nodes:
        root = directory.create_project_structure(node, workspace.name)
        directory.save_all_files(node, root)
        roots[node.id] = root
    return roots


def _sha256(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _zip(path: Path, members: dict[str, str]) -> None:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------


def test_archive_layout(tmp_path: Path, directory: ProjectDirectoryService, workspace: Workspace) -> None:
    roots = _materialise(directory, workspace)
    dest = tmp_path / "demo.nodeyard"

    written = ArchiveCodec().build_archive(workspace, roots, dest)

    assert written == dest.resolve()
    names = ArchiveCodec().list_members(dest)
    assert METADATA_NAME in names
    backend, web = workspace.nodes
    assert f"code/{backend.id}/main.py" in names
    assert f"code/{web.id}/src/index.js" in names
    assert f"code/{web.id}/package.json" in names


def test_excluded_dirs_are_not_archived_at_any_depth(
    tmp_path: Path, directory: ProjectDirectoryService, workspace: Workspace
) -> None:
    roots = _materialise(directory, workspace)
    web = workspace.nodes[1]
    deep = roots[web.id] / "src" / "lib" / "node_modules" / "pkg"
    deep.mkdir(parents=True)
    (deep / "index.js").write_text("x", encoding="utf-8")
    (roots[web.id] / ".git").mkdir()
    (roots[web.id] / ".git" / "HEAD").write_text("ref", encoding="utf-8")
    dest = tmp_path / "demo.nodeyard"

    ArchiveCodec().build_archive(workspace, roots, dest)

    names = ArchiveCodec().list_members(dest)
    assert not any("node_modules" in n or "/.git/" in n for n in names)


def test_node_without_directory_gets_empty_tree(tmp_path: Path, workspace: Workspace) -> None:
    dest = tmp_path / "demo.nodeyard"
    ArchiveCodec().build_archive(workspace, {}, dest)
    names = ArchiveCodec().list_members(dest)
    assert f"code/{workspace.nodes[0].id}/" in names


def test_metadata_member_is_canonical(tmp_path: Path, workspace: Workspace) -> None:
    dest = tmp_path / "demo.nodeyard"
    ArchiveCodec().build_archive(workspace, {}, dest)
    with zipfile.ZipFile(dest) as zf:
        assert zf.read(METADATA_NAME).decode("utf-8") == dump_workspace(workspace)


def test_failed_save_leaves_previous_archive_untouched(
    tmp_path: Path, directory: ProjectDirectoryService, workspace: Workspace
) -> None:
    roots = _materialise(directory, workspace)
    dest = tmp_path / "demo.nodeyard"
    codec = ArchiveCodec()
    codec.build_archive(workspace, roots, dest)
    before = _sha256(dest)

    workspace.name = "Changed"
    with patch("nodeyard.archive.codec._zip_tree", side_effect=OSError("disk full")):
        with pytest.raises(OSError, match="disk full"):
            codec.build_archive(workspace, roots, dest)

    assert _sha256(dest) == before
    assert sorted(p.name for p in tmp_path.iterdir() if p.is_file()) == ["demo.nodeyard"]


def test_staging_directory_is_removed(tmp_path: Path, workspace: Workspace, monkeypatch) -> None:
    staging_parent = tmp_path / "tmp"
    staging_parent.mkdir()
    monkeypatch.setattr("tempfile.tempdir", str(staging_parent))
    ArchiveCodec().build_archive(workspace, {}, tmp_path / "demo.nodeyard")
    assert list(staging_parent.iterdir()) == []


def test_symlinks_are_not_archived(tmp_path: Path, directory: ProjectDirectoryService, workspace: Workspace) -> None:
    roots = _materialise(directory, workspace)
    backend = workspace.nodes[0]
    secret = tmp_path / "secret.txt"
    secret.write_text("do not ship", encoding="utf-8")
    (roots[backend.id] / "link.txt").symlink_to(secret)
    dest = tmp_path / "demo.nodeyard"

    ArchiveCodec().build_archive(workspace, roots, dest)

    assert f"code/{backend.id}/link.txt" not in ArchiveCodec().list_members(dest)


def test_compression_level_validated() -> None:
    with pytest.raises(ValueError):
        ArchiveCodec(compression_level=10)


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def test_round_trip_restores_trees(
    tmp_path: Path, directory: ProjectDirectoryService, workspace: Workspace
) -> None:
    roots = _materialise(directory, workspace)
    backend = workspace.nodes[0]
    (roots[backend.id] / "notes.md").write_text("untracked but archived", encoding="utf-8")
    dest = tmp_path / "demo.nodeyard"
    codec = ArchiveCodec()
    codec.build_archive(workspace, roots, dest)

    target = tmp_path / "restored"
    with codec.open_archive(dest) as extracted:
        assert [n.id for n in extracted.workspace.nodes] == [n.id for n in workspace.nodes]
        count = codec.restore_node_tree(extracted, backend.id, target)
        staging = extracted.staging_dir

    assert count > 0
    assert (target / "notes.md").read_text(encoding="utf-8") == "untracked but archived"
    assert (target / "main.py").read_text(encoding="utf-8") == backend.entry_file().content
    assert not staging.exists()


def test_restore_overwrites_but_keeps_other_files(
    tmp_path: Path, directory: ProjectDirectoryService, workspace: Workspace
) -> None:
    roots = _materialise(directory, workspace)
    backend = workspace.nodes[0]
    dest = tmp_path / "demo.nodeyard"
    codec = ArchiveCodec()
    codec.build_archive(workspace, roots, dest)

    target = tmp_path / "restored"
    target.mkdir()
    (target / "main.py").write_text("stale", encoding="utf-8")
    (target / "local-only.txt").write_text("mine", encoding="utf-8")
    with codec.open_archive(dest) as extracted:
        codec.restore_node_tree(extracted, backend.id, target)

    assert (target / "main.py").read_text(encoding="utf-8") == backend.entry_file().content
    assert (target / "local-only.txt").exists()


def test_read_metadata_without_extracting(tmp_path: Path, workspace: Workspace) -> None:
    dest = tmp_path / "demo.nodeyard"
    ArchiveCodec().build_archive(workspace, {}, dest)
    assert ArchiveCodec().read_metadata(dest).name == workspace.name


def test_missing_archive(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        ArchiveCodec().extract(tmp_path / "missing.nodeyard")


def test_not_a_zip(tmp_path: Path) -> None:
    bogus = tmp_path / "bogus.nodeyard"
    bogus.write_text("hello", encoding="utf-8")
    with pytest.raises(ArchiveFormatError):
        ArchiveCodec().extract(bogus)
    with pytest.raises(ArchiveFormatError):
        ArchiveCodec().read_metadata(bogus)


def test_zip_without_metadata(tmp_path: Path) -> None:
    path = tmp_path / "other.zip"
    _zip(path, {"readme.txt": "hi"})
    with pytest.raises(ArchiveFormatError, match="project.json is missing"):
        ArchiveCodec().extract(path)


def test_zip_with_malformed_metadata(tmp_path: Path) -> None:
    path = tmp_path / "bad.nodeyard"
    _zip(path, {METADATA_NAME: '{"version": "2.0"}'})
    with pytest.raises(ArchiveFormatError):
        ArchiveCodec().extract(path)


@pytest.mark.parametrize("member", ["../evil.txt", "code/x/../../../evil.txt", "/abs/evil.txt"])
def test_zip_slip_is_rejected(tmp_path: Path, workspace: Workspace, member: str) -> None:
    path = tmp_path / "slip.nodeyard"
    _zip(path, {METADATA_NAME: dump_workspace(workspace), member: "pwned"})
    with pytest.raises(ArchiveFormatError, match="escapes"):
        ArchiveCodec().extract(path)
    assert not (tmp_path / "evil.txt").exists()


def test_excluded_members_are_skipped_on_load(tmp_path: Path, workspace: Workspace) -> None:
    node_id = workspace.nodes[0].id
    path = tmp_path / "hand-made.nodeyard"
    _zip(
        path,
        {
            METADATA_NAME: dump_workspace(workspace),
            f"code/{node_id}/main.py": "print('hi')\n",
            f"code/{node_id}/venv/bin/python": "binary",
        },
    )
    target = tmp_path / "restored"
    codec = ArchiveCodec()
    with codec.open_archive(path) as extracted:
        codec.restore_node_tree(extracted, node_id, target)
    assert (target / "main.py").exists()
    assert not (target / "venv").exists()


def test_corrupt_compressed_metadata(tmp_path: Path, workspace: Workspace, corrupt_zip_member) -> None:
    dest = tmp_path / "demo.nodeyard"
    ArchiveCodec().build_archive(workspace, {}, dest)
    corrupt_zip_member(dest, METADATA_NAME)

    with pytest.raises(ArchiveFormatError, match="not a valid workspace archive"):
        ArchiveCodec().extract(dest)
    with pytest.raises(ArchiveFormatError, match="not a valid workspace archive"):
        ArchiveCodec().read_metadata(dest)
