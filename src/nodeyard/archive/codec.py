"""Archive Codec — the whole workspace as one zip file.

Archive layout:
  project.json               canonical workspace metadata (see metadata.py)
  code/<node id>/...         each node's project tree minus EXCLUDED_DIRS
                             (symbolic links are not archived)

Save builds everything in a temporary staging directory, zips it into a temp
file next to the destination and only then renames it over the destination,
so an interrupted or failed save never damages the previous archive.

Load extracts into a temporary staging directory, validates every member
path (no absolute paths, no ``..``) and parses ``project.json``. The staging
directory lives for the duration of the ``open_archive()`` context so callers
can restore node trees concurrently, and is always removed afterwards.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from nodeyard.archive.exclusions import ignore_excluded, is_excluded_path
from nodeyard.archive.metadata import dump_workspace, load_workspace
from nodeyard.errors import ArchiveFormatError
from nodeyard.models import Workspace

logger = logging.getLogger(__name__)

METADATA_NAME = "project.json"
CODE_DIR = "code"
ARCHIVE_SUFFIX = ".nodeyard"


@dataclass
class ExtractedArchive:
    """A parsed archive whose code trees are staged on disk."""

    workspace: Workspace
    staging_dir: Path

    def code_dir(self, node_id: str) -> Path:
        return self.staging_dir / CODE_DIR / _node_dir_name(node_id)

    def cleanup(self) -> None:
        shutil.rmtree(self.staging_dir, ignore_errors=True)


class ArchiveCodec:
    """Serialise / deserialise a workspace and its project trees."""

    def __init__(self, compression_level: int = 6) -> None:
        if not 0 <= compression_level <= 9:
            raise ValueError("compression_level must be in [0, 9]")
        self.compression_level = compression_level

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def build_archive(
        self,
        workspace: Workspace,
        project_roots: dict[str, Path],
        dest: Path,
    ) -> Path:
        """Write *workspace* and its project trees to *dest*.

        Args:
            workspace: Snapshot to serialise (not mutated).
            project_roots: Node id → project directory. Nodes without an
                existing directory get an empty code tree.
            dest: Archive path. Replaced atomically on success only.

        Returns:
            The resolved destination path.

        Raises:
            OSError: On any filesystem failure; *dest* is left untouched.
        """
        dest = Path(dest).resolve()
        staging = Path(tempfile.mkdtemp(prefix="nodeyard-save-"))
        try:
            (staging / METADATA_NAME).write_text(dump_workspace(workspace), encoding="utf-8")
            code_root = staging / CODE_DIR
            code_root.mkdir()

            for node in workspace.nodes:
                target = code_root / _node_dir_name(node.id)
                source = project_roots.get(node.id)
                if source is not None and Path(source).is_dir():
                    shutil.copytree(source, target, ignore=ignore_excluded, symlinks=True)
                else:
                    target.mkdir()

            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp"
            )
            os.close(fd)
            try:
                _zip_tree(staging, Path(tmp_name), self.compression_level)
                os.replace(tmp_name, dest)
            except Exception:
                # Clean up temp file on error
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info("Saved workspace '%s' (%d nodes) to %s", workspace.name, len(workspace.nodes), dest)
        return dest

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def extract(self, path: Path) -> ExtractedArchive:
        """Extract and parse *path* into a new staging directory.

        The caller owns the result and must call ``cleanup()`` on it; prefer
        ``open_archive()`` unless the steps run on different threads.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ArchiveFormatError: If *path* is not a valid workspace archive.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Archive not found: {path}")

        staging = Path(tempfile.mkdtemp(prefix="nodeyard-load-"))
        try:
            _extract(path, staging)
            metadata = staging / METADATA_NAME
            if not metadata.is_file():
                raise ArchiveFormatError(
                    f"'{path}' is not a valid workspace archive: {METADATA_NAME} is missing"
                )
            workspace = load_workspace(metadata.read_bytes())
            for node in workspace.nodes:
                _node_dir_name(node.id)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        return ExtractedArchive(workspace=workspace, staging_dir=staging)

    @contextmanager
    def open_archive(self, path: Path) -> Iterator[ExtractedArchive]:
        """Context-managed ``extract()``; the staging directory is always removed."""
        extracted = self.extract(path)
        try:
            yield extracted
        finally:
            extracted.cleanup()

    def restore_node_tree(self, extracted: ExtractedArchive, node_id: str, dest: Path) -> int:
        """Copy node *node_id*'s staged tree into *dest*, overwriting files.

        Returns:
            Number of files restored.
        """
        source = extracted.code_dir(node_id)
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        if not source.is_dir():
            return 0
        shutil.copytree(source, dest, ignore=ignore_excluded, symlinks=True, dirs_exist_ok=True)
        restored = sum(len(files) for _, _, files in os.walk(source))
        logger.debug("Restored %d files for node %s into %s", restored, node_id, dest)
        return restored

    def read_metadata(self, path: Path) -> Workspace:
        """Parse only the metadata member of *path* (no extraction)."""
        try:
            with zipfile.ZipFile(path) as zf:
                try:
                    raw = zf.read(METADATA_NAME)
                except KeyError:
                    raise ArchiveFormatError(
                        f"'{path}' is not a valid workspace archive: {METADATA_NAME} is missing"
                    ) from None
        except (zipfile.BadZipFile, zlib.error) as exc:
            raise ArchiveFormatError(f"'{path}' is not a valid workspace archive: {exc}") from exc
        return load_workspace(raw)

    def list_members(self, path: Path) -> list[str]:
        try:
            with zipfile.ZipFile(path) as zf:
                return sorted(zf.namelist())
        except zipfile.BadZipFile as exc:
            raise ArchiveFormatError(f"'{path}' is not a valid workspace archive: {exc}") from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _node_dir_name(node_id: str) -> str:
    """Node ids become directory names; refuse anything that is not one component."""
    if not node_id or node_id in (".", "..") or any(c in node_id for c in "/\\:\x00"):
        raise ArchiveFormatError(f"Node id '{node_id}' cannot be used as a directory name")
    return node_id


def _zip_tree(root: Path, archive_path: Path, compression_level: int) -> None:
    """Zip everything under *root* (sorted, directories included) into *archive_path*."""
    with zipfile.ZipFile(
        archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level
    ) as zf:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            rel_dir = Path(dirpath).relative_to(root)
            if rel_dir != Path("."):
                zf.write(dirpath, rel_dir.as_posix() + "/")
            for name in sorted(filenames):
                full = Path(dirpath) / name
                if full.is_symlink():
                    logger.debug("Skipping symbolic link %s", full)
                    continue
                zf.write(full, (rel_dir / name).as_posix())


def _safe_member_name(name: str) -> str | None:
    """Validate one zip member name; returns None for entries to skip."""
    normalized = name.replace("\\", "/")
    p = PurePosixPath(normalized)
    if p.is_absolute() or ".." in p.parts or (len(normalized) > 1 and normalized[1] == ":"):
        raise ArchiveFormatError(f"Archive member escapes the extraction directory: '{name}'")
    if is_excluded_path(normalized):
        return None
    return normalized


def _extract(path: Path, staging: Path) -> None:
    try:
        with zipfile.ZipFile(path) as zf:
            members = []
            for info in zf.infolist():
                if _safe_member_name(info.filename) is None:
                    logger.debug("Skipping excluded archive member %s", info.filename)
                    continue
                members.append(info)
            zf.extractall(staging, members=members)
    except (zipfile.BadZipFile, zlib.error) as exc:
        raise ArchiveFormatError(f"'{path}' is not a valid workspace archive: {exc}") from exc
    except (zipfile.LargeZipFile, NotImplementedError, EOFError) as exc:
        raise ArchiveFormatError(f"Cannot extract '{path}': {exc}") from exc
