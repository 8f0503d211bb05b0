"""Single-file workspace archives: metadata + exclusion-filtered code trees."""

from nodeyard.archive.codec import ARCHIVE_SUFFIX, ArchiveCodec, ExtractedArchive
from nodeyard.archive.exclusions import EXCLUDED_DIRS
from nodeyard.archive.metadata import dump_workspace, load_workspace

__all__ = [
    "ARCHIVE_SUFFIX",
    "ArchiveCodec",
    "EXCLUDED_DIRS",
    "ExtractedArchive",
    "dump_workspace",
    "load_workspace",
]
