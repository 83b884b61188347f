"""
File system utilities for RuntimeKit.

This module provides:
- Archive extraction (zip, and tar with any compression tarfile understands)
- Safe file operations (atomic writes, safe deletion)

Extraction always targets a fresh directory; a failed extraction removes
that directory so no partial tree is ever returned.
"""

import logging
import os
import shutil
import sys
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

from runtimekit.core.exceptions import ExtractionError

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"

ZIP_SUFFIXES = (".zip",)


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


class InsecureArchiveError(FilesystemError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check whether ``path`` is located under ``parent``.

    Example:
        >>> is_relative_to(Path("/a/b/c"), Path("/a"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal"
        )


def is_zip_archive(archive_path: Union[str, Path]) -> bool:
    """Check whether a file name carries a zip-container suffix."""
    return Path(archive_path).name.lower().endswith(ZIP_SUFFIXES)


def extract_archive(archive_path: Union[str, Path], destination: Union[str, Path]):
    """
    Extract an archive to a destination directory.

    Files ending in ``.zip`` are extracted as zip archives; anything else is
    opened as a tar archive with transparent decompression (gz, bz2, xz).

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to

    Raises:
        FileNotFoundError: If the archive does not exist
        InsecureArchiveError: If archive contains malicious paths
        zipfile.BadZipFile, tarfile.TarError, OSError: On corrupt content

    Example:
        >>> extract_archive('dotnet-sdk-3.1.404-win-x64.zip', 'C:/tmp/sdk')
        >>> extract_archive('dotnet-sdk-3.1.404-linux-x64.tar.gz', '/tmp/sdk')
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise FileNotFoundError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)

    if is_zip_archive(archive_path):
        _extract_zip(archive_path, destination)
    else:
        _extract_tar(archive_path, destination)


def _extract_zip(archive_path: Path, destination: Path) -> None:
    """Extract a ZIP archive."""
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.namelist()

        # Validate all paths first
        for member in members:
            _validate_archive_path(member, destination)

        zf.extractall(destination)


def _extract_tar(archive_path: Path, destination: Path) -> None:
    """Extract a tar archive, detecting compression automatically."""
    with tarfile.open(archive_path, "r:*") as tar:
        members = tar.getmembers()

        # Validate all paths first
        for member in members:
            _validate_archive_path(member.name, destination)

        # Extract with filter for security (Python 3.12+)
        # For older Python, we've already validated paths above
        if sys.version_info >= (3, 12):
            tar.extractall(destination, filter="data")
        else:
            tar.extractall(destination)


class ArchiveExtractor:
    """
    Extracts downloaded archives into disposable directories.

    Example:
        >>> extractor = ArchiveExtractor(Path("/tmp/runtimekit"))
        >>> root = extractor.extract(Path("dotnet-sdk-3.1.404-linux-x64.tar.gz"))
    """

    def __init__(self, work_dir: Path):
        self.work_dir = Path(work_dir)

    def extract(self, archive_path: Path) -> Path:
        """
        Extract an archive into a new directory under work_dir.

        Args:
            archive_path: Downloaded archive

        Returns:
            Root of the extracted tree

        Raises:
            ExtractionError: If the archive is missing, corrupt or unsafe
        """
        archive_path = Path(archive_path)
        self.work_dir.mkdir(parents=True, exist_ok=True)
        destination = Path(tempfile.mkdtemp(prefix="extract_", dir=self.work_dir))

        logger.info(f"Extracting package: {archive_path}")
        try:
            extract_archive(archive_path, destination)
        except (
            FileNotFoundError,
            InsecureArchiveError,
            zipfile.BadZipFile,
            tarfile.TarError,
            OSError,
            EOFError,
        ) as e:
            safe_rmtree(destination)
            raise ExtractionError(
                f"Failed to extract {archive_path.name}: {e}",
                context={
                    "archive": str(archive_path),
                    "format": "zip" if is_zip_archive(archive_path) else "tar",
                },
                cause=e,
            ) from e

        logger.debug(f"Extracted {archive_path.name} to {destination}")
        return destination


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The file is never observed in a partially-written state.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (ensures same filesystem)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/tmp/build', require_prefix='/tmp')
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(path, os.W_OK):
                    os.chmod(path, 0o777)
                    func(path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


__all__ = [
    "FilesystemError",
    "InsecureArchiveError",
    "ArchiveExtractor",
    "extract_archive",
    "is_zip_archive",
    "is_relative_to",
    "atomic_write",
    "safe_rmtree",
]
