"""
Shared tool cache for installed runtimes and SDKs.

Layout (the convention used by pipeline agents' tool caches)::

    <cache>/<tool>/<version>/<arch>/           extracted tool tree
    <cache>/<tool>/<version>/<arch>.complete   completion marker

An entry exists only once its marker has been written, and the marker is
written last. Lookups never re-validate the tree behind a marker.
"""

import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from runtimekit.core.exceptions import CacheStoreError
from runtimekit.core.filesystem import FilesystemError, atomic_write, safe_rmtree
from runtimekit.core.platform import detect_architecture
from runtimekit.core.version import validate_exact_version

logger = logging.getLogger(__name__)

MARKER_SUFFIX = ".complete"


class ToolCache:
    """
    Keyed store of extracted tool directories.

    Example:
        >>> cache = ToolCache(Path("/agent/_work/_tool"))
        >>> path = cache.lookup("dncs", "3.1.404")
        >>> if path is None:
        ...     path = cache.store(extracted_root, "dncs", "3.1.404")
    """

    def __init__(self, root: Path, arch: Optional[str] = None):
        """
        Initialize tool cache.

        Args:
            root: Cache root directory
            arch: Architecture component of cache keys (default: detected)
        """
        self.root = Path(root)
        self.arch = arch or detect_architecture()

    def _entry_dir(self, name: str, version: str) -> Path:
        return self.root / name / version / self.arch

    def _marker(self, name: str, version: str) -> Path:
        return self.root / name / version / f"{self.arch}{MARKER_SUFFIX}"

    def lookup(self, name: str, version: str) -> Optional[Path]:
        """
        Find a previously stored tool.

        Args:
            name: Tool name (e.g. 'dncs')
            version: Exact version

        Returns:
            Cached tool path, or None if not cached

        Raises:
            InvalidVersionError: If version is not exact
        """
        version = validate_exact_version(version)
        entry = self._entry_dir(name, version)

        if entry.is_dir() and self._marker(name, version).is_file():
            logger.debug(f"Found {name} {version} in tool cache: {entry}")
            return entry

        logger.debug(f"{name} {version} not found in tool cache")
        return None

    def store(self, source_dir: Path, name: str, version: str) -> Path:
        """
        Move an extracted tree into the cache.

        Args:
            source_dir: Fully extracted tool tree
            name: Tool name
            version: Exact version

        Returns:
            Permanent cached path

        Raises:
            InvalidVersionError: If version is not exact
            CacheStoreError: If the tree cannot be moved or the marker written
        """
        version = validate_exact_version(version)
        source_dir = Path(source_dir)
        entry = self._entry_dir(name, version)
        marker = self._marker(name, version)
        context = {
            "name": name,
            "version": version,
            "source": str(source_dir),
            "destination": str(entry),
        }

        if not source_dir.is_dir():
            raise CacheStoreError(
                f"Source directory does not exist: {source_dir}", context=context
            )

        logger.info(f"Caching tool: {name} {version} ({self.arch})")

        try:
            # Leftover from an interrupted run
            marker.unlink(missing_ok=True)
            if entry.exists():
                safe_rmtree(entry, require_prefix=self.root)

            entry.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source_dir), str(entry))

            atomic_write(
                marker,
                json.dumps(
                    {
                        "name": name,
                        "version": version,
                        "arch": self.arch,
                        "installed": datetime.now().isoformat(),
                    },
                    indent=2,
                ),
            )
        except (OSError, shutil.Error, FilesystemError) as e:
            raise CacheStoreError(
                f"Failed to cache {name} {version}: {e}", context=context, cause=e
            ) from e

        logger.debug(f"Cached {name} {version} at {entry}")
        return entry

    def list_versions(self, name: str) -> List[str]:
        """
        List versions of a tool with a completed cache entry.

        Args:
            name: Tool name

        Returns:
            Sorted list of versions
        """
        tool_dir = self.root / name
        if not tool_dir.is_dir():
            return []

        versions = [
            version_dir.name
            for version_dir in tool_dir.iterdir()
            if version_dir.is_dir()
            and (version_dir / self.arch).is_dir()
            and (version_dir / f"{self.arch}{MARKER_SUFFIX}").is_file()
        ]
        return sorted(versions)


__all__ = ["ToolCache", "MARKER_SUFFIX"]
