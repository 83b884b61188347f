"""
Platform suffix detection for RuntimeKit.

A platform suffix (runtime identifier) names the OS family and CPU
architecture an artifact was built for, e.g. ``win-x64``, ``osx-arm64`` or
``linux-musl-x64``. Detection returns an ordered list: the closest match
first, then an optional legacy identifier that older releases were
published under.

Two detectors implement the PlatformDetector interface:

- TablePlatformDetector: OS families with a single well-known naming
  convention (Windows, macOS). Computed directly, no probing.
- ProbePlatformDetector: everything else. Runs an external probe
  executable and parses its ``Primary:`` / ``Legacy:`` lines.

Usage:
    from runtimekit.core.platform import default_detector

    suffixes = default_detector(probe_path).detect()
    print(suffixes)  # ['linux-x64', 'ubuntu.18.04-x64']
"""

import logging
import os
import platform
import stat
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional

from runtimekit.core.exceptions import PlatformDetectionError

logger = logging.getLogger(__name__)

PRIMARY_MARKER = "Primary:"
LEGACY_MARKER = "Legacy:"

# OS family -> runtime identifier prefix
SUFFIX_TABLE: Dict[str, str] = {
    "windows": "win",
    "macos": "osx",
}


def detect_os_family() -> str:
    """
    Detect operating system family.

    Returns:
        Normalized OS family: 'windows', 'macos', 'linux' or the raw
        lower-cased ``platform.system()`` value for anything else
    """
    system = platform.system().lower()

    if system == "windows" or system.startswith(("cygwin", "msys")):
        return "windows"
    elif system == "darwin":
        return "macos"
    return system


def detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'arm64', 'x86', 'arm'
    """
    machine = platform.machine().lower()

    # Normalize architecture names
    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    else:
        # Return original for unknown architectures
        return machine


def parse_probe_output(output: str) -> List[str]:
    """
    Extract platform suffixes from probe output.

    A marker counts only at the start of a line; the suffix is the rest of
    that line. The first line per marker wins and primary is returned
    before legacy.

    Args:
        output: Standard output of the probe

    Returns:
        Ordered list of suffixes (possibly empty)

    Example:
        >>> parse_probe_output("Primary: linux-x64\\nLegacy: ubuntu.18.04-x64\\n")
        ['linux-x64', 'ubuntu.18.04-x64']
    """
    found: Dict[str, str] = {}
    for line in output.splitlines():
        for marker in (PRIMARY_MARKER, LEGACY_MARKER):
            if marker not in found and line.startswith(marker):
                value = line[len(marker) :].strip()
                if value:
                    found[marker] = value
    return [found[m] for m in (PRIMARY_MARKER, LEGACY_MARKER) if m in found]


class PlatformDetector(ABC):
    """Produces the ordered platform suffixes for the current machine."""

    @abstractmethod
    def detect(self) -> List[str]:
        """
        Detect platform suffixes.

        Returns:
            Non-empty list of suffixes, most specific first

        Raises:
            PlatformDetectionError: If no suffix can be determined
        """


class TablePlatformDetector(PlatformDetector):
    """
    Table-driven detector for OS families with a fixed naming convention.

    Example:
        >>> TablePlatformDetector(os_family="windows", arch="x64").detect()
        ['win-x64']
    """

    def __init__(self, os_family: Optional[str] = None, arch: Optional[str] = None):
        self.os_family = os_family or detect_os_family()
        self.arch = arch or detect_architecture()

    @staticmethod
    def supports(os_family: str) -> bool:
        """Check whether an OS family can be detected without probing."""
        return os_family in SUFFIX_TABLE

    def detect(self) -> List[str]:
        prefix = SUFFIX_TABLE.get(self.os_family)
        if prefix is None:
            raise PlatformDetectionError(
                f"No naming convention known for OS family '{self.os_family}'",
                context={"os_family": self.os_family, "arch": self.arch},
            )
        primary = f"{prefix}-{self.arch}"
        logger.info(f"Primary platform: {primary}")
        return [primary]


class ProbePlatformDetector(PlatformDetector):
    """
    Detector backed by an external probe executable.

    The probe takes no arguments, exits 0 on success and prints lines
    starting with ``Primary:`` and optionally ``Legacy:``.
    """

    def __init__(
        self,
        probe_path: Path,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        """
        Initialize probe detector.

        Args:
            probe_path: Path to the probe executable
            runner: Callable with the ``subprocess.run`` signature
        """
        self.probe_path = Path(probe_path)
        self.runner = runner

    def _ensure_executable(self):
        if os.name == "nt" or not self.probe_path.exists():
            return
        mode = self.probe_path.stat().st_mode
        wanted = mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
        if mode != wanted:
            try:
                self.probe_path.chmod(wanted)
            except OSError as e:
                logger.debug(f"Could not mark probe executable: {e}")

    def detect(self) -> List[str]:
        self._ensure_executable()
        logger.debug(f"Running platform probe: {self.probe_path}")

        try:
            result = self.runner(
                [str(self.probe_path)],
                capture_output=True,
                text=True,
                encoding="utf-8",
            )
        except (OSError, UnicodeDecodeError) as e:
            raise PlatformDetectionError(
                f"Failed to run platform probe {self.probe_path}: {e}",
                context={"probe": str(self.probe_path)},
                cause=e,
            ) from e

        if result.returncode != 0:
            raise PlatformDetectionError(
                f"Platform probe exited with code {result.returncode}: "
                f"{(result.stderr or '').strip()}",
                context={
                    "probe": str(self.probe_path),
                    "returncode": result.returncode,
                    "stderr": result.stderr,
                },
            )

        suffixes = parse_probe_output(result.stdout or "")
        if not suffixes:
            raise PlatformDetectionError(
                "Could not detect platform: probe output has no "
                f"'{PRIMARY_MARKER}' or '{LEGACY_MARKER}' line",
                context={"probe": str(self.probe_path), "stdout": result.stdout},
            )

        logger.info(f"Primary platform: {suffixes[0]}")
        for legacy in suffixes[1:]:
            logger.info(f"Legacy platform: {legacy}")
        return suffixes


def default_probe_path() -> Path:
    """Get path to the probe script bundled with the package."""
    return Path(__file__).parent.parent / "externals" / "get-os-distro.sh"


def default_detector(probe_path: Optional[Path] = None) -> PlatformDetector:
    """
    Pick the detector for the current machine.

    Args:
        probe_path: Probe executable used on OS families outside the table

    Returns:
        TablePlatformDetector on Windows/macOS, ProbePlatformDetector otherwise
    """
    os_family = detect_os_family()
    if TablePlatformDetector.supports(os_family):
        return TablePlatformDetector(os_family=os_family)
    return ProbePlatformDetector(probe_path or default_probe_path())


__all__ = [
    "PRIMARY_MARKER",
    "LEGACY_MARKER",
    "SUFFIX_TABLE",
    "PlatformDetector",
    "TablePlatformDetector",
    "ProbePlatformDetector",
    "parse_probe_output",
    "detect_os_family",
    "detect_architecture",
    "default_probe_path",
    "default_detector",
]
