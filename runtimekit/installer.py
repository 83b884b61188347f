"""
Runtime/SDK installer.

This module orchestrates installing an exactly pinned runtime or SDK into the
shared tool cache:

1. Check the tool cache (a hit skips everything below)
2. Detect platform suffixes
3. Resolve candidate download URLs
4. Download from the first working candidate
5. Extract into a disposable directory
6. Store the extracted tree in the tool cache

On success, from either branch, the installed path is prepended to PATH and
exported as the root variable (DOTNET_ROOT).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from runtimekit.config import InstallerConfig
from runtimekit.core.download import DownloadManager
from runtimekit.core.environment import ProcessEnvironment
from runtimekit.core.exceptions import InvalidInputError
from runtimekit.core.filesystem import ArchiveExtractor, FilesystemError, safe_rmtree
from runtimekit.core.interfaces import UrlResolver
from runtimekit.core.platform import PlatformDetector, default_detector
from runtimekit.core.tool_cache import ToolCache
from runtimekit.core.version import validate_exact_version
from runtimekit.releases import ReleaseUrlResolver

logger = logging.getLogger(__name__)


class PackageType(str, Enum):
    """Kind of package to install."""

    SDK = "sdk"
    RUNTIME = "runtime"

    @property
    def tool_name(self) -> str:
        """Name the package is stored under in the tool cache."""
        return "dncs" if self is PackageType.SDK else "dncr"


@dataclass(frozen=True)
class ToolRequest:
    """
    A validated install request.

    Example:
        >>> request = ToolRequest.from_inputs("sdk", " 3.1.404 ")
        >>> request.cache_key
        ('dncs', '3.1.404')
    """

    package_type: PackageType
    version: str

    @classmethod
    def from_inputs(cls, package_type: str, version: str) -> "ToolRequest":
        """
        Build a request from raw input values.

        Args:
            package_type: 'sdk' or 'runtime'
            version: Exact version, surrounding whitespace ignored

        Returns:
            ToolRequest

        Raises:
            InvalidInputError: If an input is missing or package type unknown
            InvalidVersionError: If version is not exact
        """
        if not package_type or not package_type.strip():
            raise InvalidInputError(
                "Input required: packageType", context={"input": "packageType"}
            )
        try:
            kind = PackageType(package_type.strip().lower())
        except ValueError as e:
            raise InvalidInputError(
                f"Unsupported package type '{package_type}', "
                f"expected one of: {', '.join(t.value for t in PackageType)}",
                context={"input": "packageType", "value": package_type},
                cause=e,
            ) from e

        if version is None or not version.strip():
            raise InvalidInputError(
                "Input required: version", context={"input": "version"}
            )

        return cls(package_type=kind, version=validate_exact_version(version.strip()))

    @property
    def tool_name(self) -> str:
        return self.package_type.tool_name

    @property
    def cache_key(self) -> Tuple[str, str]:
        return (self.tool_name, self.version)


@dataclass
class InstallResult:
    """Result of an install."""

    request: ToolRequest
    """Request that was installed"""

    tool_path: Path
    """Cached tool directory"""

    was_cached: bool
    """Whether the tool was already in the cache"""

    source_url: Optional[str] = None
    """URL the package was downloaded from (None on cache hit)"""


class Installer:
    """
    Installs a runtime or SDK into the tool cache.

    Example:
        >>> installer = Installer.from_config(load_config())
        >>> result = installer.install(ToolRequest.from_inputs("sdk", "3.1.404"))
        >>> print(f"Installed at: {result.tool_path}")
    """

    def __init__(
        self,
        tool_cache: ToolCache,
        detector: PlatformDetector,
        resolver: UrlResolver,
        download_manager: DownloadManager,
        extractor: ArchiveExtractor,
        environment: ProcessEnvironment,
        root_variable: str = "DOTNET_ROOT",
    ):
        self.tool_cache = tool_cache
        self.detector = detector
        self.resolver = resolver
        self.download_manager = download_manager
        self.extractor = extractor
        self.environment = environment
        self.root_variable = root_variable

    @classmethod
    def from_config(cls, config: InstallerConfig) -> "Installer":
        """
        Create an installer wired with the default stage implementations.

        Args:
            config: Installer configuration

        Returns:
            Installer
        """
        return cls(
            tool_cache=ToolCache(config.tool_cache_dir),
            detector=default_detector(config.probe_path),
            resolver=ReleaseUrlResolver(
                index_url=config.release_index_url,
                download_base_url=config.download_base_url,
                timeout=config.download_timeout,
            ),
            download_manager=DownloadManager(
                config.temp_dir, timeout=config.download_timeout
            ),
            extractor=ArchiveExtractor(config.temp_dir),
            environment=ProcessEnvironment(
                emit_pipeline_commands=config.emit_pipeline_commands
            ),
            root_variable=config.root_variable,
        )

    def install(self, request: ToolRequest) -> InstallResult:
        """
        Install the requested package and expose it to later processes.

        Args:
            request: Validated request

        Returns:
            InstallResult

        Raises:
            RuntimeKitError: Any stage failure; nothing is cached on failure
        """
        logger.info(f"Tool to install: {request.package_type.value} {request.version}")
        logger.info("Checking tool cache")

        tool_path = self.tool_cache.lookup(*request.cache_key)
        if tool_path is not None:
            logger.info(f"Using cached tool: {tool_path}")
            result = InstallResult(request=request, tool_path=tool_path, was_cached=True)
        else:
            logger.info("Installing afresh")
            result = self._download_and_install(request)

        self._apply_environment(result.tool_path)
        return result

    def _download_and_install(self, request: ToolRequest) -> InstallResult:
        suffixes = self.detector.detect()

        urls = self.resolver.get_download_urls(
            suffixes, request.version, request.package_type.value
        )

        download_dir = self.download_manager.new_download_dir()
        extracted_root = None
        try:
            outcome = self.download_manager.download(urls, download_dir)
            logger.info(f"Downloaded {outcome.url}")

            extracted_root = self.extractor.extract(outcome.path)

            tool_path = self.tool_cache.store(
                extracted_root, request.tool_name, request.version
            )
        finally:
            self._cleanup(download_dir, extracted_root)

        logger.info(
            f"Successfully installed {request.package_type.value} {request.version}"
        )
        return InstallResult(
            request=request, tool_path=tool_path, was_cached=False, source_url=outcome.url
        )

    def _cleanup(self, download_dir: Path, extracted_root: Optional[Path]):
        """Remove per-run scratch directories."""
        for path in (download_dir, extracted_root):
            if path is None or not path.exists():
                continue
            try:
                safe_rmtree(path)
                logger.debug(f"Removed scratch directory: {path}")
            except FilesystemError as e:
                logger.warning(f"Failed to remove scratch directory {path}: {e}")

    def _apply_environment(self, tool_path: Path):
        self.environment.prepend_path(tool_path)
        self.environment.set_variable(self.root_variable, tool_path)


__all__ = ["PackageType", "ToolRequest", "InstallResult", "Installer"]
