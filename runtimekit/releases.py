"""
Download URL resolution from .NET release metadata.

Given the platform suffixes for this machine, an exact version and a package
type, produce candidate download URLs ordered from most to least specific:
for each suffix (primary first) the URLs published in the release metadata,
then the canonical URL on the download server.

Release metadata problems are not fatal. They are logged and the canonical
URLs are still returned, so the download manager always has candidates.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests
from requests.exceptions import RequestException

from runtimekit.config import DEFAULT_DOWNLOAD_BASE_URL, DEFAULT_RELEASE_INDEX_URL
from runtimekit.core.interfaces import UrlResolver
from runtimekit.core.version import channel_of, validate_exact_version

logger = logging.getLogger(__name__)


class ReleaseMetadataError(Exception):
    """Release metadata could not be fetched or understood."""

    pass


def _dict_items(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    """
    Get the object entries of a list field in release metadata.

    A missing or null field is empty; non-object entries are skipped.

    Raises:
        ReleaseMetadataError: If the field is present but not a list
    """
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ReleaseMetadataError(
            f"Unexpected release metadata: '{key}' is {type(value).__name__}, not a list"
        )
    return [item for item in value if isinstance(item, dict)]


def archive_extension(suffix: str) -> str:
    """
    Get the archive extension published for a platform suffix.

    Example:
        >>> archive_extension("win-x64")
        'zip'
        >>> archive_extension("linux-x64")
        'tar.gz'
    """
    return "zip" if suffix.startswith("win") else "tar.gz"


class ReleaseUrlResolver(UrlResolver):
    """
    Resolves candidate download URLs for a runtime or SDK.

    Example:
        >>> resolver = ReleaseUrlResolver()
        >>> resolver.get_download_urls(["linux-x64"], "3.1.404", "sdk")
        ['https://download.visualstudio.microsoft.com/.../dotnet-sdk-3.1.404-linux-x64.tar.gz',
         'https://dotnetcli.azureedge.net/dotnet/Sdk/3.1.404/dotnet-sdk-3.1.404-linux-x64.tar.gz']
    """

    def __init__(
        self,
        index_url: str = DEFAULT_RELEASE_INDEX_URL,
        download_base_url: str = DEFAULT_DOWNLOAD_BASE_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize resolver.

        Args:
            index_url: URL of releases-index.json
            download_base_url: Base of canonical download URLs
            timeout: Request timeout in seconds
            session: Optional requests session
        """
        self.index_url = index_url
        self.download_base_url = download_base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_json(self, url: str) -> Dict[str, Any]:
        logger.debug(f"Fetching release metadata: {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (RequestException, ValueError) as e:
            raise ReleaseMetadataError(f"Failed to fetch {url}: {e}") from e

        if not isinstance(data, dict):
            raise ReleaseMetadataError(f"Unexpected release metadata format at {url}")
        return data

    def _release_files(self, version: str, package_type: str) -> List[Dict[str, Any]]:
        """Get the files published for an exact version."""
        channel = channel_of(version)
        index = self._get_json(self.index_url)

        channel_entry = next(
            (
                entry
                for entry in _dict_items(index, "releases-index")
                if entry.get("channel-version") == channel
            ),
            None,
        )
        releases_url = channel_entry.get("releases.json") if channel_entry else None
        if not releases_url or not isinstance(releases_url, str):
            raise ReleaseMetadataError(f"Channel {channel} not found in release index")

        for release in _dict_items(self._get_json(releases_url), "releases"):
            if package_type == "sdk":
                components = [release.get("sdk")] + _dict_items(release, "sdks")
            else:
                components = [release.get("runtime")]

            for component in components:
                if isinstance(component, dict) and component.get("version") == version:
                    return _dict_items(component, "files")

        raise ReleaseMetadataError(
            f"{package_type} {version} not found in channel {channel}"
        )

    def canonical_url(self, suffix: str, version: str, package_type: str) -> str:
        """
        Build the canonical download server URL for one suffix.

        Example:
            >>> ReleaseUrlResolver().canonical_url("win-x64", "3.1.404", "sdk")
            'https://dotnetcli.azureedge.net/dotnet/Sdk/3.1.404/dotnet-sdk-3.1.404-win-x64.zip'
        """
        folder = "Sdk" if package_type == "sdk" else "Runtime"
        name = "sdk" if package_type == "sdk" else "runtime"
        return (
            f"{self.download_base_url}/{folder}/{version}/"
            f"dotnet-{name}-{version}-{suffix}.{archive_extension(suffix)}"
        )

    def get_download_urls(
        self, suffixes: Iterable[str], version: str, package_type: str
    ) -> List[str]:
        """
        Resolve ordered candidate URLs.

        Args:
            suffixes: Platform suffixes, most specific first
            version: Exact version
            package_type: 'sdk' or 'runtime'

        Returns:
            Ordered, de-duplicated candidate URLs

        Raises:
            InvalidVersionError: If version is not exact
        """
        version = validate_exact_version(version)
        suffixes = list(suffixes)
        logger.info(f"Getting download URLs for {package_type} {version}")

        try:
            files = self._release_files(version, package_type)
        except ReleaseMetadataError as e:
            logger.warning(f"Release metadata unavailable, using canonical URLs: {e}")
            files = []

        urls: List[str] = []
        for suffix in suffixes:
            extension = "." + archive_extension(suffix)
            for entry in files:
                url = entry.get("url")
                name = entry.get("name") or url
                if not isinstance(url, str) or not isinstance(name, str):
                    continue
                if url and entry.get("rid") == suffix and name.endswith(extension):
                    urls.append(url)
            urls.append(self.canonical_url(suffix, version, package_type))

        # Preserve order, drop duplicates
        ordered = list(dict.fromkeys(urls))
        for url in ordered:
            logger.debug(f"Candidate URL: {url}")
        return ordered


__all__ = ["ReleaseUrlResolver", "ReleaseMetadataError", "archive_extension"]
