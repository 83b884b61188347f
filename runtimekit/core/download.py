"""
Network download manager with ordered multi-source fallback.

This module provides:
- Streaming HTTP/HTTPS downloads with TLS verification
- Progress reporting (bytes, percentage, speed, ETA)
- Truncated-transfer detection against Content-Length
- Ordered fallback across candidate URLs, first success wins

Candidates are attempted one at a time, in order, exactly once each. A
failing candidate is logged as a warning and recorded; the download only
fails when every candidate has failed.
"""

import logging
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
from requests.exceptions import RequestException

from runtimekit.core.exceptions import DownloadError

logger = logging.getLogger(__name__)


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


class TransferError(Exception):
    """A single download attempt failed."""

    pass


@dataclass(frozen=True)
class CandidateFailure:
    """Failure of one candidate URL."""

    url: str
    detail: str


@dataclass(frozen=True)
class DownloadOutcome:
    """
    Result of trying an ordered list of candidate URLs.

    On success ``path`` and ``url`` identify the downloaded file and the
    candidate it came from; ``failures`` holds every candidate that failed
    before it. On failure ``path`` and ``url`` are None and ``failures``
    has one entry per candidate.
    """

    path: Optional[Path] = None
    url: Optional[str] = None
    failures: Tuple[CandidateFailure, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return self.path is not None


def download_file(
    url: str,
    destination: Path,
    timeout: int = 30,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Download file from URL to destination in a single attempt.

    Args:
        url: URL to download from
        destination: Local path to save file
        timeout: Request timeout in seconds
        progress_callback: Optional callback for progress updates
        session: Optional requests session (default: module-level requests)

    Returns:
        Path to downloaded file

    Raises:
        TransferError: On network error, non-success status, or a transfer
            shorter than the advertised Content-Length
        ValueError: If URL or destination is invalid

    Example:
        >>> url = "https://example.com/dotnet-sdk-3.1.404-linux-x64.tar.gz"
        >>> download_file(url, Path("tmp/dotnet-sdk.tar.gz"))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    http = session or requests
    logger.info(f"Downloading from {url}")

    try:
        response = http.get(url, stream=True, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
        _stream_to_file(response, destination, progress_callback)
    except RequestException as e:
        destination.unlink(missing_ok=True)
        raise TransferError(str(e)) from e
    except OSError as e:
        destination.unlink(missing_ok=True)
        raise TransferError(f"Failed to write {destination}: {e}") from e
    except TransferError:
        destination.unlink(missing_ok=True)
        raise

    logger.info(f"Download complete: {destination}")
    return destination


def _stream_to_file(
    response,
    destination: Path,
    progress_callback: Optional[Callable[[DownloadProgress], None]],
):
    """Write a streamed response body to disk, reporting progress."""
    content_length = response.headers.get("content-length")
    total_size = int(content_length) if content_length else 0

    downloaded = 0
    start_time = time.time()
    last_progress_time = start_time

    with open(destination, "wb") as f:
        for chunk in response.iter_content(chunk_size=8192):
            if not chunk:
                continue
            f.write(chunk)
            downloaded += len(chunk)

            # Report progress (max once per 0.5 seconds to avoid spam)
            current_time = time.time()
            if progress_callback and (
                current_time - last_progress_time >= 0.5 or downloaded == total_size
            ):
                elapsed = current_time - start_time
                speed = downloaded / elapsed if elapsed > 0 else 0
                remaining = total_size - downloaded if total_size > 0 else 0
                eta = remaining / speed if speed > 0 else 0

                progress_callback(
                    DownloadProgress(
                        bytes_downloaded=downloaded,
                        total_bytes=total_size if total_size > 0 else downloaded,
                        percentage=(downloaded / total_size * 100)
                        if total_size > 0
                        else 0,
                        speed_bps=speed,
                        eta_seconds=eta,
                    )
                )
                last_progress_time = current_time

    if total_size and downloaded < total_size:
        raise TransferError(
            f"Truncated transfer: received {downloaded} of {total_size} bytes"
        )


def archive_name_from_url(url: str) -> str:
    """
    Get the file name an archive should be saved under.

    Example:
        >>> archive_name_from_url("https://host/Sdk/3.1.404/dotnet-sdk-3.1.404-win-x64.zip?sv=1")
        'dotnet-sdk-3.1.404-win-x64.zip'
    """
    name = unquote(urlparse(url).path.rstrip("/").split("/")[-1])
    return name or "download"


def try_candidates(
    candidates: Iterable[str],
    destination_dir: Path,
    fetch: Callable[[str, Path], Path],
) -> DownloadOutcome:
    """
    Attempt candidate URLs strictly in order until one succeeds.

    Each candidate is attempted once. Its failure is logged as a warning and
    recorded; later candidates are never touched after a success.

    Args:
        candidates: Ordered candidate URLs, most specific first
        destination_dir: Directory downloads are written to
        fetch: Callable ``(url, destination) -> Path`` performing one download

    Returns:
        DownloadOutcome describing the winning candidate or all failures
    """
    failures = []
    for url in candidates:
        destination = Path(destination_dir) / archive_name_from_url(url)
        try:
            path = fetch(url, destination)
        except (TransferError, RequestException, OSError, ValueError) as e:
            failure = CandidateFailure(url=url, detail=str(e) or type(e).__name__)
            logger.warning(f"Could not download from {url}: {failure.detail}")
            failures.append(failure)
            continue
        return DownloadOutcome(path=Path(path), url=url, failures=tuple(failures))

    return DownloadOutcome(failures=tuple(failures))


class DownloadManager:
    """
    Downloads a package from the first working candidate URL.

    Example:
        >>> manager = DownloadManager(Path("/tmp/runtimekit"))
        >>> outcome = manager.download([
        ...     "https://mirror-a/dotnet-sdk-3.1.404-linux-x64.tar.gz",
        ...     "https://mirror-b/dotnet-sdk-3.1.404-linux-x64.tar.gz",
        ... ])
        >>> print(outcome.path, outcome.url)
    """

    def __init__(
        self,
        work_dir: Path,
        timeout: int = 30,
        fetch: Optional[Callable[[str, Path], Path]] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ):
        """
        Initialize download manager.

        Args:
            work_dir: Parent directory for per-run download directories
            timeout: Request timeout in seconds
            fetch: Override for the single-URL download (testing)
            progress_callback: Optional progress callback
        """
        self.work_dir = Path(work_dir)
        self.timeout = timeout
        self.progress_callback = progress_callback
        self.fetch = fetch or self._fetch

    def _fetch(self, url: str, destination: Path) -> Path:
        return download_file(
            url,
            destination,
            timeout=self.timeout,
            progress_callback=self.progress_callback,
        )

    def new_download_dir(self) -> Path:
        """Create a fresh, disposable directory for one run's downloads."""
        self.work_dir.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="download_", dir=self.work_dir))

    def download(
        self, candidates: Iterable[str], destination_dir: Optional[Path] = None
    ) -> DownloadOutcome:
        """
        Download from the first candidate that succeeds.

        Args:
            candidates: Ordered candidate URLs
            destination_dir: Directory to write into (default: a new
                directory under work_dir)

        Returns:
            Successful DownloadOutcome

        Raises:
            DownloadError: If every candidate failed or there were none
        """
        candidates = list(candidates)
        if destination_dir is None:
            destination_dir = self.new_download_dir()

        outcome = try_candidates(candidates, destination_dir, self.fetch)
        if not outcome.succeeded:
            logger.error(f"All {len(candidates)} download candidate(s) failed")
            raise DownloadError(outcome.failures)
        return outcome


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Args:
        progress: Download progress information

    Returns:
        Formatted progress string

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    else:
        # Unknown total size
        return f"{mb_downloaded:.1f} MB " f"at {speed_mbps:.1f} MB/s"


__all__ = [
    "DownloadProgress",
    "TransferError",
    "CandidateFailure",
    "DownloadOutcome",
    "DownloadManager",
    "download_file",
    "try_candidates",
    "archive_name_from_url",
    "format_progress",
]
