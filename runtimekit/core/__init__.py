"""
Core functionality for RuntimeKit.

This package contains the pipeline stages the installer is built from.
"""

from .exceptions import (
    ErrorKind,
    RuntimeKitError,
    InvalidVersionError,
    InvalidInputError,
    ConfigurationError,
    PlatformDetectionError,
    DownloadError,
    ExtractionError,
    CacheStoreError,
)

from .version import (
    validate_exact_version,
    is_exact_version,
)

from .platform import (
    PlatformDetector,
    TablePlatformDetector,
    ProbePlatformDetector,
    parse_probe_output,
    default_detector,
)

from .download import (
    CandidateFailure,
    DownloadOutcome,
    DownloadManager,
    try_candidates,
)

from .filesystem import ArchiveExtractor
from .tool_cache import ToolCache
from .environment import ProcessEnvironment
from .interfaces import UrlResolver

__all__ = [
    "ErrorKind",
    "RuntimeKitError",
    "InvalidVersionError",
    "InvalidInputError",
    "ConfigurationError",
    "PlatformDetectionError",
    "DownloadError",
    "ExtractionError",
    "CacheStoreError",
    "validate_exact_version",
    "is_exact_version",
    "PlatformDetector",
    "TablePlatformDetector",
    "ProbePlatformDetector",
    "parse_probe_output",
    "default_detector",
    "CandidateFailure",
    "DownloadOutcome",
    "DownloadManager",
    "try_candidates",
    "ArchiveExtractor",
    "ToolCache",
    "ProcessEnvironment",
    "UrlResolver",
]
