"""
Centralized exception hierarchy for RuntimeKit.

Every failure the installer can report is one of a closed set of kinds
(see ErrorKind). All errors share the same payload shape so callers can
branch on ``error.kind`` instead of parsing message text.
"""

from enum import Enum
from typing import Any, Dict, Optional, Sequence


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    INVALID_VERSION = "invalid_version"
    INVALID_INPUT = "invalid_input"
    PLATFORM_DETECTION = "platform_detection"
    DOWNLOAD = "download"
    EXTRACTION = "extraction"
    CACHE_STORE = "cache_store"
    CONFIGURATION = "configuration"


# ============================================================================
# Base Exception
# ============================================================================


class RuntimeKitError(Exception):
    """
    Base exception for all RuntimeKit errors.

    Attributes:
        kind: Failure kind
        message: Human readable description
        context: Diagnostic fields (attempted value, paths, exit codes, ...)
        cause: Lower-level exception that triggered this error, if any
    """

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Render the error payload as a plain dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "context": self.context,
            "cause": repr(self.cause) if self.cause is not None else None,
        }


# ============================================================================
# Input Exceptions
# ============================================================================


class InvalidVersionError(RuntimeKitError):
    """Version is not an exact, fully pinned version."""

    kind = ErrorKind.INVALID_VERSION

    def __init__(self, version: str, reason: str = ""):
        message = f"Version '{version}' is not an explicit version"
        if reason:
            message += f": {reason}"
        super().__init__(message, context={"version": version, "reason": reason})
        self.version = version


class InvalidInputError(RuntimeKitError):
    """A required input is missing or has an unsupported value."""

    kind = ErrorKind.INVALID_INPUT


class ConfigurationError(RuntimeKitError):
    """Configuration file or environment override is invalid."""

    kind = ErrorKind.CONFIGURATION


# ============================================================================
# Pipeline Stage Exceptions
# ============================================================================


class PlatformDetectionError(RuntimeKitError):
    """Platform suffixes for the current machine could not be determined."""

    kind = ErrorKind.PLATFORM_DETECTION


class DownloadError(RuntimeKitError):
    """Every candidate download URL failed."""

    kind = ErrorKind.DOWNLOAD

    def __init__(self, failures: Sequence[Any]):
        self.failures = tuple(failures)
        if self.failures:
            message = (
                f"Failed to download package from {len(self.failures)} "
                "candidate URL(s)"
            )
        else:
            message = "Failed to download package: no candidate URLs"
        super().__init__(
            message,
            context={
                "failures": [
                    {"url": f.url, "detail": f.detail} for f in self.failures
                ]
            },
        )


class ExtractionError(RuntimeKitError):
    """Downloaded archive could not be extracted."""

    kind = ErrorKind.EXTRACTION


class CacheStoreError(RuntimeKitError):
    """Extracted tree could not be registered in the tool cache."""

    kind = ErrorKind.CACHE_STORE


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
]
