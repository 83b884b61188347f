"""
Pytest configuration and shared fixtures for RuntimeKit tests.
"""

import io
import tarfile
import zipfile
from pathlib import Path
from typing import Callable, Dict, List

import pytest


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))

    return fake_home


@pytest.fixture
def clean_env(monkeypatch):
    """Remove variables that change installer configuration or inputs."""
    for name in (
        "AGENT_TOOLSDIRECTORY",
        "AGENT_TEMPDIRECTORY",
        "RUNTIMEKIT_TOOL_CACHE",
        "RUNTIMEKIT_TEMP_DIR",
        "RUNTIMEKIT_PLATFORM_PROBE",
        "RUNTIMEKIT_RELEASE_INDEX_URL",
        "RUNTIMEKIT_DOWNLOAD_BASE_URL",
        "RUNTIMEKIT_DOWNLOAD_TIMEOUT",
        "RUNTIMEKIT_PIPELINE_COMMANDS",
        "INPUT_PACKAGETYPE",
        "INPUT_VERSION",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ============================================================================
# Archive Fixtures
# ============================================================================

SDK_FILES: Dict[str, bytes] = {
    "dotnet": b"#!/bin/sh\necho dotnet\n",
    "LICENSE.txt": b"MIT\n",
    "sdk/3.1.404/dotnet.dll": b"fake assembly",
}


@pytest.fixture
def make_tar_gz(tmp_path: Path) -> Callable[..., Path]:
    """Factory creating a .tar.gz archive with the given files."""

    def _make(name: str = "dotnet-sdk.tar.gz", files: Dict[str, bytes] = None) -> Path:
        archive = tmp_path / "archives" / name
        archive.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(archive, "w:gz") as tar:
            for member, content in (files or SDK_FILES).items():
                info = tarfile.TarInfo(member)
                info.size = len(content)
                info.mode = 0o755
                tar.addfile(info, io.BytesIO(content))
        return archive

    return _make


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[..., Path]:
    """Factory creating a .zip archive with the given files."""

    def _make(name: str = "dotnet-sdk.zip", files: Dict[str, bytes] = None) -> Path:
        archive = tmp_path / "archives" / name
        archive.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive, "w") as zf:
            for member, content in (files or SDK_FILES).items():
                zf.writestr(member, content)
        return archive

    return _make


# ============================================================================
# Pipeline Stage Doubles
# ============================================================================


class RecordingDetector:
    """Platform detector returning canned suffixes and counting calls."""

    def __init__(self, suffixes: List[str]):
        self.suffixes = list(suffixes)
        self.calls = 0

    def detect(self) -> List[str]:
        self.calls += 1
        return list(self.suffixes)


class RecordingResolver:
    """URL resolver returning canned URLs and recording calls."""

    def __init__(self, urls: List[str]):
        self.urls = list(urls)
        self.calls = []

    def get_download_urls(self, suffixes, version, package_type):
        self.calls.append((list(suffixes), version, package_type))
        return list(self.urls)


@pytest.fixture
def recording_detector() -> RecordingDetector:
    return RecordingDetector(["win-x64"])


@pytest.fixture
def recording_resolver() -> RecordingResolver:
    return RecordingResolver(
        [
            "https://example.com/Sdk/3.1.404/dotnet-sdk-3.1.404-win-x64.tar.gz",
        ]
    )
