"""
End-to-end tests for the install workflow.

Real cache, extractor and download manager; the URL resolver is a
recording double and HTTP is mocked with ``responses``.
"""

import io
import os
from unittest.mock import patch

import pytest
import responses

from runtimekit.core.download import DownloadManager
from runtimekit.core.environment import ProcessEnvironment
from runtimekit.core.exceptions import DownloadError
from runtimekit.core.filesystem import ArchiveExtractor
from runtimekit.core.platform import TablePlatformDetector
from runtimekit.core.tool_cache import ToolCache
from runtimekit.installer import Installer, ToolRequest

PRIMARY_URL = "https://example.com/Sdk/3.1.404/dotnet-sdk-3.1.404-win-x64.tar.gz"
FALLBACK_URL = "https://mirror.example.com/Sdk/3.1.404/dotnet-sdk-3.1.404-win-x64.tar.gz"


@pytest.fixture
def environ():
    return {"PATH": os.pathsep.join(["/usr/bin", "/bin"])}


@pytest.fixture
def build_installer(tmp_path, environ, recording_detector, recording_resolver):
    def _build():
        return Installer(
            tool_cache=ToolCache(tmp_path / "tools", arch="x64"),
            detector=recording_detector,
            resolver=recording_resolver,
            download_manager=DownloadManager(tmp_path / "tmp"),
            extractor=ArchiveExtractor(tmp_path / "tmp"),
            environment=ProcessEnvironment(
                stream=io.StringIO(), environ=environ
            ),
        )

    return _build


class TestInstallWorkflow:
    """Install, then re-install from cache."""

    @responses.activate
    def test_fresh_install_then_cache_hit(
        self,
        tmp_path,
        environ,
        build_installer,
        recording_detector,
        recording_resolver,
        make_tar_gz,
    ):
        archive = make_tar_gz()
        responses.add(responses.GET, PRIMARY_URL, body=archive.read_bytes(), status=200)
        request = ToolRequest.from_inputs("sdk", "3.1.404")

        first = build_installer().install(request)

        expected = tmp_path / "tools" / "dncs" / "3.1.404" / "x64"
        assert first.was_cached is False
        assert first.tool_path == expected
        assert (expected / "dotnet").is_file()
        assert recording_detector.calls == 1
        assert recording_resolver.calls == [(["win-x64"], "3.1.404", "sdk")]
        assert len(responses.calls) == 1
        assert environ["PATH"].split(os.pathsep)[0] == str(expected)
        assert environ["DOTNET_ROOT"] == str(expected)
        # Scratch space cleaned up
        assert list((tmp_path / "tmp").iterdir()) == []

        second = build_installer().install(request)

        assert second.was_cached is True
        assert second.tool_path == first.tool_path
        assert recording_detector.calls == 1
        assert len(recording_resolver.calls) == 1
        assert len(responses.calls) == 1
        assert environ["DOTNET_ROOT"] == str(expected)

    @responses.activate
    def test_falls_back_to_second_url(
        self, tmp_path, build_installer, recording_resolver, make_tar_gz
    ):
        recording_resolver.urls = [PRIMARY_URL, FALLBACK_URL]
        responses.add(responses.GET, PRIMARY_URL, status=404)
        responses.add(
            responses.GET, FALLBACK_URL, body=make_tar_gz().read_bytes(), status=200
        )

        result = build_installer().install(ToolRequest.from_inputs("sdk", "3.1.404"))

        assert result.source_url == FALLBACK_URL
        assert (result.tool_path / "LICENSE.txt").exists()

    @responses.activate
    def test_failed_run_commits_nothing(
        self, tmp_path, environ, build_installer, recording_resolver
    ):
        recording_resolver.urls = [PRIMARY_URL, FALLBACK_URL]
        responses.add(responses.GET, PRIMARY_URL, status=500)
        responses.add(responses.GET, FALLBACK_URL, status=503)

        with pytest.raises(DownloadError) as exc_info:
            build_installer().install(ToolRequest.from_inputs("sdk", "3.1.404"))

        assert len(exc_info.value.failures) == 2
        assert ToolCache(tmp_path / "tools", arch="x64").lookup("dncs", "3.1.404") is None
        assert "DOTNET_ROOT" not in environ

    @responses.activate
    def test_corrupt_archive_commits_nothing(self, tmp_path, build_installer):
        from runtimekit.core.exceptions import ExtractionError

        responses.add(responses.GET, PRIMARY_URL, body=b"garbage", status=200)

        with pytest.raises(ExtractionError):
            build_installer().install(ToolRequest.from_inputs("sdk", "3.1.404"))

        assert ToolCache(tmp_path / "tools", arch="x64").lookup("dncs", "3.1.404") is None
        assert list((tmp_path / "tmp").iterdir()) == []


class TestTableDetectedInstall:
    """Install on an OS family resolved from the fixed suffix table."""

    @responses.activate
    def test_single_detection_without_subprocess(
        self, tmp_path, environ, recording_resolver, make_tar_gz
    ):
        responses.add(
            responses.GET, PRIMARY_URL, body=make_tar_gz().read_bytes(), status=200
        )
        detector = TablePlatformDetector(os_family="windows", arch="x64")
        installer = Installer(
            tool_cache=ToolCache(tmp_path / "tools", arch="x64"),
            detector=detector,
            resolver=recording_resolver,
            download_manager=DownloadManager(tmp_path / "tmp"),
            extractor=ArchiveExtractor(tmp_path / "tmp"),
            environment=ProcessEnvironment(stream=io.StringIO(), environ=environ),
        )

        with patch("subprocess.run") as mock_run, patch.object(
            detector, "detect", wraps=detector.detect
        ) as detect_spy:
            result = installer.install(ToolRequest.from_inputs("sdk", "3.1.404"))

        mock_run.assert_not_called()
        detect_spy.assert_called_once_with()
        assert recording_resolver.calls == [(["win-x64"], "3.1.404", "sdk")]
        assert result.tool_path == tmp_path / "tools" / "dncs" / "3.1.404" / "x64"
        assert environ["DOTNET_ROOT"] == str(result.tool_path)
