"""
Unit tests for platform suffix detection.

Tests cover:
- Probe output parsing, including markers at offset zero
- Table-driven detection for Windows and macOS
- Probe-backed detection with a canned runner
- Detector selection
"""

import os
import subprocess
import sys
from unittest.mock import Mock, patch

import pytest

from runtimekit.core.exceptions import ErrorKind, PlatformDetectionError
from runtimekit.core.platform import (
    ProbePlatformDetector,
    TablePlatformDetector,
    default_detector,
    default_probe_path,
    detect_architecture,
    detect_os_family,
    parse_probe_output,
)


def completed(stdout="", stderr="", returncode=0):
    """Build a CompletedProcess for a canned probe run."""
    return subprocess.CompletedProcess(
        args=["probe"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestParseProbeOutput:
    """Tests for parse_probe_output()."""

    def test_primary_and_legacy(self):
        output = "Primary: linux-x64\nLegacy: ubuntu.18.04-x64\n"
        assert parse_probe_output(output) == ["linux-x64", "ubuntu.18.04-x64"]

    def test_marker_at_offset_zero(self):
        """Test a marker at the very start of the output is found."""
        assert parse_probe_output("Primary:linux-x64") == ["linux-x64"]

    def test_legacy_at_offset_zero(self):
        """Test legacy found at offset zero is still ordered after primary."""
        output = "Legacy: rhel.7-x64\nPrimary: linux-x64\n"
        assert parse_probe_output(output) == ["linux-x64", "rhel.7-x64"]

    def test_informational_lines_ignored(self):
        output = "Detecting platform...\nPrimary: linux-arm64\nDone\n"
        assert parse_probe_output(output) == ["linux-arm64"]

    def test_windows_line_endings(self):
        output = "Primary: linux-x64\r\nLegacy: debian.9-x64\r\n"
        assert parse_probe_output(output) == ["linux-x64", "debian.9-x64"]

    def test_no_markers(self):
        assert parse_probe_output("nothing to see here\n") == []

    def test_empty_marker_value_skipped(self):
        assert parse_probe_output("Primary:\nLegacy: centos.7-x64\n") == ["centos.7-x64"]

    def test_marker_must_start_line(self):
        """Test a marker mentioned mid-line is not taken as a suffix."""
        output = "note: Primary: unknown\nPrimary: linux-musl-x64\n"
        assert parse_probe_output(output) == ["linux-musl-x64"]

    def test_first_marker_line_wins(self):
        output = "Primary: linux-x64\nPrimary: linux-arm64\n"
        assert parse_probe_output(output) == ["linux-x64"]


class TestTablePlatformDetector:
    """Tests for TablePlatformDetector."""

    @pytest.mark.parametrize(
        "os_family,arch,expected",
        [
            ("windows", "x64", "win-x64"),
            ("windows", "x86", "win-x86"),
            ("windows", "arm64", "win-arm64"),
            ("macos", "x64", "osx-x64"),
            ("macos", "arm64", "osx-arm64"),
        ],
    )
    def test_single_suffix(self, os_family, arch, expected):
        """Test known OS families yield exactly one suffix."""
        assert TablePlatformDetector(os_family=os_family, arch=arch).detect() == [
            expected
        ]

    def test_does_not_spawn_processes(self):
        """Test detection never runs a subprocess."""
        with patch("subprocess.run") as mock_run:
            TablePlatformDetector(os_family="windows", arch="x64").detect()
        mock_run.assert_not_called()

    def test_unknown_family(self):
        with pytest.raises(PlatformDetectionError):
            TablePlatformDetector(os_family="linux", arch="x64").detect()

    def test_supports(self):
        assert TablePlatformDetector.supports("windows")
        assert TablePlatformDetector.supports("macos")
        assert not TablePlatformDetector.supports("linux")


class TestProbePlatformDetector:
    """Tests for ProbePlatformDetector with a canned runner."""

    def test_primary_and_legacy(self, tmp_path):
        runner = Mock(
            return_value=completed("Primary: linux-x64\nLegacy: ubuntu.16.04-x64\n")
        )
        detector = ProbePlatformDetector(tmp_path / "probe.sh", runner=runner)

        assert detector.detect() == ["linux-x64", "ubuntu.16.04-x64"]
        runner.assert_called_once()
        assert runner.call_args.args[0] == [str(tmp_path / "probe.sh")]

    def test_nonzero_exit(self, tmp_path):
        runner = Mock(return_value=completed(stderr="unsupported", returncode=2))
        detector = ProbePlatformDetector(tmp_path / "probe.sh", runner=runner)

        with pytest.raises(PlatformDetectionError) as exc_info:
            detector.detect()

        assert exc_info.value.kind is ErrorKind.PLATFORM_DETECTION
        assert exc_info.value.context["returncode"] == 2
        assert "unsupported" in exc_info.value.message

    def test_no_markers(self, tmp_path):
        runner = Mock(return_value=completed("hello\n"))
        detector = ProbePlatformDetector(tmp_path / "probe.sh", runner=runner)

        with pytest.raises(PlatformDetectionError, match="Could not detect platform"):
            detector.detect()

    def test_probe_missing(self, tmp_path):
        """Test a probe that cannot be executed is fatal."""
        runner = Mock(side_effect=FileNotFoundError("no such file"))
        detector = ProbePlatformDetector(tmp_path / "missing.sh", runner=runner)

        with pytest.raises(PlatformDetectionError) as exc_info:
            detector.detect()

        assert isinstance(exc_info.value.cause, FileNotFoundError)

    def test_undecodable_output(self, tmp_path):
        """Test probe output that is not valid UTF-8 is a detection error."""
        error = UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")
        runner = Mock(side_effect=error)
        detector = ProbePlatformDetector(tmp_path / "probe.sh", runner=runner)

        with pytest.raises(PlatformDetectionError) as exc_info:
            detector.detect()

        assert exc_info.value.kind is ErrorKind.PLATFORM_DETECTION
        assert exc_info.value.cause is error

    @pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")
    def test_real_script_with_binary_output(self, tmp_path):
        probe = tmp_path / "probe.sh"
        probe.write_bytes(b"#!/bin/sh\necho 'Primary: linux-x64'\nprintf '\\377\\376\\n'\n")

        with pytest.raises(PlatformDetectionError):
            ProbePlatformDetector(probe).detect()

    @pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")
    def test_runs_real_script(self, tmp_path):
        """Test a real script is made executable and its output parsed."""
        probe = tmp_path / "probe.sh"
        probe.write_text("#!/bin/sh\necho 'Primary: linux-x64'\n")
        probe.chmod(0o644)

        assert ProbePlatformDetector(probe).detect() == ["linux-x64"]
        assert os.access(probe, os.X_OK)


class TestDetection:
    """Tests for OS/architecture normalization and detector selection."""

    @pytest.mark.parametrize(
        "machine,expected",
        [
            ("x86_64", "x64"),
            ("AMD64", "x64"),
            ("aarch64", "arm64"),
            ("arm64", "arm64"),
            ("i686", "x86"),
            ("armv7l", "arm"),
            ("s390x", "s390x"),
        ],
    )
    def test_detect_architecture(self, machine, expected):
        with patch("platform.machine", return_value=machine):
            assert detect_architecture() == expected

    @pytest.mark.parametrize(
        "system,expected",
        [("Windows", "windows"), ("Darwin", "macos"), ("Linux", "linux")],
    )
    def test_detect_os_family(self, system, expected):
        with patch("platform.system", return_value=system):
            assert detect_os_family() == expected

    def test_default_detector_windows(self):
        with patch("runtimekit.core.platform.detect_os_family", return_value="windows"):
            assert isinstance(default_detector(), TablePlatformDetector)

    def test_default_detector_linux(self, tmp_path):
        with patch("runtimekit.core.platform.detect_os_family", return_value="linux"):
            detector = default_detector(tmp_path / "probe.sh")

        assert isinstance(detector, ProbePlatformDetector)
        assert detector.probe_path == tmp_path / "probe.sh"

    def test_bundled_probe_exists(self):
        assert default_probe_path().is_file()
