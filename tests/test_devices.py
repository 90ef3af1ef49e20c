"""Tests for adb discovery and device resolution."""

import os
import subprocess
from unittest.mock import MagicMock

import pytest

from aflogcat.devices import DeviceResolver, build_logcat_argv, parse_device_list, validate_adb
from aflogcat.errors import AdbNotFoundError, AmbiguousDeviceError, CaptureError, NoDeviceError


def _runner(stdout="", stderr="", returncode=0):
    runner = MagicMock()
    runner.return_value = subprocess.CompletedProcess(
        args=["adb", "devices"], returncode=returncode, stdout=stdout, stderr=stderr,
    )
    return runner


class TestParseDeviceList:
    def test_only_device_status_kept(self):
        output = "List of devices attached\nemulator-5554\tdevice\nemulator-5556\toffline\n\n"
        assert parse_device_list(output) == ["emulator-5554"]

    def test_excludes_unauthorized_and_header(self):
        output = (
            "List of devices attached\n"
            "R58M123ABC\tunauthorized\n"
            "emulator-5554\tdevice\n"
            "192.168.1.5:5555\tdevice\n"
        )
        assert parse_device_list(output) == ["emulator-5554", "192.168.1.5:5555"]

    def test_empty(self):
        assert parse_device_list("List of devices attached\n\n") == []
        assert parse_device_list("") == []


class TestResolveTarget:
    def test_explicit_id_used_verbatim(self):
        runner = _runner()
        resolver = DeviceResolver("adb", runner=runner)
        assert resolver.resolve_target("not-connected-123") == "not-connected-123"
        runner.assert_not_called()

    def test_single_device(self):
        resolver = DeviceResolver("adb", runner=_runner("List of devices attached\nemulator-5554\tdevice\n"))
        assert resolver.resolve_target() == "emulator-5554"

    def test_no_devices(self):
        resolver = DeviceResolver("adb", runner=_runner("List of devices attached\nemu\toffline\n"))
        with pytest.raises(NoDeviceError):
            resolver.resolve_target()

    def test_multiple_devices_carry_list(self):
        output = "List of devices attached\nemulator-5554\tdevice\nemulator-5556\tdevice\n"
        resolver = DeviceResolver("adb", runner=_runner(output))
        with pytest.raises(AmbiguousDeviceError) as exc:
            resolver.resolve_target()
        assert exc.value.devices == ["emulator-5554", "emulator-5556"]
        assert "- emulator-5556" in str(exc.value)


class TestListDevices:
    def test_runs_adb_devices(self):
        runner = _runner("List of devices attached\n")
        DeviceResolver("/opt/adb", runner=runner).list_devices()
        assert runner.call_args.args[0] == ["/opt/adb", "devices"]

    def test_non_zero_exit(self):
        resolver = DeviceResolver("adb", runner=_runner(stderr="daemon not running", returncode=1))
        with pytest.raises(CaptureError) as exc:
            resolver.list_devices()
        assert exc.value.stderr == "daemon not running"

    def test_missing_binary(self):
        runner = MagicMock(side_effect=FileNotFoundError("adb"))
        with pytest.raises(AdbNotFoundError):
            DeviceResolver("/missing/adb", runner=runner).list_devices()

    def test_timeout(self):
        runner = MagicMock(side_effect=subprocess.TimeoutExpired(["adb", "devices"], 10))
        with pytest.raises(CaptureError):
            DeviceResolver("adb", runner=runner).list_devices()


class TestBuildLogcatArgv:
    def test_device(self):
        assert build_logcat_argv("adb", "x") == ["adb", "-s", "x", "logcat", "-v", "time"]

    def test_default_device(self):
        assert build_logcat_argv("adb", None) == ["adb", "logcat", "-v", "time"]


class TestValidateAdb:
    def test_missing(self, tmp_path):
        with pytest.raises(AdbNotFoundError):
            validate_adb(str(tmp_path / "adb"))

    def test_not_executable(self, tmp_path):
        path = tmp_path / "adb"
        path.write_text("#!/bin/sh\n")
        os.chmod(path, 0o644)
        if os.access(path, os.X_OK):
            pytest.skip("running with permissions that ignore the exec bit")
        with pytest.raises(AdbNotFoundError):
            validate_adb(str(path))

    def test_executable(self, tmp_path):
        path = tmp_path / "adb"
        path.write_text("#!/bin/sh\n")
        os.chmod(path, 0o755)
        assert validate_adb(str(path)) == str(path)
