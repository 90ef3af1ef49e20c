"""adb discovery, device listing and target device resolution."""

import logging
import os
import platform
import shutil
import subprocess

from aflogcat.errors import AdbNotFoundError, AmbiguousDeviceError, CaptureError, NoDeviceError

logger = logging.getLogger(__name__)

DEVICE_LIST_TIMEOUT = 10.0


def default_adb_path() -> str:
    """Platform SDK location of adb, falling back to `adb` on PATH."""
    home = os.path.expanduser("~")
    system = platform.system()
    if system == "Windows":
        candidate = os.path.join(home, "AppData", "Local", "Android", "Sdk", "platform-tools", "adb.exe")
    elif system == "Darwin":
        candidate = os.path.join(home, "Library", "Android", "sdk", "platform-tools", "adb")
    else:
        candidate = os.path.join(home, "Android", "Sdk", "platform-tools", "adb")

    if os.path.isfile(candidate):
        return candidate
    return shutil.which("adb") or "adb"


def validate_adb(adb_path: str) -> str:
    """Return the resolved adb path; raise AdbNotFoundError if unusable."""
    resolved = adb_path if os.path.sep in adb_path else shutil.which(adb_path)
    if not resolved or not os.path.isfile(resolved):
        raise AdbNotFoundError(f"ADB binary not found at: {adb_path}")
    if not os.access(resolved, os.X_OK):
        raise AdbNotFoundError(f"ADB binary is not executable: {resolved}")
    return resolved


def parse_device_list(output: str) -> list[str]:
    """Parse `adb devices` output into ids whose status is exactly "device".

    First line is the "List of devices attached" header.
    """
    devices = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) >= 2 and parts[1] == "device":
            devices.append(parts[0])
    return devices


def build_logcat_argv(adb_path: str, device_id: str | None) -> list[str]:
    """Build `adb -s <id> logcat -v time`, following the whole device log.

    Tag filtering happens on our side, see `pid.ProcessLineFilter`.
    """
    argv = [adb_path]
    if device_id:
        argv += ["-s", device_id]
    argv += ["logcat", "-v", "time"]
    return argv


class DeviceResolver:
    def __init__(self, adb_path: str = "", runner=subprocess.run):
        self._adb_path = adb_path or default_adb_path()
        self._run = runner

    @property
    def adb_path(self) -> str:
        return self._adb_path

    def list_devices(self) -> list[str]:
        try:
            result = self._run(
                [self._adb_path, "devices"],
                capture_output=True, text=True, timeout=DEVICE_LIST_TIMEOUT,
            )
        except FileNotFoundError:
            raise AdbNotFoundError(f"ADB binary not found at: {self._adb_path}")
        except (OSError, subprocess.SubprocessError) as e:
            raise CaptureError(f"Failed to retrieve connected devices: {e}")

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise CaptureError(f"Failed to retrieve connected devices: {stderr}", stderr=stderr)

        devices = parse_device_list(result.stdout)
        logger.debug("Connected devices: %s", devices)
        return devices

    def resolve_target(self, explicit_id: str | None = None) -> str:
        """Explicit id is used verbatim; otherwise exactly one device must be connected."""
        if explicit_id:
            return explicit_id
        devices = self.list_devices()
        if not devices:
            raise NoDeviceError()
        if len(devices) > 1:
            raise AmbiguousDeviceError(devices)
        return devices[0]
