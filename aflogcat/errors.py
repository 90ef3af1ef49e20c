"""Exception taxonomy for device discovery and log capture."""


class AflogcatError(Exception):
    """Base class for failures the tool layer renders as text."""


class NoDeviceError(AflogcatError):
    def __init__(self):
        super().__init__("No devices connected. None found by `adb devices`.")


class AmbiguousDeviceError(AflogcatError):
    """More than one device is connected and none was selected."""

    def __init__(self, devices: list[str]):
        self.devices = list(devices)
        listing = "\n".join(f"- {d}" for d in self.devices)
        super().__init__(
            "Multiple devices found. Specify deviceId. Connected devices:\n" + listing
        )


class CaptureError(AflogcatError):
    """The log-reading subprocess failed, exited non-zero, or wrote to stderr."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class AdbNotFoundError(CaptureError):
    pass
