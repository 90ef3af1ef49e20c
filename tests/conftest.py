"""Shared pytest fixtures: canned logcat output and fake log-reader processes."""

import json
import subprocess
import sys
import textwrap

import pytest

from aflogcat.config import Config

TAG = "D/AppsFlyer_6.14.0"


def logcat_line(ts: str, pid: int, message: str, tag: str = TAG) -> str:
    """Format a line the way `logcat -v time` does."""
    return f"05-14 10:23:{ts} {tag}({pid:5d}): {message}"


@pytest.fixture
def python_argv():
    """Build an argv that runs a small Python script as the fake log reader."""
    def build(script: str) -> list[str]:
        return [sys.executable, "-c", textwrap.dedent(script)]
    return build


@pytest.fixture
def recording_popen():
    """subprocess.Popen wrapper that records every spawned process."""
    spawned = []

    def popen(*args, **kwargs):
        proc = subprocess.Popen(*args, **kwargs)
        spawned.append(proc)
        return proc

    popen.spawned = spawned
    yield popen
    for proc in spawned:
        if proc.poll() is None:
            proc.kill()
            proc.wait()


@pytest.fixture
def config() -> Config:
    return Config(dev_key="test-dev-key", capture_timeout=0.5, wait_timeout=0.1)


@pytest.fixture
def app_lines() -> list[str]:
    """Interleaved output of the target app (pid 4321) and an unrelated app (pid 5555)."""
    conversion = {
        "uid": "1715680000000-1234567",
        "af_timestamp": "1715680025123",
        "installDate": "2024-05-14_102345+0000",
        "firstLaunchDate": "2024-05-14_102346+0000",
        "advertiserId": "38400000-8cf0-11bd-b23e-10b96e40000d",
        "advertiserIdEnabled": "true",
        "counter": "1",
    }
    launch = {"uid": "1715680000000-1234567", "af_timestamp": "1715680030000", "counter": "2"}
    inapp = {"event": "af_level_achieved", "eventvalue": json.dumps({"af_content": "level_3"})}
    udl = {
        "deepLink": json.dumps({
            "deep_link_value": "apples",
            "deep_link_sub1": "ref-42",
            "is_deferred": False,
        }),
        "status": "FOUND",
    }
    return [
        logcat_line("40.000", 5555, 'CONVERSION-{"uid": "other-app", "af_timestamp": "1"}'),
        logcat_line("41.000", 777, "Start proc 4321:com.example.app/u0a123", tag="I/ActivityManager"),
        logcat_line("45.100", 4321, "CONVERSION-" + json.dumps(conversion)),
        logcat_line("45.200", 5555, "unrelated noise"),
        logcat_line("45.300", 4321, "url: https://launches.appsflyersdk.com/api/v6.14/"
                                    "androidevent?app_id=com.example.app&buildnumber=6.14.0"),
        logcat_line("46.000", 4321, "LAUNCH-" + json.dumps(launch)),
        logcat_line("47.000", 4321, "INAPP-" + json.dumps(inapp)),
        logcat_line("48.000", 4321, "[DDL] Calling onDeepLinking with:" + json.dumps(udl)),
        logcat_line("49.000", 4321, "ERROR sending request: {\"code\": 403, \"reason\": \"forbidden\"}"),
        logcat_line("49.500", 4321, "Conversion attribute: deep_link_value = bananas", tag="D/AppsFlyerApp"),
    ]
