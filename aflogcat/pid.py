"""Process-id correlation for interleaved `logcat -v time` output.

A `-v time` line looks like:

    05-14 10:23:45.123 D/AppsFlyer_6.14.0( 1234): CONVERSION-...

The pid is the first parenthesized number on the line.
"""

import re

PID_PATTERN = re.compile(r"\(\s*(\d+)\)")


def extract_pid(line: str) -> int | None:
    match = PID_PATTERN.search(line)
    return int(match.group(1)) if match else None


def correlate(lines: list[str], target_tag: str) -> int | None:
    """Return the pid of the newest line containing `target_tag`.

    Lines containing the tag but no pid are skipped. None if nothing matches.
    """
    for line in reversed(lines):
        if target_tag not in line:
            continue
        pid = extract_pid(line)
        if pid is not None:
            return pid
    return None


def filter_by_pid(lines: list[str], pid: int) -> list[str]:
    """Ordered subsequence of lines emitted by `pid`. Lines without a pid are dropped."""
    return [line for line in lines if extract_pid(line) == pid]


class ProcessLineFilter:
    """Streaming counterpart of correlate + filter_by_pid for a followed log.

    Keeps every line carrying the target tag and tracks the pid of the newest
    one; untagged lines are kept only when they come from that pid.
    """

    def __init__(self, target_tag: str):
        self.target_tag = target_tag
        self.pid: int | None = None

    def __call__(self, lines: list[str]) -> list[str]:
        kept = []
        for line in lines:
            pid = extract_pid(line)
            if self.target_tag in line:
                if pid is not None:
                    self.pid = pid
                kept.append(line)
            elif pid is not None and pid == self.pid:
                kept.append(line)
        return kept
