"""Structured extraction of JSON payloads embedded in logcat lines."""

import json
import logging
import re

from aflogcat.models import ParsedLogRecord

logger = logging.getLogger(__name__)

TIMESTAMP_WIDTH = 18  # "MM-DD HH:MM:SS.mmm"
_LINE_JSON = re.compile(r"\{.*\}")
_LABEL_SEPARATOR = re.compile(r"[:=]")

_parse_errors = 0


def get_parse_error_count() -> int:
    return _parse_errors


def extract_json(line) -> dict | None:
    """Parse the span from the first '{' to the last '}' of `line`.

    Returns None when there are no braces or the span is not a JSON object.
    Never raises.
    """
    global _parse_errors
    if not isinstance(line, str):
        return None
    start = line.find("{")
    end = line.rfind("}")
    if start == -1 or end < start:
        return None
    try:
        value = json.loads(line[start:end + 1])
    except (ValueError, RecursionError) as e:
        _parse_errors += 1
        logger.debug("Failed to parse embedded JSON: %s", e)
        return None
    return value if isinstance(value, dict) else None


def get_parsed_records(lines: list[str], line_count: int, type_tag: str) -> list[ParsedLogRecord]:
    """Records for the JSON-bearing lines among the last `line_count` lines, oldest first."""
    if line_count <= 0:
        return []
    records = []
    for line in lines[-line_count:]:
        payload = extract_json(line)
        if payload is None:
            continue
        records.append(ParsedLogRecord(timestamp=line[:TIMESTAMP_WIDTH], type=type_tag, json=payload))
    return records


def extract_label_value(line: str, label: str) -> str | None:
    """Text after the first ':' or '=' that follows `label`, trimmed.

    >>> extract_label_value("Conversion attribute: deep_link_value = apples", "deep_link_value")
    'apples'
    """
    idx = line.find(label)
    if idx == -1:
        return None
    rest = line[idx + len(label):]
    match = _LABEL_SEPARATOR.search(rest)
    if not match:
        return None
    value = rest[match.end():].strip()
    return value or None


def extract_param(text: str, key: str) -> str | None:
    """Find `key` in a log excerpt.

    Prefers a truthy value from a line's embedded JSON object, then falls back
    to query-string / key:value style fragments such as `app_id=com.example`.
    """
    for line in text.split("\n"):
        match = _LINE_JSON.search(line)
        if not match:
            continue
        try:
            payload = json.loads(match.group(0))
        except ValueError:
            continue
        if isinstance(payload, dict) and payload.get(key):
            return str(payload[key])

    pattern = re.compile(r"""[?&\s"']""" + re.escape(key) + r"""["=:\s]*["']?([\w\-.]+)["']?""")
    match = pattern.search(text)
    return match.group(1) if match else None
