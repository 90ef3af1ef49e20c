"""Keyword projections over the captured window."""

import json
from dataclasses import dataclass

from aflogcat.extractor import get_parsed_records
from aflogcat.models import ParsedLogRecord

CONVERSION = "CONVERSION-"
INAPP = "INAPP-"
LAUNCH = "LAUNCH-"
DEEP_LINK = '{"deepLink":'

ERROR_KEYWORDS = ("FAILURE", "ERROR", "Exception", "No deep link")

LATEST_FIELDS = (
    "af_timestamp",
    "uid",
    "installDate",
    "firstLaunchDate",
    "advertiserId",
    "advertiserIdEnabled",
    "onelink_id",
)

DEFAULT_LIMIT = 700
NO_ENTRY = "No logs entry found."


def no_entries_for(keyword: str) -> str:
    return f"No log entries found for keyword: {keyword}"


def render_json(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def keyword_records(lines: list[str], keyword: str, limit: int = DEFAULT_LIMIT) -> list[ParsedLogRecord]:
    """Parsed records for the most recent `limit` lines containing `keyword`."""
    matches = [line for line in lines if keyword in line]
    return get_parsed_records(matches, limit, keyword)


def latest_fields(records: list[ParsedLogRecord]) -> dict | None:
    """Allow-listed fields of the newest record; absent fields are omitted."""
    if not records:
        return None
    payload = records[-1].json
    return {key: payload[key] for key in LATEST_FIELDS if key in payload}


def error_records(lines: list[str], limit: int = DEFAULT_LIMIT) -> list[ParsedLogRecord]:
    """Records for every error keyword, grouped by keyword in ERROR_KEYWORDS order."""
    records = []
    for keyword in ERROR_KEYWORDS:
        records.extend(keyword_records(lines, keyword, limit))
    return records


def lines_by_keyword(lines: list[str], keyword: str, line_count: int) -> list[str]:
    """Raw lines containing `keyword`, newest `line_count` of them."""
    if line_count <= 0:
        return []
    return [line for line in lines if keyword in line][-line_count:]


@dataclass(frozen=True)
class KeywordView:
    """A keyword-filtered view.

    latest_only views describe one canonical event (install conversion, launch,
    deep link) and render only the newest record's allow-listed fields.
    """
    keyword: str
    latest_only: bool = False
    limit: int = DEFAULT_LIMIT

    def records(self, lines: list[str]) -> list[ParsedLogRecord]:
        return keyword_records(lines, self.keyword, self.limit)

    def render(self, lines: list[str]) -> str:
        records = self.records(lines)
        if self.latest_only:
            if not records:
                return NO_ENTRY
            return render_json(latest_fields(records))
        if not records:
            return no_entries_for(self.keyword)
        return render_json([r.to_dict() for r in records])


VIEWS = {
    "conversion": KeywordView(CONVERSION, latest_only=True),
    "inapp": KeywordView(INAPP),
    "launch": KeywordView(LAUNCH, latest_only=True),
    "deeplink": KeywordView(DEEP_LINK, latest_only=True),
}
