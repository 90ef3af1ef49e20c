"""Query result models derived from the captured log window."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SessionState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    RESTARTING = "restarting"


class DeepLinkSource(str, Enum):
    UDL = "UDL"
    DDL = "DDL"
    NONE = "none"


@dataclass
class ParsedLogRecord:
    timestamp: str              # first 18 chars of the raw line, e.g. "05-14 10:23:45.123"
    type: str                   # keyword/tag the record was selected by
    json: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "type": self.type, "json": self.json}


@dataclass
class DeepLinkResult:
    found: bool = False
    source: DeepLinkSource | None = None
    is_deferred: bool | None = None     # None until a line states it; serialized as false
    status: str | None = None
    deep_link_value: str | None = None
    referrer_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        source = self.source.value if self.source else DeepLinkSource.NONE.value
        return {
            "found": self.found,
            "source": source,
            "isDeferred": bool(self.is_deferred),
            "status": self.status,
            "deepLinkValue": self.deep_link_value,
            "referrerId": self.referrer_id,
            "error": self.error,
        }


@dataclass(frozen=True)
class MissingField:
    """A required value (uid, app id, dev key) absent from logs or config.

    Returned rather than raised; the tool layer renders it for the user.
    """
    name: str
    hint: str = ""

    def __str__(self) -> str:
        text = f"❌ Could not find {self.name}."
        if self.hint:
            text += f" {self.hint}"
        return text
