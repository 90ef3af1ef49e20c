"""Deep-link analysis across the two log shapes the AppsFlyer SDK emits.

UDL (unified deep linking) delivers a single line whose JSON payload carries
the deep link as a nested, string-encoded JSON document:

    D/AppsFlyer_6.14.0( 4321): [DDL] Calling onDeepLinking with:
        {"deepLink":"{\"deep_link_value\":\"apples\",\"is_deferred\":true}","status":"FOUND"}

DDL (deferred deep linking through conversion data) is visible only as flat
`label: value` fragments logged by the app's conversion listener:

    D/AppsFlyerApp( 4321): Conversion attribute: deep_link_value = apples
"""

import json
import logging

from aflogcat.extractor import extract_json, extract_label_value
from aflogcat.models import DeepLinkResult, DeepLinkSource

logger = logging.getLogger(__name__)

UDL_SIGNAL = "onDeepLinking"
DDL_SIGNALS = ("Conversion attribute", "onConversionDataSuccess")
UDL_PARSE_ERROR = "Failed to parse UDL deep link payload"


def _assign(result: DeepLinkResult, attr: str, value, override: bool):
    if value is None:
        return
    if override or getattr(result, attr) is None:
        setattr(result, attr, value)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class DeepLinkStrategy:
    """One log shape that contributes to a DeepLinkResult."""

    def matches(self, line: str) -> bool:
        raise NotImplementedError

    def apply(self, line: str, result: DeepLinkResult) -> None:
        raise NotImplementedError


class UdlStrategy(DeepLinkStrategy):
    def matches(self, line: str) -> bool:
        return UDL_SIGNAL in line

    def apply(self, line: str, result: DeepLinkResult) -> None:
        # The first UDL line replaces anything a conversion-attribute line set
        override = result.source is not DeepLinkSource.UDL
        result.found = True
        result.source = DeepLinkSource.UDL

        outer = extract_json(line)
        if outer is None:
            result.error = UDL_PARSE_ERROR
            return
        _assign(result, "status", outer.get("status"), override)

        inner = self._parse_inner(outer.get("deepLink"))
        if inner is None:
            result.error = UDL_PARSE_ERROR
            return
        if "is_deferred" in inner:
            _assign(result, "is_deferred", _as_bool(inner["is_deferred"]), override)
        _assign(result, "deep_link_value", inner.get("deep_link_value"), override)
        _assign(result, "referrer_id", inner.get("deep_link_sub1"), override)

    @staticmethod
    def _parse_inner(value) -> dict | None:
        if isinstance(value, dict):
            return value
        if not isinstance(value, str):
            return None
        try:
            inner = json.loads(value)
        except ValueError as e:
            logger.debug("Nested deepLink payload is not JSON: %s", e)
            return None
        return inner if isinstance(inner, dict) else None


class DdlStrategy(DeepLinkStrategy):
    def matches(self, line: str) -> bool:
        return any(signal in line for signal in DDL_SIGNALS)

    def apply(self, line: str, result: DeepLinkResult) -> None:
        result.found = True
        if result.source is None:
            result.source = DeepLinkSource.DDL

        if result.deep_link_value is None:
            result.deep_link_value = extract_label_value(line, "deep_link_value")
        if result.deep_link_value is None:
            result.deep_link_value = extract_label_value(line, "fruit_name")
        if result.referrer_id is None:
            result.referrer_id = extract_label_value(line, "deep_link_sub1")


class DeepLinkAnalyzer:
    """Single pass latch-and-accumulate fold over an ordered line sequence."""

    def __init__(self, strategies: list[DeepLinkStrategy] | None = None):
        self._strategies = strategies if strategies is not None else [UdlStrategy(), DdlStrategy()]

    def analyze(self, lines: list[str]) -> DeepLinkResult:
        result = DeepLinkResult()
        for line in lines:
            for strategy in self._strategies:
                if strategy.matches(line):
                    strategy.apply(line, result)
        if result.found and result.source is None:
            result.source = DeepLinkSource.DDL
        return result
