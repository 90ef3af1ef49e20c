"""Query layer: one UTF-8 text payload per request, never an exception."""

import dataclasses
import logging
import re

from aflogcat.attribution import AttributionClient, AttributionError
from aflogcat.capture import STATUS_NOT_RUNNING, CaptureSession, capture_bounded
from aflogcat.config import Config
from aflogcat.deeplink import DeepLinkAnalyzer
from aflogcat.devices import DeviceResolver, build_logcat_argv
from aflogcat.errors import AflogcatError
from aflogcat.extractor import extract_json, extract_param
from aflogcat.models import MissingField
from aflogcat.pid import correlate, filter_by_pid
from aflogcat.ring_buffer import RingBuffer
from aflogcat.views import (
    CONVERSION,
    ERROR_KEYWORDS,
    LAUNCH,
    VIEWS,
    error_records,
    keyword_records,
    lines_by_keyword,
    no_entries_for,
    render_json,
)

logger = logging.getLogger(__name__)

NO_LOGS = "[No AppsFlyer logs found in the last few seconds.]"
EVENT_ENDPOINT = "androidevent?app_id="
_APP_ID_PATTERN = re.compile(r"app_id=([a-zA-Z0-9._]+)")


def continuous_argv_builder(adb_path: str):
    """argv factory for CaptureSession: follow the device log."""
    def build(device_id):
        return build_logcat_argv(adb_path, device_id)
    return build


class LogTools:
    def __init__(self, config: Config, resolver: DeviceResolver | None = None,
                 session: CaptureSession | None = None, capture=capture_bounded,
                 attribution: AttributionClient | None = None):
        self._config = config
        self._resolver = resolver or DeviceResolver(config.adb_path)
        self._session = session
        self._capture = capture
        self._attribution = attribution or AttributionClient(config.install_data_url, config.http_timeout)
        self._analyzer = DeepLinkAnalyzer()

    @property
    def session(self) -> CaptureSession | None:
        return self._session

    # --- capture ---

    def acquire_lines(self, device_id: str | None = None) -> list[str]:
        """Snapshot of the lines relevant to the target process.

        Reads the continuous session's window when one is running, otherwise
        performs a bounded capture. Either way only the lines of the process
        that last logged with the filter tag are kept. If no tagged line
        carries a pid the whole source is used.
        """
        if self._session is not None and self._session.is_running():
            self._session.wait_for_lines(self._config.wait_timeout)
            return self._correlated(self._session.snapshot())

        device = self._resolver.resolve_target(device_id or self._config.device_id)
        argv = build_logcat_argv(self._resolver.adb_path, device)
        raw = self._capture(argv, timeout=self._config.capture_timeout)

        window = RingBuffer(self._config.buffer_capacity)
        window.extend(self._correlated(raw))
        return window.snapshot()

    def _correlated(self, raw: list[str]) -> list[str]:
        pid = correlate(raw, self._config.filter_tag)
        if pid is None:
            logger.info("No %s line with a pid in %d captured lines, using unfiltered capture",
                        self._config.filter_tag, len(raw))
            relevant = raw
        else:
            relevant = filter_by_pid(raw, pid)
            logger.debug("Correlated pid %d: %d of %d lines", pid, len(relevant), len(raw))
        return relevant

    def start_session(self, device_id: str | None = None) -> str:
        if self._session is None:
            self._session = CaptureSession(
                continuous_argv_builder(self._resolver.adb_path), capacity=self._config.buffer_capacity,
            )
        try:
            device = self._resolver.resolve_target(device_id or self._config.device_id)
            return self._session.start(self._config.filter_tag, device)
        except AflogcatError as e:
            return f"[Error starting capture] {e}"

    def stop_session(self) -> str:
        if self._session is None:
            return STATUS_NOT_RUNNING
        return self._session.stop()

    # --- views ---

    def fetch_logs(self, device_id: str | None = None) -> str:
        try:
            lines = self.acquire_lines(device_id)
        except AflogcatError as e:
            return f"[Error fetching logs] {e}"
        tagged = lines_by_keyword(lines, self._config.filter_tag, self._config.view_limit)
        return "\n".join(tagged) or NO_LOGS

    def conversion_logs(self, device_id: str | None = None) -> str:
        return self._render_view("conversion", device_id)

    def in_app_logs(self, device_id: str | None = None) -> str:
        return self._render_view("inapp", device_id)

    def launch_logs(self, device_id: str | None = None) -> str:
        return self._render_view("launch", device_id)

    def deep_link_logs(self, device_id: str | None = None) -> str:
        return self._render_view("deeplink", device_id)

    def errors(self, device_id: str | None = None) -> str:
        try:
            lines = self.acquire_lines(device_id)
        except AflogcatError as e:
            return f"[Error fetching logs] {e}"
        records = error_records(lines, self._config.view_limit)
        if not records:
            return no_entries_for(", ".join(ERROR_KEYWORDS))
        return render_json([r.to_dict() for r in records])

    def logs_by_keyword(self, keyword: str, line_count: int = 50, device_id: str | None = None) -> str:
        try:
            lines = self.acquire_lines(device_id)
        except AflogcatError as e:
            return f"[Error fetching logs for keyword {keyword}] {e}"
        matches = lines_by_keyword(lines, keyword, line_count)
        return "\n".join(matches) or no_entries_for(keyword)

    def _render_view(self, name: str, device_id: str | None) -> str:
        view = dataclasses.replace(VIEWS[name], limit=self._config.view_limit)
        try:
            lines = self.acquire_lines(device_id)
        except AflogcatError as e:
            return f"[Error fetching logs for keyword {view.keyword}] {e}"
        return view.render(lines)

    # --- verification ---

    def verify_deep_link(self, device_id: str | None = None) -> str:
        try:
            lines = self.acquire_lines(device_id)
        except AflogcatError as e:
            return f"[Error fetching logs] {e}"
        return render_json(self._analyzer.analyze(lines).to_dict())

    def verify_in_app_event(self, event_name: str, device_id: str | None = None) -> str:
        if not event_name or not event_name.strip():
            return str(MissingField("event name", "Please provide the name of the in-app event you want to verify."))
        event_name = event_name.strip()
        try:
            lines = self.acquire_lines(device_id)
        except AflogcatError as e:
            return f"[Error fetching logs] {e}"

        found_event = found_value = False
        for line in lines:
            payload = extract_json(line)
            if not payload or payload.get("event") != event_name:
                continue
            found_event = True
            if _has_event_value(payload.get("eventvalue")):
                found_value = True
        found_endpoint = any(EVENT_ENDPOINT in line for line in lines)

        if found_event and found_value and found_endpoint:
            return f"✅ Event `{event_name}` was successfully logged with full details."
        return (
            f"❌ The event `{event_name}` may not have been logged correctly. Results:\n"
            f"- Found Event: {_flag(found_event)}\n"
            f"- Found Event Value: {_flag(found_value)}\n"
            f"- Found Endpoint: {_flag(found_endpoint)}"
        )

    def verify_sdk(self, device_id: str | None = None) -> str:
        dev_key = self._config.dev_key
        if not dev_key:
            return str(MissingField("a dev key", "Set the DEV_KEY environment variable."))
        try:
            lines = self.acquire_lines(device_id)
        except AflogcatError as e:
            return f"❌ Error fetching logs: {e}"

        conversion = keyword_records(lines, CONVERSION, self._config.view_limit)
        launch = keyword_records(lines, LAUNCH, self._config.view_limit)
        relevant = conversion[-1] if conversion else (launch[-1] if launch else None)
        if relevant is None:
            return "❌ Failed to find any CONVERSION- or LAUNCH- log with uid."

        uid = relevant.json.get("uid") or relevant.json.get("device_id")
        if not uid:
            return str(MissingField("uid or device_id", "A log was found but carries neither field."))

        app_id = find_app_id(lines)
        if not app_id:
            return str(MissingField("app_id in logs"))

        try:
            data = self._attribution.fetch_install_data(app_id, dev_key, str(uid))
        except AttributionError as e:
            return f"❌ {e}"

        af_status = data.get("af_status") or "Unknown"
        install_time = data.get("install_time") or "N/A"
        return (
            "✅ The AppsFlyer SDK verification succeeded.\n"
            "SDK is active and responding.\n\n"
            f"🔹 App ID: {app_id}\n"
            f"🔹 UID: {uid}\n"
            f"🔹 Timestamp: {relevant.timestamp}\n"
            f"🔹 Status: {af_status} install (af_status: \"{af_status}\")\n"
            f"🔹 Install time: {install_time}"
        )


def find_app_id(lines: list[str]) -> str | None:
    """Newest app id in the window, from embedded JSON or an `app_id=` query fragment."""
    for line in reversed(lines):
        payload = extract_json(line)
        if payload and (payload.get("app_id") or payload.get("appId")):
            return str(payload.get("app_id") or payload.get("appId"))
        match = _APP_ID_PATTERN.search(line)
        if match:
            return match.group(1)
    return extract_param("\n".join(lines), "appId")


def _has_event_value(value) -> bool:
    if isinstance(value, str):
        value = extract_json(value)
    return isinstance(value, dict) and len(value) > 0


def _flag(value: bool) -> str:
    return "true" if value else "false"
