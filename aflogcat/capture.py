"""Log-reading subprocess management: bounded captures and a supervised continuous session."""

import codecs
import logging
import subprocess
import threading
import time

from aflogcat.errors import CaptureError
from aflogcat.models import SessionState
from aflogcat.pid import ProcessLineFilter
from aflogcat.ring_buffer import RingBuffer

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096
BOUNDED_TIMEOUT = 2.0
KILL_WAIT = 1.0
JOIN_TIMEOUT = 1.0
HEALTHY_AFTER = 10.0  # a reader that lived this long earns a fresh restart

STATUS_STARTED = "started"
STATUS_ALREADY_RUNNING = "already running"
STATUS_STOPPED = "stopped"
STATUS_NOT_RUNNING = "not running"


class LineSplitter:
    """Turns raw stdout chunks into complete, decoded lines.

    Partial lines and partial UTF-8 sequences stay buffered until the rest
    arrives or the stream is closed.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial = ""

    def feed(self, chunk: bytes) -> list[str]:
        data = self._partial + self._decoder.decode(chunk)
        lines = data.split("\n")
        # Last element is "" when data ends on a newline, otherwise a partial line
        self._partial = lines.pop()
        return self._clean(lines)

    def close(self) -> list[str]:
        data = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        return self._clean([data])

    @staticmethod
    def _clean(lines: list[str]) -> list[str]:
        result = []
        for line in lines:
            if line.endswith("\r"):
                line = line[:-1]
            if line:
                result.append(line)
        return result


def _pump_lines(stream, on_lines):
    """Read a binary stream to EOF, handing complete lines to `on_lines`."""
    splitter = LineSplitter()
    try:
        for chunk in iter(lambda: stream.read1(CHUNK_SIZE), b""):
            lines = splitter.feed(chunk)
            if lines:
                on_lines(lines)
    except (OSError, ValueError) as e:
        logger.debug("stdout reader stopped: %s", e)
    finally:
        rest = splitter.close()
        if rest:
            on_lines(rest)
        stream.close()


def _pump_raw(stream, on_chunk):
    """Read a binary stream to EOF, handing every chunk to `on_chunk`."""
    try:
        for chunk in iter(lambda: stream.read1(CHUNK_SIZE), b""):
            on_chunk(chunk)
    except (OSError, ValueError) as e:
        logger.debug("stderr reader stopped: %s", e)
    finally:
        stream.close()


def _spawn(argv: list[str], popen) -> subprocess.Popen:
    try:
        return popen(argv, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as e:
        raise CaptureError(f"Failed to start {argv[0]}: {e}")


def _terminate(proc: subprocess.Popen):
    if proc.poll() is not None:
        return
    proc.kill()
    try:
        proc.wait(timeout=KILL_WAIT)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d did not exit after kill", proc.pid)


def _thread(target, *args) -> threading.Thread:
    t = threading.Thread(target=target, args=args, daemon=True)
    t.start()
    return t


def capture_bounded(argv: list[str], timeout: float = BOUNDED_TIMEOUT,
                    popen=subprocess.Popen) -> list[str]:
    """Run the log reader and collect its lines until it exits or `timeout` passes.

    On deadline the process is killed and the lines collected so far are
    returned. Output on stderr before a clean exit raises CaptureError, as does
    a non-zero exit status.
    """
    proc = _spawn(argv, popen)
    logger.debug("Bounded capture started (pid %d): %s", proc.pid, " ".join(argv))

    lines: list[str] = []
    lines_lock = threading.Lock()
    stderr_chunks: list[bytes] = []
    done = threading.Event()

    def on_lines(batch):
        with lines_lock:
            lines.extend(batch)

    def on_stderr(chunk):
        stderr_chunks.append(chunk)
        done.set()

    def watch_exit():
        proc.wait()
        done.set()

    readers = [_thread(_pump_lines, proc.stdout, on_lines), _thread(_pump_raw, proc.stderr, on_stderr)]
    _thread(watch_exit)

    timed_out = not done.wait(timeout)
    if timed_out or proc.poll() is None:
        _terminate(proc)
    for reader in readers:
        reader.join(JOIN_TIMEOUT)

    with lines_lock:
        collected = list(lines)

    if timed_out:
        logger.debug("Bounded capture deadline reached after %.1fs, %d lines", timeout, len(collected))
        return collected

    if stderr_chunks:
        stderr_text = b"".join(stderr_chunks).decode("utf-8", errors="replace").strip()
        raise CaptureError(f"ADB error: {stderr_text}", stderr=stderr_text)
    if proc.returncode != 0:
        raise CaptureError(f"logcat process exited with code {proc.returncode}")

    logger.debug("Bounded capture finished, %d lines", len(collected))
    return collected


class CaptureSession:
    """A single continuous log capture feeding a bounded window.

    States: STOPPED -> RUNNING on start(); an unexpected (non-zero) exit moves
    RUNNING -> RESTARTING -> RUNNING once. If the restarted reader exits
    unexpectedly again within `healthy_after` seconds the session settles in
    STOPPED instead of retrying.

    The reader follows the whole device log; only lines tagged with
    `filter_tag`, and untagged lines from the pid that last logged with it,
    reach the window.
    """

    def __init__(self, argv_builder, capacity: int = 5000, popen=subprocess.Popen,
                 healthy_after: float = HEALTHY_AFTER):
        self._build_argv = argv_builder
        self._capacity = capacity
        self._popen = popen
        self._healthy_after = healthy_after
        self._lock = threading.Lock()
        self._window = RingBuffer(capacity)
        self._proc: subprocess.Popen | None = None
        self._state = SessionState.STOPPED
        self._filter_tag: str | None = None
        self._device_id: str | None = None
        self._line_filter: ProcessLineFilter | None = None
        self._restart_enabled = False
        self._restart_budget = 0
        self._spawned_at = 0.0
        self._spawn_count = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def window(self) -> RingBuffer:
        return self._window

    @property
    def spawn_count(self) -> int:
        return self._spawn_count

    def is_running(self) -> bool:
        with self._lock:
            return self._proc is not None and self._proc.poll() is None

    def start(self, filter_tag: str, device_id: str | None = None) -> str:
        with self._lock:
            if self._proc is not None and self._proc.poll() is None:
                logger.info("Capture already running (pid %d)", self._proc.pid)
                return STATUS_ALREADY_RUNNING
            self._filter_tag = filter_tag
            self._device_id = device_id
            self._window = RingBuffer(self._capacity)
            self._line_filter = ProcessLineFilter(filter_tag)
            self._restart_enabled = True
            self._restart_budget = 1
            self._spawn_locked()
            self._state = SessionState.RUNNING
        return STATUS_STARTED

    def stop(self) -> str:
        with self._lock:
            self._restart_enabled = False
            proc = self._proc
            self._proc = None
            self._state = SessionState.STOPPED
        if proc is None or proc.poll() is not None:
            return STATUS_NOT_RUNNING
        logger.info("Stopping capture (pid %d)", proc.pid)
        _terminate(proc)
        return STATUS_STOPPED

    def snapshot(self) -> list[str]:
        return self._window.snapshot()

    def wait_for_lines(self, timeout: float) -> bool:
        """Wait until the window receives its first line, up to `timeout` seconds."""
        return self._window.wait_for_data(timeout)

    def _spawn_locked(self):
        argv = self._build_argv(self._device_id)
        try:
            proc = _spawn(argv, self._popen)
        except CaptureError:
            self._proc = None
            self._state = SessionState.STOPPED
            raise
        self._proc = proc
        self._spawned_at = time.monotonic()
        self._spawn_count += 1
        logger.info("Capture started (pid %d): %s", proc.pid, " ".join(argv))

        pump = _thread(_pump_lines, proc.stdout, self._retain)
        _thread(_pump_raw, proc.stderr, self._on_stderr)
        _thread(self._watch, proc, pump)

    def _retain(self, lines: list[str]):
        kept = self._line_filter(lines)
        if kept:
            self._window.extend(kept)

    def _on_stderr(self, chunk: bytes):
        logger.warning("[logcat stderr] %s", chunk.decode("utf-8", errors="replace").strip())

    def _watch(self, proc, pump: threading.Thread):
        code = proc.wait()
        pump.join(JOIN_TIMEOUT)
        with self._lock:
            if proc is not self._proc:
                return
            self._proc = None
            if code == 0 or not self._restart_enabled:
                logger.info("Capture process exited with code %d", code)
                self._state = SessionState.STOPPED
                return

            logger.warning("Capture process exited unexpectedly with code %d", code)
            if time.monotonic() - self._spawned_at >= self._healthy_after:
                self._restart_budget = 1
            if self._restart_budget <= 0:
                logger.warning("Restarted capture exited again, leaving session stopped")
                self._state = SessionState.STOPPED
                return

            self._restart_budget -= 1
            self._state = SessionState.RESTARTING
            logger.info("Restarting capture with filter %r", self._filter_tag)
            try:
                self._spawn_locked()
            except CaptureError as e:
                logger.error("Capture restart failed: %s", e)
                return
            self._state = SessionState.RUNNING
