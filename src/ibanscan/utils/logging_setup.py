from __future__ import annotations

import faulthandler
import json
import logging
import os
import platform
import re
import socket
import sys
import threading
import traceback
from collections import deque
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict

from ibanscan.utils.forensic_context import get_forensic_fields

if os.name == "nt":
    import msvcrt  # type: ignore
else:
    import fcntl  # type: ignore


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    raw = str(os.environ.get(name, "")).strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, "") or default)
    except ValueError:
        return default


class _InterProcessLock:
    """
    Exclusive lock on a side-car lock file, so that several ibanscan
    processes (CLI runs, scripts) can append to the same log safely.
    """

    def __init__(self, lock_path: Path):
        self._lock_path = lock_path
        self._fh = None

    def __enter__(self):
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(self._lock_path, "a+b")
        try:
            if os.name == "nt":
                if self._fh.seek(0, os.SEEK_END) == 0:
                    self._fh.write(b"\0")
                    self._fh.flush()
                self._fh.seek(0)
                msvcrt.locking(self._fh.fileno(), msvcrt.LK_LOCK, 1)
            else:
                fcntl.flock(self._fh.fileno(), fcntl.LOCK_EX)
        except OSError:
            self._fh.close()
            self._fh = None
            raise
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self._fh:
            return
        try:
            if os.name == "nt":
                self._fh.seek(0)
                msvcrt.locking(self._fh.fileno(), msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(self._fh.fileno(), fcntl.LOCK_UN)
        finally:
            self._fh.close()
            self._fh = None


class LineCappedFileHandler(logging.Handler):
    """
    One log file kept to roughly the last `max_lines` lines.

    Appends normally; once the file is `trim_chunk` lines over the cap it is
    rewritten with only the newest `max_lines` lines.
    """

    def __init__(self, filename: Path, *, max_lines: int = 5000, encoding: str = "utf-8"):
        super().__init__()
        self._filename = Path(filename)
        self._encoding = encoding
        self.max_lines = int(max_lines)
        self._trim_chunk = max(10, self.max_lines // 100)
        self._lock_path = self._filename.with_name(self._filename.name + ".lock")
        self._mtx = threading.RLock()
        self._stream = None
        self._line_count = 0
        self._open()

    def _open(self) -> None:
        self._filename.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self._filename, "r", encoding=self._encoding, errors="ignore") as rf:
                self._line_count = sum(1 for _ in rf)
        except FileNotFoundError:
            self._line_count = 0
        self._stream = open(self._filename, "a", encoding=self._encoding, errors="backslashreplace")

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            if not msg.endswith("\n"):
                msg += "\n"
            with self._mtx, _InterProcessLock(self._lock_path):
                if self._stream is None:
                    self._open()
                self._stream.write(msg)
                self._stream.flush()
                self._line_count += msg.count("\n")
                if self._line_count >= self.max_lines + self._trim_chunk:
                    self._trim()
        except Exception:
            self.handleError(record)

    def _trim(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        try:
            with open(self._filename, "r", encoding=self._encoding, errors="ignore") as rf:
                tail = deque(rf, maxlen=self.max_lines)
        except FileNotFoundError:
            tail = deque()
        with open(self._filename, "w", encoding=self._encoding, errors="backslashreplace") as wf:
            wf.writelines(tail)
        self._line_count = len(tail)
        self._stream = open(self._filename, "a", encoding=self._encoding, errors="backslashreplace")

    def close(self) -> None:
        with self._mtx:
            if self._stream is not None:
                self._stream.close()
            self._stream = None
        super().close()


_IBAN_LOG_RE = re.compile(r"\b([A-Z]{2}\d{2})([A-Z0-9]{11,30})\b")


def mask_ibans_in_text(text: str) -> str:
    """Mask IBAN-shaped tokens: keep the first and last four characters."""

    def _replace(m: re.Match) -> str:
        full = m.group(0)
        return full[:4] + "*" * (len(full) - 8) + full[-4:]

    return _IBAN_LOG_RE.sub(_replace, text)


class IbanMaskingFilter(logging.Filter):
    """Masks IBANs in the message and string arguments before formatting."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = mask_ibans_in_text(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: (mask_ibans_in_text(v) if isinstance(v, str) else v) for k, v in record.args.items()}
            else:
                record.args = tuple(mask_ibans_in_text(a) if isinstance(a, str) else a for a in record.args)
        return True


class ForensicContextFilter(logging.Filter):
    """Adds host/process metadata and the forensic context to each record."""

    def __init__(self) -> None:
        super().__init__()
        self._hostname = socket.gethostname()
        self._platform = platform.platform(terse=False)
        self._python = sys.version.replace("\n", " ").strip()
        self._user = os.environ.get("USERNAME") or os.environ.get("USER") or "unknown"

    def filter(self, record: logging.LogRecord) -> bool:
        record.hostname = self._hostname
        record.platform = self._platform
        record.python = self._python
        record.user = self._user
        record.cwd = os.getcwd()
        record.forensic = get_forensic_fields()
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, for machine reading of the forensic log."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread": record.threadName,
            "hostname": getattr(record, "hostname", None),
            "user": getattr(record, "user", None),
            "platform": getattr(record, "platform", None),
            "python": getattr(record, "python", None),
            "event_name": getattr(record, "event_name", None),
            "forensic": getattr(record, "forensic", None) or get_forensic_fields(),
        }

        extra_obj = getattr(record, "extra_payload", None)
        if extra_obj:
            payload["extra"] = extra_obj
        if record.exc_info:
            payload["exception"] = "".join(traceback.format_exception(*record.exc_info))
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=False, default=str)


_ROOT_CONFIGURED = False
_ROOT_CONFIG_LOCK = threading.Lock()
_HOOKS_INSTALLED = False
_FAULT_HANDLER_STREAM = None


def _install_runtime_hooks(log: logging.Logger, log_dir: Path) -> None:
    global _FAULT_HANDLER_STREAM
    global _HOOKS_INSTALLED
    if _HOOKS_INSTALLED:
        return
    _HOOKS_INSTALLED = True

    def _sys_excepthook(exc_type, exc, tb):
        log.critical("Uncaught exception in main thread", exc_info=(exc_type, exc, tb))

    def _threading_excepthook(args: threading.ExceptHookArgs) -> None:
        log.critical(
            "Uncaught exception in thread name=%s",
            getattr(args.thread, "name", "unknown"),
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _sys_excepthook
    threading.excepthook = _threading_excepthook
    logging.captureWarnings(True)

    try:
        _FAULT_HANDLER_STREAM = open(log_dir / "ibanscan_faulthandler.log", "a", encoding="utf-8", errors="backslashreplace")
        faulthandler.enable(_FAULT_HANDLER_STREAM, all_threads=True)
    except OSError:
        log.exception("Could not enable faulthandler")


def _compute_max_lines() -> int:
    """
    Line cap for the text log:
    1) IBANSCAN_LOG_MAX_LINES
    2) IBANSCAN_LOG_RETENTION_DAYS * IBANSCAN_LOG_LINES_PER_DAY_ESTIMATE
    """
    env_max = _env_int("IBANSCAN_LOG_MAX_LINES", 0)
    if env_max > 0:
        return env_max
    retention_days = _env_int("IBANSCAN_LOG_RETENTION_DAYS", 7)
    lines_per_day = _env_int("IBANSCAN_LOG_LINES_PER_DAY_ESTIMATE", 20000)
    return max(1000, retention_days * lines_per_day)


def setup_logging(log_dir: Path, name: str = "ibanscan") -> logging.Logger:
    """
    Configure the root logger once per process:
      <log_dir>/ibanscan.log             text, line capped
      <log_dir>/ibanscan_forensic.jsonl  JSON lines, line capped

    Console output is off unless IBANSCAN_LOG_CONSOLE=1.
    """
    global _ROOT_CONFIGURED

    log_dir.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    max_lines = _compute_max_lines()
    detail = _env_flag("IBANSCAN_LOG_DETAIL", True)

    with _ROOT_CONFIG_LOCK:
        if not _ROOT_CONFIGURED:
            root = logging.getLogger()
            root.setLevel(logging.DEBUG)

            fmt = logging.Formatter(
                "%(asctime)s.%(msecs)03d %(levelname)s "
                "pid=%(process)d tid=%(threadName)s "
                "[%(name)s:%(funcName)s:%(lineno)d] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
            forensic_filter = ForensicContextFilter()
            masking_filter = IbanMaskingFilter()

            handlers: list[logging.Handler] = []
            fh = LineCappedFileHandler(log_dir / "ibanscan.log", max_lines=max_lines)
            fh.setFormatter(fmt)
            handlers.append(fh)

            fh_json = LineCappedFileHandler(log_dir / "ibanscan_forensic.jsonl", max_lines=max_lines * 2)
            fh_json.setFormatter(JsonLineFormatter())
            handlers.append(fh_json)

            if _env_flag("IBANSCAN_LOG_CONSOLE", False):
                ch = logging.StreamHandler()
                ch.setFormatter(fmt)
                handlers.append(ch)

            for h in handlers:
                h.setLevel(logging.DEBUG)
                h.addFilter(masking_filter)
                h.addFilter(forensic_filter)
                root.addHandler(h)

            setattr(root, "_ibanscan_log_detail", detail)
            _ROOT_CONFIGURED = True

    logger.setLevel(logging.DEBUG)
    logger.propagate = True
    _install_runtime_hooks(logger, log_dir)
    logger.debug(
        "Logging initialized: log_dir=%s pid=%s max_lines=%s detail=%s",
        log_dir,
        os.getpid(),
        max_lines,
        int(detail),
        extra={"event_name": "logging.start", "extra_payload": {"max_lines": max_lines, "detail": int(detail)}},
    )
    return logger


def log_event(logger: logging.Logger, event_name: str, message: str, **extra: Any) -> None:
    """
    Structured INFO event: `event_name` and `extra` go to the JSON log, and a
    readable key=value suffix is appended to the text message. With detail
    off, values whose repr exceeds 400 characters are dropped.
    """
    extra_payload: Dict[str, Any] = dict(extra)
    if not bool(getattr(logging.getLogger(), "_ibanscan_log_detail", True)):
        extra_payload = {k: v for k, v in extra_payload.items() if len(repr(v)) <= 400}

    suffix = ""
    if extra_payload:
        suffix = " | " + " ".join(f"{k}={extra_payload[k]!r}" for k in sorted(extra_payload))
    logger.info(
        "%s%s",
        message,
        suffix,
        extra={"event_name": event_name, "extra_payload": extra_payload},
    )
