import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import config as cfg


def _safe_makedirs(path: str) -> bool:
    try:
        os.makedirs(path, exist_ok=True)
        return True
    except OSError:
        return False


def _default_log_dir() -> str:
    return getattr(cfg, "ADMINLOGIN_LOG_DIR", "") or "/var/log/adminlogin"


def _get_log_dir() -> str:
    d = (os.environ.get("ADMINLOGIN_LOG_DIR") or getattr(cfg, "ADMINLOGIN_LOG_DIR", "") or "").strip()
    if not d:
        d = _default_log_dir()
    if _safe_makedirs(d) and os.access(d, os.W_OK):
        return d
    # fall back: project-local
    d2 = os.path.join(cfg.PROJECT_ROOT, "logs")
    _safe_makedirs(d2)
    return d2


def _get_level() -> int:
    s = (os.environ.get("ADMINLOGIN_LOG_LEVEL") or getattr(cfg, "ADMINLOGIN_LOG_LEVEL", "") or "INFO").strip().upper()
    return getattr(logging, s, logging.INFO)


def _retention_months() -> int:
    s = (os.environ.get("ADMINLOGIN_LOG_RETENTION_MONTHS") or getattr(cfg, "ADMINLOGIN_LOG_RETENTION_MONTHS", "") or "12").strip()
    try:
        v = int(s)
        return max(1, min(v, 120))
    except ValueError:
        return 12


@dataclass
class MonthlyRotator:
    path: str
    retention_months: int = 12

    def _month_tag(self, ts: Optional[float] = None) -> str:
        dt = datetime.fromtimestamp(ts or time.time()).astimezone()
        return dt.strftime("%Y-%m")

    def _rotate_if_needed(self) -> None:
        # Rotate when current month differs from file mtime month
        try:
            st = os.stat(self.path)
        except OSError:
            return

        file_month = self._month_tag(st.st_mtime)
        if file_month == self._month_tag():
            return

        bak = f"{self.path}.{file_month}.bak"
        try:
            if not os.path.exists(bak):
                os.rename(self.path, bak)
        except OSError:
            # Another gunicorn worker may have rotated first.
            pass

        self._cleanup_old()

    def _cleanup_old(self) -> None:
        # Keep at most N months of .bak files
        base = os.path.basename(self.path)
        parent = os.path.dirname(self.path) or "."
        try:
            names = os.listdir(parent)
        except OSError:
            return
        files = []
        for fn in names:
            if not fn.startswith(base + ".") or not fn.endswith(".bak"):
                continue
            # expect base.YYYY-MM.bak
            parts = fn.split(".")
            if len(parts) < 3:
                continue
            files.append((parts[-2], os.path.join(parent, fn)))
        files.sort(key=lambda x: x[0], reverse=True)
        for _, fp in files[self.retention_months:]:
            try:
                os.remove(fp)
            except OSError:
                pass

    def append_line(self, line: str) -> None:
        self._rotate_if_needed()
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)
            if not line.endswith("\n"):
                f.write("\n")


class MonthlyFileHandler(logging.Handler):
    def __init__(self, path: str, retention_months: int = 12):
        super().__init__()
        self.rot = MonthlyRotator(path=path, retention_months=retention_months)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.rot.append_line(self.format(record))
        except Exception:
            self.handleError(record)


_LOGGERS: Dict[str, logging.Logger] = {}


def get_logger(component: str) -> logging.Logger:
    """
    component: e.g. "web", "store"
    Writes to:
      - <log_dir>/<component>.log  (monthly .bak rotation)
      - stdout (journald), same format
    """
    component = (component or "app").strip().lower()
    if component in _LOGGERS:
        return _LOGGERS[component]

    level = _get_level()

    logger = logging.getLogger(f"adminlogin.{component}")
    logger.setLevel(level)
    logger.propagate = False

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s component=%(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    # Avoid duplicate handlers if reloaded
    logger.handlers = []

    if os.environ.get("ADMINLOGIN_LOG_FILE", "1").strip() not in ("0", "false", "no", "off"):
        fh = MonthlyFileHandler(
            os.path.join(_get_log_dir(), f"{component}.log"),
            retention_months=_retention_months(),
        )
        fh.setLevel(level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    # Stdout (journald)
    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    _LOGGERS[component] = logger
    return logger


def _kv_value(v: Any) -> str:
    s = str(v)
    if not s or any(c in s for c in ' ="\\') or not s.isprintable():
        # JSON string quoting escapes quotes, backslashes and control characters
        return json.dumps(s, ensure_ascii=False)
    return s


def kv(message: str, **fields: Any) -> str:
    """Render key=value pairs followed by `message`, skipping empty values.

    >>> kv("login ok", user="alice", admin_type="camp")
    'user=alice admin_type=camp login ok'
    """
    parts = [f"{k}={_kv_value(v)}" for k, v in fields.items() if v is not None and v != ""]
    parts.append(message)
    return " ".join(str(p) for p in parts)
