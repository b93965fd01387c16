from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

LOG_FORMAT = "%(asctime)s %(level_tag)s %(name)s: %(message)s"

# Config spellings accepted for `logging.level`; the first name listed for a
# level is also the tag printed in log lines.
_LEVEL_NAMES = (
    ("debug", logging.DEBUG),
    ("info", logging.INFO),
    ("warn", logging.WARNING),
    ("warning", logging.WARNING),
    ("error", logging.ERROR),
    ("crit", logging.CRITICAL),
    ("critical", logging.CRITICAL),
)
_LEVELS = dict(_LEVEL_NAMES)
_TAGS: Dict[int, str] = {}
for _name, _level in _LEVEL_NAMES:
    _TAGS.setdefault(_level, f"[{_name}]")


class BracketLevelFormatter(logging.Formatter):
    """Prefixes records with a UTC timestamp and a bracketed level tag, e.g. `[warn]`."""

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, timezone.utc)
        return stamp.strftime(datefmt or "%Y-%m-%dT%H:%M:%SZ")

    def format(self, record):
        record.level_tag = _TAGS.get(record.levelno, f"[lvl{record.levelno}]")
        return super().format(record)


def level_from_name(name: Optional[str], default: int = logging.INFO) -> int:
    return _LEVELS.get(str(name or "").lower(), default)


def _open_log_file(file_path: str) -> logging.Handler:
    path = os.path.abspath(os.path.expanduser(file_path))
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def init_logging(cfg: Optional[Dict[str, Any]]) -> List[logging.Handler]:
    """
    Brief: Route every logger through the root logger using the `logging` config section.

    Inputs:
      - cfg: Mapping with optional keys:
          - level: debug, info, warn, error or crit (default info)
          - stderr: write to stderr (default True)
          - file: append to this path, creating parent directories

    Outputs:
      - list[logging.Handler]: Handlers now attached to the root logger.

    Example:
      >>> init_logging({"level": "debug", "stderr": False, "file": "./iterdns.log"})
    """
    cfg = cfg or {}
    root = logging.getLogger()
    root.setLevel(level_from_name(cfg.get("level")))

    # A second call (tests, embedding) replaces rather than stacks handlers.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handlers: List[logging.Handler] = []
    if cfg.get("stderr", True):
        handlers.append(logging.StreamHandler(sys.stderr))
    file_path = cfg.get("file")
    if isinstance(file_path, str) and file_path.strip():
        handlers.append(_open_log_file(file_path.strip()))

    formatter = BracketLevelFormatter(fmt=LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.captureWarnings(True)
    return handlers
