from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ROOT_LOGGER = "nftrecon"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# LogRecord attributes that are not user supplied `extra=` fields
_RESERVED = frozenset(
    (
        "args", "msg", "levelname", "levelno", "name", "created", "msecs", "relativeCreated",
        "pathname", "filename", "module", "lineno", "funcName", "stack_info", "exc_info", "exc_text",
        "thread", "threadName", "processName", "process", "taskName", "message", "asctime",
    )
)


@dataclass(frozen=True)
class LogConfig:
    level: str = "info"
    json: bool = False
    to_file: Optional[str] = None
    utc: bool = True
    show_extra: bool = False


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if not k.startswith("_") and k not in _RESERVED}


class _JsonFormatter(logging.Formatter):
    def __init__(self, utc: bool = True):
        super().__init__()
        self.utc = utc

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc if self.utc else None)
        payload: Dict[str, Any] = {
            "ts": ts.isoformat(),
            "level": record.levelname.lower(),
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for k, v in _extras(record).items():
            payload.setdefault(k, v)
        return json.dumps(payload, ensure_ascii=False, default=str)


class _TextFormatter(logging.Formatter):
    """Plain console lines; `key=value` extras are appended when enabled."""

    def __init__(self, show_extra: bool = False):
        super().__init__(fmt="%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        self.show_extra = show_extra

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if not self.show_extra:
            return line
        extra = _extras(record)
        if not extra:
            return line
        return line + " " + " ".join(f"{k}={v}" for k, v in extra.items())


def setup_logging(cfg: LogConfig) -> logging.Logger:
    lvl = _LEVELS.get(cfg.level.lower().strip(), logging.INFO)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(lvl)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)

    fmt: logging.Formatter
    if cfg.json:
        fmt = _JsonFormatter(utc=cfg.utc)
    else:
        fmt = _TextFormatter(show_extra=cfg.show_extra)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(lvl)
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    if cfg.to_file:
        os.makedirs(os.path.dirname(cfg.to_file) or ".", exist_ok=True)
        fh = logging.FileHandler(cfg.to_file, encoding="utf-8")
        fh.setLevel(lvl)
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    return logger


def get_logger(name: str) -> logging.Logger:
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
