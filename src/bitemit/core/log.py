# src/bitemit/core/log.py
from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional

from dotenv import find_dotenv, load_dotenv

_configured = False

PLAIN_FMT = "[%(asctime)s] %(levelname)s %(name)s | %(message)s"

_FALSE = {"0", "false", "no", "off"}

# attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def env_flag(var: str, default: bool) -> bool:
    """Boolean env var: unset/blank -> default, 0/false/no/off -> False."""
    raw = os.getenv(var)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in _FALSE


class JsonHandler(logging.StreamHandler):
    """One JSON object per log record, written to stdout. extra= fields ride along."""
    def __init__(self, stream=None):
        super().__init__(stream=stream or sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            obj = {
                "ts": record.created,
                "lvl": record.levelname,
                "name": record.name,
                "msg": record.getMessage(),
            }
            for k in ("filename", "lineno", "funcName"):
                obj[k] = getattr(record, k, None)
            for k, v in record.__dict__.items():
                if k not in _RECORD_ATTRS and k not in obj:
                    obj[k] = v
            if record.exc_info:
                obj["exc"] = logging.Formatter().formatException(record.exc_info)
            self.stream.write(json.dumps(obj, ensure_ascii=False, default=str) + "\n")
            self.flush()
        except Exception:  # pragma: no cover
            self.handleError(record)


def _level(name: str) -> int:
    lvl = logging.getLevelName(name.upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def setup(level: Optional[str] = None, json_mode: Optional[bool] = None, *, force: bool = False) -> None:
    """Configure the root logger.
    - LOG_LEVEL / LOG_JSON come from the environment (and .env) when args are None
    - second call is a no-op unless force=True
    """
    global _configured
    if _configured and not force:
        return

    load_dotenv(find_dotenv(usecwd=True))

    py_level = _level(level or os.getenv("LOG_LEVEL", "INFO"))
    json_flag = json_mode if json_mode is not None else env_flag("LOG_JSON", False)

    root = logging.getLogger()
    # drop old handlers, pytest may call us more than once
    root.handlers.clear()
    root.setLevel(py_level)

    if json_flag:
        root.addHandler(JsonHandler())
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=PLAIN_FMT))
        root.addHandler(handler)

    _configured = True


def get(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Adjust the root level at runtime (tests use this)."""
    logging.getLogger().setLevel(_level(level))
