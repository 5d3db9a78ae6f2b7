from __future__ import annotations

from copy import deepcopy
from typing import Any

from uvicorn.config import LOGGING_CONFIG

_DEBUG_LOG = False
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def debug_enabled() -> bool:
    return _DEBUG_LOG


def debug_log(scope: str, message: str) -> None:
    if _DEBUG_LOG:
        print(f"[linguascaffold {scope} debug] {message}")


def build_uvicorn_log_config(debug: bool | None = None) -> dict[str, Any]:
    """Return a uvicorn logging config whose level follows the debug switch."""
    if debug is None:
        debug = _DEBUG_LOG
    config = deepcopy(LOGGING_CONFIG)
    level = "DEBUG" if debug else "INFO"
    loggers = config.setdefault("loggers", {})
    for name in _UVICORN_LOGGERS:
        entry = loggers.get(name)
        if isinstance(entry, dict):
            entry["level"] = level
    formatter = config.get("formatters", {}).get("default")
    if isinstance(formatter, dict):
        formatter["fmt"] = "%(levelprefix)s [linguascaffold] %(message)s"
    return config
