"""Process-wide logging: stdout plus an optional tail-friendly log file.

Levels and the file path come from ``Settings`` (``LOG_LEVEL``,
``LOG_FILE_PATH``). httpx and httpcore log one INFO line per request, and a
collection walk fans out many of them, so they stay at WARNING unless the
process runs at DEBUG.
"""

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

from .settings import Settings

_configured = False

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")
_CLIENT_LOGGERS = ("httpx", "httpcore")


def _build_dict_config(log_file: Optional[str], level: str) -> Dict[str, Any]:
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "plain",
        }
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.WatchedFileHandler",
            "filename": log_file,
            "formatter": "plain",
        }

    client_level = level if level == "DEBUG" else "WARNING"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"plain": {"format": _FORMAT}},
        "handlers": handlers,
        "loggers": {name: {"level": client_level} for name in _CLIENT_LOGGERS},
        "root": {"level": level, "handlers": list(handlers)},
    }


def configure_logging(cfg: Optional[Settings] = None) -> None:
    """Apply the logging config once per process.

    Args:
        cfg: Settings to read ``LOG_LEVEL`` / ``LOG_FILE_PATH`` from; a fresh
            ``Settings()`` (environment + ``.env``) when omitted.
    """
    global _configured
    if _configured:
        return

    cfg = cfg or Settings()
    level = cfg.LOG_LEVEL.upper()
    logging.config.dictConfig(_build_dict_config(cfg.LOG_FILE_PATH or None, level))

    # uvicorn installs its own handlers before importing the app; only
    # align levels so they are not removed
    for name in _SERVER_LOGGERS:
        logging.getLogger(name).setLevel(level)

    _configured = True
    logging.getLogger(__name__).debug(
        "logging.configured level=%s file=%s", level, cfg.LOG_FILE_PATH or "-"
    )
