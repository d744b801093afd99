"""Logging setup for the lottery dApp.

``get_logger`` hands out module loggers and installs the dApp's handlers on
first use, from the LOG_LEVEL and LOG_FILE environment variables. Once the
configuration is loaded, ``configure_logging`` re-applies the handlers from
the ``app.log_level`` / ``app.log_file`` settings (also reachable as
APP_LOG_LEVEL / APP_LOG_FILE).
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# chatty at DEBUG; only raised to the dApp's level when that level is DEBUG
LIBRARY_LOGGERS = ('web3', 'urllib3', 'asyncio', 'websockets')

_handlers: List[logging.Handler] = []


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv('LOG_LEVEL') or 'INFO').upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> int:
    """Install console (and optional file) handlers on the root logger.

    Handlers installed by an earlier call are replaced, so calling this again
    with new settings never duplicates output. Returns the effective level.
    """
    resolved = _resolve_level(level)
    log_file = log_file or os.getenv('LOG_FILE') or None

    root = logging.getLogger()
    for handler in _handlers:
        root.removeHandler(handler)
        handler.close()
    _handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    _handlers.append(console)

    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setFormatter(formatter)
            _handlers.append(file_handler)
        except OSError as exc:
            root.warning('Cannot write log file %s (%s); logging to console only', log_file, exc)

    for handler in _handlers:
        handler.setLevel(resolved)
        root.addHandler(handler)
    root.setLevel(resolved)

    library_level = resolved if resolved <= logging.DEBUG else max(resolved, logging.WARNING)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return resolved


def configure_from_config(config: Dict[str, Any]) -> int:
    app_cfg = config.get('app') or {}
    return configure_logging(app_cfg.get('log_level'), app_cfg.get('log_file'))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger for ``name``, installing the handlers on first use."""
    if not _handlers:
        configure_logging()
    return logging.getLogger(name)
