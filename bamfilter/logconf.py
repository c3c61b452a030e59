"""
Logging setup for the command line tools.

The console shows the level chosen in settings.ini (or --log-level); the
rotating file next to the settings file always records DEBUG.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "bamfilter.log"
MAX_LOG_BYTES = 5_000_000
LOG_BACKUPS = 3

_log_file: Optional[Path] = None


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: Union[int, str] = logging.INFO, log_dir: Optional[Path] = None) -> Path:
    """
    Replace the root handlers with a console handler and a log file.

    Args:
        level: Console level, as a number or a name such as "WARNING"
        log_dir: Directory of the log file (default: ./logs)

    Returns:
        Path of the log file
    """
    global _log_file
    directory = Path(log_dir) if log_dir else Path("logs")
    directory.mkdir(parents=True, exist_ok=True)
    _log_file = (directory / LOG_FILE_NAME).resolve()

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)
    fmt = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(stream=sys.stderr)
    console.setFormatter(fmt)
    console.setLevel(_resolve_level(level))
    root.addHandler(console)

    file_handler = RotatingFileHandler(_log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS,
                                       encoding="utf-8")
    file_handler.setFormatter(fmt)
    file_handler.setLevel(logging.DEBUG)
    root.addHandler(file_handler)

    # Pillow logs every PNG chunk at DEBUG
    logging.getLogger("PIL").setLevel(logging.WARNING)
    return _log_file


def log_path() -> Optional[Path]:
    """Log file of the last setup_logging() call, None before it."""
    return _log_file
