"""
Logging setup for the league bot.

Handlers are attached once, to the ``league_bot`` package logger. Module
loggers are its children and carry no handlers of their own, so the bot,
the services and the maintenance loop all write to the same console
stream and the same daily file under Config.LOG_DIR.
"""

import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from league_bot.config import Config

PACKAGE_LOGGER = 'league_bot'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def log_file_path(day: Optional[date] = None) -> Path:
    """Daily log file for ``day`` (today by default)"""
    day = day or date.today()
    return Path(Config.LOG_DIR) / f'league_bot_{day:%Y%m%d}.log'


def _package_logger() -> logging.Logger:
    package = logging.getLogger(PACKAGE_LOGGER)
    if package.handlers:
        return package

    # The file keeps DEBUG; the console follows Config.DEBUG
    package.setLevel(logging.DEBUG)
    package.propagate = False
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    path = log_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    console_level = logging.DEBUG if Config.DEBUG else logging.INFO
    for handler, level in (
        (logging.StreamHandler(sys.stdout), console_level),
        (logging.FileHandler(path, encoding='utf-8'), logging.DEBUG),
    ):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package.addHandler(handler)

    return package


def setup_logger(name: str) -> logging.Logger:
    """Logger for ``name`` writing through the shared league_bot handlers"""
    package = _package_logger()
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + '.'):
        return logging.getLogger(name)
    return package.getChild(name)
