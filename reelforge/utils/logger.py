"""
Logging for ReelForge

One rotating log file for every run plus a rich console handler. Pipeline
messages carry the run id so interleaved concurrent runs stay readable.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Any, MutableMapping, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = 'reelforge'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Per-request access lines from the relay and client chatter
QUIET_LOGGERS = ('aiohttp.access', 'aiohttp.client', 'asyncio')


def setup_logging(config: 'Config', level: Optional[str] = None) -> logging.Logger:
    """Attach file and console handlers to the ``reelforge`` logger.

    ``level`` wins over ``logging.level`` from the config file. Calling this
    again replaces the handlers instead of stacking them.
    """
    log_config = config.logging
    level_name = (level or log_config.get('level', 'INFO')).upper()
    log_file = Path(log_config.get('file', Path(config.paths.logs) / 'reelforge.log'))
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=log_config.get('max_size_mb', 50) * 1024 * 1024,
        backupCount=log_config.get('backup_count', 5),
        encoding='utf-8'
    )
    file_handler.setFormatter(logging.Formatter(log_config.get('format', FILE_FORMAT)))
    logger.addHandler(file_handler)

    if log_config.get('console', True):
        console_handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        console_handler.setFormatter(logging.Formatter('%(name)s: %(message)s'))
        logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


class RunLogger(logging.LoggerAdapter):
    """Prefixes every message with the pipeline run id"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['run_id']}] {msg}", kwargs


class LoggerMixin:
    """Gives a class a ``reelforge.<ClassName>`` logger"""

    @property
    def logger(self) -> logging.Logger:
        if not hasattr(self, '_logger'):
            self._logger = logging.getLogger(f'{ROOT_LOGGER}.{self.__class__.__name__}')
        return self._logger

    def run_logger(self, run_id: str) -> RunLogger:
        return RunLogger(self.logger, {'run_id': run_id})
