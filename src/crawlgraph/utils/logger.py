"""
Logging setup for the crawler.
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime, timezone

from .config import LoggingConfig


# Third-party loggers that are too chatty at the crawler's own level
QUIET_LOGGERS = {
    'aiohttp': logging.WARNING,
    'redis': logging.WARNING,
    'asyncio': logging.WARNING,
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with any crawl context merged in at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'source': f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(getattr(record, 'crawl_context', None) or {})

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """Logger adapter that adds crawler-specific context such as the worker id."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.setdefault('extra', {})
        extra['crawl_context'] = dict(self.extra)
        prefix = ' '.join(f"[{key}={value}]" for key, value in self.extra.items())
        return (f"{prefix} {msg}" if prefix else msg), kwargs

    def log_url_event(self, level: int, url: str, message: str, **kwargs):
        """Log an event about one URL, e.g. ``log_url_event(logging.INFO, url, "Skipped")``."""
        self.log(level, f"{message}: {url}", **kwargs)


class NoiseFilter(logging.Filter):
    """Drops records from the aiohttp access and server loggers."""

    def __init__(self, suppress_modules: Optional[list] = None):
        super().__init__()
        self.suppress_modules = tuple(suppress_modules or ('aiohttp.access', 'aiohttp.server'))

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(self.suppress_modules)


def _build_handler(handler: logging.Handler, formatter: logging.Formatter,
                   noise_filtering: bool) -> logging.Handler:
    handler.setFormatter(formatter)
    if noise_filtering:
        handler.addFilter(NoiseFilter())
    return handler


def setup_logging(config: LoggingConfig, enable_noise_filtering: bool = True) -> logging.Logger:
    """
    Configure the root logger from the ``logging`` section of the config.

    Console output goes to stderr so that crawl results printed on stdout
    stay machine-readable. When ``config.file`` is set a rotating file
    handler is added as well.

    Returns:
        Configured root logger
    """
    formatter = JSONFormatter() if config.json else logging.Formatter(config.format)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper()))
    root_logger.handlers.clear()
    root_logger.addHandler(_build_handler(logging.StreamHandler(sys.stderr), formatter, enable_noise_filtering))

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=50 * 1024 * 1024,  # 50MB
            backupCount=5,
            encoding='utf-8'
        )
        root_logger.addHandler(_build_handler(file_handler, formatter, enable_noise_filtering))

    for logger_name, level in QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    root_logger.debug(f"Logging initialized (level={config.level}, file={config.file}, json={config.json})")
    return root_logger


def get_crawler_logger(name: str, **extra_context) -> CrawlerLogAdapter:
    """
    Get a crawler-specific logger with additional context.

    Args:
        name: Logger name
        **extra_context: Context fields to include in all log messages

    Returns:
        CrawlerLogAdapter instance
    """
    return CrawlerLogAdapter(logging.getLogger(name), extra_context)
