"""Root logger configuration for clustering runs."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .structured_logger import get_logger, experiment_context
from .handlers import ConsoleHandler, FileHandler


def _reset_root(log_level: str) -> int:
    """Drop existing root handlers and set the root level; returns the numeric level."""
    root = logging.getLogger()
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    return level


def setup_logging(config,
                  experiment_id: Optional[str] = None,
                  log_file: Optional[Union[str, Path]] = None,
                  console: bool = True,
                  log_level: Optional[str] = None):
    """Send records to the console and to a rotating JSON log file.

    Args:
        config: ``Config`` (anything with a dotted ``get``)
        experiment_id: Run id attached to every record
        log_file: Log path; defaults to ``paths.logs_dir``/``logging.file_name``
        console: Also log to stderr
        log_level: Overrides ``logging.level``
    """
    log_level = log_level or config.get('logging.level', 'INFO')
    level = _reset_root(log_level)
    root = logging.getLogger()

    if console:
        root.addHandler(ConsoleHandler(use_colors=sys.stderr.isatty(), level=level))

    if log_file is None:
        log_file = Path(config.get('paths.logs_dir', 'logs')) / \
            config.get('logging.file_name', 'sigcluster.log')

    # Files capture everything regardless of the console level
    root.addHandler(FileHandler(
        str(log_file),
        max_bytes=config.get('logging.max_file_size', 10 * 1024 * 1024),
        backup_count=config.get('logging.backup_count', 5),
    ))

    if experiment_id:
        experiment_context.set(experiment_id)

    get_logger(__name__).info(
        f"Logging to {log_file} at {str(log_level).upper()}",
        extra={'context': {'console': console, 'log_file': str(log_file)}}
    )


def setup_simple_logging(log_level: str = 'INFO'):
    """Console-only logging for interactive sessions and tests."""
    level = _reset_root(log_level)
    logging.getLogger().addHandler(ConsoleHandler(level=level))


def get_log_stats() -> Dict[str, Any]:
    """Settings of the root logger's file handler, if one is installed."""
    stats: Dict[str, Any] = {}
    for handler in logging.getLogger().handlers:
        if isinstance(handler, FileHandler):
            stats['file'] = handler.settings
    return stats
