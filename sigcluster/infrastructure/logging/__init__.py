"""Structured logging infrastructure for clustering runs."""

from .structured_logger import (
    StructuredLogger, get_logger, current_context,
    experiment_context, node_context, stage_context
)
from .context import LoggingContext
from .decorators import log_operation
from .formatters import JsonFormatter, HumanFormatter
from .handlers import ConsoleHandler, FileHandler
from .setup import setup_logging, setup_simple_logging, get_log_stats

__all__ = [
    'StructuredLogger',
    'get_logger',
    'current_context',
    'LoggingContext',
    'experiment_context',
    'node_context',
    'stage_context',
    'log_operation',
    'JsonFormatter',
    'HumanFormatter',
    'ConsoleHandler',
    'FileHandler',
    'setup_logging',
    'setup_simple_logging',
    'get_log_stats'
]
