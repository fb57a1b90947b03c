"""Structured logger attaching run context, metrics and tracebacks to records."""

import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Correlate every line emitted during one clustering run
experiment_context: ContextVar[Optional[str]] = ContextVar('experiment_id', default=None)
node_context: ContextVar[Optional[str]] = ContextVar('node_id', default=None)
stage_context: ContextVar[Optional[str]] = ContextVar('stage', default=None)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def current_context() -> Dict[str, str]:
    """Run id, stage and node currently in scope; unset entries omitted."""
    values = {
        'experiment_id': experiment_context.get(),
        'stage': stage_context.get(),
        'node_id': node_context.get(),
    }
    return {key: value for key, value in values.items() if value is not None}


def _render_exc_info(exc_info) -> Optional[str]:
    """Traceback text for the exc_info forms accepted by ``Logger._log``."""
    if exc_info is True:
        exc_info = sys.exc_info()
    elif isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
    if not isinstance(exc_info, tuple) or exc_info[0] is None:
        return None
    return ''.join(traceback.format_exception(*exc_info))


class StructuredLogger(logging.Logger):
    """Logger whose records carry ``context``, ``performance`` and ``traceback``.

    ``context`` merges the run context variables, fields added with
    ``add_context`` and any ``extra={'context': {...}}`` of the call.
    Tracebacks are rendered eagerly so the JSON file keeps them even
    when the exception is gone by the time the record is formatted.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self._context_fields: Dict[str, Any] = {}

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False, **kwargs):
        extra = dict(extra) if isinstance(extra, dict) else {}

        context = current_context()
        context['logger_name'] = self.name
        context['timestamp'] = _utc_timestamp()
        context.update(self._context_fields)
        context.update(extra.pop('context', None) or {})
        context = {key: value for key, value in context.items() if value is not None}

        tb = extra.pop('traceback', None)
        if not tb and exc_info:
            tb = _render_exc_info(exc_info)

        extra['context'] = context
        extra['performance'] = extra.pop('performance', None)
        extra['traceback'] = tb

        super()._log(level, msg, args, exc_info=False, extra=extra,
                     stack_info=stack_info, **kwargs)

    def add_context(self, **fields):
        """Attach fields to every later record, e.g. ``add_context(matrix='promoters')``."""
        self._context_fields.update(fields)

    def remove_context(self, *keys):
        for key in keys:
            self._context_fields.pop(key, None)

    def clear_context(self):
        self._context_fields.clear()

    def log_performance(self, operation: str, duration: float, **metrics):
        """Log duration and metrics of an operation.

        ``items_processed`` (rows) also yields ``items_per_second``.

        Example:
            logger.log_performance('kmeans', 1.23, items_processed=1000, iterations=12)
        """
        performance = {
            'operation': operation,
            'duration_seconds': round(duration, 3),
            **metrics
        }
        rows = metrics.get('items_processed')
        if rows is not None and duration > 0:
            performance['items_per_second'] = round(rows / duration, 2)

        self.info(f"Performance: {operation} completed in {duration:.3f}s",
                  extra={'performance': performance})

    def log_error_with_context(self, error: Exception, operation: Optional[str] = None,
                               **context):
        """Log ``error`` with its type, traceback and the given fields."""
        fields = {
            'error_type': type(error).__name__,
            'error_module': type(error).__module__,
            **context
        }
        if operation:
            fields['operation'] = operation

        self.error(f"{type(error).__name__}: {error}", exc_info=error,
                   extra={'context': fields})

    def create_child(self, suffix: str) -> 'StructuredLogger':
        return get_logger(f"{self.name}.{suffix}")


_loggers: Dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Return the StructuredLogger registered under ``name``, creating it once.

    Raises:
        TypeError: ``name`` is already held by a plain ``logging.Logger``
    """
    logger = _loggers.get(name)
    if logger is not None:
        return logger

    existing = logging.Logger.manager.loggerDict.get(name)
    if isinstance(existing, logging.Logger) and not isinstance(existing, StructuredLogger):
        raise TypeError(f"Logger {name!r} already exists and is not a StructuredLogger")

    previous_class = logging.getLoggerClass()
    logging.setLoggerClass(StructuredLogger)
    try:
        logger = logging.getLogger(name)
    finally:
        logging.setLoggerClass(previous_class)

    _loggers[name] = logger
    return logger
