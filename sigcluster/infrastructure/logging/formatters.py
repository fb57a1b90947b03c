"""Formatters rendering clustering log records for the console or as JSON lines."""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LEVEL_COLORS = {
    'DEBUG': '\033[36m',      # Cyan
    'INFO': '',
    'WARNING': '\033[93m',    # Yellow
    'ERROR': '\033[91m',      # Red
    'CRITICAL': '\033[95m',   # Magenta
}
RESET = '\033[0m'
BOLD = '\033[1m'
DIM = '\033[2m'


def record_traceback(record: logging.LogRecord) -> Optional[str]:
    """Traceback captured by StructuredLogger, else one rendered from exc_info."""
    tb = getattr(record, 'traceback', None)
    if not tb and record.exc_info:
        tb = ''.join(traceback.format_exception(*record.exc_info))
    return tb or None


def describe_context(context: Optional[Dict[str, Any]]) -> str:
    """Compact ``[run:abcd1234 | stage:cluster | node:assign | k=4]`` tag."""
    if not context:
        return ''

    parts = []
    run_id = context.get('experiment_id')
    if run_id:
        parts.append(f"run:{str(run_id)[:8]}")
    if context.get('stage'):
        parts.append(f"stage:{context['stage']}")
    node_id = context.get('node_id')
    if node_id:
        parts.append(f"node:{node_id.rsplit('/', 1)[-1]}")
    if 'k' in context:
        parts.append(f"k={context['k']}")

    return f"[{' | '.join(parts)}]" if parts else ''


def describe_performance(performance: Optional[Dict[str, Any]]) -> str:
    """One-line summary of duration, row throughput and pass count."""
    if not performance:
        return ''

    parts = []
    duration = performance.get('duration_seconds')
    if duration is not None:
        parts.append(f"{duration:.3f}s")
    rate = performance.get('items_per_second')
    if rate is not None:
        parts.append(f"{rate:.1f} rows/s")
    passes = performance.get('iterations')
    if passes is not None:
        parts.append(f"{passes} iterations")
    if performance.get('converged') is False:
        parts.append("not converged")

    return ' | '.join(parts)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; readable back with ``pandas.read_json(lines=True)``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}:{record.funcName}:{record.lineno}",
            'process': record.process,
        }

        for field_name in ('context', 'performance'):
            value = getattr(record, field_name, None)
            if value:
                payload[field_name] = value

        tb = record_traceback(record)
        if tb:
            payload['traceback'] = tb

        return json.dumps(payload, separators=(',', ':'), default=str)


class HumanFormatter(logging.Formatter):
    """Console lines of the form ``time LEVEL [logger] [context] message``.

    Records carrying performance metrics get an indented summary line;
    tracebacks follow the message.
    """

    def __init__(self, use_colors: bool = True, show_context: bool = True,
                 name_width: int = 20):
        super().__init__()
        self.use_colors = use_colors
        self.show_context = show_context
        self.name_width = name_width

    def _paint(self, text: str, *codes: str) -> str:
        codes = tuple(code for code in codes if code)
        if not self.use_colors or not codes:
            return text
        return ''.join(codes) + text + RESET

    def shorten(self, name: str) -> str:
        """Fit a dotted logger name into ``name_width`` characters."""
        if len(name) <= self.name_width:
            return name
        tail = name.rsplit('.', 1)[-1]
        if len(tail) <= self.name_width - 3:
            return f"...{tail}"
        return f"{name[:self.name_width - 3]}..."

    def format(self, record: logging.LogRecord) -> str:
        level_color = LEVEL_COLORS.get(record.levelname, '')

        fields = [
            self._paint(self.formatTime(record, '%Y-%m-%d %H:%M:%S'), DIM),
            self._paint(f"{record.levelname:8}", level_color),
            self._paint(f"[{self.shorten(record.name)}]", DIM),
        ]
        if self.show_context:
            tag = describe_context(getattr(record, 'context', None))
            if tag:
                fields.append(self._paint(tag, BOLD))
        fields.append(record.getMessage())
        lines = [' '.join(fields)]

        summary = describe_performance(getattr(record, 'performance', None))
        if summary:
            lines.append(self._paint(f"  Performance: {summary}", DIM))

        tb = record_traceback(record)
        if tb:
            tb_lines = tb.rstrip().splitlines()
            if self.use_colors:
                tb_lines = [self._paint(f"  {line}", level_color) for line in tb_lines]
            lines.extend(tb_lines)

        return '\n'.join(lines)
