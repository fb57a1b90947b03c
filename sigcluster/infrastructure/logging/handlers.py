"""Console and rotating-file handlers for clustering runs."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from .formatters import HumanFormatter, JsonFormatter

DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def stream_supports_color(stream) -> bool:
    """ANSI colours only on a terminal, honouring NO_COLOR and TERM=dumb."""
    isatty = getattr(stream, 'isatty', None)
    if isatty is None or not isatty():
        return False
    return not os.environ.get('NO_COLOR') and os.environ.get('TERM', '') != 'dumb'


class ConsoleHandler(logging.StreamHandler):
    """Stream handler (stderr by default) rendering records with HumanFormatter."""

    def __init__(self, stream: Optional[TextIO] = None,
                 use_colors: Optional[bool] = None,
                 show_context: bool = True,
                 level: int = logging.INFO):
        """
        Args:
            stream: Output stream (defaults to stderr)
            use_colors: Force colours on/off (detected from the stream if None)
            show_context: Show the run/stage tag on each line
            level: Minimum level written to the stream
        """
        stream = sys.stderr if stream is None else stream
        super().__init__(stream)

        if use_colors is None:
            use_colors = stream_supports_color(stream)
        self.setFormatter(HumanFormatter(use_colors=use_colors, show_context=show_context))
        self.setLevel(level)


class FileHandler(RotatingFileHandler):
    """Size-rotated log file, JSON lines unless ``use_json`` is off.

    The parent directory is created on construction.
    """

    def __init__(self, filename: str,
                 max_bytes: int = DEFAULT_MAX_BYTES,
                 backup_count: int = 5,
                 use_json: bool = True,
                 level: int = logging.DEBUG):
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(str(path), maxBytes=max_bytes,
                         backupCount=backup_count, encoding='utf-8')

        self.setFormatter(JsonFormatter() if use_json else logging.Formatter(PLAIN_FORMAT))
        self.setLevel(level)

    @property
    def settings(self) -> Dict[str, Any]:
        """Target file and rotation limits."""
        return {
            'filename': self.baseFilename,
            'max_bytes': self.maxBytes,
            'backup_count': self.backupCount,
        }
