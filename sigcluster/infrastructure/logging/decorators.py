"""Decorator logging entry, duration and failure of public operations."""

import functools
import inspect
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from .structured_logger import get_logger

F = TypeVar('F', bound=Callable[..., Any])


def _describe_argument(value: Any) -> Any:
    """Scalars as-is; arrays and matrices as ``<Type rows x cols>``."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    shape = getattr(value, 'shape', None)
    if shape is None:
        shape = getattr(getattr(value, 'values', None), 'shape', None)
    if shape is not None:
        return f"<{type(value).__name__} {' x '.join(str(d) for d in shape)}>"
    return f"<{type(value).__name__}>"


def _describe_arguments(func: Callable, args, kwargs) -> Dict[str, Any]:
    bound = inspect.signature(func).bind(*args, **kwargs)
    bound.apply_defaults()
    return {name: _describe_argument(value) for name, value in bound.arguments.items()}


def log_operation(operation_name: Optional[str] = None,
                  log_args: bool = False,
                  log_performance: bool = True):
    """Log start, completion time and failures of the decorated function.

    Args:
        operation_name: Name used in the records (function name by default)
        log_args: Include a summary of the call arguments
        log_performance: Log a performance record on success

    Example:
        @log_operation("init_cluster_state", log_args=True)
        def init(matrix, k):
            ...
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__name__
        logger = get_logger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            context: Dict[str, Any] = {'operation': name}
            if log_args:
                context['arguments'] = _describe_arguments(func, args, kwargs)

            logger.debug(f"Starting {name}", extra={'context': context})
            started = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {name}: {e}",
                    exc_info=True,
                    extra={
                        'context': context,
                        'performance': {
                            'duration_seconds': round(time.time() - started, 3),
                            'status': 'failed',
                            'error_type': type(e).__name__,
                        }
                    }
                )
                raise

            if log_performance:
                logger.log_performance(name, time.time() - started, status='success')
            else:
                logger.debug(f"Completed {name}", extra={'context': context})
            return result

        return wrapper  # type: ignore
    return decorator
