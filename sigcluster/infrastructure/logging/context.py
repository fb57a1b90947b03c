"""Nested stage and operation scopes for one clustering run."""

import time
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from .structured_logger import experiment_context, node_context, stage_context, get_logger


class LoggingContext:
    """Run-scoped logging context.

    Every ``stage`` or ``operation`` entered becomes a node ``run/<a>/<b>``.
    While a scope is open its node id, the innermost stage and the run id
    are attached to every record. The duration and outcome of each node
    are kept in ``timings``.

    Example:
        ctx = LoggingContext()
        with ctx.stage('cluster', k=4):
            with ctx.operation('assign'):
                ...
    """

    def __init__(self, experiment_id: Optional[str] = None):
        self.experiment_id = experiment_id or str(uuid.uuid4())
        self.node_stack: List[str] = []
        self.stage_stack: List[str] = []
        self.timings: Dict[str, Dict[str, Any]] = {}
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @property
    def current_stage(self) -> Optional[str]:
        return self.stage_stack[-1] if self.stage_stack else None

    @contextmanager
    def _node(self, name: str, is_stage: bool, metadata: Dict[str, Any]):
        parent = self.node_stack[-1] if self.node_stack else 'run'
        node_id = f"{parent}/{name}"
        self.node_stack.append(node_id)
        node_context.set(node_id)
        if is_stage:
            self.stage_stack.append(name)
            stage_context.set(name)

        started = time.time()
        status = 'completed'
        try:
            yield self
        except Exception as e:
            status = 'failed'
            self.logger.log_error_with_context(e, operation=name, **metadata)
            raise
        finally:
            duration = time.time() - started
            self.timings[node_id] = {
                'duration': duration,
                'status': status,
                'finished_at': datetime.now().isoformat(),
            }
            if is_stage:
                self.logger.log_performance(f"stage_{name}", duration, status=status)
                self.stage_stack.pop()
                stage_context.set(self.current_stage)
            self.node_stack.pop()
            node_context.set(self.node_stack[-1] if self.node_stack else None)

    @contextmanager
    def stage(self, name: str, **metadata):
        """Open a stage such as ``prepare`` or ``cluster``.

        The run id is attached only while the outermost stage is open; the
        previous value is restored when it closes.
        """
        token = None if self.node_stack else experiment_context.set(self.experiment_id)
        try:
            self.logger.info(f"Stage started: {name}",
                             extra={'context': {'stage_name': name, **metadata}})
            with self._node(name, True, metadata):
                yield self
        finally:
            if token is not None:
                experiment_context.reset(token)

    @contextmanager
    def operation(self, name: str, **metadata):
        """Open an operation inside the current stage; the stage is unchanged."""
        self.logger.debug(f"Operation started: {name}", extra={'context': metadata})
        with self._node(name, False, metadata):
            yield self

    def get_timings(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.timings)
