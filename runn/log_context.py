"""Logging context: ContextVar-based log enrichment.

Every log record is enriched with a ``[op:pipeline:run]`` prefix via a
`ContextFilter` attached to the root logger handlers.

Operation codes: ``run`` (pipeline execution), ``wh`` (webhook request),
``hook`` (failure hook).
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

# Copied into worker threads by ``asyncio.to_thread`` and into tasks by ``create_task``.
ctx_operation: ContextVar[str | None] = ContextVar("ctx_operation", default=None)
ctx_pipeline: ContextVar[str | None] = ContextVar("ctx_pipeline", default=None)
ctx_run_id: ContextVar[str | None] = ContextVar("ctx_run_id", default=None)


class ContextFilter(logging.Filter):
    """Inject ContextVar values into every LogRecord as ``record.ctx``."""

    def filter(self, record: logging.LogRecord) -> bool:
        parts = [
            value
            for value in (ctx_operation.get(None), ctx_pipeline.get(None), ctx_run_id.get(None))
            if value
        ]
        record.ctx = f"[{':'.join(parts)}] " if parts else ""
        return True


def set_log_context(
    *,
    operation: str | None = None,
    pipeline: str | None = None,
    run_id: str | None = None,
) -> None:
    """Set logging context for the current task or thread.

    Only the given values are changed; ``None`` leaves a field as it is.
    """
    if operation is not None:
        ctx_operation.set(operation)
    if pipeline is not None:
        ctx_pipeline.set(pipeline)
    if run_id is not None:
        ctx_run_id.set(run_id[:8])
