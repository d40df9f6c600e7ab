"""Per-invocation logging context.

An invocation runs one phase batch for one job. The middleware sets the
correlation id and the phase handler adds phase, job and batch; the JSON log
formatter merges whatever is set into every record.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Mapping

_context: ContextVar[Mapping[str, Any]] = ContextVar("pagewatch_log_context", default={})


def get_request_context() -> dict[str, Any]:
    return dict(_context.get())


def set_request_context(**values: Any) -> dict[str, Any]:
    """Merge ``values`` into the context. A value of None removes the key."""
    merged = {
        key: value
        for key, value in {**_context.get(), **values}.items()
        if value is not None
    }
    _context.set(merged)
    return dict(merged)


def clear_request_context() -> None:
    _context.set({})


@contextmanager
def phase_context(phase: str, job_id: str, batch_index: int | None = None) -> Iterator[None]:
    """Tag every log record emitted inside the block with the phase being run."""
    token = _context.set(
        {**_context.get(), "phase": phase, "job_id": job_id, "batch_index": batch_index}
    )
    try:
        yield
    finally:
        _context.reset(token)
