from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator

# Per-thread / per-task context attached to every log record.
correlation_id_var = contextvars.ContextVar("correlation_id", default=None)
source_var = contextvars.ContextVar("source", default=None)
phase_var = contextvars.ContextVar("phase", default=None)
record_id_var = contextvars.ContextVar("record_id", default=None)
mode_var = contextvars.ContextVar("mode", default=None)

_VARS: Dict[str, contextvars.ContextVar] = {
    "correlation_id": correlation_id_var,
    "source": source_var,
    "phase": phase_var,
    "record_id": record_id_var,
    "mode": mode_var,
}


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def get_forensic_fields() -> Dict[str, Any]:
    """Current values of all forensic context vars."""
    return {name: var.get() for name, var in _VARS.items()}


@contextmanager
def forensic_scope(**fields: Any) -> Iterator[None]:
    """
    Temporarily set selected context vars; previous values are restored on
    exit. Unknown field names are ignored.
    """
    tokens: Dict[str, Any] = {}
    try:
        for name, value in fields.items():
            var = _VARS.get(name)
            if var is not None:
                tokens[name] = var.set(value)
        yield
    finally:
        for name, tok in tokens.items():
            try:
                _VARS[name].reset(tok)
            except ValueError:
                # token created in another context
                pass
