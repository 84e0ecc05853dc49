"""
Trace context: contextvars propagate trace_id / account_id across coroutines
"""

import contextvars
import uuid

trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="")
account_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("account_id", default="")


def new_trace_id() -> str:
    return str(uuid.uuid4())


def get_trace_id() -> str:
    return trace_id_var.get()


def get_account_id() -> str:
    return account_id_var.get()
