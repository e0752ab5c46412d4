"""backend/__init__.py"""
from .client import BackendClient, BackendError, NotFoundError, eq, neq, gt, gte, is_
from .types import one, many, parse_options

__all__ = [
    "BackendClient", "BackendError", "NotFoundError",
    "eq", "neq", "gt", "gte", "is_",
    "one", "many", "parse_options",
]
