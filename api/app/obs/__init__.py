"""Observability helpers: error reporting and SQL timing."""

from .errors import capture_exception, init_sentry
from .queries import add_query_logger

__all__ = ["add_query_logger", "capture_exception", "init_sentry"]
