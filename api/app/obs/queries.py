"""SQL timing hooks for the order database engine.

Every statement is timed into the ``db_query_seconds`` histogram keyed by
engine label and SQL verb. Statements slower than ``DB_SLOW_QUERY_MS`` are
logged with a hash of their parameters instead of the values themselves.
"""

from __future__ import annotations

import hashlib
import logging
import os
import time

from sqlalchemy import event
from sqlalchemy.engine import Engine

from ..routes_metrics import db_query_seconds

SLOW_QUERY_MS = int(os.getenv("DB_SLOW_QUERY_MS", "200"))

logger = logging.getLogger("obs")


def _verb(statement: str) -> str:
    head = statement.lstrip().split(None, 1)
    return head[0].upper() if head else "?"


def add_query_logger(engine: Engine, label: str) -> None:
    """Attach timing hooks to ``engine``, tagging samples with ``label``."""
    target = engine.sync_engine if hasattr(engine, "sync_engine") else engine

    def before_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):  # type: ignore[no-untyped-def]
        context._query_start_time = time.perf_counter()

    def after_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):  # type: ignore[no-untyped-def]
        elapsed = time.perf_counter() - context._query_start_time
        db_query_seconds.labels(db=label, verb=_verb(statement)).observe(elapsed)
        if elapsed * 1000 <= SLOW_QUERY_MS:
            return
        sql = " ".join(statement.split())
        if len(sql) > 200:
            sql = sql[:197] + "..."
        params_hash = hashlib.sha256(repr(parameters).encode()).hexdigest()[:8]
        logger.warning(
            "slow query %dms db=%s sql=%s params=%s",
            int(elapsed * 1000),
            label,
            sql,
            params_hash,
        )

    event.listen(target, "before_cursor_execute", before_cursor_execute)
    event.listen(target, "after_cursor_execute", after_cursor_execute)
