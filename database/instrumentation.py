from __future__ import annotations

import json
import time
from typing import Any, Dict, List

from sqlalchemy import event
from sqlalchemy.engine import Engine

from utils.logger import get_logger

logger = get_logger(__name__)

_START_KEY = "query_start_ms"


def _now_ms() -> int:
    return int(time.time() * 1000)


def instrument_engine(engine: Engine, buffer: List[Dict[str, Any]], enabled: bool = True) -> Engine:
    """Record start/end timestamps and the SQL text of every statement into ``buffer``."""
    if not enabled:
        return engine

    logger.info("Instrumenting SQLAlchemy engine %s", engine.url.render_as_string(hide_password=True))

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault(_START_KEY, []).append(_now_ms())

    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        starts = conn.info.get(_START_KEY)
        start = starts.pop() if starts else _now_ms()
        logger.debug("Intercepted statement on %s", engine.dialect.name)
        buffer.append({"start": start, "end": _now_ms(), "label": json.dumps(statement)})

    event.listen(engine, "before_cursor_execute", before_cursor_execute)
    event.listen(engine, "after_cursor_execute", after_cursor_execute)
    return engine
