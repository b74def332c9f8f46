from __future__ import annotations

import time
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from backoffice.database import engine
from backoffice.observability.metrics import set_gauge


def check_database_health() -> Dict[str, Any]:
    """Run a trivial query and report connectivity with round-trip time."""
    started = time.perf_counter()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        set_gauge("database_up", 0)
        return {"status": "DOWN", "dialect": engine.dialect.name, "detail": str(exc)}
    set_gauge("database_up", 1)
    return {
        "status": "UP",
        "dialect": engine.dialect.name,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }
