"""Database Query capability: a parameterized SQL statement via SQLAlchemy."""

import json
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from relayflow.capabilities.plugin import capability
from relayflow.config import config

logger = logging.getLogger(__name__)

# One engine per database URL, created on first use
_engines: dict[str, AsyncEngine] = {}


def _get_engine(database_url: str) -> AsyncEngine:
    if database_url not in _engines:
        _engines[database_url] = create_async_engine(database_url)
    return _engines[database_url]


async def dispose_engines() -> None:
    """Close every engine opened by this capability."""
    for engine in _engines.values():
        await engine.dispose()
    _engines.clear()


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


@capability(name="Database Query", label="Database Query", category="system")
async def database_query(step_input: dict) -> dict:
    """Run ``query`` with named ``params``; returns rows as dicts.

    ``databaseUrl`` on the node overrides RELAYFLOW_DATABASE_URL.
    """
    query = step_input.get("query")
    if not query or not str(query).strip():
        return {"success": False, "error": "Database Query requires a query."}

    params = step_input.get("params") or {}
    if isinstance(params, str):
        params = json.loads(params) if params.strip() else {}
    if not isinstance(params, dict):
        return {"success": False, "error": "Database Query params must be an object."}

    database_url = step_input.get("databaseUrl") or config.database_url
    engine = _get_engine(database_url)

    async with engine.begin() as conn:
        result = await conn.execute(text(str(query)), params)
        if result.returns_rows:
            rows = [
                {key: _jsonable(value) for key, value in row.items()}
                for row in result.mappings().all()
            ]
            logger.info(f"[DatabaseQuery] {len(rows)} row(s) returned")
            return {"rows": rows, "rowCount": len(rows)}
        logger.info(f"[DatabaseQuery] {result.rowcount} row(s) affected")
        return {"rows": [], "rowCount": result.rowcount}
