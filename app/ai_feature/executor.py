import logging
from typing import Any, Dict, List

from fastapi.encoders import jsonable_encoder
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.ai_feature.types import ExecutionResult

logger = logging.getLogger(__name__)


class SqlExecutor:
    """
    Privileged execution backend for the SQL tool.

    Only ever called with statements that already passed `validate_sql`.
    Each call runs in its own transaction so UPDATE/INSERT are committed.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def execute(self, query: str) -> ExecutionResult:
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(text(query))
                if result.returns_rows:
                    rows: List[Dict[str, Any]] = [dict(row) for row in result.mappings().all()]
                    return ExecutionResult(rows=jsonable_encoder(rows))
                return ExecutionResult(rows={"affected_rows": result.rowcount})
        except SQLAlchemyError as error:
            # Surface the driver's message, not SQLAlchemy's wrapper text
            message = str(getattr(error, "orig", None) or error)
            logger.warning(f"SQL execution failed: {message}")
            return ExecutionResult(error=message)

    async def dispose(self) -> None:
        await self.engine.dispose()
