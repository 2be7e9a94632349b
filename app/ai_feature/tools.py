import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from app.ai_feature.sql_guard import validate_sql
from app.ai_feature.types import (
    DecodedArguments,
    DecodeError,
    DecodeResult,
    ToolExecutionLogEntry,
)

logger = logging.getLogger(__name__)


SQL_TOOL_NAME = "execute_sql"

SQL_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": SQL_TOOL_NAME,
        "description": (
            "Execute SQL query against Parkview database. Supports SELECT (queries), "
            "UPDATE (status changes), and INSERT (new records). Returns JSON array of "
            "results or affected row count."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": (
                        "SQL statement to execute. Use SELECT for queries, UPDATE for "
                        "changing payment status/names, INSERT for new records."
                    ),
                }
            },
            "required": ["query"],
        },
    },
}


def decode_arguments(raw: Optional[str]) -> DecodeResult:
    """Parse the model's argument payload without ever raising."""
    if raw is None:
        return DecodeError(reason="missing arguments")
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as error:
        return DecodeError(reason=str(error))

    if not isinstance(payload, dict):
        return DecodeError(reason="arguments must be a JSON object")

    query = payload.get("query")
    return DecodedArguments(query=query if isinstance(query, str) else None)


class ToolDispatcher:
    """
    Route one tool call to its handler and normalize the outcome.

    Every failure becomes an `{"error": ...}` result for the model to read;
    nothing here raises for a bad proposal. Executions that passed the guard
    are recorded in `execution_log`.
    """

    def __init__(
        self,
        executor,
        execution_log: Optional[List[ToolExecutionLogEntry]] = None,
        allowed_tables: Optional[Sequence[str]] = None,
    ):
        self.executor = executor
        self.execution_log = execution_log if execution_log is not None else []
        self.allowed_tables = allowed_tables
        self.handlers = {SQL_TOOL_NAME: self._execute_sql}

    async def dispatch(self, name: str, arguments_raw: Optional[str]) -> Any:
        handler = self.handlers.get(name)
        if handler is None:
            return {"error": f"Unknown tool: {name}"}

        decoded = decode_arguments(arguments_raw)
        if isinstance(decoded, DecodeError):
            logger.info(f"Undecodable tool arguments for {name}: {decoded.reason}")
            return {"error": "Invalid tool arguments"}

        return await handler(decoded)

    async def _execute_sql(self, args: DecodedArguments) -> Any:
        if not args.query:
            return {"error": "Query parameter required"}

        validation = validate_sql(args.query, self.allowed_tables)
        if not validation.valid:
            logger.info(f"SQL rejected: {validation.error}")
            return {"error": validation.error}

        execution = await self.executor.execute(args.query)
        result = {"error": execution.error} if execution.error else execution.rows
        self.execution_log.append(ToolExecutionLogEntry(query=args.query, result=result))
        return result
