import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.ai_feature.tools import ToolDispatcher
from app.ai_feature.types import (
    Message,
    ModelResponse,
    OrchestratorResult,
    ToolExecutionLogEntry,
    Usage,
)


# -----------------------------------------------------------------------------
# ORCHESTRATOR
# Purpose: run one user message through the model, executing the SQL tool
# whenever the model asks for it, and always hand back a usable answer.
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)

MAX_TOOL_ITERATIONS = 5

SUMMARY_REQUEST = (
    "Please summarize the results from the query you just ran. Show the actual data."
)
UNABLE_TO_PROCESS = (
    "I was unable to process your request. Please try rephrasing your question."
)
NO_RESULTS = (
    "The query returned no results. Try a different search term or check for typos in names."
)
EMPTY_AFTER_EXECUTION = (
    "Query executed but response was empty. Please try rephrasing your question."
)
RAW_PREVIEW_CHARS = 500


class TurnLogger:
    """Step log for a single chat turn."""

    def __init__(self, conversation_id: Optional[str] = None):
        self.conversation_id = conversation_id or "-"
        self.start_time = datetime.now()
        self.logs: List[Dict[str, Any]] = []

    def log(self, step: str, message: str, level: str = "info"):
        self.logs.append(
            {
                "timestamp": datetime.now().isoformat(),
                "step": step,
                "message": message,
                "level": level,
                "elapsed_seconds": (datetime.now() - self.start_time).total_seconds(),
            }
        )

        # Also log to console
        if level == "error":
            logger.error(f"[Conversation {self.conversation_id}] {step}: {message}")
        elif level == "warning":
            logger.warning(f"[Conversation {self.conversation_id}] {step}: {message}")
        else:
            logger.info(f"[Conversation {self.conversation_id}] {step}: {message}")

    def get_logs(self) -> List[Dict[str, Any]]:
        return self.logs


def _has_text(content: Optional[str]) -> bool:
    return bool(content and content.strip())


def fallback_message(execution_log: List[ToolExecutionLogEntry]) -> Tuple[str, str]:
    """
    Deterministic answer for when the model gave us nothing.

    Returns:
        (message, rule) where rule names the branch that produced it.
    """
    if not execution_log:
        return UNABLE_TO_PROCESS, "no_executions"

    last_result = execution_log[-1].result
    if isinstance(last_result, list) and not last_result:
        return NO_RESULTS, "no_results"
    if isinstance(last_result, list):
        raw = json.dumps(last_result, default=str)[:RAW_PREVIEW_CHARS]
        return (
            f"Found {len(last_result)} result(s) but failed to format the response. "
            f"Raw data: {raw}",
            "raw_results",
        )
    return EMPTY_AFTER_EXECUTION, "empty_after_execution"


async def recover_empty_response(
    model,
    messages: List[Message],
    content: Optional[str],
    execution_log: List[ToolExecutionLogEntry],
    turn_log: Optional[TurnLogger] = None,
) -> Tuple[str, Optional[str], Optional[Usage]]:
    """
    Guarantee a non-empty answer.

    1. Non-empty content is returned untouched.
    2. If queries ran, ask the model once to summarize them.
    3. Otherwise (or if that is empty too) fall back to a canned message
       chosen from the last execution result.

    Appends the summary request to `messages` when it is issued.

    Returns:
        (final_text, recovery_rule or None, usage of the extra call or None)
    """
    if _has_text(content):
        return content, None, None

    turn_log = turn_log or TurnLogger()
    usage = None

    if execution_log:
        turn_log.log("recovery", "Empty answer after queries, requesting a summary", "warning")
        messages.append(Message(role="user", content=SUMMARY_REQUEST))
        retry = await model.call(messages)
        usage = retry.usage
        if _has_text(retry.content):
            return retry.content, "summary_retry", usage

    text, rule = fallback_message(execution_log)
    turn_log.log("recovery", f"Using fallback message ({rule})", "warning")
    return text, rule, usage


class Orchestrator:
    """
    Bounded tool-calling loop for one incoming user message.

    Each run owns a private copy of the history. Only the first tool call of
    a model turn is executed; the loop stops after `max_tool_iterations`
    dispatches and whatever the model said last goes to recovery.
    """

    def __init__(
        self,
        model,
        executor,
        max_tool_iterations: int = MAX_TOOL_ITERATIONS,
        allowed_tables: Optional[Sequence[str]] = None,
    ):
        self.model = model
        self.executor = executor
        self.max_tool_iterations = max_tool_iterations
        self.allowed_tables = allowed_tables

    async def run(
        self,
        system_prompt: str,
        history: List[Message],
        user_message: str,
        turn_log: Optional[TurnLogger] = None,
    ) -> OrchestratorResult:
        turn_log = turn_log or TurnLogger()

        messages: List[Message] = [
            Message(role="system", content=system_prompt),
            *[m.model_copy() for m in history],
            Message(role="user", content=user_message),
        ]
        execution_log: List[ToolExecutionLogEntry] = []
        dispatcher = ToolDispatcher(self.executor, execution_log, self.allowed_tables)
        usage = Usage()

        response: ModelResponse = await self.model.call(messages)
        usage = usage.add(response.usage)

        iterations = 0
        while response.tool_calls and iterations < self.max_tool_iterations:
            iterations += 1
            tool_call = response.tool_calls[0]
            if len(response.tool_calls) > 1:
                turn_log.log(
                    "tool_call",
                    f"{len(response.tool_calls) - 1} extra tool call(s) in this turn not executed",
                    "warning",
                )

            turn_log.log("tool_call", f"Iteration {iterations}: {tool_call.name}")
            result = await dispatcher.dispatch(tool_call.name, tool_call.arguments)
            if isinstance(result, dict) and "error" in result:
                turn_log.log("tool_result", f"Error: {result['error']}", "warning")
            else:
                turn_log.log("tool_result", "ok")

            messages.append(
                Message(
                    role="assistant",
                    content=response.content or "",
                    tool_calls=list(response.tool_calls),
                )
            )
            messages.append(
                Message(
                    role="tool",
                    tool_call_id=tool_call.id,
                    content=json.dumps(result, default=str),
                )
            )

            response = await self.model.call(messages)
            usage = usage.add(response.usage)

        if response.tool_calls:
            turn_log.log(
                "loop", f"Stopped after {iterations} tool iterations", "warning"
            )

        final_text, rule, extra_usage = await recover_empty_response(
            self.model, messages, response.content, execution_log, turn_log
        )
        usage = usage.add(extra_usage)

        return OrchestratorResult(
            message=final_text,
            tool_calls=execution_log,
            iterations=iterations,
            usage=usage,
            recovered=rule,
        )
