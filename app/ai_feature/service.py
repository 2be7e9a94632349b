"""Chat service: the conversation store around the orchestrator.

Flow for one message:
1. Read the capped history of the conversation (oldest first)
2. Run the bounded tool loop with the system prompt
3. Persist the user message and the final answer together
"""

from datetime import datetime, timezone
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai_feature.executor import SqlExecutor
from app.ai_feature.llm import ChatModel
from app.ai_feature.orchestrator import Orchestrator, TurnLogger
from app.ai_feature.prompts import build_system_prompt
from app.ai_feature.types import Message, OrchestratorResult
from app.core import models
from app.core.config import settings
from app.core.database import create_execution_engine

DEFAULT_TITLE = "New conversation"
TITLE_LENGTH = 50


def build_orchestrator() -> Orchestrator:
    """The app-wide orchestrator: xAI model client plus the privileged executor."""
    return Orchestrator(
        model=ChatModel(),
        executor=SqlExecutor(create_execution_engine()),
        max_tool_iterations=settings.MAX_TOOL_ITERATIONS,
        allowed_tables=settings.SQL_ALLOWED_TABLES,
    )


async def load_history(
    conversation_id: str, db: AsyncSession, limit: int = None
) -> List[Message]:
    """Most recent `limit` user/assistant messages, oldest first."""
    limit = limit or settings.HISTORY_LIMIT
    query = (
        select(models.Message)
        .where(
            models.Message.conversation_id == conversation_id,
            models.Message.role.in_(("user", "assistant")),
        )
        .order_by(models.Message.created_at.desc())
        .limit(limit)
    )
    result = await db.execute(query)
    rows = list(result.scalars().all())
    rows.reverse()
    return [Message(role=row.role, content=row.content or "") for row in rows]


async def answer_message(
    conversation: models.Conversation,
    text: str,
    db: AsyncSession,
    orchestrator: Orchestrator,
) -> Tuple[models.Message, OrchestratorResult]:
    """
    Run one chat turn and store it.

    Errors from the model call propagate untouched; nothing is written in
    that case.
    """
    received_at = datetime.now(timezone.utc)
    turn_log = TurnLogger(conversation.id)
    history = await load_history(conversation.id, db)
    turn_log.log("history", f"Loaded {len(history)} prior messages")

    result = await orchestrator.run(build_system_prompt(), history, text, turn_log)
    turn_log.log(
        "done",
        f"{result.iterations} tool iterations, {len(result.tool_calls)} executions",
    )

    user_row = models.Message(
        conversation_id=conversation.id, role="user", content=text, created_at=received_at
    )
    assistant_row = models.Message(
        conversation_id=conversation.id,
        role="assistant",
        content=result.message,
        meta={
            "tool_calls": [entry.model_dump() for entry in result.tool_calls],
            "tokens": result.usage.model_dump(),
            "iterations": result.iterations,
            "recovered": result.recovered,
            "steps": turn_log.get_logs(),
        },
    )
    db.add(user_row)
    db.add(assistant_row)

    conversation.updated_at = datetime.now(timezone.utc)
    if conversation.title == DEFAULT_TITLE and not history:
        conversation.title = text.strip()[:TITLE_LENGTH] or DEFAULT_TITLE

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(assistant_row)

    return assistant_row, result
