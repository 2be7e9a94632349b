import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.ai_feature.types import ExecutionResult
from app.core import models
from fakes import sql_call, text


async def _stored_messages(db_session, conversation_id):
    result = await db_session.execute(
        select(models.Message)
        .where(models.Message.conversation_id == conversation_id)
        .order_by(models.Message.created_at)
    )
    return result.scalars().all()


@pytest.mark.asyncio
async def test_post_message_runs_tool_and_persists_turn(
    client: AsyncClient,
    auth_headers_user,
    test_conversation,
    scripted_model,
    fake_executor,
    db_session,
):
    scripted_model.responses = [
        sql_call("SELECT count(*) AS n FROM funded_deals"),
        text("We funded 42 deals this month. Want a breakdown by rep?"),
    ]
    fake_executor.results = [ExecutionResult(rows=[{"n": 42}])]

    response = await client.post(
        f"/chat/conversations/{test_conversation.id}/messages",
        json={"message": "How many deals did we fund this month?"},
        headers=auth_headers_user,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["message"].startswith("We funded 42 deals")
    assert data["metadata"] == {"tool_calls_count": 1}
    assert fake_executor.queries == ["SELECT count(*) AS n FROM funded_deals"]

    stored = await _stored_messages(db_session, test_conversation.id)
    assert [(m.role, m.content) for m in stored] == [
        ("user", "How many deals did we fund this month?"),
        ("assistant", data["message"]),
    ]
    assert stored[1].id == data["id"]
    assert stored[1].meta["tool_calls"] == [
        {"query": "SELECT count(*) AS n FROM funded_deals", "result": [{"n": 42}]}
    ]
    assert stored[1].meta["iterations"] == 1
    steps = stored[1].meta["steps"]
    assert [s["step"] for s in steps] == ["history", "tool_call", "tool_result", "done"]
    assert steps[1]["message"] == "Iteration 1: execute_sql"
    assert all(s["elapsed_seconds"] >= 0 for s in steps)

    # First message names an untitled conversation
    assert test_conversation.title == "How many deals did we fund this month?"


@pytest.mark.asyncio
async def test_prior_turns_are_sent_as_history(
    client: AsyncClient, auth_headers_user, test_conversation, scripted_model
):
    scripted_model.responses = [text("First answer"), text("Second answer")]
    url = f"/chat/conversations/{test_conversation.id}/messages"

    await client.post(url, json={"message": "first"}, headers=auth_headers_user)
    await client.post(url, json={"message": "second"}, headers=auth_headers_user)

    second_window = scripted_model.calls[1]
    assert [(m.role, m.content) for m in second_window[1:]] == [
        ("user", "first"),
        ("assistant", "First answer"),
        ("user", "second"),
    ]
    assert second_window[0].role == "system"


@pytest.mark.asyncio
async def test_empty_model_answer_is_never_returned(
    client: AsyncClient, auth_headers_user, test_conversation, scripted_model
):
    scripted_model.responses = [sql_call("SELECT * FROM reps WHERE name ILIKE '%zed%'")]

    response = await client.post(
        f"/chat/conversations/{test_conversation.id}/messages",
        json={"message": "who is zed"},
        headers=auth_headers_user,
    )

    assert response.status_code == 200
    assert "no results" in response.json()["message"]


@pytest.mark.asyncio
async def test_model_failure_returns_generic_error(
    client: AsyncClient, auth_headers_user, test_conversation, scripted_model, db_session
):
    scripted_model.error = RuntimeError("upstream 502: secret details")

    response = await client.post(
        f"/chat/conversations/{test_conversation.id}/messages",
        json={"message": "hello"},
        headers=auth_headers_user,
    )

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to process message"}
    assert await _stored_messages(db_session, test_conversation.id) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": 5}, {"message": "x" * 10001}])
async def test_invalid_message_is_rejected(
    client: AsyncClient, auth_headers_user, test_conversation, scripted_model, body
):
    response = await client.post(
        f"/chat/conversations/{test_conversation.id}/messages",
        json=body,
        headers=auth_headers_user,
    )

    assert response.status_code == 422
    assert scripted_model.calls == []


@pytest.mark.asyncio
async def test_unknown_conversation(client: AsyncClient, auth_headers_user):
    response = await client.post(
        "/chat/conversations/does-not-exist/messages",
        json={"message": "hi"},
        headers=auth_headers_user,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient, test_conversation):
    response = await client.post(
        f"/chat/conversations/{test_conversation.id}/messages", json={"message": "hi"}
    )

    assert response.status_code == 401
