from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from app.ai_feature.llm import ChatModel, parse_completion
from app.ai_feature.prompts import build_system_prompt, current_date_et
from app.ai_feature.tools import SQL_TOOL
from app.ai_feature.types import Message, ToolCallRequest, Usage


def completion(content=None, tool_calls=None, usage=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


class FakeCompletions:
    def __init__(self, response):
        self.response = response
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return self.response


class FakeClient:
    def __init__(self, response):
        self.chat = SimpleNamespace(completions=FakeCompletions(response))

    async def close(self):
        pass


def test_parse_plain_content():
    parsed = parse_completion(completion(content="hi"))

    assert parsed.content == "hi"
    assert parsed.tool_calls == []
    assert parsed.usage is None


def test_parse_tool_calls_and_usage():
    tc = SimpleNamespace(
        id="call_9",
        type="function",
        function=SimpleNamespace(name="execute_sql", arguments='{"query": "SELECT 1"}'),
    )
    usage = SimpleNamespace(prompt_tokens=5, completion_tokens=1, total_tokens=6)

    parsed = parse_completion(completion(tool_calls=[tc], usage=usage))

    assert parsed.content is None
    assert parsed.tool_calls == [
        ToolCallRequest(id="call_9", name="execute_sql", arguments='{"query": "SELECT 1"}')
    ]
    assert parsed.usage == Usage(prompt_tokens=5, completion_tokens=1, total_tokens=6)


@pytest.mark.asyncio
async def test_call_sends_wire_messages_and_tool_spec():
    client = FakeClient(completion(content="ok"))
    model = ChatModel(client=client, model="test-model")
    messages = [
        Message(role="system", content="sys"),
        Message(
            role="assistant",
            content="",
            tool_calls=[ToolCallRequest(id="a", name="execute_sql", arguments="{}")],
        ),
        Message(role="tool", tool_call_id="a", content="[]"),
    ]

    response = await model.call(messages)

    kwargs = client.chat.completions.kwargs
    assert response.content == "ok"
    assert kwargs["model"] == "test-model"
    assert kwargs["temperature"] == 0
    assert kwargs["tools"] == [SQL_TOOL]
    assert kwargs["tool_choice"] == "auto"
    assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
    assert kwargs["messages"][1]["tool_calls"][0]["function"]["name"] == "execute_sql"
    assert kwargs["messages"][2]["tool_call_id"] == "a"


@pytest.mark.asyncio
async def test_call_without_tools():
    client = FakeClient(completion(content="ok"))

    await ChatModel(client=client, tools=[]).call([Message(role="user", content="q")])

    assert "tools" not in client.chat.completions.kwargs


def test_current_date_uses_eastern_time():
    # 02:00 UTC is still the previous evening in New York
    now = datetime(2026, 3, 2, 2, 0, tzinfo=timezone.utc)

    assert current_date_et(now) == date(2026, 3, 1)


def test_system_prompt_mentions_date_and_tables():
    prompt = build_system_prompt(date(2026, 10, 19))

    assert "2026-10-19" in prompt
    assert "commission_payout_iso" in prompt
