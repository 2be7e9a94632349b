"""
Model-call collaborator.

Thin wrapper around the OpenAI SDK pointed at xAI's OpenAI-compatible
endpoint. It only translates messages in and responses out; any API error
propagates to the caller.
"""

from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from app.ai_feature.tools import SQL_TOOL
from app.ai_feature.types import Message, ModelResponse, ToolCallRequest, Usage
from app.core.config import settings


class ChatModel:
    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ):
        self.client = client or AsyncOpenAI(
            api_key=settings.XAI_API_KEY, base_url=settings.XAI_BASE_URL
        )
        self.model = model or settings.LLM_MODEL
        self.tools = tools if tools is not None else [SQL_TOOL]

    async def call(self, messages: List[Message]) -> ModelResponse:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_wire() for m in messages],
            "temperature": 0,
        }
        if self.tools:
            kwargs["tools"] = self.tools
            kwargs["tool_choice"] = "auto"

        resp = await self.client.chat.completions.create(**kwargs)
        return parse_completion(resp)

    async def close(self) -> None:
        await self.client.close()


def parse_completion(resp) -> ModelResponse:
    """Normalize a chat completion into a ModelResponse."""
    message = resp.choices[0].message

    tool_calls = []
    for tc in getattr(message, "tool_calls", None) or []:
        function = getattr(tc, "function", None)
        if function is None:
            continue
        tool_calls.append(
            ToolCallRequest(id=tc.id, name=function.name, arguments=function.arguments)
        )

    usage = None
    if getattr(resp, "usage", None) is not None:
        usage = Usage(
            prompt_tokens=resp.usage.prompt_tokens or 0,
            completion_tokens=resp.usage.completion_tokens or 0,
            total_tokens=resp.usage.total_tokens or 0,
        )

    return ModelResponse(content=message.content, tool_calls=tool_calls, usage=usage)
