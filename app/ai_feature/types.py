from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


SqlOperation = Literal["SELECT", "UPDATE", "INSERT"]
Role = Literal["system", "user", "assistant", "tool"]


# =========================
# Conversation window
# =========================
class ToolCallRequest(BaseModel):
    """A tool invocation proposed by the model. `arguments` is raw JSON text."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments or ""},
        }


class Message(BaseModel):
    role: Role
    content: str = ""
    tool_call_id: Optional[str] = None
    tool_calls: Optional[List[ToolCallRequest]] = None

    def to_wire(self) -> Dict[str, Any]:
        """Chat-completions shape of this message."""
        out: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            out["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        return out


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: Optional["Usage"]) -> "Usage":
        if other is None:
            return self
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class ModelResponse(BaseModel):
    content: Optional[str] = None
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    usage: Optional[Usage] = None


# =========================
# Validation / tools
# =========================
class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    operation: Optional[SqlOperation] = None
    error: Optional[str] = None


class DecodedArguments(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: Optional[str] = None


class DecodeError(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


DecodeResult = Union[DecodedArguments, DecodeError]


class ExecutionResult(BaseModel):
    """What the execution backend hands back: rows or an error, never both."""

    rows: Any = None
    error: Optional[str] = None


class ToolExecutionLogEntry(BaseModel):
    query: str
    result: Any = None


# =========================
# Orchestrator output
# =========================
class OrchestratorResult(BaseModel):
    message: str
    tool_calls: List[ToolExecutionLogEntry] = Field(default_factory=list)
    iterations: int = 0
    usage: Usage = Field(default_factory=Usage)
    recovered: Optional[str] = None  # which fallback produced `message`, if any
