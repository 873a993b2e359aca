"""Dataclasses shared by the debate and judging engine. No I/O, no deps."""

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str         # raw JSON text exactly as the model produced it

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class ConversationMessage:
    role: Role
    content: str | None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render in the OpenAI-compatible chat message shape."""
        message: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            message["tool_call_id"] = self.tool_call_id
        return message


@dataclass(frozen=True)
class Completion:
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass(frozen=True)
class StreamChunk:
    type: Literal["content", "error"]
    text: str


@dataclass(frozen=True)
class DebateRound:
    prompt: str
    responses: dict[str, str]      # model key -> full answer, invocation order


# Multiplexer output. Every event names its model, so cross-model order is free.

@dataclass(frozen=True)
class Latency:
    time_to_first_token: float     # milliseconds
    total: float                   # milliseconds


@dataclass(frozen=True)
class ChunkEvent:
    model: str
    text: str


@dataclass(frozen=True)
class ModelCompleteEvent:
    model: str
    latency: Latency


@dataclass(frozen=True)
class ModelErrorEvent:
    model: str
    message: str
    latency: Latency


MultiplexEvent = ChunkEvent | ModelCompleteEvent | ModelErrorEvent


@dataclass
class DebateSessionState:
    model_keys: list[str]
    responses: dict[str, str] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    latencies: dict[str, Latency] = field(default_factory=dict)
    completed: set[str] = field(default_factory=set)
    completed_count: int = 0

    @property
    def total_models(self) -> int:
        return len(self.model_keys)


@dataclass(frozen=True)
class ScoreEntry:
    score: float
    rationale: str


@dataclass(frozen=True)
class Verdict:
    winner: str
    verdict: str
    highlight: str


@dataclass(frozen=True)
class ModelAnalysis:
    model: str
    scores: dict[str, float]
    analysis: str
    strongest_moment: str
    weakness: str


@dataclass(frozen=True)
class HighlightedPassage:
    quote: str
    comment: str


@dataclass
class StructuredResult:
    opening_remarks: str = ""
    model_analyses: list[ModelAnalysis] = field(default_factory=list)
    head_to_head: str = ""
    highlighted_passages: dict[str, list[HighlightedPassage]] = field(default_factory=dict)


@dataclass
class JudgeState:
    conversation_history: list[ConversationMessage] = field(default_factory=list)
    scores: dict[str, dict[str, ScoreEntry]] = field(default_factory=dict)
    verdict: Verdict | None = None
    structured: StructuredResult = field(default_factory=StructuredResult)
    turns: int = 0
