"""Shared pytest fixtures."""

import asyncio
import json
from typing import Any

import pytest

from config.config_loader import (
    AppConfig,
    GatewayConfig,
    JudgeConfig,
    ModelDescriptor,
    PromptsConfig,
    TierConfig,
)
from promptpit.models import Completion, ConversationMessage, StreamChunk, ToolCall
from promptpit.providers.base import ModelGateway


@pytest.fixture
def sample_gateway_config() -> GatewayConfig:
    return GatewayConfig(
        base_url="https://openrouter.test/api/v1",
        api_key_env="TEST_OPENROUTER_KEY",
        site_url="http://localhost:3000",
        app_name="PromptPit",
        timeout_sec=30,
        inactivity_timeout_sec=None,
        max_retries=0,
    )


@pytest.fixture
def sample_models() -> dict[str, ModelDescriptor]:
    return {
        "claude": ModelDescriptor("claude", "anthropic/claude-sonnet-4", "Claude", "#f59e0b"),
        "gpt": ModelDescriptor("gpt", "openai/gpt-4o", "GPT-4o", "#10b981"),
    }


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        default_system="Answer the question.",
        modes={"debate": "Argue your position.", "code": "Write code.", "creative": "Write a story."},
        judges={"debate": "You are The Arbiter.", "code": "You are The Architect.", "writing": "You are The Editor."},
    )


@pytest.fixture
def sample_tiers() -> TierConfig:
    return TierConfig(default_tier="free", limits={"free": 15, "pro": 100})


@pytest.fixture
def sample_app_config(
    sample_gateway_config: GatewayConfig,
    sample_models: dict[str, ModelDescriptor],
    sample_prompts_config: PromptsConfig,
    sample_tiers: TierConfig,
) -> AppConfig:
    return AppConfig(
        gateway=sample_gateway_config,
        models=sample_models,
        judge=JudgeConfig(model="anthropic/claude-sonnet-4", max_turns=5),
        prompts=sample_prompts_config,
        tiers=sample_tiers,
    )


class Pause:
    """Stream script step: sleep before the next chunk."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds


class FakeGateway(ModelGateway):
    """Scripted gateway.

    ``streams`` maps a provider model id to its script: strings become content
    chunks, StreamChunk items are yielded as-is, exceptions are raised and
    Pause items sleep. ``completions`` is consumed in order by ``invoke``;
    an exception in it is raised instead.
    """

    def __init__(
        self,
        streams: dict[str, list[Any]] | None = None,
        completions: list[Completion | Exception] | None = None,
    ) -> None:
        self.streams = streams or {}
        self.completions = list(completions or [])
        self.stream_calls: list[tuple[str, list[ConversationMessage]]] = []
        self.invoke_calls: list[tuple[str, list[ConversationMessage], list[dict] | None]] = []
        self.cancelled_streams: list[str] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.stream_calls) + len(self.invoke_calls)

    async def invoke(self, model_id, messages, tools=None) -> Completion:
        self.invoke_calls.append((model_id, list(messages), tools))
        if not self.completions:
            return Completion(text="")
        result = self.completions.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def stream(self, model_id, messages):
        self.stream_calls.append((model_id, list(messages)))
        try:
            for item in self.streams.get(model_id, []):
                if isinstance(item, Pause):
                    await asyncio.sleep(item.seconds)
                elif isinstance(item, Exception):
                    raise item
                elif isinstance(item, StreamChunk):
                    yield item
                else:
                    yield StreamChunk(type="content", text=item)
        except asyncio.CancelledError:
            self.cancelled_streams.append(model_id)
            raise

    async def close(self) -> None:
        self.closed = True


def tool_call(name: str, args: dict[str, Any] | str, call_id: str | None = None) -> ToolCall:
    """ToolCall with JSON-encoded arguments; pass a str to send raw (possibly broken) JSON."""
    raw = args if isinstance(args, str) else json.dumps(args)
    return ToolCall(id=call_id or f"call_{name}", name=name, arguments=raw)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()
