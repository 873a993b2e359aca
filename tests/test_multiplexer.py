"""Tests for promptpit/multiplexer.py."""

import asyncio
from contextlib import aclosing

import pytest

from promptpit.models import ChunkEvent, ConversationMessage, ModelCompleteEvent, ModelErrorEvent, StreamChunk
from promptpit.multiplexer import StreamMultiplexer
from promptpit.providers.base import GatewayError
from tests.conftest import FakeGateway, Pause

MESSAGES = [ConversationMessage(role="user", content="Tabs or spaces?")]


async def _run(multiplexer: StreamMultiplexer, participants) -> list:
    return [event async for event in multiplexer.run(participants, MESSAGES)]


def _terminal(events: list) -> list:
    return [e for e in events if isinstance(e, (ModelCompleteEvent, ModelErrorEvent))]


@pytest.mark.parametrize("count", [1, 2, 5])
async def test_one_terminal_event_per_model(count):
    streams = {f"m{i}": ["a", "b"] for i in range(count)}
    events = await _run(StreamMultiplexer(FakeGateway(streams)), [(f"k{i}", f"m{i}") for i in range(count)])

    terminal = _terminal(events)
    assert len(terminal) == count
    assert sorted(e.model for e in terminal) == sorted(f"k{i}" for i in range(count))


async def test_failure_is_isolated_to_its_model():
    gateway = FakeGateway(
        {
            "model-a": ["a1", "a2", RuntimeError("socket closed")],
            "model-b": ["b1", Pause(0.01), "b2", "b3", "b4"],
            "model-c": [Pause(0.02), "c1", "c2"],
        }
    )
    events = await _run(StreamMultiplexer(gateway), [("a", "model-a"), ("b", "model-b"), ("c", "model-c")])

    chunks = lambda key: [e.text for e in events if isinstance(e, ChunkEvent) and e.model == key]  # noqa: E731
    assert chunks("a") == ["a1", "a2"]
    assert chunks("b") == ["b1", "b2", "b3", "b4"]
    assert chunks("c") == ["c1", "c2"]

    terminal = {e.model: e for e in _terminal(events)}
    assert isinstance(terminal["a"], ModelErrorEvent)
    assert terminal["a"].message == "socket closed"
    assert isinstance(terminal["b"], ModelCompleteEvent)
    assert isinstance(terminal["c"], ModelCompleteEvent)


async def test_terminal_event_follows_model_chunks():
    gateway = FakeGateway({"m": ["x", "y"]})
    events = await _run(StreamMultiplexer(gateway), [("k", "m")])
    assert [type(e) for e in events] == [ChunkEvent, ChunkEvent, ModelCompleteEvent]


async def test_error_chunk_becomes_error_event():
    gateway = FakeGateway({"m": ["partial", StreamChunk("error", "rate limited"), "never"]})
    events = await _run(StreamMultiplexer(gateway), [("k", "m")])

    assert [e.text for e in events if isinstance(e, ChunkEvent)] == ["partial"]
    assert isinstance(events[-1], ModelErrorEvent)
    assert events[-1].message == "rate limited"


async def test_gateway_error_uses_bare_message():
    gateway = FakeGateway({"openai/gpt-4o": [GatewayError("openai/gpt-4o", "rate limited")]})
    events = await _run(StreamMultiplexer(gateway), [("gpt", "openai/gpt-4o")])
    assert events == [ModelErrorEvent("gpt", "rate limited", events[0].latency)]


async def test_empty_chunks_are_dropped():
    gateway = FakeGateway({"m": ["", "a", ""]})
    events = await _run(StreamMultiplexer(gateway), [("k", "m")])
    assert [e.text for e in events if isinstance(e, ChunkEvent)] == ["a"]


async def test_latency_is_milliseconds_and_ordered():
    gateway = FakeGateway({"m": [Pause(0.02), "a", Pause(0.02), "b"]})
    events = await _run(StreamMultiplexer(gateway), [("k", "m")])
    latency = events[-1].latency
    assert latency.time_to_first_token >= 15
    assert latency.total >= latency.time_to_first_token + 15


async def test_ttft_falls_back_to_total_without_tokens():
    gateway = FakeGateway({"m": []})
    events = await _run(StreamMultiplexer(gateway), [("k", "m")])
    latency = events[0].latency
    assert latency.time_to_first_token == latency.total


async def test_inactivity_timeout_fails_only_the_silent_model():
    gateway = FakeGateway({"slow": ["hello", Pause(10)], "fast": ["a", "b"]})
    multiplexer = StreamMultiplexer(gateway, inactivity_timeout=0.05)
    events = await asyncio.wait_for(_run(multiplexer, [("slow", "slow"), ("fast", "fast")]), timeout=5)

    terminal = {e.model: e for e in _terminal(events)}
    assert isinstance(terminal["fast"], ModelCompleteEvent)
    assert isinstance(terminal["slow"], ModelErrorEvent)
    assert terminal["slow"].message == "No output from slow for 0.05s"
    assert "slow" in gateway.cancelled_streams


async def test_closing_consumer_cancels_running_streams():
    gateway = FakeGateway({"fast": ["done"], "hang": ["first", Pause(10), "never"]})
    multiplexer = StreamMultiplexer(gateway)

    seen = []
    async with aclosing(multiplexer.run([("fast", "fast"), ("hang", "hang")], MESSAGES)) as stream:
        async for event in stream:
            seen.append(event)
            if sum(isinstance(e, ChunkEvent) for e in seen) == 2:
                break

    assert "hang" in gateway.cancelled_streams
    assert not any(isinstance(e, ChunkEvent) and e.text == "never" for e in seen)
