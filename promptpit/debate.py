"""Debate orchestration: one prompt, N concurrent model streams, one aggregate."""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import aclosing
from typing import Any

from config.config_loader import ModelDescriptor
from promptpit.models import (
    ChunkEvent,
    DebateSessionState,
    ModelCompleteEvent,
    ModelErrorEvent,
    MultiplexEvent,
)
from promptpit.multiplexer import StreamMultiplexer
from promptpit.prompts import build_debate_messages
from promptpit.validation import DebateRequest

logger = logging.getLogger(__name__)


class DebateSession:
    """Runs one debate request and yields its wire events.

    The session owns its DebateSessionState and is the only writer: every
    multiplexer event is applied here, in arrival order, before being
    forwarded. Exactly one ``all_complete`` event closes the sequence, after
    every model has reached its terminal event.
    """

    def __init__(
        self,
        request: DebateRequest,
        models: Mapping[str, ModelDescriptor],
        multiplexer: StreamMultiplexer,
        base_prompt: str,
        on_complete: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._request = request
        self._models = models
        self._multiplexer = multiplexer
        self._base_prompt = base_prompt
        self._on_complete = on_complete
        self.state = DebateSessionState(model_keys=list(dict.fromkeys(request.models)))

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        participants = [(key, self._models[key].provider_model_id) for key in self.state.model_keys]
        messages = build_debate_messages(self._base_prompt, self._request.prompt, self._request.previous_rounds)
        logger.info(
            "Debate started: %d model(s), mode=%s, round=%s, %d prior round(s)",
            self.state.total_models,
            self._request.mode,
            self._request.round_number or 1,
            len(self._request.previous_rounds),
        )

        try:
            async with aclosing(self._multiplexer.run(participants, messages)) as stream:
                async for event in stream:
                    wire = self._apply(event)
                    if wire is not None:
                        yield wire
        except Exception as exc:
            logger.exception("Debate session failed mid-stream")
            yield {"type": "error", "error": str(exc) or "Debate failed"}

        yield self._all_complete()
        await self._record_usage()

    def _apply(self, event: MultiplexEvent) -> dict[str, Any] | None:
        state = self.state
        if isinstance(event, ChunkEvent):
            if event.model in state.completed:
                return None
            state.responses[event.model] = state.responses.get(event.model, "") + event.text
            return {"type": "chunk", "model": event.model, "content": event.text}

        if event.model in state.completed:
            logger.warning("Ignoring second terminal event for %s", event.model)
            return None
        state.completed.add(event.model)
        state.completed_count += 1
        state.latencies[event.model] = event.latency

        if isinstance(event, ModelCompleteEvent):
            return {
                "type": "model_complete",
                "model": event.model,
                "latency": {"ttft": event.latency.time_to_first_token, "total": event.latency.total},
            }
        if isinstance(event, ModelErrorEvent):
            state.errors[event.model] = event.message
            state.responses[event.model] = ""
            return {"type": "error", "model": event.model, "error": event.message}
        raise TypeError(f"Unexpected multiplexer event: {event!r}")

    def _all_complete(self) -> dict[str, Any]:
        state = self.state
        if state.completed_count != state.total_models:
            logger.warning(
                "Closing debate with %d/%d models finished", state.completed_count, state.total_models
            )
        logger.info(
            "Debate complete: %d/%d models succeeded",
            state.total_models - len(state.errors),
            state.total_models,
        )
        responses = {key: state.responses.get(key, "") for key in state.model_keys}
        return {"type": "all_complete", "responses": responses}

    async def _record_usage(self) -> None:
        if self._on_complete is None:
            return
        try:
            await self._on_complete()
        except Exception:
            logger.exception("Failed to record debate usage")
