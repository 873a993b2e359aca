"""Fan one conversation out to several model streams and merge their output."""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing

from promptpit.models import (
    ChunkEvent,
    ConversationMessage,
    Latency,
    ModelCompleteEvent,
    ModelErrorEvent,
    MultiplexEvent,
    StreamChunk,
)
from promptpit.providers.base import GatewayError, ModelGateway

logger = logging.getLogger(__name__)


class _StreamTimer:
    """Wall-clock bookkeeping for one model stream, in milliseconds."""

    def __init__(self) -> None:
        self._start = time.monotonic()
        self._first_token: float | None = None

    def mark_token(self) -> None:
        if self._first_token is None:
            self._first_token = time.monotonic()

    def latency(self) -> Latency:
        total = (time.monotonic() - self._start) * 1000
        if self._first_token is None:
            return Latency(time_to_first_token=total, total=total)
        return Latency(time_to_first_token=(self._first_token - self._start) * 1000, total=total)


class StreamMultiplexer:
    """Runs K gateway streams concurrently and yields one tagged event sequence.

    Each model gets its own task; all tasks push into a single queue and the
    consuming generator is the only reader. A model contributes its chunks in
    provider order followed by exactly one terminal event, and a failure in
    one model never touches the others.
    """

    def __init__(self, gateway: ModelGateway, inactivity_timeout: float | None = None) -> None:
        self._gateway = gateway
        self._inactivity_timeout = inactivity_timeout

    async def run(
        self,
        participants: Sequence[tuple[str, str]],
        messages: list[ConversationMessage],
    ) -> AsyncIterator[MultiplexEvent]:
        """Yield events for ``(model_key, provider_model_id)`` participants as they arrive."""
        queue: asyncio.Queue[MultiplexEvent] = asyncio.Queue()
        tasks = [
            asyncio.create_task(self._pump(key, model_id, messages, queue), name=f"stream:{key}")
            for key, model_id in participants
        ]
        remaining = len(tasks)
        try:
            while remaining:
                event = await queue.get()
                if isinstance(event, (ModelCompleteEvent, ModelErrorEvent)):
                    remaining -= 1
                yield event
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                logger.info("Cancelled %d in-flight model stream(s)", len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

    async def _next_chunk(self, stream: AsyncIterator[StreamChunk]) -> StreamChunk:
        if self._inactivity_timeout is None:
            return await stream.__anext__()
        return await asyncio.wait_for(stream.__anext__(), timeout=self._inactivity_timeout)

    async def _pump(
        self,
        key: str,
        model_id: str,
        messages: list[ConversationMessage],
        queue: asyncio.Queue[MultiplexEvent],
    ) -> None:
        """Consume one model's stream. Always enqueues exactly one terminal event."""
        timer = _StreamTimer()
        logger.debug("Starting stream for %s (%s)", key, model_id)
        try:
            async with aclosing(self._gateway.stream(model_id, messages)) as stream:
                while True:
                    try:
                        chunk = await self._next_chunk(stream)
                    except StopAsyncIteration:
                        break
                    if chunk.type == "error":
                        logger.warning("Model %s reported an error: %s", key, chunk.text)
                        queue.put_nowait(ModelErrorEvent(key, chunk.text or "Unknown streaming error", timer.latency()))
                        return
                    if not chunk.text:
                        continue
                    timer.mark_token()
                    queue.put_nowait(ChunkEvent(key, chunk.text))
        except asyncio.TimeoutError:
            message = f"No output from {key} for {self._inactivity_timeout:g}s"
            logger.warning(message)
            queue.put_nowait(ModelErrorEvent(key, message, timer.latency()))
            return
        except Exception as exc:
            message = exc.message if isinstance(exc, GatewayError) else str(exc)
            logger.warning("Model %s failed: %s", key, exc)
            queue.put_nowait(ModelErrorEvent(key, message or exc.__class__.__name__, timer.latency()))
            return

        latency = timer.latency()
        logger.info("Model %s complete: ttft %.0fms, total %.0fms", key, latency.time_to_first_token, latency.total)
        queue.put_nowait(ModelCompleteEvent(key, latency))
