"""OpenRouter gateway using the openai SDK against its OpenAI-compatible API."""

import json
import logging
import os
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx
from openai import APIError, APIStatusError, AsyncOpenAI

from config.config_loader import GatewayConfig
from promptpit.models import Completion, ConversationMessage, StreamChunk, ToolCall
from promptpit.providers.base import GatewayConfigError, GatewayError, ModelGateway

logger = logging.getLogger(__name__)

_DONE_SENTINEL = "[DONE]"


def _data_field(line: str) -> str | None:
    """Return the payload of an SSE ``data:`` line, or None for anything else."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    return line[len("data:"):].strip()


def parse_stream_payload(data: str) -> list[StreamChunk]:
    """Decode one streamed JSON payload into content/error chunks.

    Malformed payloads decode to nothing so one bad frame never ends the stream.
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed stream chunk: %.200s", data)
        return []
    if not isinstance(payload, dict):
        return []

    error = payload.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        return [StreamChunk(type="error", text=message or "Provider reported an error")]

    chunks: list[StreamChunk] = []
    for choice in payload.get("choices") or []:
        delta = choice.get("delta") if isinstance(choice, dict) else None
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str) and content:
            chunks.append(StreamChunk(type="content", text=content))
    return chunks


def _to_wire(messages: list[ConversationMessage]) -> list[dict[str, Any]]:
    return [m.to_dict() for m in messages]


class OpenRouterGateway(ModelGateway):
    """OpenRouter access via the openai SDK."""

    def __init__(self, config: GatewayConfig, http_client: httpx.AsyncClient | None = None) -> None:
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise GatewayConfigError(f"Missing API key: {config.api_key_env}")
        self._config = config
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=config.base_url,
            timeout=config.timeout_sec,
            max_retries=config.max_retries,
            default_headers={
                "HTTP-Referer": config.site_url,
                "X-Title": config.app_name,
            },
            http_client=http_client,
        )

    async def invoke(
        self,
        model_id: str,
        messages: list[ConversationMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        extra: dict[str, Any] = {}
        if tools:
            extra["tools"] = tools
            extra["tool_choice"] = "auto"

        start = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=model_id,
                messages=_to_wire(messages),
                **extra,
            )
        except APIStatusError as exc:
            raise GatewayError(model_id, f"HTTP {exc.status_code}: {exc.message}") from exc
        except Exception as exc:
            raise GatewayError(model_id, f"API call failed: {exc}") from exc

        try:
            message = response.choices[0].message
            tool_calls = [
                ToolCall(
                    id=call.id,
                    name=call.function.name,
                    arguments=call.function.arguments or "",
                )
                for call in (message.tool_calls or [])
                if getattr(call, "function", None) is not None
            ]
            text = message.content or ""
        except (AttributeError, IndexError, TypeError) as exc:
            raise GatewayError(model_id, f"Unexpected response shape: {exc}") from exc

        logger.info(
            "%s: %.2fs, %d tool call(s)",
            model_id,
            time.monotonic() - start,
            len(tool_calls),
        )
        return Completion(text=text, tool_calls=tool_calls)

    async def stream(
        self,
        model_id: str,
        messages: list[ConversationMessage],
    ) -> AsyncIterator[StreamChunk]:
        try:
            async with self._client.chat.completions.with_streaming_response.create(
                model=model_id,
                messages=_to_wire(messages),
                stream=True,
            ) as response:
                async for line in response.iter_lines():
                    data = _data_field(line)
                    if data is None:
                        continue
                    if data == _DONE_SENTINEL:
                        return
                    for chunk in parse_stream_payload(data):
                        yield chunk
                        if chunk.type == "error":
                            return
        except APIStatusError as exc:
            raise GatewayError(model_id, f"HTTP {exc.status_code}: {exc.message}") from exc
        except (APIError, httpx.HTTPError) as exc:
            logger.warning("Stream for %s interrupted: %s", model_id, exc)
            yield StreamChunk(type="error", text=f"Stream interrupted: {exc}")

    async def close(self) -> None:
        await self._client.close()
