"""Abstract base for the model gateway every debate participant is called through."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from promptpit.models import Completion, ConversationMessage, StreamChunk


class GatewayError(Exception):
    """Raised when a gateway call for one model fails."""

    def __init__(self, model_id: str, message: str) -> None:
        self.model_id = model_id
        self.message = message
        super().__init__(f"[{model_id}] {message}")


class GatewayConfigError(Exception):
    """Raised when the gateway cannot be built, e.g. missing credentials."""


class ModelGateway(ABC):
    """Uniform access to remote LLMs by provider model id."""

    @abstractmethod
    async def invoke(
        self,
        model_id: str,
        messages: list[ConversationMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        """Run one non-streaming completion, optionally offering tools.

        Raises:
            GatewayError: On a non-success status or an unparseable body.
        """
        ...

    @abstractmethod
    def stream(
        self,
        model_id: str,
        messages: list[ConversationMessage],
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion as content chunks.

        The iterator is lazy and single-pass. A fatal transport failure ends
        it with one ``error`` chunk; a rejected request raises GatewayError
        on first iteration.
        """
        ...

    async def close(self) -> None:
        """Release network resources. Override if needed."""
