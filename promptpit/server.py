"""FastAPI app: debate and judge event streams under /api."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from functools import partial
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from config.config_loader import AppConfig, load_config
from promptpit.debate import DebateSession
from promptpit.judge import JudgeLoop
from promptpit.judges import PERSONAS, Arena, resolve_arena
from promptpit.multiplexer import StreamMultiplexer
from promptpit.providers.base import GatewayConfigError, ModelGateway
from promptpit.providers.openrouter import OpenRouterGateway
from promptpit.usage import InMemoryUsageStore, LimitReached, UsageGate, UsageStore
from promptpit.validation import ValidationError, error_message, validate_debate_request, validate_judge_request

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
DEFAULT_MODES = ("debate", "code", "creative")

router = APIRouter()


class EngineServices:
    """Collaborators shared by every request of one app."""

    def __init__(
        self,
        config: AppConfig,
        gateway: ModelGateway | None = None,
        usage_store: UsageStore | None = None,
    ) -> None:
        self.config = config
        self._gateway = gateway
        self.usage_gate = UsageGate(usage_store or InMemoryUsageStore(), config.tiers)

    @property
    def known_modes(self) -> list[str]:
        return list(self.config.prompts.modes) or list(DEFAULT_MODES)

    def gateway(self) -> ModelGateway:
        """Build the gateway on first use; raises GatewayConfigError without a key."""
        if self._gateway is None:
            self._gateway = OpenRouterGateway(self.config.gateway)
        return self._gateway

    def mode_prompt(self, mode: str) -> str:
        return self.config.prompts.modes.get(mode, self.config.prompts.default_system)

    async def close(self) -> None:
        if self._gateway is not None:
            await self._gateway.close()


def get_services(request: Request) -> EngineServices:
    return request.app.state.services


def get_current_user(request: Request) -> str | None:
    """Authenticated user id, or None for guests.

    Reads the X-User-Id header set by the session layer in front of this
    service. Override the dependency to plug in a different lookup.
    """
    user_id = request.headers.get("x-user-id", "").strip()
    return user_id or None


def _event_stream(events: AsyncIterator[dict[str, Any]]) -> StreamingResponse:
    async def frames() -> AsyncIterator[str]:
        async with aclosing(events) as stream:
            async for event in stream:
                yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(frames(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/debate")
async def start_debate(
    request: Request,
    services: EngineServices = Depends(get_services),
    user_id: str | None = Depends(get_current_user),
) -> StreamingResponse:
    """Stream every requested model's answer to one prompt as SSE events."""
    config = services.config
    debate_request = validate_debate_request(await request.body(), list(config.models), services.known_modes)
    profile = await services.usage_gate.check(user_id)
    gateway = services.gateway()

    session = DebateSession(
        debate_request,
        config.models,
        StreamMultiplexer(gateway, inactivity_timeout=config.gateway.inactivity_timeout_sec),
        base_prompt=services.mode_prompt(debate_request.mode),
        on_complete=partial(services.usage_gate.record_debate, profile) if profile else None,
    )
    return _event_stream(session.events())


@router.post("/judge")
async def judge_responses(
    request: Request,
    services: EngineServices = Depends(get_services),
) -> StreamingResponse:
    """Score finished responses with the judge model and stream its progress."""
    config = services.config
    judge_request = validate_judge_request(await request.body(), services.known_modes, [a.value for a in Arena])
    arena = resolve_arena(judge_request.mode, judge_request.arena)

    loop = JudgeLoop(
        services.gateway(),
        config.judge.model,
        PERSONAS[arena],
        system_prompt=config.prompts.judges.get(arena.value, config.prompts.default_system),
        max_turns=config.judge.max_turns,
    )
    return _event_stream(loop.run(judge_request.prompt, judge_request.responses))


@router.options("/debate")
@router.options("/judge")
async def preflight() -> Response:
    return Response(status_code=204, headers=CORS_HEADERS)


@router.get("/models")
async def list_models(services: EngineServices = Depends(get_services)) -> dict[str, Any]:
    return {
        "models": [
            {
                "key": m.key,
                "id": m.provider_model_id,
                "name": m.display_name,
                "color": m.color,
                "description": m.description,
            }
            for m in services.config.models.values()
        ]
    }


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse({"error": error_message(exc)}, status_code=400)


async def _limit_reached(request: Request, exc: LimitReached) -> JSONResponse:
    return JSONResponse(
        {
            "error": "Monthly debate limit reached",
            "code": "LIMIT_REACHED",
            "debatesUsed": exc.used,
            "debatesLimit": exc.limit,
        },
        status_code=429,
    )


async def _gateway_misconfigured(request: Request, exc: GatewayConfigError) -> JSONResponse:
    logger.error("Gateway unavailable: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=500)


def create_app(
    config: AppConfig | None = None,
    gateway: ModelGateway | None = None,
    usage_store: UsageStore | None = None,
) -> FastAPI:
    """Build the PromptPit app. Loads settings.yaml when no config is given."""
    services = EngineServices(config or load_config(), gateway=gateway, usage_store=usage_store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await services.close()

    app = FastAPI(
        title="PromptPit",
        description="Multi-model debate and judging engine",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(LimitReached, _limit_reached)
    app.add_exception_handler(GatewayConfigError, _gateway_misconfigured)
    app.include_router(router, prefix="/api", tags=["Debate"])
    return app
