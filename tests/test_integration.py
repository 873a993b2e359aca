"""Integration tests: real OpenRouter calls, no mocks. Requires OPENROUTER_API_KEY in .env."""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("OPENROUTER_API_KEY", "").strip():
    pytestmark = pytest.mark.skip(reason="OPENROUTER_API_KEY not set")


async def test_two_model_debate_then_judge():
    """Run a real two-model debate and judge it, verify the event contract holds."""
    from config.config_loader import load_config
    from promptpit.debate import DebateSession
    from promptpit.judge import JudgeLoop
    from promptpit.judges import PERSONAS, Arena
    from promptpit.multiplexer import StreamMultiplexer
    from promptpit.providers.openrouter import OpenRouterGateway
    from promptpit.validation import validate_debate_request

    config = load_config()
    gateway = OpenRouterGateway(config.gateway)
    try:
        request = validate_debate_request(
            {"prompt": "In one sentence: is a hot dog a sandwich?", "models": ["claude", "gpt4o"]},
            list(config.models),
            list(config.prompts.modes),
        )
        session = DebateSession(
            request,
            config.models,
            StreamMultiplexer(gateway, inactivity_timeout=config.gateway.inactivity_timeout_sec),
            base_prompt=config.prompts.modes["debate"],
        )
        events = [event async for event in session.events()]

        assert [e["type"] for e in events].count("all_complete") == 1
        terminal = [e for e in events if e["type"] in ("model_complete", "error") and "model" in e]
        assert sorted(e["model"] for e in terminal) == ["claude", "gpt4o"]

        answered = {k: v for k, v in events[-1]["responses"].items() if v}
        assert answered, "no model produced an answer"

        loop = JudgeLoop(
            gateway,
            config.judge.model,
            PERSONAS[Arena.DEBATE],
            config.prompts.judges["debate"],
            max_turns=config.judge.max_turns,
        )
        judged = [event async for event in loop.run(request.prompt, answered)]
        assert judged[-1]["type"] == "complete"
        assert judged[-1]["verdict"]["winner"]
    finally:
        await gateway.close()
