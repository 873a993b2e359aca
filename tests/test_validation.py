"""Tests for promptpit/validation.py."""

import pytest

from promptpit.models import DebateRound
from promptpit.validation import (
    DebateRequest,
    ValidationError,
    error_message,
    validate_debate_request,
    validate_judge_request,
)

KNOWN_MODELS = ["claude", "gpt4o", "gemini"]
MODES = ["debate", "code", "creative"]
ARENAS = ["debate", "code", "writing"]


def _debate(body):
    return validate_debate_request(body, KNOWN_MODELS, MODES)


def _judge(body):
    return validate_judge_request(body, MODES, ARENAS)


def test_minimal_request_uses_defaults():
    request = _debate({"prompt": "  Tabs or spaces?  "})
    assert request.prompt == "Tabs or spaces?"
    assert request.models == KNOWN_MODELS
    assert request.mode == "debate"
    assert request.previous_rounds == []
    assert request.round_number is None


def test_duplicate_models_collapse_in_order():
    request = _debate({"prompt": "x", "models": ["gemini", "claude", "gemini"]})
    assert request.models == ["gemini", "claude"]


def test_previous_rounds_are_parsed():
    request = _debate(
        {
            "prompt": "x",
            "previousRounds": [{"prompt": "Cats or dogs?", "responses": {"claude": "Cats."}}],
            "roundNumber": 2,
        }
    )
    assert request.previous_rounds == [DebateRound(prompt="Cats or dogs?", responses={"claude": "Cats."})]
    assert request.round_number == 2


@pytest.mark.parametrize(
    "body, message",
    [
        ("not an object", "Request body must be an object"),
        ({}, "prompt is required and must be a string"),
        ({"prompt": ""}, "prompt is required and must be a string"),
        ({"prompt": 42}, "prompt is required and must be a string"),
        ({"prompt": "   "}, "prompt cannot be empty"),
        ({"prompt": "x", "models": []}, "models must be a non-empty array of strings"),
        ({"prompt": "x", "models": "claude"}, "models must be a non-empty array of strings"),
        ({"prompt": "x", "models": ["claude", "mystery"]}, "Invalid model: mystery. Valid models are: claude, gpt4o, gemini"),
        ({"prompt": "x", "previousRounds": {}}, "previousRounds must be an array"),
        ({"prompt": "x", "previousRounds": ["nope"]}, "previousRounds[0] must be an object"),
        ({"prompt": "x", "previousRounds": [{"responses": {}}]}, "previousRounds[0].prompt must be a string"),
        ({"prompt": "x", "previousRounds": [{"prompt": "p"}]}, "previousRounds[0].responses must be an object"),
        ({"prompt": "x", "roundNumber": 0}, "roundNumber must be a positive integer"),
        ({"prompt": "x", "roundNumber": 1.5}, "roundNumber must be a positive integer"),
        ({"prompt": "x", "roundNumber": True}, "roundNumber must be a positive integer"),
        ({"prompt": "x", "mode": "poetry"}, "mode must be one of: debate, code, creative"),
        ({"prompt": "x", "models": None}, "models must be a non-empty array of strings"),
        ({"prompt": "x", "previousRounds": None}, "previousRounds must be an array"),
        ({"prompt": "x", "roundNumber": None}, "roundNumber must be a positive integer"),
        ({"prompt": "x", "mode": None}, "mode must be one of: debate, code, creative"),
    ],
)
def test_debate_request_rejections(body, message):
    with pytest.raises(ValidationError) as exc_info:
        _debate(body)
    assert error_message(exc_info.value) == message


def test_integral_float_round_number_accepted():
    assert _debate({"prompt": "x", "roundNumber": 3.0}).round_number == 3


def test_judge_request_valid():
    request = _judge({"prompt": "Tabs?", "responses": {"claude": "Tabs.", "gpt4o": "Spaces."}, "arena": "code"})
    assert request.responses == {"claude": "Tabs.", "gpt4o": "Spaces."}
    assert request.mode == "debate"
    assert request.arena == "code"


@pytest.mark.parametrize(
    "body, message",
    [
        ({"responses": {"a": "b"}}, "prompt is required and must be a string"),
        ({"prompt": "x"}, "responses is required and must be an object mapping model names to response strings"),
        ({"prompt": "x", "responses": ["a"]}, "responses is required and must be an object mapping model names to response strings"),
        ({"prompt": "x", "responses": {}}, "responses must contain at least one model response"),
        ({"prompt": "x", "responses": {"claude": 7}}, 'Response for model "claude" must be a string'),
        ({"prompt": "x", "responses": {"claude": "a"}, "arena": "poetry"}, "arena must be one of: debate, code, writing"),
        ({"prompt": "x", "responses": {"claude": "a"}, "arena": None}, "arena must be one of: debate, code, writing"),
        ({"prompt": "x", "responses": {"claude": "a"}, "mode": None}, "mode must be one of: debate, code, creative"),
    ],
)
def test_judge_request_rejections(body, message):
    with pytest.raises(ValidationError) as exc_info:
        _judge(body)
    assert error_message(exc_info.value) == message


def test_raw_json_body_is_parsed():
    request = _debate(b'{"prompt": "Tabs?", "models": ["gpt4o"], "previousRounds": [], "roundNumber": 2}')
    assert request.models == ["gpt4o"]
    assert request.round_number == 2


@pytest.mark.parametrize("raw", [b"{not json", b""])
def test_invalid_json_bytes(raw):
    with pytest.raises(ValidationError) as exc_info:
        _debate(raw)
    assert error_message(exc_info.value) == "Invalid JSON in request body"


def test_first_failing_field_wins():
    with pytest.raises(ValidationError) as exc_info:
        _debate({"prompt": "x", "models": ["mystery"], "roundNumber": 0, "mode": "poetry"})
    assert error_message(exc_info.value).startswith("Invalid model: mystery")


def test_direct_construction_by_field_name():
    request = DebateRequest(prompt=" Hi ", models=["a", "a"], round_number=2)
    assert request.prompt == "Hi"
    assert request.models == ["a"]
    assert request.mode == "debate"
    assert request.previous_rounds == []
