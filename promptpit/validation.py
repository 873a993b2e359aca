"""Request bodies for the debate and judge endpoints.

Validation is fail-fast: the first offending field decides the error message,
and nothing downstream runs. Known models, modes and arenas come from the
validation context; without a context only the shape is checked.
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator
from pydantic_core import PydanticCustomError

from promptpit.models import DebateRound

INVALID_JSON = "Invalid JSON in request body"


def _reject(message: str) -> PydanticCustomError:
    return PydanticCustomError("invalid_request", message)


def _known(info: ValidationInfo, key: str) -> Sequence[str] | None:
    return (info.context or {}).get(key)


def _require_object(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise _reject("Request body must be an object")
    return data


def _check_prompt(value: Any) -> str:
    if not value or not isinstance(value, str):
        raise _reject("prompt is required and must be a string")
    if not value.strip():
        raise _reject("prompt cannot be empty")
    return value.strip()


def _check_choice(value: Any, name: str, choices: Sequence[str] | None) -> str:
    # present-but-null is rejected; only an absent key takes the default
    if not isinstance(value, str) or (choices is not None and value not in choices):
        raise _reject(f"{name} must be one of: {', '.join(choices or ())}")
    return value


class DebateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(default=None, validate_default=True)
    models: list[str]
    previous_rounds: list[DebateRound] = Field(default_factory=list, alias="previousRounds")
    round_number: int | None = Field(default=None, alias="roundNumber")
    mode: str = "debate"

    @model_validator(mode="before")
    @classmethod
    def _default_models(cls, data: Any, info: ValidationInfo) -> Any:
        data = _require_object(data)
        known_models = _known(info, "models")
        if "models" not in data and known_models is not None:
            data = {**data, "models": list(known_models)}
        return data

    @field_validator("prompt", mode="before")
    @classmethod
    def _prompt(cls, value: Any) -> str:
        return _check_prompt(value)

    @field_validator("models", mode="before")
    @classmethod
    def _models(cls, value: Any, info: ValidationInfo) -> list[str]:
        if not isinstance(value, list) or not value:
            raise _reject("models must be a non-empty array of strings")
        known_models = _known(info, "models")
        models: list[str] = []
        for model in value:
            if not isinstance(model, str) or (known_models is not None and model not in known_models):
                raise _reject(f"Invalid model: {model}. Valid models are: {', '.join(known_models or ())}")
            if model not in models:
                models.append(model)
        return models

    @field_validator("previous_rounds", mode="before")
    @classmethod
    def _previous_rounds(cls, value: Any) -> list[DebateRound]:
        if not isinstance(value, list):
            raise _reject("previousRounds must be an array")
        rounds: list[DebateRound] = []
        for i, entry in enumerate(value):
            if isinstance(entry, DebateRound):
                rounds.append(entry)
                continue
            if not isinstance(entry, dict):
                raise _reject(f"previousRounds[{i}] must be an object")
            if not isinstance(entry.get("prompt"), str):
                raise _reject(f"previousRounds[{i}].prompt must be a string")
            responses = entry.get("responses")
            if not isinstance(responses, dict):
                raise _reject(f"previousRounds[{i}].responses must be an object")
            rounds.append(
                DebateRound(
                    prompt=entry["prompt"],
                    responses={str(k): "" if v is None else str(v) for k, v in responses.items()},
                )
            )
        return rounds

    @field_validator("round_number", mode="before")
    @classmethod
    def _round_number(cls, value: Any) -> int:
        # bool is an int subclass; JSON true is not a round number
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _reject("roundNumber must be a positive integer")
        if (isinstance(value, float) and not value.is_integer()) or value < 1:
            raise _reject("roundNumber must be a positive integer")
        return int(value)

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, value: Any, info: ValidationInfo) -> str:
        return _check_choice(value, "mode", _known(info, "modes"))


class JudgeRequest(BaseModel):
    prompt: str = Field(default=None, validate_default=True)
    responses: dict[str, str] = Field(default=None, validate_default=True)
    mode: str = "debate"
    arena: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _object(cls, data: Any) -> Any:
        return _require_object(data)

    @field_validator("prompt", mode="before")
    @classmethod
    def _prompt(cls, value: Any) -> str:
        return _check_prompt(value)

    @field_validator("responses", mode="before")
    @classmethod
    def _responses(cls, value: Any) -> dict[str, str]:
        if not isinstance(value, dict):
            raise _reject("responses is required and must be an object mapping model names to response strings")
        if not value:
            raise _reject("responses must contain at least one model response")
        for model, response in value.items():
            if not isinstance(response, str):
                raise _reject(f'Response for model "{model}" must be a string')
        return value

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, value: Any, info: ValidationInfo) -> str:
        return _check_choice(value, "mode", _known(info, "modes"))

    @field_validator("arena", mode="before")
    @classmethod
    def _arena(cls, value: Any, info: ValidationInfo) -> str:
        return _check_choice(value, "arena", _known(info, "arenas"))


def error_message(exc: ValidationError) -> str:
    """The first failure as a single client-facing sentence."""
    error = exc.errors()[0]
    if error["type"] == "json_invalid":
        return INVALID_JSON
    return error["msg"]


def validate_debate_request(
    body: Any,
    known_models: Sequence[str],
    known_modes: Sequence[str],
) -> DebateRequest:
    """Validate a decoded body, or the raw JSON bytes of a request."""
    context = {"models": list(known_models), "modes": list(known_modes)}
    if isinstance(body, bytes):
        return DebateRequest.model_validate_json(body, context=context)
    return DebateRequest.model_validate(body, context=context)


def validate_judge_request(
    body: Any,
    known_modes: Sequence[str],
    known_arenas: Sequence[str],
) -> JudgeRequest:
    context = {"modes": list(known_modes), "arenas": list(known_arenas)}
    if isinstance(body, bytes):
        return JudgeRequest.model_validate_json(body, context=context)
    return JudgeRequest.model_validate(body, context=context)
