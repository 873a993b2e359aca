"""Typed judge tool calls.

Raw tool calls from the judge model are decoded into a closed set of
variants so the judge loop can dispatch on them exhaustively.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Union

from promptpit.judges import (
    HEAD_TO_HEAD_TOOL,
    HIGHLIGHT_PASSAGES_TOOL,
    MODEL_ANALYSIS_TOOL,
    OPENING_REMARKS_TOOL,
    SCORE_TOOL_PREFIX,
    VERDICT_TOOL,
    Arena,
    JudgePersona,
    ScoreCategory,
)
from promptpit.models import HighlightedPassage


class ToolCallParseError(Exception):
    """Tool arguments are not a JSON object, or lack a field needed to record them."""


@dataclass(frozen=True)
class ScoreCall:
    category: ScoreCategory
    model: str
    score: float
    rationale: str


@dataclass(frozen=True)
class VerdictCall:
    winner: str
    verdict: str
    highlight: str


@dataclass(frozen=True)
class OpeningRemarksCall:
    remarks: str


@dataclass(frozen=True)
class ModelAnalysisCall:
    model: str
    analysis: str
    strongest_moment: str
    weakness: str


@dataclass(frozen=True)
class HeadToHeadCall:
    comparison: str


@dataclass(frozen=True)
class HighlightPassagesCall:
    model: str
    passages: tuple[HighlightedPassage, ...]


@dataclass(frozen=True)
class UnrecognizedCall:
    name: str


JudgeToolCall = Union[
    ScoreCall,
    VerdictCall,
    OpeningRemarksCall,
    ModelAnalysisCall,
    HeadToHeadCall,
    HighlightPassagesCall,
    UnrecognizedCall,
]


def _reject_constant(name: str) -> Any:
    raise ToolCallParseError(f"arguments contain non-finite number {name}")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        _reject_constant(text)
    return value


def decode_arguments(raw: str) -> dict[str, Any]:
    try:
        args = json.loads(raw or "{}", parse_float=_finite_float, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise ToolCallParseError(f"arguments are not valid JSON: {exc}") from exc
    if not isinstance(args, dict):
        raise ToolCallParseError("arguments must be a JSON object")
    return args


def _text(args: dict[str, Any], *keys: str, default: str | None = None) -> str:
    """First string value found under ``keys``; ``default`` makes it optional."""
    for key in keys:
        value = args.get(key)
        if isinstance(value, str):
            return value
    if default is not None:
        return default
    raise ToolCallParseError(f"missing string field '{keys[0]}'")


def _number(args: dict[str, Any], key: str) -> float:
    value = args.get(key)
    if isinstance(value, bool):
        raise ToolCallParseError(f"field '{key}' must be a number")
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            pass
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    raise ToolCallParseError(f"field '{key}' must be a number")


def _passages(args: dict[str, Any]) -> tuple[HighlightedPassage, ...]:
    raw = args.get("passages")
    if not isinstance(raw, list):
        raise ToolCallParseError("field 'passages' must be an array")
    return tuple(
        HighlightedPassage(quote=_text(item, "quote"), comment=_text(item, "comment", default=""))
        for item in raw
        if isinstance(item, dict)
    )


def classify(name: str, args: dict[str, Any], persona: JudgePersona) -> JudgeToolCall:
    """Map a decoded tool call onto its variant for ``persona``'s arena."""
    if name.startswith(SCORE_TOOL_PREFIX):
        suffix = name[len(SCORE_TOOL_PREFIX):]
        category = next((c for c in persona.categories if c.value == suffix), None)
        if category is None:
            return UnrecognizedCall(name)
        return ScoreCall(
            category=category,
            model=_text(args, "model"),
            score=_number(args, "score"),
            rationale=_text(args, "rationale", default=""),
        )
    if name == VERDICT_TOOL:
        return VerdictCall(
            winner=_text(args, "winner"),
            verdict=_text(args, "verdict", default=""),
            highlight=_text(args, "quotable_line", "highlight", default=""),
        )
    if name == OPENING_REMARKS_TOOL:
        return OpeningRemarksCall(remarks=_text(args, "remarks", default=""))
    if name == MODEL_ANALYSIS_TOOL:
        return ModelAnalysisCall(
            model=_text(args, "model"),
            analysis=_text(args, "analysis", default=""),
            strongest_moment=_text(args, "strongest_moment", "strongestMoment", default=""),
            weakness=_text(args, "weakness", default=""),
        )
    if name == HEAD_TO_HEAD_TOOL:
        return HeadToHeadCall(comparison=_text(args, "comparison", default=""))
    if name == HIGHLIGHT_PASSAGES_TOOL and persona.arena is Arena.WRITING:
        return HighlightPassagesCall(model=_text(args, "model"), passages=_passages(args))
    return UnrecognizedCall(name)
