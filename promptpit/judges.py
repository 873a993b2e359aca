"""Judge arenas: personas, scoring categories, and the tools offered to the judge."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Arena(str, Enum):
    DEBATE = "debate"
    CODE = "code"
    WRITING = "writing"


class ScoreCategory(str, Enum):
    # debate
    REASONING = "reasoning"
    CLARITY = "clarity"
    PERSUASIVENESS = "persuasiveness"
    DEPTH = "depth"
    # code
    CORRECTNESS = "correctness"
    EFFICIENCY = "efficiency"
    READABILITY = "readability"
    BEST_PRACTICES = "best_practices"
    ELEGANCE = "elegance"
    # writing
    CREATIVITY = "creativity"
    STYLE = "style"
    STRUCTURE = "structure"
    ENGAGEMENT = "engagement"
    TECHNICAL = "technical"


SCORE_TOOL_PREFIX = "score_"
VERDICT_TOOL = "generate_verdict"
OPENING_REMARKS_TOOL = "write_opening_remarks"
MODEL_ANALYSIS_TOOL = "write_model_analysis"
HEAD_TO_HEAD_TOOL = "write_head_to_head"
HIGHLIGHT_PASSAGES_TOOL = "highlight_passages"

_CATEGORY_DESCRIPTIONS: dict[ScoreCategory, str] = {
    ScoreCategory.REASONING: "Logical reasoning quality: argument structure, use of evidence, coherence.",
    ScoreCategory.CLARITY: "How clearly the points are communicated: structure, readability, concision.",
    ScoreCategory.PERSUASIVENESS: "How persuasive and compelling the response is.",
    ScoreCategory.DEPTH: "Depth and thoroughness: nuance, substance, coverage of the topic.",
    ScoreCategory.CORRECTNESS: "Whether the code solves the problem, including edge cases.",
    ScoreCategory.EFFICIENCY: "Time and space complexity of the solution.",
    ScoreCategory.READABILITY: "Naming, comments and structure of the code.",
    ScoreCategory.BEST_PRACTICES: "Adherence to the conventions of the language used.",
    ScoreCategory.ELEGANCE: "Simplicity and cleverness of the approach.",
    ScoreCategory.CREATIVITY: "Originality of ideas and perspective.",
    ScoreCategory.STYLE: "Prose style, voice, word choice and imagery.",
    ScoreCategory.STRUCTURE: "Pacing, flow and organisation of the piece.",
    ScoreCategory.ENGAGEMENT: "How well the writing hooks and holds the reader.",
    ScoreCategory.TECHNICAL: "Grammar, spelling and language mechanics.",
}


@dataclass(frozen=True)
class JudgePersona:
    arena: Arena
    name: str
    title: str
    label: str                         # used in fallback verdicts: "this <label>"
    categories: tuple[ScoreCategory, ...]


PERSONAS: dict[Arena, JudgePersona] = {
    Arena.DEBATE: JudgePersona(
        arena=Arena.DEBATE,
        name="The Arbiter",
        title="Presiding Judge of the Debate Arena",
        label="debate",
        categories=(
            ScoreCategory.REASONING,
            ScoreCategory.CLARITY,
            ScoreCategory.PERSUASIVENESS,
            ScoreCategory.DEPTH,
        ),
    ),
    Arena.CODE: JudgePersona(
        arena=Arena.CODE,
        name="The Architect",
        title="Code Judge of the Technical Arena",
        label="coding challenge",
        categories=(
            ScoreCategory.CORRECTNESS,
            ScoreCategory.EFFICIENCY,
            ScoreCategory.READABILITY,
            ScoreCategory.BEST_PRACTICES,
            ScoreCategory.ELEGANCE,
        ),
    ),
    Arena.WRITING: JudgePersona(
        arena=Arena.WRITING,
        name="The Editor",
        title="Literary Judge of the Writing Arena",
        label="writing challenge",
        categories=(
            ScoreCategory.CREATIVITY,
            ScoreCategory.STYLE,
            ScoreCategory.STRUCTURE,
            ScoreCategory.ENGAGEMENT,
            ScoreCategory.TECHNICAL,
        ),
    ),
}

_MODE_ARENAS = {"creative": Arena.WRITING, "code": Arena.CODE}


def resolve_arena(mode: str | None = None, arena: str | None = None) -> Arena:
    """An explicit arena wins; otherwise map the debate mode onto one."""
    if arena:
        return Arena(arena)
    return _MODE_ARENAS.get(mode or "debate", Arena.DEBATE)


def _function(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


def _score_tool(category: ScoreCategory) -> dict[str, Any]:
    return _function(
        f"{SCORE_TOOL_PREFIX}{category.value}",
        _CATEGORY_DESCRIPTIONS[category],
        {
            "model": {"type": "string", "description": "The model name being scored"},
            "score": {"type": "number", "description": "Score from 1-10"},
            "rationale": {"type": "string", "description": "A punchy 5-15 word phrase explaining the score"},
        },
        ["model", "score", "rationale"],
    )


def build_tools(persona: JudgePersona) -> list[dict[str, Any]]:
    """Function-calling tool definitions offered to the judge for one arena."""
    tools = [_score_tool(category) for category in persona.categories]
    tools.append(
        _function(
            OPENING_REMARKS_TOOL,
            "Write short opening remarks that set up the judging.",
            {"remarks": {"type": "string", "description": "1-3 sentences of opening commentary"}},
            ["remarks"],
        )
    )
    if persona.arena is Arena.WRITING:
        tools.append(
            _function(
                HIGHLIGHT_PASSAGES_TOOL,
                "Highlight notable passages from one model's writing, good or bad.",
                {
                    "model": {"type": "string", "description": "The model whose passages are highlighted"},
                    "passages": {
                        "type": "array",
                        "description": "Notable passages with commentary",
                        "items": {
                            "type": "object",
                            "properties": {
                                "quote": {"type": "string", "description": "The quoted passage"},
                                "comment": {"type": "string", "description": "Why it stands out"},
                            },
                            "required": ["quote", "comment"],
                        },
                    },
                },
                ["model", "passages"],
            )
        )
    tools.append(
        _function(
            MODEL_ANALYSIS_TOOL,
            "Write an analysis of one model's overall performance.",
            {
                "model": {"type": "string", "description": "The model being analysed"},
                "analysis": {"type": "string", "description": "2-4 sentence analysis"},
                "strongest_moment": {"type": "string", "description": "The model's best moment"},
                "weakness": {"type": "string", "description": "The model's main weakness"},
            },
            ["model", "analysis", "strongest_moment", "weakness"],
        )
    )
    tools.append(
        _function(
            HEAD_TO_HEAD_TOOL,
            "Write a direct comparison of how the models matched up.",
            {"comparison": {"type": "string", "description": "2-4 sentence head-to-head comparison"}},
            ["comparison"],
        )
    )
    tools.append(
        _function(
            VERDICT_TOOL,
            "Deliver the final verdict after all scores are in. Declare a winner.",
            {
                "winner": {"type": "string", "description": "Name of the winning model"},
                "verdict": {"type": "string", "description": "2-3 sentence verdict explaining the decision"},
                "quotable_line": {"type": "string", "description": "A memorable one-liner about the outcome"},
            },
            ["winner", "verdict", "quotable_line"],
        )
    )
    return tools
