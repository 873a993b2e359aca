"""Prompt assembly for debate participants and the judge."""

from collections.abc import Mapping, Sequence

from promptpit.models import ConversationMessage, DebateRound

_CONTINUATION_HEADER = (
    "This is a continuation of an ongoing session. "
    "Here is what was discussed previously:"
)
_CONTINUATION_FOOTER = (
    "--- Current Round ---\n"
    "Now respond to the new topic/question, taking into account the previous discussion."
)
_JUDGE_INSTRUCTION = (
    "Please evaluate each model's response using the scoring tools, "
    "then generate your final verdict."
)


def format_round_history(previous_rounds: Sequence[DebateRound]) -> str:
    """Render every prior round: its topic, then each model's full answer."""
    parts: list[str] = []
    for number, rnd in enumerate(previous_rounds, start=1):
        parts.append(f"--- Round {number} ---\nTopic: {rnd.prompt}\n")
        for model, response in rnd.responses.items():
            parts.append(f"{model}'s response:\n{response}\n")
    return "\n".join(parts)


def build_system_prompt(base_prompt: str, previous_rounds: Sequence[DebateRound] = ()) -> str:
    """Mode instructions, plus the prior-round transcript for multi-round sessions."""
    if not previous_rounds:
        return base_prompt
    return (
        f"{base_prompt}\n\n{_CONTINUATION_HEADER}\n\n"
        f"{format_round_history(previous_rounds)}\n"
        f"{_CONTINUATION_FOOTER}"
    )


def build_debate_messages(
    base_prompt: str,
    prompt: str,
    previous_rounds: Sequence[DebateRound] = (),
) -> list[ConversationMessage]:
    """The single system/user pair shared by every participant."""
    return [
        ConversationMessage(role="system", content=build_system_prompt(base_prompt, previous_rounds)),
        ConversationMessage(role="user", content=prompt),
    ]


def build_judge_prompt(prompt: str, responses: Mapping[str, str]) -> str:
    parts = [f"# Debate Topic\n{prompt}\n", "# Model Responses\n"]
    for model, response in responses.items():
        parts.append(f"## {model}\n{response}\n")
    parts.append(_JUDGE_INSTRUCTION)
    return "\n".join(parts)
