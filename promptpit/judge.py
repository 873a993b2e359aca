"""Judge tool loop: a second model scores the responses through tool calls."""

import json
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

from promptpit.judge_tools import (
    HeadToHeadCall,
    HighlightPassagesCall,
    ModelAnalysisCall,
    OpeningRemarksCall,
    ScoreCall,
    ToolCallParseError,
    UnrecognizedCall,
    VerdictCall,
    classify,
    decode_arguments,
)
from promptpit.judges import JudgePersona, build_tools
from promptpit.models import (
    ConversationMessage,
    JudgeState,
    ModelAnalysis,
    ScoreEntry,
    ToolCall,
    Verdict,
)
from promptpit.prompts import build_judge_prompt
from promptpit.providers.base import GatewayError, ModelGateway

logger = logging.getLogger(__name__)

FALLBACK_HIGHLIGHT = "See individual scores for details."
UNKNOWN_VERDICT = Verdict(winner="Unknown", verdict="Unable to determine a winner.", highlight="")


def fallback_verdict(scores: Mapping[str, Mapping[str, ScoreEntry]], label: str) -> Verdict | None:
    """Pick the model with the highest summed score; the first one wins ties.

    Returns None when nothing was scored.
    """
    winner: str | None = None
    best: float | None = None
    for model, categories in scores.items():
        total = sum(entry.score for entry in categories.values())
        if best is None or total > best:
            winner, best = model, total
    if winner is None:
        return None
    return Verdict(
        winner=winner,
        verdict=f"Based on the scores, {winner} wins this {label}.",
        highlight=FALLBACK_HIGHLIGHT,
    )


def _verdict_event(verdict: Verdict) -> dict[str, Any]:
    return {"type": "verdict", "winner": verdict.winner, "verdict": verdict.verdict, "highlight": verdict.highlight}


class JudgeLoop:
    """Drives the judge model until it stops calling tools.

    Every run ends with exactly one ``complete`` event: after the judge stops
    requesting tools, after ``max_turns`` judge turns, or immediately after a
    failed turn.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        model_id: str,
        persona: JudgePersona,
        system_prompt: str,
        max_turns: int | None = None,
    ) -> None:
        self._gateway = gateway
        self._model_id = model_id
        self._persona = persona
        self._system_prompt = system_prompt
        self._max_turns = max_turns
        self._tools = build_tools(persona)
        self.state = JudgeState()

    async def run(self, prompt: str, responses: Mapping[str, str]) -> AsyncIterator[dict[str, Any]]:
        state = self.state = JudgeState(
            conversation_history=[ConversationMessage(role="user", content=build_judge_prompt(prompt, responses))]
        )
        logger.info("Judging %d response(s) as %s", len(responses), self._persona.name)

        while True:
            if self._max_turns is not None and state.turns >= self._max_turns:
                logger.warning("Judge stopped after %d turns without finishing", state.turns)
                yield {"type": "terminated", "reason": "max_turns", "turns": state.turns}
                break

            state.turns += 1
            try:
                completion = await self._gateway.invoke(self._model_id, self._messages(), tools=self._tools)
            except Exception as exc:
                message = exc.message if isinstance(exc, GatewayError) else str(exc)
                logger.warning("Judge turn %d failed: %s", state.turns, exc)
                yield self._complete(
                    state.verdict
                    or Verdict(winner="Error", verdict=f"An error occurred during judging: {message}", highlight="")
                )
                return

            if not completion.tool_calls:
                break
            for call in completion.tool_calls:
                for event in self._handle(call):
                    yield event

        if state.verdict is None:
            state.verdict = fallback_verdict(state.scores, self._persona.label)
            if state.verdict is not None:
                logger.info("Judge gave no verdict, falling back to score totals: %s", state.verdict.winner)
                yield _verdict_event(state.verdict)
        yield self._complete(state.verdict or UNKNOWN_VERDICT)

    def _messages(self) -> list[ConversationMessage]:
        return [ConversationMessage(role="system", content=self._system_prompt), *self.state.conversation_history]

    def _handle(self, call: ToolCall) -> list[dict[str, Any]]:
        """Record one tool call, acknowledge it, and return the events it produced.

        Arguments that are not a JSON object are skipped outright. Any other call
        is announced and acknowledged even when it lacks a field needed to record it.
        """
        state = self.state
        try:
            args = decode_arguments(call.arguments)
        except ToolCallParseError as exc:
            logger.warning("Skipping judge tool call %s: %s", call.name, exc)
            return []

        events: list[dict[str, Any]] = [{"type": "tool_call", "tool": call.name, "input": args}]
        state.conversation_history.append(ConversationMessage(role="assistant", content=None, tool_calls=(call,)))
        state.conversation_history.append(
            ConversationMessage(
                role="tool",
                content=json.dumps({"success": True, "recorded": args}),
                tool_call_id=call.id,
            )
        )
        try:
            parsed = classify(call.name, args, self._persona)
        except ToolCallParseError as exc:
            logger.warning("Not recording judge tool call %s: %s", call.name, exc)
            return events

        match parsed:
            case ScoreCall(category=category, model=model, score=score, rationale=rationale):
                state.scores.setdefault(model, {})[category.value] = ScoreEntry(score=score, rationale=rationale)
                events.append(
                    {
                        "type": "scoring",
                        "model": model,
                        "category": category.value,
                        "score": score,
                        "rationale": rationale,
                    }
                )
            case VerdictCall(winner=winner, verdict=text, highlight=highlight):
                if state.verdict is None:
                    state.verdict = Verdict(winner=winner, verdict=text, highlight=highlight)
                    events.append(_verdict_event(state.verdict))
                else:
                    logger.warning("Ignoring repeated verdict naming %s", winner)
            case OpeningRemarksCall(remarks=remarks):
                state.structured.opening_remarks = remarks
            case ModelAnalysisCall(model=model, analysis=analysis, strongest_moment=strongest, weakness=weakness):
                state.structured.model_analyses.append(
                    ModelAnalysis(
                        model=model,
                        scores={c: entry.score for c, entry in state.scores.get(model, {}).items()},
                        analysis=analysis,
                        strongest_moment=strongest,
                        weakness=weakness,
                    )
                )
            case HeadToHeadCall(comparison=comparison):
                state.structured.head_to_head = comparison
            case HighlightPassagesCall(model=model, passages=passages):
                state.structured.highlighted_passages.setdefault(model, []).extend(passages)
            case UnrecognizedCall(name=name):
                logger.debug("Acknowledging unrecognised judge tool %s", name)
        return events

    def _complete(self, verdict: Verdict) -> dict[str, Any]:
        state = self.state
        structured = state.structured
        return {
            "type": "complete",
            "scores": {
                model: {category: {"score": e.score, "rationale": e.rationale} for category, e in categories.items()}
                for model, categories in state.scores.items()
            },
            "verdict": {"winner": verdict.winner, "verdict": verdict.verdict, "highlight": verdict.highlight},
            "structuredResult": {
                "openingRemarks": structured.opening_remarks,
                "modelAnalyses": [
                    {
                        "model": a.model,
                        "scores": a.scores,
                        "analysis": a.analysis,
                        "strongestMoment": a.strongest_moment,
                        "weakness": a.weakness,
                    }
                    for a in structured.model_analyses
                ],
                "headToHead": structured.head_to_head,
                "highlightedPassages": {
                    model: [{"quote": p.quote, "comment": p.comment} for p in passages]
                    for model, passages in structured.highlighted_passages.items()
                },
                "winner": verdict.winner,
                "verdict": verdict.verdict,
                "quotableLine": verdict.highlight,
            },
        }
