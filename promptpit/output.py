"""Rich console output and markdown transcript save for terminal debates."""

import logging
import re
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from config.config_loader import ModelDescriptor
from promptpit.models import DebateSessionState, Latency

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _display_name(key: str, models: Mapping[str, ModelDescriptor]) -> str:
    model = models.get(key)
    return model.display_name if model else key


def format_latency(latency: Latency | None) -> str:
    if latency is None:
        return "-"
    return f"ttft {latency.time_to_first_token / 1000:.1f}s | total {latency.total / 1000:.1f}s"


def print_models(models: Mapping[str, ModelDescriptor]) -> None:
    table = Table(title="Participants")
    table.add_column("Key", style="bold")
    table.add_column("Name")
    table.add_column("Model id", style="dim")
    table.add_column("Description")
    for model in models.values():
        table.add_row(
            model.key,
            Text(model.display_name, style=model.color or ""),
            model.provider_model_id,
            model.description,
        )
    console.print(table)


def print_responses(state: DebateSessionState, models: Mapping[str, ModelDescriptor]) -> None:
    """One panel per participant, in request order."""
    console.print(Rule("[bold cyan]Responses[/bold cyan]"))
    for key in state.model_keys:
        name = _display_name(key, models)
        subtitle = format_latency(state.latencies.get(key))
        if key in state.errors:
            body: Any = Text(f"Error: {state.errors[key]}", style="red")
            border = "red"
        else:
            body = Markdown(state.responses.get(key, "") or "_(empty response)_")
            border = models[key].color if key in models and models[key].color else "dim"
        console.print(Panel(body, title=f"[bold]{name}[/bold]", subtitle=subtitle, border_style=border))


def print_judgement(result: Mapping[str, Any], models: Mapping[str, ModelDescriptor]) -> None:
    """Scoreboard table followed by the verdict, from a judge ``complete`` event."""
    scores: Mapping[str, Mapping[str, Mapping[str, Any]]] = result.get("scores", {})
    verdict = result.get("verdict", {})
    console.print(Rule("[bold green]Judgement[/bold green]"))

    if scores:
        categories = list(dict.fromkeys(c for by_category in scores.values() for c in by_category))
        table = Table(title="Scoreboard")
        table.add_column("Category", style="bold")
        for key in scores:
            table.add_column(_display_name(key, models), justify="right")
        for category in categories:
            row = [category.replace("_", " ").title()]
            for by_category in scores.values():
                entry = by_category.get(category)
                row.append(f"{entry['score']:g}" if entry else "-")
            table.add_row(*row)
        table.add_row(
            "[bold]Total[/bold]",
            *(f"[bold]{sum(e['score'] for e in by_category.values()):g}[/bold]" for by_category in scores.values()),
        )
        console.print(table)

    winner = verdict.get("winner", "Unknown")
    console.print(
        Panel(
            Markdown(verdict.get("verdict", "")),
            title=f"[bold]Winner: {_display_name(winner, models)}[/bold]",
            subtitle=verdict.get("highlight") or None,
            border_style="green",
        )
    )


def save_transcript(
    prompt: str,
    mode: str,
    state: DebateSessionState,
    models: Mapping[str, ModelDescriptor],
    output_dir: Path,
    judgement: Mapping[str, Any] | None = None,
) -> Path:
    """Save one debate (and its judgement, if any) as a markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    filepath = output_dir / f"{now.strftime('%Y%m%d_%H%M%S')}_{_slug(prompt)}.md"

    lines: list[str] = [
        f"# PromptPit Debate: {prompt[:80]}",
        "",
        f"**Date:** {now.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Mode:** {mode}",
        f"**Models:** {', '.join(models[k].provider_model_id if k in models else k for k in state.model_keys)}",
        "",
        "---",
        "",
        "## Responses",
        "",
    ]
    for key in state.model_keys:
        lines.append(f"### {_display_name(key, models)}")
        lines.append("")
        if key in state.errors:
            lines.append(f"> Error: {state.errors[key]}")
        else:
            lines.append(state.responses.get(key, ""))
        lines.append("")
        lines.append(f"*Latency: {format_latency(state.latencies.get(key))}*")
        lines.append("")

    if judgement is not None:
        verdict = judgement.get("verdict", {})
        lines += ["## Judgement", ""]
        for key, by_category in judgement.get("scores", {}).items():
            lines.append(f"### {_display_name(key, models)}")
            lines.append("")
            for category, entry in by_category.items():
                lines.append(f"- **{category}**: {entry['score']:g} ({entry['rationale']})")
            lines.append("")
        lines += [
            f"**Winner:** {verdict.get('winner', 'Unknown')}",
            "",
            verdict.get("verdict", ""),
            "",
        ]
        if verdict.get("highlight"):
            lines += [f"> {verdict['highlight']}", ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath
