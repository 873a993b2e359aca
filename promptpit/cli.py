"""Click CLI: run the HTTP service, or a single debate in the terminal."""

import asyncio
import logging
import sys
from pathlib import Path

import click
import uvicorn
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from promptpit.debate import DebateSession
from promptpit.judge import JudgeLoop
from promptpit.judges import PERSONAS, Arena, resolve_arena
from promptpit.multiplexer import StreamMultiplexer
from promptpit.output import print_judgement, print_models, print_responses, save_transcript
from promptpit.providers.base import GatewayConfigError, ModelGateway
from promptpit.providers.openrouter import OpenRouterGateway
from promptpit.server import create_app
from promptpit.validation import DebateRequest, ValidationError, error_message, validate_debate_request

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

MODES = ("debate", "code", "creative")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_config_or_exit() -> AppConfig:
    try:
        return load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


def _parse_models(models_arg: str | None) -> list[str] | None:
    """Comma-separated keys, or None to use every configured model."""
    if not models_arg:
        return None
    return [m.strip() for m in models_arg.split(",") if m.strip()]


async def _stream_debate(
    config: AppConfig,
    gateway: ModelGateway,
    request: DebateRequest,
) -> DebateSession:
    session = DebateSession(
        request,
        config.models,
        StreamMultiplexer(gateway, inactivity_timeout=config.gateway.inactivity_timeout_sec),
        base_prompt=config.prompts.modes.get(request.mode, config.prompts.default_system),
    )
    names = {key: config.models[key].display_name for key in session.state.model_keys}

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        tasks = {key: progress.add_task(f"{name} thinking...", total=None) for key, name in names.items()}
        async for event in session.events():
            key = event.get("model")
            if event["type"] == "chunk" and key in tasks:
                chars = len(session.state.responses.get(key, ""))
                progress.update(tasks[key], description=f"{names[key]} streaming ({chars} chars)")
            elif event["type"] == "model_complete":
                progress.print(f"[green]OK[/green] {names[key]} finished")
                progress.remove_task(tasks.pop(key))
            elif event["type"] == "error" and key in tasks:
                progress.print(f"[red]FAIL[/red] {names[key]}: {event['error']}")
                progress.remove_task(tasks.pop(key))
    return session


async def _judge(
    config: AppConfig,
    gateway: ModelGateway,
    prompt: str,
    responses: dict[str, str],
    arena: Arena,
) -> dict:
    loop = JudgeLoop(
        gateway,
        config.judge.model,
        PERSONAS[arena],
        system_prompt=config.prompts.judges.get(arena.value, config.prompts.default_system),
        max_turns=config.judge.max_turns,
    )
    result: dict = {}
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"{PERSONAS[arena].name} is judging...", total=None)
        async for event in loop.run(prompt, responses):
            if event["type"] == "scoring":
                progress.update(task, description=f"Scoring {event['model']}: {event['category']}")
            elif event["type"] == "terminated":
                progress.print(f"[yellow]Judge stopped after {event['turns']} turns[/yellow]")
            elif event["type"] == "complete":
                result = event
    return result


async def _run_debate(
    config: AppConfig,
    gateway: ModelGateway,
    request: DebateRequest,
    judge: bool,
    arena: Arena,
    output_dir: Path | None,
) -> None:
    try:
        session = await _stream_debate(config, gateway, request)
        print_responses(session.state, config.models)

        judgement = None
        answered = {key: text for key, text in session.state.responses.items() if text}
        if judge and answered:
            judgement = await _judge(config, gateway, request.prompt, answered, arena)
            print_judgement(judgement, config.models)
        elif judge:
            console.print("[yellow]No responses to judge.[/yellow]")

        if output_dir is not None:
            saved = save_transcript(request.prompt, request.mode, session.state, config.models, output_dir, judgement)
            console.print(f"\n[dim]Saved to: {saved}[/dim]")
    finally:
        await gateway.close()


@click.group()
def main() -> None:
    """PromptPit -- pit language models against each other and judge the result.

    \b
    Examples:
      promptpit serve --port 8000
      promptpit debate "Is pineapple on pizza acceptable?"
      promptpit debate "Reverse a linked list" --mode code --models claude,gpt4o
      promptpit models
    """
    load_dotenv()


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def serve(host: str, port: int, verbose: bool) -> None:
    """Serve the debate and judge endpoints over HTTP."""
    _setup_logging(verbose)
    app = create_app(_load_config_or_exit())
    uvicorn.run(app, host=host, port=port, log_config=None)


@main.command()
@click.argument("prompt")
@click.option("--models", "models_arg", default=None, help="Comma-separated model keys (default: all)")
@click.option("--mode", type=click.Choice(MODES), default="debate", show_default=True)
@click.option("--judge/--no-judge", default=True, show_default=True, help="Have the judge score the responses")
@click.option(
    "--arena",
    type=click.Choice([a.value for a in Arena]),
    default=None,
    help="Judge arena (default: derived from --mode)",
)
@click.option("--output", "output_path", default=None, help="Directory to save a markdown transcript in")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def debate(
    prompt: str,
    models_arg: str | None,
    mode: str,
    judge: bool,
    arena: str | None,
    output_path: str | None,
    verbose: bool,
) -> None:
    """Run one debate on PROMPT and print every model's answer."""
    _setup_logging(verbose)
    config = _load_config_or_exit()

    body: dict = {"prompt": prompt, "mode": mode}
    models = _parse_models(models_arg)
    if models is not None:
        body["models"] = models
    try:
        request = validate_debate_request(body, list(config.models), list(config.prompts.modes) or list(MODES))
    except ValidationError as exc:
        console.print(f"[bold red]Error:[/bold red] {error_message(exc)}")
        sys.exit(1)

    try:
        gateway = OpenRouterGateway(config.gateway)
    except GatewayConfigError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    names = ", ".join(config.models[key].display_name for key in request.models)
    console.print(f"\n[bold cyan]PromptPit[/bold cyan] {len(request.models)} models [{request.mode}]")
    console.print(f"Models: {names}")
    console.print(f"Prompt: [italic]{prompt[:80]}{'...' if len(prompt) > 80 else ''}[/italic]\n")

    asyncio.run(
        _run_debate(
            config,
            gateway,
            request,
            judge=judge,
            arena=resolve_arena(request.mode, arena),
            output_dir=Path(output_path) if output_path else None,
        )
    )


@main.command(name="models")
def list_models() -> None:
    """List the configured participants."""
    print_models(_load_config_or_exit().models)


if __name__ == "__main__":
    main()
