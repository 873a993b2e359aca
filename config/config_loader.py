"""Load settings.yaml into typed dataclasses. Reports gateway credentials at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass(frozen=True)
class ModelDescriptor:
    key: str                 # short internal id, e.g. "claude"
    provider_model_id: str   # id passed to the gateway, e.g. "anthropic/claude-sonnet-4"
    display_name: str
    color: str               # UI hint only
    description: str = ""


@dataclass
class GatewayConfig:
    base_url: str
    api_key_env: str
    site_url: str
    app_name: str
    timeout_sec: float
    inactivity_timeout_sec: float | None = None
    max_retries: int = 0


@dataclass
class JudgeConfig:
    model: str
    max_turns: int | None = None


@dataclass
class PromptsConfig:
    default_system: str
    modes: dict[str, str] = field(default_factory=dict)
    judges: dict[str, str] = field(default_factory=dict)


@dataclass
class TierConfig:
    default_tier: str
    limits: dict[str, int] = field(default_factory=dict)


@dataclass
class AppConfig:
    gateway: GatewayConfig
    models: dict[str, ModelDescriptor]
    judge: JudgeConfig
    prompts: PromptsConfig
    tiers: TierConfig
    gateway_key_present: bool = False


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    number = float(value)
    return number if number > 0 else None


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs whether the gateway API key is set but does not raise; the gateway
    itself refuses to start without one.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    gateway_raw = raw["gateway"]
    gateway = GatewayConfig(
        base_url=str(gateway_raw["base_url"]),
        api_key_env=str(gateway_raw["api_key_env"]),
        site_url=str(gateway_raw.get("site_url", "http://localhost:3000")),
        app_name=str(gateway_raw.get("app_name", "PromptPit")),
        timeout_sec=float(gateway_raw.get("timeout_sec", 120)),
        inactivity_timeout_sec=_optional_float(gateway_raw.get("inactivity_timeout_sec")),
        max_retries=int(gateway_raw.get("max_retries", 0)),
    )

    models: dict[str, ModelDescriptor] = {}
    for key, model_raw in raw["models"].items():
        models[key] = ModelDescriptor(
            key=key,
            provider_model_id=str(model_raw["id"]),
            display_name=str(model_raw.get("name", key)),
            color=str(model_raw.get("color", "")),
            description=str(model_raw.get("description", "")),
        )
    if not models:
        raise ValueError("settings.yaml must define at least one model")

    judge_raw = raw["judge"]
    max_turns = judge_raw.get("max_turns")
    judge = JudgeConfig(
        model=str(judge_raw["model"]),
        max_turns=int(max_turns) if max_turns else None,
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        default_system=str(prompts_raw["default_system"]).strip(),
        modes={k: str(v).strip() for k, v in prompts_raw.get("modes", {}).items()},
        judges={k: str(v).strip() for k, v in prompts_raw.get("judges", {}).items()},
    )

    tiers_raw = raw.get("tiers", {})
    tiers = TierConfig(
        default_tier=str(tiers_raw.get("default", "free")),
        limits={k: int(v) for k, v in tiers_raw.get("limits", {}).items()},
    )

    key_present = bool(os.environ.get(gateway.api_key_env, "").strip())
    if key_present:
        logger.info("Gateway credentials found in %s", gateway.api_key_env)
    else:
        logger.info("Gateway credentials missing, set %s in .env", gateway.api_key_env)

    return AppConfig(
        gateway=gateway,
        models=models,
        judge=judge,
        prompts=prompts,
        tiers=tiers,
        gateway_key_present=key_present,
    )
