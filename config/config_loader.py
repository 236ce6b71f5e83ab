"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class GatewayConfig:
    max_attempts: int = 3
    backoff_multiplier: float = 1.5
    backoff_min: float = 1.0
    backoff_max: float = 30.0
    chars_per_token: int = 4
    call_overhead_tokens: int = 16     # role markers and message framing per request


@dataclass
class ReviewConfig:
    min_manuscript_chars: int = 100
    max_manuscript_chars: int = 15000
    token_ceiling: int = 200_000
    editor_temperature: float = 0.3
    reviewer_temperature: float = 0.4
    synthesis_temperature: float = 0.3
    variant: str = "full_text"


@dataclass
class Persona:
    name: str
    institution: str
    credentials: str
    expertise: str


@dataclass
class PromptsConfig:
    editor: str
    focused_editor: str
    reviewers: dict[str, str]          # research field -> template
    focused_reviewer: str
    synthesis: str
    personas: dict[str, Persona] = field(default_factory=dict)


@dataclass
class TaxonomyConfig:
    fields: dict[str, list[str]] = field(default_factory=dict)
    focused: list[str] = field(default_factory=list)


@dataclass
class DefaultsConfig:
    provider: str
    output_dir: Path
    output_format: str = "md"


@dataclass
class InboxConfig:
    dir: Path
    archive_dir: Path


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    review: ReviewConfig
    gateway: GatewayConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    taxonomy: TaxonomyConfig
    inbox: InboxConfig
    available_providers: set[str] = field(default_factory=set)


def _load_prompts(prompts_raw: dict, personas_raw: dict) -> PromptsConfig:
    personas = {
        specialty: Persona(
            name=str(p["name"]),
            institution=str(p["institution"]),
            credentials=str(p["credentials"]),
            expertise=str(p["expertise"]),
        )
        for specialty, p in personas_raw.items()
    }
    return PromptsConfig(
        editor=prompts_raw["editor"],
        focused_editor=prompts_raw["focused_editor"],
        reviewers={str(k): str(v) for k, v in prompts_raw["reviewers"].items()},
        focused_reviewer=prompts_raw["focused_reviewer"],
        synthesis=prompts_raw["synthesis"],
        personas=personas,
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        provider=str(defaults_raw["provider"]),
        output_dir=Path(defaults_raw["output_dir"]),
        output_format=str(defaults_raw.get("output_format", "md")),
    )

    review_raw = raw.get("review", {})
    review = ReviewConfig(
        min_manuscript_chars=int(review_raw.get("min_manuscript_chars", 100)),
        max_manuscript_chars=int(review_raw.get("max_manuscript_chars", 15000)),
        token_ceiling=int(review_raw.get("token_ceiling", 200_000)),
        editor_temperature=float(review_raw.get("editor_temperature", 0.3)),
        reviewer_temperature=float(review_raw.get("reviewer_temperature", 0.4)),
        synthesis_temperature=float(review_raw.get("synthesis_temperature", 0.3)),
        variant=str(review_raw.get("variant", "full_text")),
    )

    gateway_raw = raw.get("gateway", {})
    gateway = GatewayConfig(
        max_attempts=int(gateway_raw.get("max_attempts", 3)),
        backoff_multiplier=float(gateway_raw.get("backoff_multiplier", 1.5)),
        backoff_min=float(gateway_raw.get("backoff_min", 1.0)),
        backoff_max=float(gateway_raw.get("backoff_max", 30.0)),
        chars_per_token=int(gateway_raw.get("chars_per_token", 4)),
        call_overhead_tokens=int(gateway_raw.get("call_overhead_tokens", 16)),
    )
    if gateway.max_attempts < 1:
        raise ValueError("gateway.max_attempts must be at least 1")

    prompts = _load_prompts(raw["prompts"], raw.get("personas") or {})

    taxonomy_raw = raw.get("taxonomy", {})
    taxonomy = TaxonomyConfig(
        fields={str(k): [str(s) for s in v] for k, v in taxonomy_raw.get("fields", {}).items()},
        focused=[str(s) for s in taxonomy_raw.get("focused", [])],
    )

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        review=review,
        gateway=gateway,
        models=models,
        prompts=prompts,
        taxonomy=taxonomy,
        inbox=inbox,
        available_providers=available_providers,
    )
