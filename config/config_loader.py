"""Load settings.yaml into typed dataclasses. Applies ROUNDTABLE_* env overrides."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

VALID_DEPTHS = ("quick", "standard", "deep")

DEFAULT_ROLE_WEIGHTS: dict[str, float] = {
    "chief-strategist": 0.25,
    "technical-analyst": 0.25,
    "risk-manager": 0.20,
    "execution-trader": 0.10,
    "sentiment-analyst": 0.10,
    "portfolio-manager": 0.10,
}


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
class RouterConfig:
    default_provider: str | None = None
    peer_provider: str | None = None


@dataclass
class RoundtableConfig:
    enabled: bool = False
    default_depth: str = "standard"
    allow_deep_mode: bool = False
    quorum: int = 3
    role_timeout_sec: float = 30.0
    chairman_timeout_sec: float = 30.0
    role_weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_ROLE_WEIGHTS))
    role_providers: dict[str, str] = field(default_factory=dict)
    chairman_provider: str | None = None
    database_path: Path = Path("./data/roundtable.db")


@dataclass
class AppConfig:
    roundtable: RoundtableConfig
    router: RouterConfig
    models: dict[str, ModelConfig]
    available_providers: set[str] = field(default_factory=set)


def _parse_bool(raw: str | bool) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


def parse_role_providers(raw: str) -> dict[str, str]:
    """Parse "chief-strategist:deepseek,technical-analyst:qwen" into a dict.

    Malformed pairs are skipped.
    """
    providers: dict[str, str] = {}
    for pair in raw.split(","):
        role, sep, provider = pair.strip().partition(":")
        if sep and role.strip() and provider.strip():
            providers[role.strip()] = provider.strip()
    return providers


def _apply_env_overrides(cfg: RoundtableConfig) -> None:
    env = os.environ
    if "ROUNDTABLE_ENABLED" in env:
        cfg.enabled = _parse_bool(env["ROUNDTABLE_ENABLED"])
    if env.get("ROUNDTABLE_DEPTH"):
        cfg.default_depth = env["ROUNDTABLE_DEPTH"].strip().lower()
    if "ROUNDTABLE_ALLOW_DEEP" in env:
        cfg.allow_deep_mode = _parse_bool(env["ROUNDTABLE_ALLOW_DEEP"])
    if env.get("ROUNDTABLE_QUORUM"):
        cfg.quorum = int(env["ROUNDTABLE_QUORUM"])
    if env.get("ROUNDTABLE_ROLE_TIMEOUT_SEC"):
        cfg.role_timeout_sec = float(env["ROUNDTABLE_ROLE_TIMEOUT_SEC"])
    if env.get("ROUNDTABLE_CHAIRMAN_TIMEOUT_SEC"):
        cfg.chairman_timeout_sec = float(env["ROUNDTABLE_CHAIRMAN_TIMEOUT_SEC"])
    if env.get("ROUNDTABLE_ROLE_PROVIDERS"):
        cfg.role_providers.update(parse_role_providers(env["ROUNDTABLE_ROLE_PROVIDERS"]))
    if env.get("ROUNDTABLE_DB_PATH"):
        cfg.database_path = Path(env["ROUNDTABLE_DB_PATH"])


def _validate(cfg: RoundtableConfig) -> None:
    if cfg.default_depth not in VALID_DEPTHS:
        raise ValueError(f"Invalid roundtable depth: {cfg.default_depth!r} (expected one of {VALID_DEPTHS})")
    if cfg.quorum < 1:
        raise ValueError(f"Roundtable quorum must be >= 1, got {cfg.quorum}")
    if cfg.role_timeout_sec <= 0 or cfg.chairman_timeout_sec <= 0:
        raise ValueError("Roundtable timeouts must be positive")


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError on invalid
    roundtable settings. Logs providers skipped for a missing API key but does
    not raise; callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    rt_raw = raw.get("roundtable", {}) or {}
    weights = dict(DEFAULT_ROLE_WEIGHTS)
    weights.update({str(k): float(v) for k, v in (rt_raw.get("role_weights") or {}).items()})
    roundtable = RoundtableConfig(
        enabled=_parse_bool(rt_raw.get("enabled", False)),
        default_depth=str(rt_raw.get("default_depth", "standard")).lower(),
        allow_deep_mode=_parse_bool(rt_raw.get("allow_deep_mode", False)),
        quorum=int(rt_raw.get("quorum", 3)),
        role_timeout_sec=float(rt_raw.get("role_timeout_sec", 30)),
        chairman_timeout_sec=float(rt_raw.get("chairman_timeout_sec", 30)),
        role_weights=weights,
        role_providers={str(k): str(v) for k, v in (rt_raw.get("role_providers") or {}).items()},
        chairman_provider=rt_raw.get("chairman_provider"),
        database_path=Path(rt_raw.get("database_path", "./data/roundtable.db")),
    )
    _apply_env_overrides(roundtable)
    _validate(roundtable)

    router_raw = raw.get("router", {}) or {}
    router = RouterConfig(
        default_provider=router_raw.get("default_provider"),
        peer_provider=router_raw.get("peer_provider"),
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in (raw.get("models") or {}).items():
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
        roundtable=roundtable,
        router=router,
        models=models,
        available_providers=available_providers,
    )
