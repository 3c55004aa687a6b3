"""Centralized configuration for the chat relay.

Configuration is resolved from two sources:

1. **YAML config**: loaded via Hydra from ``chatrelay/core/configs/``
2. **Environment variables**: used for secrets, the profile selector and the
   endpoint overrides

The YAML profile is selected by ``CHATRELAY_CONFIG_NAME`` (default: ``"modal"``).
Use Hydra CLI overrides (``key=value``) to customize non-secret values.

Usage::

    from chatrelay.core.config import get_relay_config, load_relay_config

    cfg = get_relay_config()                      # cached, env-selected profile
    cfg = load_relay_config("local", ["model=Qwen/Qwen3-0.6B"])
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path

from hydra import compose, initialize_config_dir
from hydra.errors import MissingConfigException
from omegaconf import OmegaConf

logger = logging.getLogger(__name__)

_CONFIG_DIR = str(Path(__file__).parent / "configs")

DEFAULT_CONFIG_NAME = "modal"


# ---------------------------------------------------------------------------
# Config schema
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RelayConfig:
    """Process-wide model endpoint configuration.

    Built once at startup and injected into the web app; never mutated per
    request.
    """

    provider_name: str = "openai-compatible"
    base_url: str = "http://127.0.0.1:8000/v1"
    model: str = ""
    api_key: str = ""
    tag_name: str = "think"
    separator: str = "\n\n"
    start_with_reasoning: bool = False
    connect_timeout_s: float = 10.0
    read_timeout_s: float = 300.0

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


# ---------------------------------------------------------------------------
# YAML loading via Hydra Compose API
# ---------------------------------------------------------------------------

def _load_yaml_config(
    config_name: str,
    overrides: list[str] | None = None,
    config_dir: str | None = None,
) -> dict[str, object]:
    """Compose a YAML profile and return it as a plain dict.

    Raises ``ValueError`` when the profile does not exist.
    """
    abs_dir = os.path.abspath(config_dir or _CONFIG_DIR)
    try:
        with initialize_config_dir(version_base=None, config_dir=abs_dir):
            cfg = compose(config_name=config_name, overrides=overrides or [])
    except MissingConfigException as e:
        raise ValueError(f"Unsupported CHATRELAY_CONFIG_NAME: {config_name!r}") from e

    container = OmegaConf.to_container(cfg, resolve=True)
    if not isinstance(container, dict):
        raise TypeError(f"Config {config_name!r} did not compose to a mapping")
    return {str(k): v for k, v in container.items()}


# ---------------------------------------------------------------------------
# YAML value helpers
# ---------------------------------------------------------------------------

def _yaml_str(yaml: dict[str, object], key: str, default: str = "") -> str:
    val = yaml.get(key)
    return str(val) if val is not None else default


def _yaml_float(yaml: dict[str, object], key: str, default: float = 0.0) -> float:
    val = yaml.get(key)
    return float(str(val)) if val is not None else default


def _yaml_bool(yaml: dict[str, object], key: str, default: bool = False) -> bool:
    val = yaml.get(key)
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _secret(name: str, default: str = "") -> str:
    """Read a secret from an environment variable."""
    raw = os.environ.get(name)
    return raw.strip() if raw is not None else default


def _env_override(name: str) -> str | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------

_FIELD_NAMES = frozenset(f.name for f in fields(RelayConfig))


def build_relay_config(yaml: dict[str, object]) -> RelayConfig:
    """Build a validated ``RelayConfig`` from composed YAML and the environment."""
    unknown = set(yaml) - _FIELD_NAMES
    if unknown:
        raise ValueError(f"Unknown relay config keys: {sorted(unknown)}")
    if yaml.get("api_key"):
        raise ValueError("api_key must come from CHATRELAY_API_KEY, not YAML")

    defaults = RelayConfig()
    cfg = RelayConfig(
        provider_name=_yaml_str(yaml, "provider_name", defaults.provider_name),
        base_url=(
            _env_override("CHATRELAY_BASE_URL")
            or _yaml_str(yaml, "base_url", defaults.base_url)
        ),
        model=_env_override("CHATRELAY_MODEL") or _yaml_str(yaml, "model"),
        api_key=_secret("CHATRELAY_API_KEY"),
        tag_name=_yaml_str(yaml, "tag_name", defaults.tag_name),
        separator=_yaml_str(yaml, "separator", defaults.separator),
        start_with_reasoning=_yaml_bool(yaml, "start_with_reasoning", False),
        connect_timeout_s=_yaml_float(yaml, "connect_timeout_s", defaults.connect_timeout_s),
        read_timeout_s=_yaml_float(yaml, "read_timeout_s", defaults.read_timeout_s),
    )
    _validate(cfg)
    return cfg


def _validate(cfg: RelayConfig) -> None:
    if not cfg.base_url:
        raise ValueError("base_url must be set")
    if not cfg.model:
        raise ValueError("model must be set")
    if not cfg.tag_name or any(c in cfg.tag_name for c in "<>/ "):
        raise ValueError(f"Invalid reasoning tag name: {cfg.tag_name!r}")


def load_relay_config(
    config_name: str = DEFAULT_CONFIG_NAME,
    overrides: list[str] | None = None,
) -> RelayConfig:
    """Load a YAML profile by name and return a validated ``RelayConfig``."""
    cfg = build_relay_config(_load_yaml_config(config_name, overrides))
    logger.info(
        "Loaded relay config %r: model=%s base_url=%s tag=<%s>",
        config_name, cfg.model, cfg.base_url, cfg.tag_name,
    )
    return cfg


@lru_cache(maxsize=1)
def get_relay_config() -> RelayConfig:
    """Return the relay config for the profile named by ``CHATRELAY_CONFIG_NAME``.

    The result is cached; call ``get_relay_config.cache_clear()`` to re-read
    (useful in tests).
    """
    config_name = os.environ.get("CHATRELAY_CONFIG_NAME", DEFAULT_CONFIG_NAME).strip().lower()
    return load_relay_config(config_name)
