from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import dotenv_values

from .retry import RetryPolicy
from .tools.pixellab import DEFAULT_BASE_URL

CONFIG_PATH = Path.home() / ".config" / "pixellab-mcp" / "config.yml"
DOTENV_PATH = Path(".env")

ENV_SECRET = "PIXELLAB_SECRET"
ENV_BASE_URL = "PIXELLAB_BASE_URL"
ENV_CONFIG = "PIXELLAB_MCP_CONFIG"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class ServerConfig:
    secret: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 120.0          # seconds per HTTP request
    max_retries: int = 3            # extra attempts after a rate-limited call
    base_delay: float = 2.0         # seconds before the first retry
    backoff_growth: float = 2.0     # delay multiplier per retry (1.5-2.0)
    log_level: str = "INFO"

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            growth=self.backoff_growth,
        )

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)

    def redacted(self) -> dict[str, Any]:
        data = asdict(self)
        secret = data["secret"]
        if secret:
            data["secret"] = f"{secret[:4]}…" if len(secret) > 8 else "***"
        return data


def _validate(cfg: Mapping[str, Any]) -> dict[str, Any]:
    defaults = asdict(ServerConfig())
    merged = {**defaults, **{k: v for k, v in cfg.items() if k in defaults}}
    merged["secret"] = str(merged["secret"] or "").strip()
    if not isinstance(merged.get("base_url"), str) or not merged["base_url"].strip():
        merged["base_url"] = defaults["base_url"]
    merged["base_url"] = merged["base_url"].strip().rstrip("/")
    raw_to = merged.get("timeout")
    merged["timeout"] = float(raw_to) if isinstance(raw_to, (int, float)) and float(raw_to) > 0 else defaults["timeout"]
    raw_mr = merged.get("max_retries")
    merged["max_retries"] = int(raw_mr) if isinstance(raw_mr, (int, float)) and not isinstance(raw_mr, bool) and int(raw_mr) >= 0 else defaults["max_retries"]
    raw_bd = merged.get("base_delay")
    merged["base_delay"] = float(raw_bd) if isinstance(raw_bd, (int, float)) and float(raw_bd) > 0 else defaults["base_delay"]
    raw_bg = merged.get("backoff_growth")
    merged["backoff_growth"] = float(raw_bg) if isinstance(raw_bg, (int, float)) and 1.5 <= float(raw_bg) <= 2.0 else defaults["backoff_growth"]
    level = str(merged.get("log_level") or "").upper()
    merged["log_level"] = level if level in _LOG_LEVELS else defaults["log_level"]
    return merged


def load_config_file(path: Path = CONFIG_PATH) -> dict[str, Any]:
    """Read the optional YAML config; a missing file is an empty config."""
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc
    return raw if isinstance(raw, dict) else {}


def build_config(
    overrides: Mapping[str, Any] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
) -> ServerConfig:
    """Layer config file < .env < environment < command-line overrides.

    With no explicit ``env`` the process environment is used and ./.env is
    read beneath it; an explicit ``env`` only gets a .env when ``dotenv_path``
    is given.
    """
    if env is None:
        env = os.environ
        dotenv_path = dotenv_path or DOTENV_PATH
    if dotenv_path is not None and dotenv_path.is_file():
        dotenv = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
        env = {**dotenv, **env}
    config_path = config_path or Path(env.get(ENV_CONFIG) or CONFIG_PATH).expanduser()
    layered: dict[str, Any] = dict(load_config_file(config_path))
    if env.get(ENV_SECRET):
        layered["secret"] = env[ENV_SECRET]
    if env.get(ENV_BASE_URL):
        layered["base_url"] = env[ENV_BASE_URL]
    for key, value in (overrides or {}).items():
        if value is not None:
            layered[key] = value
    return ServerConfig(**_validate(layered))


def require_secret(cfg: ServerConfig) -> ServerConfig:
    if not cfg.secret:
        raise ConfigError(
            "PixelLab API secret is required. Use --secret=your-api-key "
            f"or set {ENV_SECRET}."
        )
    return cfg