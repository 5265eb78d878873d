# src/llmchat/config_loader.py

from __future__ import annotations
import copy
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

KNOWN_PROVIDERS = ("anthropic", "openai")

DEFAULT_CONFIG: Dict[str, Any] = {
    "model": {"name": "haiku"},
    "models": {},
    "providers": {
        "anthropic": {"base_url": "https://api.anthropic.com", "timeout": 300, "max_tokens": 2048},
        "openai": {"base_url": "https://api.openai.com", "timeout": 300},
    },
    "http": {"max_connections": 10, "keepalive_expiry": 60},
    "secrets": {"method": "env", "mapping": {}},
    "logging": {"level": "WARNING", "file": None},
}


class ConfigError(ValueError):
    pass


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    if typ is float and (isinstance(cur, bool) or not isinstance(cur, (int, float))):
        raise ConfigError(f"'{dotted}' must be a number")
    if typ is int and (isinstance(cur, bool) or not isinstance(cur, int)):
        raise ConfigError(f"'{dotted}' must be an integer")
    return cur


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load YAML over the built-in defaults. With no path, the defaults alone
    are returned.
    """
    if path is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    cfg = _merge(DEFAULT_CONFIG, raw)

    _require(cfg, "model.name", str)
    cfg["model"]["name"] = cfg["model"]["name"].lower()

    for alias, spec in (cfg.get("models") or {}).items():
        if not isinstance(spec, dict):
            raise ConfigError(f"'models.{alias}' must be a mapping with 'provider' and 'id'")
        _require(cfg, f"models.{alias}.provider", str)
        _require(cfg, f"models.{alias}.id", str)
        provider = spec["provider"].lower()
        if provider not in KNOWN_PROVIDERS:
            raise ConfigError(
                f"Unknown provider '{provider}' for models.{alias} (expected one of {list(KNOWN_PROVIDERS)})."
            )
        spec["provider"] = provider

    for name, pc in (cfg.get("providers") or {}).items():
        if name not in KNOWN_PROVIDERS:
            raise ConfigError(f"Unknown providers.{name} (expected one of {list(KNOWN_PROVIDERS)}).")
        if not isinstance(pc, dict):
            raise ConfigError(f"'providers.{name}' must be a mapping")
        if "base_url" in pc:
            _require(cfg, f"providers.{name}.base_url", str)
        if "timeout" in pc:
            _require(cfg, f"providers.{name}.timeout", float)
        if "max_tokens" in pc:
            _require(cfg, f"providers.{name}.max_tokens", int)

    _require(cfg, "http.max_connections", int)
    _require(cfg, "http.keepalive_expiry", float)
    _require(cfg, "logging.level", str)

    return cfg
