from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional, TextIO
from dotenv import load_dotenv

from .config_loader import load_config
from .logging_config import init_logging
from .providers.registry import ClientFactory
from .secrets.sources import SecretsResolver


def build_app(
    config_path: Optional[Path] = None,
    *,
    model: Optional[str] = None,
    log_level: Optional[str] = None,
    out: Optional[TextIO] = None,
) -> Dict[str, Any]:
    """
    Composition root: load .env and YAML, set up logging, build the client
    factory and resolve one provider client.
    Returns: dict with cfg, factory, client.
    """
    load_dotenv()
    cfg = load_config(config_path)

    log_cfg = cfg.get("logging") or {}
    log_file = log_cfg.get("file")
    init_logging(log_level or log_cfg.get("level", "WARNING"), Path(log_file) if log_file else None)

    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(
        method=secrets_cfg.get("method", "env"),
        mapping=secrets_cfg.get("mapping", {}),
    )

    factory = ClientFactory.from_config(cfg, resolver)
    model_name = (model or cfg["model"]["name"]).lower()
    client = factory.create(model_name, out=out) if out is not None else factory.create(model_name)

    return {
        "cfg": cfg,
        "factory": factory,
        "client": client,
    }
