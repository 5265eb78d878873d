# tests/test_config_loader.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from textwrap import dedent

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmchat.config_loader import DEFAULT_CONFIG, load_config, ConfigError  # type: ignore


def write_yaml(p: Path, text: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dedent(text).lstrip("\n").rstrip() + "\n", encoding="utf-8")
    return p


def test_no_path_gives_defaults_copy():
    cfg = load_config(None)
    assert cfg["model"]["name"] == "haiku"
    assert cfg["providers"]["anthropic"]["max_tokens"] == 2048
    cfg["model"]["name"] = "changed"
    assert DEFAULT_CONFIG["model"]["name"] == "haiku"


def test_load_config_ok_merges_over_defaults(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        model: { name: GPT4 }
        models:
          fast: { provider: OpenAI, id: gpt-4o-mini }
        providers:
          openai: { base_url: "http://localhost:8080" }
        """,
    )
    data = load_config(cfg)
    assert data["model"]["name"] == "gpt4"                  # normalised
    assert data["models"]["fast"]["provider"] == "openai"   # normalised
    assert data["providers"]["openai"]["base_url"] == "http://localhost:8080"
    assert data["providers"]["openai"]["timeout"] == 300    # default kept
    assert data["http"]["max_connections"] == 10


def test_unknown_alias_provider(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "c.yaml",
        """
        models:
          local: { provider: ollama, id: llama3 }
        """,
    )
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_alias_missing_id(tmp_path: Path):
    cfg = write_yaml(tmp_path / "c.yaml", "models: { x: { provider: openai } }")
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_timeout_type_error(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "c.yaml",
        """
        providers:
          anthropic: { timeout: "five minutes" }
        """,
    )
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_missing_file_and_empty_yaml(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(empty)
