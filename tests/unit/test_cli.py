# tests/test_cli.py

from __future__ import annotations
import sys
from pathlib import Path
from typer.testing import CliRunner

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import llmchat.cli as cli  # Typer app module
from llmchat.core.errors import ProviderAPIError, ProviderClientError


class FakeResponse:
    status_code = 200

    def __init__(self, text):
        self.body = text

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        pass


class FakeClient:
    image_delivery = "url"
    model = "fake-model"

    def __init__(self, answers=("answer",)):
        self.answers = list(answers)
        self.calls = []
        self.closed = False

    def send_message(self, messages, system_prompt, **_):
        self.calls.append((messages, system_prompt))
        return FakeResponse(self.answers.pop(0))

    def read_body(self, body):
        if isinstance(body, BaseException):
            raise body
        sys.stdout.write(body + "\n")
        return body

    def close(self):
        self.closed = True


def patch_app(monkeypatch, client, seen=None):
    def fake_build_app(config_path=None, *, model=None, log_level=None, out=None):
        if seen is not None:
            seen.update(config=config_path, model=model)
        if model == "nope":
            raise ProviderClientError("input model must be one of [gpt4, haiku, opus, sonnet], got 'nope'")
        return {"cfg": {}, "factory": None, "client": client}
    monkeypatch.setattr(cli, "build_app", fake_build_app, raising=True)


def test_one_shot_prompt(monkeypatch):
    client = FakeClient(["Hello"])
    seen = {}
    patch_app(monkeypatch, client, seen)

    result = CliRunner().invoke(cli.app, ["-p", "hi", "-s", "be nice", "-m", "gpt4"], catch_exceptions=False)

    assert result.exit_code == 0
    assert "Hello" in result.output
    assert seen["model"] == "gpt4"
    messages, system = client.calls[0]
    assert [m.role for m in messages] == ["user"]
    assert system == "be nice"
    assert client.closed


def test_prompt_and_documents_from_files(monkeypatch, tmp_path: Path):
    prompt_file = tmp_path / "prompt.txt"
    prompt_file.write_text("summarise", encoding="utf-8")
    doc = tmp_path / "doc.md"
    doc.write_text("the content", encoding="utf-8")
    client = FakeClient()
    patch_app(monkeypatch, client)

    result = CliRunner().invoke(cli.app, ["-p", str(prompt_file), "-d", str(doc), "-s", "sys"], catch_exceptions=False)

    assert result.exit_code == 0
    messages, system = client.calls[0]
    assert messages[0].content[0].text == "summarise"
    assert system == "<documents><document>the content</document>\n</documents>\nsys"


def test_image_urls_follow_client_delivery(monkeypatch):
    client = FakeClient()
    patch_app(monkeypatch, client)

    result = CliRunner().invoke(cli.app, ["-p", "what?", "-i", "https://x/a.png", "-i", "https://x/b.png"])

    assert result.exit_code == 0
    parts = client.calls[0][0][0].content
    assert [p.type for p in parts] == ["text", "image_url", "image_url"]


def test_chat_mode_runs_until_eof(monkeypatch):
    client = FakeClient(["a1", "a2"])
    patch_app(monkeypatch, client)

    result = CliRunner().invoke(cli.app, ["-c"], input="q1\nq2\n", catch_exceptions=False)

    assert result.exit_code == 0
    assert len(client.calls) == 2
    assert [m.role for m in client.calls[1][0]] == ["user", "assistant", "user"]


def test_unknown_model_is_usage_error(monkeypatch):
    patch_app(monkeypatch, FakeClient())
    result = CliRunner().invoke(cli.app, ["-p", "hi", "-m", "nope"])
    assert result.exit_code == 2


def test_missing_prompt_without_chat_is_usage_error(monkeypatch):
    patch_app(monkeypatch, FakeClient())
    result = CliRunner().invoke(cli.app, [])
    assert result.exit_code == 2


def test_provider_error_is_runtime_error(monkeypatch):
    client = FakeClient([ProviderAPIError("overloaded", status_code=529)])
    patch_app(monkeypatch, client)
    result = CliRunner().invoke(cli.app, ["-p", "hi"])
    assert result.exit_code == 1
    assert client.closed


def test_failing_document_aborts_before_any_request(monkeypatch, tmp_path: Path):
    client = FakeClient()
    patch_app(monkeypatch, client)
    result = CliRunner().invoke(cli.app, ["-p", "hi", "-d", str(tmp_path / "missing.pdf")])
    assert result.exit_code == 1
    assert client.calls == []


def test_image_only_prompt_sends_no_empty_text(monkeypatch):
    client = FakeClient()
    patch_app(monkeypatch, client)

    result = CliRunner().invoke(cli.app, ["-i", "https://x/a.png"])

    assert result.exit_code == 0
    parts = client.calls[0][0][0].content
    assert [p.type for p in parts] == ["image_url"]


def test_interrupt_during_turn_exits_cleanly(monkeypatch):
    client = FakeClient([KeyboardInterrupt()])
    patch_app(monkeypatch, client)

    result = CliRunner().invoke(cli.app, ["-p", "hi"])

    assert result.exit_code == 130
    assert client.closed
