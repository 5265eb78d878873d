from __future__ import annotations
import logging
from pathlib import Path
from typing import List, Optional
import httpx
import typer

from .bootstrap import build_app
from .config_loader import ConfigError
from .core.chat_session import ChatSession
from .core.context import build_system_prompt, ingest_documents
from .core.errors import IngestError, ProviderClientError, ProviderError
from .media.documents import FileTextExtractor
from .media.images import build_user_content

log = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)


def _read_prompt_arg(value: str) -> str:
    """A value ending in .txt names a file holding the prompt text."""
    if value and Path(value).suffix == ".txt":
        log.info("reading prompt file at path=%s", value)
        return Path(value).read_text(encoding="utf-8")
    return value


@app.callback(invoke_without_command=True)
def main(
    prompt: str = typer.Option("", "-p", "--prompt", help="User prompt (or path to a .txt file)."),
    system: str = typer.Option("", "-s", "--system", help="System prompt (or path to a .txt file)."),
    model: Optional[str] = typer.Option(None, "-m", "--model", help="Model name: haiku, sonnet, opus, gpt4."),
    image: Optional[List[str]] = typer.Option(None, "-i", "--image", help="Image path or URL; repeatable."),
    document: Optional[List[str]] = typer.Option(None, "-d", "--document", help="Document path (PDF or text); repeatable."),
    chat: bool = typer.Option(False, "-c", "--chat", help="Start a live chat that retains conversation history."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML config file."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override logging.level from config."),
):
    # ----- Args + provider -----
    try:
        prompt = _read_prompt_arg(prompt)
        system = _read_prompt_arg(system)
        ctx = build_app(config, model=model, log_level=log_level)
    except (ProviderClientError, ConfigError, OSError) as e:
        typer.echo(f"parsing args: {e}", err=True)
        raise typer.Exit(code=2)

    if not chat and not prompt and not image:
        typer.echo("parsing args: a prompt (-p) is required unless --chat is set", err=True)
        raise typer.Exit(code=2)

    client = ctx["client"]
    try:
        # ----- Context block from documents -----
        docs = ingest_documents(document or [], FileTextExtractor())
        system_prompt = build_system_prompt(system, docs)

        # ----- First user turn -----
        content = build_user_content(prompt, image or [], client.image_delivery) if (prompt or image) else None

        session = ChatSession(client, system_prompt)
        if chat:
            session.run(read_line=input, first_turn=content)
        else:
            session.run_turn(content)
    except (ProviderError, IngestError, OSError, httpx.HTTPError) as e:
        typer.echo(f"runtime error: {e}", err=True)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        typer.echo("interrupted", err=True)
        raise typer.Exit(code=130)
    finally:
        client.close()
