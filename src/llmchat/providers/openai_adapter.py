# src/llmchat/providers/openai_adapter.py
from __future__ import annotations
import logging
import sys
import threading
from typing import Any, Dict, Iterable, List, Optional, TextIO, Union

import httpx

from llmchat.core.errors import ProviderAPIError, ProviderClientError, ProviderDecodeError
from llmchat.core.ports import ProviderConfig
from llmchat.core.sse import FrameScanner, decode_json, is_done
from llmchat.core.wire import Message, Response, encode_messages
from llmchat.providers.http import (
    DEFAULT_KEEPALIVE_EXPIRY,
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_TIMEOUT,
    build_http_client,
    post_stream,
)

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com"


def with_system_prompt(messages: List[Message], system_prompt: str) -> List[Message]:
    """
    Chat Completions has no separate system field, so a non-empty system
    prompt travels as one more message, appended at the END of the list.
    The caller's list is left untouched.
    """
    out = list(messages)
    if system_prompt:
        out.append(Message.text("system", system_prompt))
    return out


class OpenAIClient:
    """
    Chat Completions client:
    - system prompt appended as a trailing system message
    - scans `data: <json>` lines until the [DONE] sentinel
    - every choice's delta.content is appended in array order
    """

    image_delivery = "url"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        http_client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        out: Optional[TextIO] = None,
    ):
        self.config = config
        self.http = http_client or build_http_client(timeout=timeout)
        self._out = out

    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets, **kwargs) -> "OpenAIClient":
        api_key = secrets.secret("openai", "api_key")
        if not api_key:
            raise ProviderClientError("No API key for 'openai' (set OPENAI_API_KEY)")

        provider_cfg = provider_cfg or {}
        http_cfg = provider_cfg.get("http") or {}
        timeout = float(provider_cfg.get("timeout") or DEFAULT_TIMEOUT)
        http_client = kwargs.pop("http_client", None) or build_http_client(
            timeout=timeout,
            max_connections=int(http_cfg.get("max_connections", DEFAULT_MAX_CONNECTIONS)),
            keepalive_expiry=float(http_cfg.get("keepalive_expiry", DEFAULT_KEEPALIVE_EXPIRY)),
        )
        config = ProviderConfig(
            base_url=(provider_cfg.get("base_url") or DEFAULT_BASE_URL).rstrip("/"),
            api_key=api_key,
            model=model_name,
        )
        return cls(config, http_client=http_client, **kwargs)

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    def _build_payload(self, messages: List[Message], system_prompt: str) -> Dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": encode_messages(with_system_prompt(messages, system_prompt)),
            "stream": True,
        }

    def send_message(
        self,
        messages: List[Message],
        system_prompt: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Response:
        if not messages:
            raise ValueError("messages must not be empty")
        log.debug("POST /v1/chat/completions model=%s messages=%d", self.config.model, len(messages))
        return post_stream(
            self.http,
            f"{self.config.base_url.rstrip('/')}/v1/chat/completions",
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
            payload=self._build_payload(messages, system_prompt),
            timeout=timeout,
            cancel=cancel,
        )

    def read_body(self, body: Iterable[Union[str, bytes]]) -> str:
        parts: List[str] = []
        try:
            for frame in FrameScanner(body, stop=is_done):
                if frame.field != "data":
                    continue

                chunk = decode_json(frame.payload, "response")
                if not isinstance(chunk, dict):
                    raise ProviderDecodeError(f"stream chunk is not an object: {frame.payload[:200]!r}")
                err = chunk.get("error")
                if err:
                    detail = err if isinstance(err, dict) else {"message": str(err)}
                    raise ProviderAPIError(
                        str(detail.get("message") or err),
                        error_type=detail.get("type") or detail.get("code"),
                    )

                for choice in chunk.get("choices") or []:
                    delta = (choice or {}).get("delta") or {}
                    piece = delta.get("content") or ""
                    if piece:
                        self.out.write(piece)
                        self.out.flush()
                        parts.append(piece)
        finally:
            close = getattr(body, "close", None)
            if close is not None:
                close()

        self.out.write("\n")
        self.out.flush()
        return "".join(parts)

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "OpenAIClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
