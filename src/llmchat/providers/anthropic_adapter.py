# src/llmchat/providers/anthropic_adapter.py
from __future__ import annotations
import logging
import sys
import threading
from typing import Any, Dict, Iterable, List, Optional, TextIO, Union

import httpx

from llmchat.core.errors import ProviderAPIError, ProviderClientError, ProviderDecodeError
from llmchat.core.ports import ProviderConfig
from llmchat.core.sse import Frame, FrameScanner, decode_json
from llmchat.core.wire import Message, Response, encode_messages
from llmchat.providers.http import (
    DEFAULT_KEEPALIVE_EXPIRY,
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_TIMEOUT,
    build_http_client,
    post_stream,
)

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 2048


def is_error_frame(line: str) -> bool:
    """
    Anthropic sometimes emits error objects outside the field:payload
    convention, so the raw line is checked before any split.
    """
    return '"error"' in line


def _error_object(frame: Frame) -> Optional[Dict[str, Any]]:
    """
    The error object carried by a candidate frame, or None when the frame is
    ordinary data that merely mentions "error" (e.g. a delta with that text).
    """
    text = frame.raw.lstrip()
    if not text.startswith("{") and frame.field is not None:
        text = frame.payload
    obj = decode_json(text, "error frame")
    if not isinstance(obj, dict):
        raise ProviderDecodeError(f"error frame is not an object: {frame.raw[:200]!r}")
    if obj.get("type") == "error" or isinstance(obj.get("error"), dict):
        return obj
    return None


class AnthropicClient:
    """
    Messages API client.
    - one pooled httpx.Client per instance, reused across turns
    - streams SSE; answer text comes only from content_block_delta frames
    - error frames raise ProviderAPIError and stop the scan
    """

    image_delivery = "inline"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        http_client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        out: Optional[TextIO] = None,
    ):
        self.config = config
        self.max_tokens = int(max_tokens)
        self.http = http_client or build_http_client(timeout=timeout)
        self._out = out

    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets, **kwargs) -> "AnthropicClient":
        api_key = secrets.secret("anthropic", "api_key")
        if not api_key:
            raise ProviderClientError("No API key for 'anthropic' (set ANTHROPIC_API_KEY)")

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
        return cls(
            config,
            max_tokens=provider_cfg.get("max_tokens") or DEFAULT_MAX_TOKENS,
            http_client=http_client,
            **kwargs,
        )

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    def _build_payload(self, messages: List[Message], system_prompt: str) -> Dict[str, Any]:
        return {
            "model": self.config.model,
            "max_tokens": self.max_tokens,
            "system": system_prompt,
            "messages": encode_messages(messages),
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
        log.debug("POST /v1/messages model=%s messages=%d", self.config.model, len(messages))
        return post_stream(
            self.http,
            f"{self.config.base_url.rstrip('/')}/v1/messages",
            headers={
                "x-api-key": self.config.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Accept": "text/event-stream",
            },
            payload=self._build_payload(messages, system_prompt),
            timeout=timeout,
            cancel=cancel,
        )

    def read_body(self, body: Iterable[Union[str, bytes]]) -> str:
        parts: List[str] = []
        try:
            for frame in FrameScanner(body):
                err = _error_object(frame) if is_error_frame(frame.raw) else None
                if err is not None:
                    detail = err.get("error")
                    if not isinstance(detail, dict):
                        detail = {"message": detail}
                    log.error("error from Anthropic API: type=%s message=%s",
                              detail.get("type"), detail.get("message"))
                    raise ProviderAPIError(
                        str(detail.get("message") or frame.raw),
                        error_type=detail.get("type"),
                    )
                if frame.field != "data":
                    # event lines and bare lines carry no answer text
                    continue

                data = decode_json(frame.payload)
                if not isinstance(data, dict) or data.get("type") != "content_block_delta":
                    continue
                delta = data.get("delta")
                if not isinstance(delta, dict):
                    raise ProviderDecodeError(f"content_block_delta without delta object: {frame.payload[:200]!r}")
                piece = delta.get("text") or ""
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

    def __enter__(self) -> "AnthropicClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
