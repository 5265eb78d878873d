# src/llmchat/providers/http.py
from __future__ import annotations
import json
import logging
import threading
import time
from typing import Any, Dict, Optional

import httpx

from llmchat.core.errors import ProviderAPIError, ProviderTransportError
from llmchat.core.wire import Response, ResponseBody

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0
DEFAULT_MAX_CONNECTIONS = 10
DEFAULT_KEEPALIVE_EXPIRY = 60.0


def build_http_client(
    *,
    timeout: float = DEFAULT_TIMEOUT,
    max_connections: int = DEFAULT_MAX_CONNECTIONS,
    keepalive_expiry: float = DEFAULT_KEEPALIVE_EXPIRY,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """
    One long-lived pooled client per provider instance.
    """
    limits = httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=max_connections,
        keepalive_expiry=keepalive_expiry,
    )
    kwargs: Dict[str, Any] = {"timeout": httpx.Timeout(timeout), "limits": limits}
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.Client(**kwargs)


def _classify_transport_exception(exc: httpx.HTTPError) -> ProviderTransportError:
    if isinstance(exc, httpx.TimeoutException):
        return ProviderTransportError(f"request timed out: {exc}")
    return ProviderTransportError(f"sending POST request: {exc}")


def _api_error_from_body(status_code: int, text: str) -> ProviderAPIError:
    """
    Both providers wrap failures as {"error": {"type": ..., "message": ...}}.
    Anthropic adds a top-level "type": "error"; OpenAI does not.
    """
    error_type = None
    message = text.strip() or f"HTTP {status_code}"
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        err = data["error"]
        error_type = err.get("type") or err.get("code")
        message = err.get("message") or message
    return ProviderAPIError(message, status_code=status_code, error_type=error_type)


def post_stream(
    client: httpx.Client,
    url: str,
    *,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> Response:
    """
    POST and return once headers arrive, leaving the body as a live stream.
    A non-2xx status consumes and closes the body, then raises ProviderAPIError.

    httpx timeouts apply per phase (connect, read, write, pool). The overall
    limit, per-call `timeout` or else the client default, is a deadline on the
    whole body so a stream that keeps trickling lines still ends.
    """
    request = client.build_request(
        "POST",
        url,
        headers=headers,
        json=payload,
        timeout=httpx.Timeout(timeout) if timeout is not None else httpx.USE_CLIENT_DEFAULT,
    )
    overall = timeout if timeout is not None else client.timeout.read
    deadline = time.monotonic() + overall if overall is not None else None
    try:
        rsp = client.send(request, stream=True)
    except httpx.HTTPError as e:
        raise _classify_transport_exception(e) from e

    body = ResponseBody(rsp, cancel=cancel, deadline=deadline)
    if not rsp.is_success:
        err = _api_error_from_body(rsp.status_code, body.read_text())
        log.warning("API error from %s: %s", url, err)
        raise err
    return Response(status_code=rsp.status_code, body=body)
