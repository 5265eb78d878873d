# src/llmchat/core/wire.py
"""
Types that cross the process boundary: messages, content parts, and the
live response envelope handed back by a provider client.
"""
from __future__ import annotations
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Literal, Optional, Tuple, Union

import httpx

from .errors import ProviderCancelledError, ProviderDecodeError, ProviderTransportError

Role = Literal["user", "assistant", "system"]
ROLES = ("user", "assistant", "system")


@dataclass(frozen=True)
class Text:
    text: str
    type: str = field(default="text", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ImageURL:
    """OpenAI-style image reference; the provider fetches the URL itself."""
    url: str
    type: str = field(default="image_url", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "image_url": {"url": self.url}}


@dataclass(frozen=True)
class ImageInline:
    """Anthropic-style image; bytes are already fetched and base64-encoded."""
    media_type: str
    data: str
    type: str = field(default="image", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "source": {"type": "base64", "media_type": self.media_type, "data": self.data},
        }


Content = Union[Text, ImageURL, ImageInline]


def content_from_dict(d: Dict[str, Any]) -> Content:
    """Decode one content part by its 'type' discriminant."""
    if not isinstance(d, dict):
        raise ProviderDecodeError(f"content part must be an object, got {type(d).__name__}")
    kind = d.get("type")
    try:
        if kind == "text":
            return Text(text=d["text"])
        if kind == "image_url":
            return ImageURL(url=d["image_url"]["url"])
        if kind == "image":
            src = d["source"]
            return ImageInline(media_type=src["media_type"], data=src["data"])
    except (KeyError, TypeError) as e:
        raise ProviderDecodeError(f"malformed '{kind}' content part: missing {e}") from e
    raise ProviderDecodeError(f"unknown content type: {kind!r}")


@dataclass(frozen=True, init=False)
class Message:
    role: Role
    content: Tuple[Content, ...]

    def __init__(self, role: Role, content: Iterable[Content]):
        if role not in ROLES:
            raise ValueError(f"Unknown role '{role}' (expected one of {ROLES})")
        parts = tuple(content)
        if not parts:
            raise ValueError("Message content must not be empty")
        object.__setattr__(self, "role", role)
        object.__setattr__(self, "content", parts)

    @classmethod
    def text(cls, role: Role, text: str) -> "Message":
        return cls(role, [Text(text)])

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": [part.to_dict() for part in self.content]}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Message":
        return cls(d["role"], [content_from_dict(p) for p in d["content"]])


_EOF = object()
_POLL_INTERVAL = 0.05


class ResponseBody:
    """
    Live line stream over an HTTP response body.
    - iterating yields decoded lines (no trailing newline)
    - with a cancel event or deadline, lines are read on a background thread
      and the caller waits on the signals, not on the socket
    - a set cancel event or an expired deadline closes the stream at once,
      even while the server is stalled mid-line
    - close() is idempotent and releases the pooled connection
    """

    def __init__(
        self,
        response: httpx.Response,
        *,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ):
        self._response = response
        self._cancel = cancel
        self._deadline = deadline
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            self.close()
            raise ProviderCancelledError("request cancelled by caller")
        if self._deadline is not None and time.monotonic() > self._deadline:
            self.close()
            raise ProviderTransportError("deadline exceeded while reading response body")

    def _wait_interval(self) -> float:
        if self._deadline is None:
            return _POLL_INTERVAL
        return max(0.0, min(_POLL_INTERVAL, self._deadline - time.monotonic()))

    def _pump(self, q: "queue.Queue[Any]") -> None:
        try:
            for line in self._response.iter_lines():
                if self._closed:
                    return
                q.put(line)
        except Exception as e:  # handed to the reading thread
            q.put(e)
        finally:
            q.put(_EOF)

    def _watched_lines(self) -> Iterator[str]:
        q: "queue.Queue[Any]" = queue.Queue()
        threading.Thread(target=self._pump, args=(q,), name="llmchat-body-reader", daemon=True).start()
        while True:
            self._check()
            try:
                item = q.get(timeout=self._wait_interval())
            except queue.Empty:
                continue
            if item is _EOF:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def __iter__(self) -> Iterator[str]:
        self._check()
        watched = self._cancel is not None or self._deadline is not None
        lines = self._watched_lines() if watched else self._response.iter_lines()
        try:
            for line in lines:
                yield line
                self._check()
        except httpx.TransportError as e:
            raise ProviderTransportError(f"reading response body: {e}") from e
        finally:
            self.close()

    def read_text(self) -> str:
        try:
            self._response.read()
            return self._response.text
        except httpx.TransportError as e:
            raise ProviderTransportError(f"reading response body: {e}") from e
        finally:
            self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._response.close()


@dataclass
class Response:
    status_code: int
    body: ResponseBody

    def close(self) -> None:
        self.body.close()

    def __enter__(self) -> "Response":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def encode_messages(messages: List[Message]) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in messages]
