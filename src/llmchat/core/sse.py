# src/llmchat/core/sse.py
"""
Line-oriented server-sent-event scanning shared by the provider clients.

Frames are `<field>:<payload>` lines. Blank lines are keepalives and never
surface. A line without a colon still surfaces (with field=None) because
some providers emit bare JSON objects outside the field convention; each
client decides what to do with those.
"""
from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional, Union

from .errors import ProviderDecodeError

DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class Frame:
    raw: str
    field: Optional[str]
    payload: str


def parse_frame(line: str) -> Frame:
    """Split on the first colon only; payload JSON may itself contain colons."""
    field, sep, payload = line.partition(":")
    if not sep:
        return Frame(raw=line, field=None, payload="")
    # SSE strips exactly one leading space from the value
    if payload.startswith(" "):
        payload = payload[1:]
    return Frame(raw=line, field=field.strip(), payload=payload)


def never(_frame: Frame) -> bool:
    return False


def is_done(frame: Frame) -> bool:
    """OpenAI-style terminator: a data payload carrying the [DONE] sentinel."""
    return frame.field == "data" and DONE_SENTINEL in frame.payload


class FrameScanner:
    """
    Blocking iterator over the frames of a line stream.
    Iteration stops at stream exhaustion or at the first frame for which
    `stop(frame)` is true; the terminating frame is not yielded.
    """

    def __init__(self, lines: Iterable[Union[str, bytes]], stop: Callable[[Frame], bool] = never):
        self._lines = iter(lines)
        self._stop = stop
        self.terminated = False   # True when stopped by the predicate, not by exhaustion
        self._exhausted = False

    def __iter__(self) -> Iterator[Frame]:
        return self

    def __next__(self) -> Frame:
        if self._exhausted:
            raise StopIteration
        for line in self._lines:
            if isinstance(line, bytes):
                line = line.decode("utf-8")
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            frame = parse_frame(line)
            if self._stop(frame):
                self.terminated = True
                self._exhausted = True
                raise StopIteration
            return frame
        self._exhausted = True
        raise StopIteration


def decode_json(payload: str, what: str = "payload") -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProviderDecodeError(f"unmarshaling {what} from API: {e}: {payload[:200]!r}") from e
