from __future__ import annotations
from typing import List

from .wire import Message


class ChatHistory:
    """
    Append-only, in-memory transcript.
    - never persisted; discarded with the session
    - user/assistant alternation is expected but not enforced
    """

    def __init__(self) -> None:
        self._messages: List[Message] = []

    @property
    def messages(self) -> List[Message]:
        # Return a shallow copy to avoid accidental mutation
        return list(self._messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def __len__(self) -> int:
        return len(self._messages)
