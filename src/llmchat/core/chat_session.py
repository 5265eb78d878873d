from __future__ import annotations
import logging
from typing import Callable, List, Optional, Sequence, Union

from .history import ChatHistory
from .ports import ProviderClient
from .wire import Content, Message, Text

log = logging.getLogger(__name__)

UserContent = Union[str, Sequence[Content]]


def _user_message(content: UserContent) -> Message:
    if isinstance(content, str):
        return Message("user", [Text(content)])
    return Message("user", content)


class ChatSession:
    """
    Drives strictly sequential turns over one growing transcript.
    The same system prompt is sent on every turn.
    """

    def __init__(self, client: ProviderClient, system_prompt: str = "", history: Optional[ChatHistory] = None):
        self.client = client
        self.system_prompt = system_prompt
        self.history = history if history is not None else ChatHistory()

    def _outgoing_messages(self, user_msg: Message) -> List[Message]:
        return self.history.messages + [user_msg]

    def run_turn(self, user_content: UserContent) -> str:
        user_msg = _user_message(user_content)
        response = self.client.send_message(self._outgoing_messages(user_msg), self.system_prompt)
        with response:
            answer = self.client.read_body(response.body)

        # Commit only after a full answer; a failed turn leaves history untouched
        self.history.append(user_msg)
        self.history.append(Message.text("assistant", answer))
        return answer

    def run(self, read_line: Callable[[], str] = input, first_turn: Optional[UserContent] = None) -> None:
        """
        Loop until the line source is exhausted. Errors from a turn propagate
        and end the session.
        """
        log.info("beginning chat session with model=%s", self.client.model)
        if first_turn:
            self.run_turn(first_turn)

        while True:
            try:
                line = read_line()
            except (EOFError, KeyboardInterrupt):
                log.info("chat session ended after %d messages", len(self.history))
                return
            if not line.strip():
                continue
            self.run_turn(line)
