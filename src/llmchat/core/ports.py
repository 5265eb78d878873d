from __future__ import annotations
import threading
from dataclasses import dataclass
from typing import Iterable, List, Literal, Optional, Protocol, Union

from .wire import Message, Response

ImageDelivery = Literal["url", "inline"]


@dataclass(frozen=True)
class ProviderConfig:
    base_url: str
    api_key: str
    model: str


class ProviderClient(Protocol):
    """
    Interface the core uses to talk to any chat-completion backend.
    Callers pick an implementation through the ClientFactory only.
    """

    # How this provider wants images: a bare URL or inline base64 bytes
    image_delivery: ImageDelivery

    @property
    def model(self) -> str:
        """Provider-specific model identifier."""
        ...

    def send_message(
        self,
        messages: List[Message],
        system_prompt: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Response:
        """
        Issue one streaming POST and return as soon as headers arrive.
        The caller owns the returned body and must drain or close it.
        """
        ...

    def read_body(self, body: Iterable[Union[str, bytes]]) -> str:
        """
        Decode the stream to completion, echoing each text increment to the
        output sink. Returns the full answer text.
        """
        ...

    def close(self) -> None:
        ...
