from __future__ import annotations
from typing import Optional


class ProviderError(Exception):
    """Base class for provider-level failures."""


class ProviderClientError(ProviderError):
    """
    Caller/config issue: unknown model name, missing API key, invalid config.
    Raised before any network activity. The fix is to change input/config.
    """


class ProviderTransportError(ProviderError):
    """
    The request could not be sent or no response arrived: connect, DNS, TLS,
    timeouts and per-call deadlines.
    """


class ProviderCancelledError(ProviderTransportError):
    """The caller's cancel signal was observed; the body stream has been closed."""


class ProviderDecodeError(ProviderError):
    """Malformed JSON in an SSE payload or response envelope."""


class ProviderAPIError(ProviderError):
    """
    The provider reported a structured failure inside its own envelope,
    either as a non-2xx status or as an error-typed stream frame.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, error_type: Optional[str] = None):
        self.status_code = status_code
        self.error_type = error_type
        self.message = message
        prefix = []
        if status_code is not None:
            prefix.append(f"status={status_code}")
        if error_type:
            prefix.append(f"type={error_type}")
        super().__init__(f"{' '.join(prefix)} message={message}" if prefix else message)


class IngestError(Exception):
    """A document worker failed; the whole ingestion is abandoned."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"extracting text from document path={path}: {reason}")
