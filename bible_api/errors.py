"""Exception types shared across the request pipeline."""

from typing import Any, Optional


class BibleAPIError(Exception):
    """Base class for errors raised by the service"""


class ConfigurationError(BibleAPIError):
    """Required process configuration is missing"""


class ValidationError(BibleAPIError):
    """The request is missing required input (maps to HTTP 400)"""


class UpstreamError(BibleAPIError):
    """An external service (OpenAI or Pinecone) failed or returned garbage.

    The message is surfaced to the caller as-is; status_code and body keep
    whatever the upstream sent back for the logs.
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.service = service
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        return self.message
