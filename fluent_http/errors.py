"""Error types for fluent-http.

Three layers of failure are kept apart so callers can branch on where a
request went wrong:

    TransportError  - the network call itself failed, or still got a 5xx,
                      after retries
    BodyReadError   - a response arrived but its body could not be read
    DecodeError     - the body was read but could not be decoded

Extractors check for a TransportError before touching the body, so the later
layers never mask an earlier one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fluent_http.response import Response


class FluentHttpError(Exception):
    """Base class for fluent-http errors."""


class TransportError(FluentHttpError):
    """Raised when the transport could not complete a request.

    The underlying httpx exception is available as ``__cause__``.
    """

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class TransportTimeoutError(TransportError):
    """Raised when every attempt timed out."""


class TransportConnectionError(TransportError):
    """Raised when a connection could not be established."""


class InvalidURLError(TransportError):
    """Raised when the request URL is malformed or uses an unsupported scheme."""


class ServerError(TransportError):
    """Raised when the final attempt got a 5xx response.

    ``response`` is the last response, already closed; its status line and
    headers are readable but its body is not.
    """

    def __init__(self, message: str, response: Response, attempts: int = 1) -> None:
        super().__init__(message, attempts)
        self.response = response

    @property
    def status_code(self) -> int:
        return self.response.status_code


class BodyReadError(FluentHttpError):
    """Raised when the response body stream could not be fully read."""

    def __init__(self, message: str, response: Response | None = None) -> None:
        super().__init__(message)
        self.response = response


class BodyConsumedError(BodyReadError):
    """Raised when a response body is read a second time."""


class DecodeError(FluentHttpError):
    """Raised when a body was read but could not be decoded."""

    def __init__(self, message: str, response: Response | None = None) -> None:
        super().__init__(message)
        self.response = response


class RequestAlreadyExecutedError(FluentHttpError):
    """Raised when a verb method is called on a request that already ran."""
