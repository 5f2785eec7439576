"""Response - A captured HTTP response with a single-use body."""

from __future__ import annotations

from typing import Callable

import httpx

from fluent_http.errors import BodyConsumedError, BodyReadError


class Response:
    """A response returned by a Transport.

    Status and headers are available immediately. The body is still a stream
    when the response is handed back, and read() may succeed only once: the
    stream is closed after the first read and later reads raise
    BodyConsumedError.
    """

    def __init__(self, http_response: httpx.Response, elapsed_ms: float = 0.0) -> None:
        self._response = http_response
        self._consumed = False
        self._on_close: list[Callable[[], None]] = []
        self.elapsed_ms = elapsed_ms

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}]>"

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def reason_phrase(self) -> str:
        return self._response.reason_phrase

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def url(self) -> str:
        return str(self._response.url)

    @property
    def http_version(self) -> str:
        return self._response.http_version

    @property
    def raw(self) -> httpx.Response:
        """The underlying httpx response."""
        return self._response

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def is_closed(self) -> bool:
        return self._response.is_closed

    def call_on_close(self, callback: Callable[[], None]) -> None:
        """Run callback once, when the body has been read or the response closed."""
        self._on_close.append(callback)

    def read(self) -> bytes:
        """Read the whole body and close the stream.

        Raises:
            BodyConsumedError: If the body was already read.
            BodyReadError: If the stream failed mid-read.
        """
        if self._consumed:
            raise BodyConsumedError("Response body has already been read", response=self)
        self._consumed = True
        try:
            return self._response.read()
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise BodyReadError(f"Failed to read response body: {e}", response=self) from e
        finally:
            self.close()

    def text(self) -> str:
        """Read the body and decode it using the response charset (UTF-8 if absent)."""
        self.read()
        return self._response.text

    def close(self) -> None:
        """Release the connection without reading the body."""
        self._response.close()
        while self._on_close:
            self._on_close.pop(0)()
