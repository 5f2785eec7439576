"""Transport - Performs the network call under a timeout and retry policy.

The builder only talks to the Transport protocol. HttpxTransport is the
default implementation: httpx handles the wire, pooling and TLS, and tenacity
drives the retry loop.

Retry policy:
    - retried: httpx transport errors (timeouts, connection failures, protocol
      errors) and 5xx responses
    - not retried: unsupported URL schemes, 1xx-4xx responses
    - no backoff between attempts
    - when the final attempt returned 5xx, ServerError is raised with the
      last (closed) response attached
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    retry_if_result,
    stop_after_attempt,
)

from fluent_http.errors import (
    InvalidURLError,
    ServerError,
    TransportConnectionError,
    TransportError,
    TransportTimeoutError,
)
from fluent_http.models import RequestOptions
from fluent_http.response import Response

logger = logging.getLogger(__name__)

_log_retry = before_sleep_log(logger, logging.DEBUG)


class Transport(Protocol):
    """Capability the request builder needs from a transport."""

    def do(
        self,
        method: str,
        url: str,
        headers: Mapping[str, Sequence[str]],
        body: bytes | None = None,
    ) -> Response:
        """Send one logical request, retrying internally as configured.

        Raises:
            TransportError: If no response could be obtained.
        """
        ...

    def close(self) -> None:
        ...


def _is_server_error(response: httpx.Response) -> bool:
    return response.status_code >= 500


class HttpxTransport:
    """Transport backed by an httpx.Client.

    Usage:
        with HttpxTransport(RequestOptions(timeout=5.0, retry_count=2)) as transport:
            response = transport.do("GET", "https://example.com", {})
    """

    def __init__(
        self,
        options: RequestOptions | None = None,
        *,
        mounted: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            options: Timeout and retry count. Defaults apply when None.
            mounted: Optional httpx transport for the client (for example
                     httpx.MockTransport in tests).
        """
        self._options = options or RequestOptions()
        client_kwargs: dict[str, Any] = {
            "timeout": self._options.timeout,
            "follow_redirects": True,
        }
        if mounted is not None:
            client_kwargs["transport"] = mounted
        self._client = httpx.Client(**client_kwargs)

    @property
    def options(self) -> RequestOptions:
        return self._options

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def do(
        self,
        method: str,
        url: str,
        headers: Mapping[str, Sequence[str]],
        body: bytes | None = None,
    ) -> Response:
        """Send a request, retrying up to options.retry_count extra times.

        Args:
            method: HTTP method.
            url: Fully composed URL, query string included.
            headers: Header name -> values; repeated values are sent as
                     repeated header lines.
            body: Request body, or None to send none.

        Returns:
            Response whose body has not been read yet.

        Raises:
            InvalidURLError: If the URL is malformed or its scheme unsupported.
            TransportTimeoutError: If the final attempt timed out.
            TransportConnectionError: If the final attempt could not connect.
            ServerError: If the final attempt got a 5xx response.
            TransportError: For any other transport failure.
        """
        header_items = [(name, value) for name, values in headers.items() for value in values]

        try:
            request = self._client.build_request(
                method, url, headers=header_items, content=body
            )
        except httpx.InvalidURL as e:
            raise InvalidURLError(f"Invalid URL '{url}': {e}") from e
        except UnicodeEncodeError as e:
            # httpx encodes header values as ASCII
            raise TransportError(
                f"Encoding error: non-ASCII character {e.object[e.start:e.end]!r} in request headers"
            ) from e

        retrying = Retrying(
            stop=stop_after_attempt(self._options.retry_count + 1),
            retry=(
                (
                    retry_if_exception_type(httpx.TransportError)
                    & retry_if_not_exception_type(httpx.UnsupportedProtocol)
                )
                | retry_if_result(_is_server_error)
            ),
            before_sleep=self._before_retry,
            retry_error_callback=_last_outcome,
        )

        logger.debug("Sending %s %s", method, url)
        start_time = time.perf_counter()
        attempts = 0

        def send() -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return self._client.send(request, stream=True)

        try:
            http_response = retrying(send)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(
                f"{method} {url} timed out after {attempts} attempt(s): {e}", attempts
            ) from e
        except httpx.ConnectError as e:
            raise TransportConnectionError(
                f"{method} {url} connection error after {attempts} attempt(s): {e}", attempts
            ) from e
        except httpx.UnsupportedProtocol as e:
            raise InvalidURLError(f"Invalid URL '{url}': {e}", attempts) from e
        except httpx.RequestError as e:
            raise TransportError(
                f"{method} {url} request error after {attempts} attempt(s): {e}", attempts
            ) from e

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "%s %s -> %d after %d attempt(s) in %.1fms",
            method, url, http_response.status_code, attempts, elapsed_ms,
        )
        response = Response(http_response, elapsed_ms)

        if _is_server_error(http_response):
            response.close()
            raise ServerError(
                f"{method} {url} server error: {http_response.status_code} "
                f"after {attempts} attempt(s)",
                response,
                attempts,
            )
        return response

    @staticmethod
    def _before_retry(retry_state: RetryCallState) -> None:
        """Release a discarded 5xx response before the next attempt."""
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            outcome.result().close()
        _log_retry(retry_state)


def _last_outcome(retry_state: RetryCallState) -> httpx.Response:
    """Return the final response (5xx included), or re-raise the final exception."""
    return retry_state.outcome.result()
