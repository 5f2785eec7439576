"""Request builder - Fluent configuration, verb dispatch and extraction.

A request moves through three phases:

    Request (configuring) --get()/post()/...--> ExecutedRequest --extractor--> result

Configuration calls return the Request itself for chaining. A verb call runs
the request once and returns an ExecutedRequest, which is the only object
that exposes extractors. A Request is meant for a single owner and a single
thread; it is not safe to share.

A Request that created its own HttpxTransport closes it as soon as the
outcome is released: when the transport fails, when an extractor has read the
body, or when the raw response is closed. A with block is only needed for an
injected transport or a response that is never read.

Usage:
    text, response = (
        new_request("https://example.com/search", RequestOptions(timeout=5.0))
        .header("Accept", "text/plain")
        .query_params({"q": "widgets", "page": 2})
        .get()
        .decoded_string()
    )
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError

from fluent_http.errors import (
    DecodeError,
    FluentHttpError,
    RequestAlreadyExecutedError,
    TransportError,
)
from fluent_http.models import RequestConfig, RequestOptions
from fluent_http.response import Response
from fluent_http.transport import HttpxTransport, Transport
from fluent_http.url import compose_url, encode_values, to_query_string

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

# Methods that never carry a request body, even if one was configured.
_BODYLESS_METHODS = frozenset({"GET", "DELETE"})


def new_request(
    url: str,
    options: RequestOptions | None = None,
    *,
    transport: Transport | None = None,
) -> Request:
    """Create a Request bound to one destination URL.

    Args:
        url: Destination URL. Not validated until the request executes.
        options: Timeout and retry count for the default transport.
                 Defaults apply when None.
        transport: Use this transport instead of creating an HttpxTransport.
                   options is ignored when a transport is given.
    """
    return Request(url, options, transport=transport)


class Request:
    """Fluent builder accumulating the configuration of one HTTP request."""

    def __init__(
        self,
        url: str,
        options: RequestOptions | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        self._config = RequestConfig(base_url=url)
        # A transport created here is closed once the outcome is released
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport(options)
        self._executed = False

    def __enter__(self) -> Request:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the transport and its connection pool."""
        self._transport.close()

    @property
    def url(self) -> str:
        return self._config.base_url

    @property
    def config(self) -> RequestConfig:
        """A copy of the accumulated configuration."""
        return self._config.model_copy(deep=True)

    @property
    def executed(self) -> bool:
        return self._executed

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def header(self, name: str, value: str) -> Request:
        """Add a header value. Existing values for the same name are kept."""
        self._config.add_header(name, value)
        return self

    def headers(self, headers: Mapping[str, str]) -> Request:
        """Add one value per entry, as header() would."""
        for name, value in headers.items():
            self._config.add_header(name, value)
        return self

    def query_params(self, params: Mapping[str, Any]) -> Request:
        """Replace the query parameters.

        Values are coerced with to_query_string: numbers, booleans and strings
        convert naturally, structured values become "".
        """
        self._config.query_params = {str(k): to_query_string(v) for k, v in params.items()}
        return self

    def body_form_params(self, params: Mapping[str, Any]) -> Request:
        """Set a form-encoded body, replacing any previous body.

        Content-Type is left unset.
        """
        self._config.body = encode_values(params).encode("ascii")
        return self

    def body_json(self, text: str) -> Request:
        """Set the body to text verbatim and add Content-Type: application/json.

        The text is not validated.
        """
        self._config.body = text.encode("utf-8")
        self._config.add_header("Content-Type", JSON_CONTENT_TYPE)
        return self

    # -------------------------------------------------------------------------
    # Verb dispatch
    # -------------------------------------------------------------------------

    def get(self) -> ExecutedRequest:
        return self._execute("GET")

    def post(self) -> ExecutedRequest:
        return self._execute("POST")

    def put(self) -> ExecutedRequest:
        return self._execute("PUT")

    def delete(self) -> ExecutedRequest:
        return self._execute("DELETE")

    def patch(self) -> ExecutedRequest:
        return self._execute("PATCH")

    def _execute(self, method: str) -> ExecutedRequest:
        """Run the request once and capture the outcome.

        Transport failures are captured, not raised; they surface when an
        extractor is called.

        Raises:
            RequestAlreadyExecutedError: If this request already ran.
        """
        if self._executed:
            raise RequestAlreadyExecutedError(
                f"Request to {self._config.base_url} has already been executed"
            )
        self._executed = True

        url = compose_url(self._config.base_url, self._config.query_params)
        body = None if method in _BODYLESS_METHODS else self._config.body

        try:
            response = self._transport.do(method, url, self._config.headers, body)
        except TransportError as e:
            logger.debug("%s %s failed: %s", method, url, e)
            if self._owns_transport:
                self.close()
            return ExecutedRequest(method, url, None, e)

        if self._owns_transport:
            response.call_on_close(self.close)
        return ExecutedRequest(method, url, response, None)


class ExecutedRequest:
    """The outcome of one executed Request.

    Exactly one of response and error is set. decoded_string() and
    decoded_json() consume the response body, so only one of them can
    succeed; a second call raises BodyConsumedError.
    """

    def __init__(
        self,
        method: str,
        url: str,
        response: Response | None,
        error: TransportError | None,
    ) -> None:
        self.method = method
        self.url = url
        self._response = response
        self._error = error

    def __repr__(self) -> str:
        outcome = repr(self._response) if self._error is None else type(self._error).__name__
        return f"<ExecutedRequest {self.method} {self.url} {outcome}>"

    @property
    def ok(self) -> bool:
        """True if the transport returned a response (of any status)."""
        return self._error is None

    def raw_response(self) -> tuple[Response | None, TransportError | None]:
        """Return the captured (response, error) pair without reading the body."""
        return self._response, self._error

    def decoded_string(self) -> tuple[str, Response]:
        """Read the body as text.

        Returns:
            Tuple of (body, response).

        Raises:
            TransportError: The captured transport failure, if any.
            BodyReadError: If the body could not be read.
        """
        response = self._require_response()
        return response.text(), response

    def decoded_json(self, target: Any = None) -> tuple[Any, Response]:
        """Read the body and decode it as JSON.

        Args:
            target: Optional type to validate the decoded value into, such as
                    a pydantic model or list[int]. Without it the plain JSON
                    value (dict, list, str, ...) is returned.

        Returns:
            Tuple of (value, response).

        Raises:
            TransportError: The captured transport failure, if any.
            BodyReadError: If the body could not be read.
            DecodeError: If the body is not valid JSON or does not fit target.
        """
        response = self._require_response()
        content = response.read()

        try:
            value = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            raise DecodeError(f"Invalid JSON in response body: {e}", response=response) from e

        if target is None:
            return value, response
        try:
            return TypeAdapter(target).validate_python(value), response
        except ValidationError as e:
            raise DecodeError(
                f"Response body does not match {getattr(target, '__name__', target)}: {e}",
                response=response,
            ) from e

    def _require_response(self) -> Response:
        if self._error is not None:
            raise self._error
        if self._response is None:
            raise FluentHttpError(
                f"{self.method} {self.url} captured neither a response nor an error"
            )
        return self._response
