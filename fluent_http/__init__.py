"""fluent-http: a fluent builder for outbound HTTP requests."""

from fluent_http.errors import (
    BodyConsumedError,
    BodyReadError,
    DecodeError,
    FluentHttpError,
    InvalidURLError,
    RequestAlreadyExecutedError,
    ServerError,
    TransportConnectionError,
    TransportError,
    TransportTimeoutError,
)
from fluent_http.models import RequestOptions
from fluent_http.request import ExecutedRequest, Request, new_request
from fluent_http.response import Response
from fluent_http.transport import HttpxTransport, Transport

__all__ = [
    "BodyConsumedError",
    "BodyReadError",
    "DecodeError",
    "ExecutedRequest",
    "FluentHttpError",
    "HttpxTransport",
    "InvalidURLError",
    "Request",
    "RequestAlreadyExecutedError",
    "RequestOptions",
    "Response",
    "ServerError",
    "Transport",
    "TransportConnectionError",
    "TransportError",
    "TransportTimeoutError",
    "new_request",
]
