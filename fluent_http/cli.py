"""CLI entry point for fluent-http.

Sends one request built from command-line arguments and prints the result.

    fluent-http GET https://example.com/items -q page=2 -H "Accept: application/json" --output json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from fluent_http.config_loader import ConfigError, load_options_file
from fluent_http.errors import BodyReadError, DecodeError, ServerError, TransportError
from fluent_http.models import DEFAULT_RETRY_COUNT, DEFAULT_TIMEOUT, RequestOptions
from fluent_http.request import ExecutedRequest, Request, new_request

METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
OUTPUT_FORMATS = ("raw", "text", "json")


def positive_float(value: str) -> float:
    """Parse and validate a positive float value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive number.
    """
    try:
        result = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'.")
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Value must be positive, got {result}.")
    return result


def non_negative_int(value: str) -> int:
    """Parse and validate an integer >= 0.

    Raises:
        argparse.ArgumentTypeError: If value is not a non-negative integer.
    """
    try:
        result = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer '{value}'.")
    if result < 0:
        raise argparse.ArgumentTypeError(f"Value must not be negative, got {result}.")
    return result


def parse_header(value: str) -> tuple[str, str]:
    """Parse NAME:VALUE format. Whitespace around the value is stripped.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if ":" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid header '{value}'. Expected NAME:VALUE (e.g., 'Accept: text/plain')"
        )
    name, header_value = value.split(":", 1)
    name = name.strip()
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid header '{value}'. Name cannot be empty.")
    return (name, header_value.strip())


def parse_key_value(value: str) -> tuple[str, str]:
    """Parse KEY=VALUE format. The value may be empty.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid parameter '{value}'. Expected KEY=VALUE (e.g., 'page=2')"
        )
    key, param_value = value.split("=", 1)
    if not key:
        raise argparse.ArgumentTypeError(f"Invalid parameter '{value}'. Key cannot be empty.")
    return (key, param_value)


@dataclass
class SendArgs:
    """Parsed arguments for sending one request."""

    method: str
    url: str
    headers: list[tuple[str, str]]
    query: dict[str, str]
    json_body: str | None
    form: dict[str, str]
    timeout: float | None
    retries: int | None
    config: Path | None
    output: str
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="fluent-http",
        description="Send an HTTP request and print the response.",
    )
    parser.add_argument(
        "method",
        type=str.upper,
        choices=METHODS,
        help="HTTP method",
    )
    parser.add_argument("url", help="Destination URL")
    parser.add_argument(
        "-H", "--header",
        type=parse_header,
        action="append",
        default=[],
        metavar="NAME:VALUE",
        help="Add a request header (can be repeated; repeats of one name are all sent)",
    )
    parser.add_argument(
        "-q", "--query",
        type=parse_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Add a query parameter (can be repeated; last value for a key wins)",
    )

    body_group = parser.add_mutually_exclusive_group()
    body_group.add_argument(
        "--json",
        dest="json_body",
        default=None,
        metavar="TEXT",
        help="Send TEXT as a JSON body (sent verbatim, sets Content-Type)",
    )
    body_group.add_argument(
        "--form",
        type=parse_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Add a form-encoded body field (can be repeated)",
    )

    parser.add_argument(
        "--timeout",
        type=positive_float,
        default=None,
        help=f"Timeout in seconds (default: {DEFAULT_TIMEOUT:g}, or the config file value)",
    )
    parser.add_argument(
        "--retries",
        type=non_negative_int,
        default=None,
        help=f"Extra attempts after a failure (default: {DEFAULT_RETRY_COUNT}, or the config file value)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML options file with timeout, retry_count and default headers",
    )
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        default="text",
        help="raw: status and headers only; text: body as text; json: pretty-printed JSON body",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log requests and retries to stderr",
    )
    return parser


def parse_send_args(namespace: argparse.Namespace) -> SendArgs:
    """Convert parsed namespace to SendArgs dataclass."""
    return SendArgs(
        method=namespace.method,
        url=namespace.url,
        headers=list(namespace.header or []),
        query=dict(namespace.query or []),
        json_body=namespace.json_body,
        form=dict(namespace.form or []),
        timeout=namespace.timeout,
        retries=namespace.retries,
        config=namespace.config,
        output=namespace.output,
        verbose=namespace.verbose,
    )


def parse_args(args: list[str] | None = None) -> SendArgs:
    """Parse command-line arguments.

    Args:
        args: Command-line arguments to parse. If None, uses sys.argv[1:].

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    return parse_send_args(parser.parse_args(args))


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        return dispatch(parse_args(args))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def dispatch(args: SendArgs) -> int:
    """Configure logging, then send the request."""
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )
    return run_send(args)


def build_request(args: SendArgs) -> Request:
    """Build a configured Request from CLI arguments.

    Command-line timeout/retries override the config file; config file
    headers are added before command-line headers.

    Raises:
        ConfigError: If the config file cannot be loaded.
    """
    default_headers: dict[str, str] = {}
    timeout = DEFAULT_TIMEOUT
    retry_count = DEFAULT_RETRY_COUNT

    if args.config is not None:
        options_file = load_options_file(args.config)
        default_headers = options_file.headers
        timeout = options_file.timeout
        retry_count = options_file.retry_count

    options = RequestOptions(
        timeout=args.timeout if args.timeout is not None else timeout,
        retry_count=args.retries if args.retries is not None else retry_count,
    )

    request = new_request(args.url, options).headers(default_headers)
    for name, value in args.headers:
        request.header(name, value)
    if args.query:
        request.query_params(args.query)
    if args.json_body is not None:
        request.body_json(args.json_body)
    elif args.form:
        request.body_form_params(args.form)
    return request


def _execute(request: Request, method: str) -> ExecutedRequest:
    verbs = {
        "GET": request.get,
        "POST": request.post,
        "PUT": request.put,
        "DELETE": request.delete,
        "PATCH": request.patch,
    }
    return verbs[method]()


def _report_transport_error(error: TransportError) -> int:
    if isinstance(error, ServerError):
        print(f"HTTP {error.status_code} {error.response.reason_phrase}", file=sys.stderr)
    print(f"Transport error: {error}", file=sys.stderr)
    return 1


def run_send(args: SendArgs) -> int:
    """Send the request and print the response.

    The status line goes to stderr so that stdout carries only the body
    (for text and json output).

    Returns:
        0 on success, 1 on config, transport (5xx included), body or decode
        failure.
    """
    try:
        request = build_request(args)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    with request:
        executed = _execute(request, args.method)

        if args.output == "raw":
            response, error = executed.raw_response()
            if error is not None:
                return _report_transport_error(error)
            print(f"{response.http_version} {response.status_code} {response.reason_phrase}")
            for name, value in response.headers.multi_items():
                print(f"{name}: {value}")
            response.close()
            return 0

        try:
            if args.output == "json":
                value, response = executed.decoded_json()
                body = json.dumps(value, indent=2, ensure_ascii=False)
            else:
                body, response = executed.decoded_string()
        except TransportError as e:
            return _report_transport_error(e)
        except BodyReadError as e:
            print(f"Error reading body: {e}", file=sys.stderr)
            return 1
        except DecodeError as e:
            status = e.response.status_code if e.response is not None else "?"
            print(f"HTTP {status}", file=sys.stderr)
            print(f"Error decoding body: {e}", file=sys.stderr)
            return 1

    print(f"HTTP {response.status_code} {response.reason_phrase}", file=sys.stderr)
    print(body)
    return 0


if __name__ == "__main__":
    sys.exit(main())
