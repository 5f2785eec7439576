"""Pytest configuration and fixtures for fluent-http tests.

This file provides:
- RecordingTransport: In-memory Transport that records calls
- PortReservation: Race-free port allocation for test servers
- EchoServer: Subprocess management for the echo API server
- Fixtures: Shared test infrastructure
"""

from __future__ import annotations

import socket
import subprocess
import sys
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest

from fluent_http.models import RequestOptions
from fluent_http.response import Response
from fluent_http.transport import HttpxTransport

# Project root for subprocess cwd
PROJECT_ROOT = Path(__file__).parent.parent
ECHO_SERVER_MODULE = "tests.integration.echo_server"


def make_response(
    status_code: int = 200,
    content: bytes = b"",
    headers: dict[str, str] | None = None,
    method: str = "GET",
    url: str = "http://testserver/",
) -> Response:
    """Create a Response for tests that do not need a transport.

    The httpx request is attached so that Response.url works.
    """
    http_response = httpx.Response(
        status_code,
        content=content,
        headers=headers,
        request=httpx.Request(method, url),
    )
    return Response(http_response)


@dataclass
class RecordedCall:
    """One call made to RecordingTransport.do."""

    method: str
    url: str
    headers: dict[str, list[str]]
    body: bytes | None


class RecordingTransport:
    """Transport that records calls and replies with a canned response or error.

    Prefer this over HttpxTransport in builder tests - it shows exactly what
    the builder handed to the transport.
    """

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.response_headers = headers
        self.error = error
        self.calls: list[RecordedCall] = []
        self.closed = False

    def do(
        self,
        method: str,
        url: str,
        headers: Mapping[str, Sequence[str]],
        body: bytes | None = None,
    ) -> Response:
        self.calls.append(RecordedCall(
            method=method,
            url=url,
            headers={name: list(values) for name, values in headers.items()},
            body=body,
        ))
        if self.error is not None:
            raise self.error
        return make_response(
            self.status_code, self.content, self.response_headers, method=method, url=url
        )

    def close(self) -> None:
        self.closed = True

    @property
    def last_call(self) -> RecordedCall:
        assert self.calls, "transport was never called"
        return self.calls[-1]


def make_mock_transport(
    handler: Callable[[httpx.Request], httpx.Response],
    timeout: float = 5.0,
    retry_count: int = 0,
) -> HttpxTransport:
    """Create an HttpxTransport whose client is served by handler in-process."""
    return HttpxTransport(
        RequestOptions(timeout=timeout, retry_count=retry_count),
        mounted=httpx.MockTransport(handler),
    )


class PortReservation:
    """A localhost port held open until the echo server is ready to bind it."""

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))
        self.port: int = self._socket.getsockname()[1]

    def release(self) -> int:
        self._socket.close()
        return self.port

    def __enter__(self) -> PortReservation:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()


def find_free_port() -> int:
    """A port nothing listens on, for connection-refused tests."""
    with PortReservation() as reservation:
        return reservation.port


def wait_for_server_ready(host: str, port: int, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            socket.create_connection((host, port), timeout=1.0).close()
        except OSError:
            time.sleep(0.1)
        else:
            return True
    return False


class EchoServer:
    """Manages the echo server subprocess for integration tests.

    Runs tests/integration/echo_server.py as a subprocess.
    """

    def __init__(self, port: int | PortReservation) -> None:
        if isinstance(port, PortReservation):
            self._reservation = port
            self.port = port.port
        else:
            self._reservation = None
            self.port = port
        self.host = "127.0.0.1"
        self.base_url = f"http://{self.host}:{self.port}"
        self._process: subprocess.Popen | None = None

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def start(self) -> None:
        """Start the echo server subprocess.

        Raises:
            RuntimeError: If server fails to start within 10 seconds.
        """
        if self._reservation:
            self._reservation.release()

        self._process = subprocess.Popen(
            [
                sys.executable, "-m", ECHO_SERVER_MODULE,
                "--host", self.host,
                "--port", str(self.port),
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=PROJECT_ROOT,
        )

        if not wait_for_server_ready(self.host, self.port):
            stderr = ""
            if self._process and self._process.stderr:
                stderr = self._process.stderr.read().decode(errors="replace")
            self.stop()
            raise RuntimeError(
                f"EchoServer failed to start on port {self.port}. "
                f"stderr: {stderr or '(empty)'}"
            )

    def stop(self) -> None:
        """Stop the server subprocess: SIGTERM, then SIGKILL after 5s.

        Safe to call multiple times or if server was never started.
        """
        if self._process:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait(timeout=5)
            self._process = None

    def __enter__(self) -> EchoServer:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def recording_transport() -> RecordingTransport:
    """A RecordingTransport replying 200 with an empty body."""
    return RecordingTransport()


@pytest.fixture(scope="session")
def echo_server() -> Generator[EchoServer, None, None]:
    """Start the echo server once per test session."""
    with EchoServer(PortReservation()) as server:
        yield server


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Automatically apply markers based on test location.

    Enables running subsets via:
        pytest -m integration  # only integration tests
        pytest -m unit         # only unit tests
    """
    for item in items:
        test_path = Path(item.fspath)
        if "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
