"""
Pytest configuration and shared fixtures for pywebget tests.

Most HTTP traffic goes through ``httpx.MockTransport``. Tests of the real
transport talk to a loopback server from ``local_server``; no test touches
the network.
"""

import socket
import threading
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

from pywebget.config import Config
from pywebget.http.client import HttpClient


@pytest.fixture
def jar_path(tmp_path: Path) -> Path:
    """Cookie jar location inside the test's temporary directory."""
    return tmp_path / "jar.txt"


@pytest.fixture
def requests_seen() -> List[httpx.Request]:
    """Collects every request handled by a recording transport."""
    return []


@pytest.fixture
def make_client(requests_seen) -> Callable[..., HttpClient]:
    """Factory creating clients wired to a mock handler.

    Usage:
        client = make_client(handler, cookie_file=..., config=...)
    """
    created = []

    def _make(handler, cookie_file=None, config=None) -> HttpClient:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        client = HttpClient.create(
            cookie_file,
            config=config or Config(),
            transport=httpx.MockTransport(recording_handler),
        )
        created.append(client)
        return client

    yield _make

    for client in created:
        client.close()


@pytest.fixture(autouse=True)
def no_env_cookie_jar(monkeypatch):
    """Keep a developer's PYWEBGET_COOKIE_JAR out of the tests."""
    monkeypatch.delenv("PYWEBGET_COOKIE_JAR", raising=False)


@pytest.fixture
def ok_handler():
    """Factory for handlers that always answer with the same response."""

    def _build(body: bytes = b"hello", status: int = 200, headers=None):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, content=body, headers=headers)

        return handler

    return _build


PROXY_VARIABLES = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy")


def _read_request_head(conn: socket.socket) -> bytes:
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = conn.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


@pytest.fixture
def local_server(monkeypatch):
    """Factory starting a single-connection HTTP server on 127.0.0.1.

    The ``respond`` callable receives the accepted socket once the request
    head has been read and writes the raw response itself.

    Usage:
        port = local_server(respond)
    """
    # A proxy from the environment would bypass the loopback server
    for name in PROXY_VARIABLES:
        monkeypatch.delenv(name, raising=False)

    started = []

    def _start(respond: Callable[[socket.socket], None]) -> int:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        listener.settimeout(10)

        def serve():
            try:
                conn, _ = listener.accept()
            except OSError:
                return
            with conn:
                try:
                    _read_request_head(conn)
                    respond(conn)
                except OSError:
                    # Client hung up mid-response
                    pass

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        started.append((listener, thread))
        return listener.getsockname()[1]

    yield _start

    for listener, thread in started:
        listener.close()
        thread.join(timeout=5)
