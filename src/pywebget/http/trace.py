"""Verbose protocol tracing.

When enabled, each request and response exchanged by a client is written to
a diagnostic stream in the familiar curl ``-v`` layout::

    > GET /api.php?action=query HTTP/1.1
    > Host: wiki.example.org
    >
    < HTTP/1.1 200 OK
    < Content-Type: application/json
    <
"""

import sys
from typing import Optional, TextIO

import httpx


class ProtocolTracer:
    """httpx event hooks writing request and response heads to a stream.

    The hooks stay installed for the lifetime of a client; toggling
    :attr:`enabled` switches the output on and off.
    """

    def __init__(self, stream: Optional[TextIO] = None, enabled: bool = False):
        self.stream = stream
        self.enabled = enabled

    def _write(self, prefix: str, line: str = "") -> None:
        stream = self.stream if self.stream is not None else sys.stderr
        stream.write(f"{prefix} {line}".rstrip() + "\n")

    def info(self, message: str) -> None:
        if self.enabled:
            self._write("*", message)

    def on_request(self, request: httpx.Request) -> None:
        if not self.enabled:
            return
        target = request.url.raw_path.decode("ascii", errors="replace")
        self._write(">", f"{request.method} {target} HTTP/1.1")
        for name, value in request.headers.items():
            self._write(">", f"{name.title()}: {value}")
        self._write(">")

    def on_response(self, response: httpx.Response) -> None:
        if not self.enabled:
            return
        self._write("<", f"{response.http_version} {response.status_code} {response.reason_phrase}")
        for name, value in response.headers.items():
            self._write("<", f"{name.title()}: {value}")
        self._write("<")

    def event_hooks(self) -> dict:
        """Return the hook mapping expected by ``httpx.Client``."""
        return {'request': [self.on_request], 'response': [self.on_response]}
