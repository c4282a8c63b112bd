"""httpx transport enforcing a deadline on the whole transfer.

httpx timeouts apply to each connect, read and write on its own, so a peer
trickling bytes just fast enough never trips them. :class:`DeadlineBackend`
sits under httpcore's connection pool and caps every blocking socket
operation at the time left until the transfer deadline, which bounds
connect, request, response headers and body together.
"""

import time
from typing import Iterable, Optional

import httpcore
import httpx


class DeadlineBackend(httpcore.NetworkBackend):
    """Network backend whose socket operations stop at :attr:`deadline`.

    Attributes:
        deadline: ``time.monotonic()`` value after which operations time out,
            or None for no overall limit
    """

    def __init__(self, backend: Optional[httpcore.NetworkBackend] = None):
        self._backend = backend or httpcore.SyncBackend()
        self.deadline: Optional[float] = None

    def limit(self, timeout: Optional[float], exc_class: type) -> Optional[float]:
        """Shrink ``timeout`` to the time remaining before the deadline.

        Raises:
            exc_class: If the deadline has already passed
        """
        if self.deadline is None:
            return timeout
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise exc_class("Transfer deadline exceeded")
        return remaining if timeout is None else min(timeout, remaining)

    def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options: Optional[Iterable] = None,
    ) -> httpcore.NetworkStream:
        stream = self._backend.connect_tcp(
            host,
            port,
            timeout=self.limit(timeout, httpcore.ConnectTimeout),
            local_address=local_address,
            socket_options=socket_options,
        )
        return DeadlineStream(stream, self)

    def connect_unix_socket(
        self,
        path: str,
        timeout: Optional[float] = None,
        socket_options: Optional[Iterable] = None,
    ) -> httpcore.NetworkStream:
        stream = self._backend.connect_unix_socket(
            path,
            timeout=self.limit(timeout, httpcore.ConnectTimeout),
            socket_options=socket_options,
        )
        return DeadlineStream(stream, self)

    def sleep(self, seconds: float) -> None:
        self._backend.sleep(seconds)


class DeadlineStream(httpcore.NetworkStream):
    """Network stream delegating to another with deadline-capped timeouts."""

    def __init__(self, stream: httpcore.NetworkStream, backend: DeadlineBackend):
        self._stream = stream
        self._backend = backend

    def read(self, max_bytes: int, timeout: Optional[float] = None) -> bytes:
        return self._stream.read(max_bytes, timeout=self._backend.limit(timeout, httpcore.ReadTimeout))

    def write(self, buffer: bytes, timeout: Optional[float] = None) -> None:
        self._stream.write(buffer, timeout=self._backend.limit(timeout, httpcore.WriteTimeout))

    def close(self) -> None:
        self._stream.close()

    def start_tls(self, ssl_context, server_hostname=None, timeout=None) -> httpcore.NetworkStream:
        stream = self._stream.start_tls(
            ssl_context,
            server_hostname=server_hostname,
            timeout=self._backend.limit(timeout, httpcore.ConnectTimeout),
        )
        return DeadlineStream(stream, self._backend)

    def get_extra_info(self, info: str):
        return self._stream.get_extra_info(info)


class DeadlineTransport(httpx.HTTPTransport):
    """Default httpx transport routed through a :class:`DeadlineBackend`."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.backend = DeadlineBackend()
        # Connections are opened lazily by the pool through this backend
        self._pool._network_backend = self.backend
