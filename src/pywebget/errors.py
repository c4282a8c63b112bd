"""Exception types and transport error codes.

Transport failures carry a numeric code using libcurl's numbering, so a code
reported by pywebget means the same thing as the matching curl exit code.
"""

from enum import IntEnum
from typing import Optional

import httpx

# Size of libcurl's CURL_ERROR_SIZE error buffer
ERROR_CHANNEL_SIZE = 256


class TransportCode(IntEnum):
    """Numeric result codes for transfers."""

    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    WEIRD_SERVER_REPLY = 8
    HTTP_RETURNED_ERROR = 22
    WRITE_ERROR = 23
    OUT_OF_MEMORY = 27
    OPERATION_TIMEDOUT = 28
    BAD_FUNCTION_ARGUMENT = 43
    TOO_MANY_REDIRECTS = 47
    SEND_ERROR = 55
    RECV_ERROR = 56
    FILESIZE_EXCEEDED = 63


DEFAULT_MESSAGES = {
    TransportCode.OK: "No error",
    TransportCode.UNSUPPORTED_PROTOCOL: "Unsupported protocol",
    TransportCode.URL_MALFORMAT: "URL using bad/illegal format or missing URL",
    TransportCode.COULDNT_RESOLVE_HOST: "Couldn't resolve host name",
    TransportCode.COULDNT_CONNECT: "Couldn't connect to server",
    TransportCode.WEIRD_SERVER_REPLY: "Weird server reply",
    TransportCode.HTTP_RETURNED_ERROR: "HTTP response code said error",
    TransportCode.WRITE_ERROR: "Failed writing received data to disk/application",
    TransportCode.OUT_OF_MEMORY: "Out of memory",
    TransportCode.OPERATION_TIMEDOUT: "Timeout was reached",
    TransportCode.BAD_FUNCTION_ARGUMENT: "A libcurl function was given a bad argument",
    TransportCode.TOO_MANY_REDIRECTS: "Number of redirects hit maximum amount",
    TransportCode.SEND_ERROR: "Failed sending data to the peer",
    TransportCode.RECV_ERROR: "Failure when receiving data from the peer",
    TransportCode.FILESIZE_EXCEEDED: "Maximum file size exceeded",
}

# Codes worth retrying by callers; everything else is permanent
TRANSIENT_CODES = frozenset({
    TransportCode.COULDNT_RESOLVE_HOST,
    TransportCode.COULDNT_CONNECT,
    TransportCode.OPERATION_TIMEDOUT,
    TransportCode.SEND_ERROR,
    TransportCode.RECV_ERROR,
})


class WebGetError(Exception):
    """Base class for all pywebget errors."""


class SessionClosedError(WebGetError):
    """Raised when a closed client is configured or used."""


class TransportError(WebGetError):
    """A transfer or option failure reported by the transport.

    Attributes:
        code: TransportCode describing the failure
        message: Human-readable description
    """

    def __init__(self, code: TransportCode, message: Optional[str] = None):
        self.code = TransportCode(code)
        self.message = message or DEFAULT_MESSAGES.get(self.code, "Unknown error")
        super().__init__(f"transport error (code = {int(self.code)}): {self.message}")

    @property
    def transient(self) -> bool:
        """Whether repeating the request might succeed."""
        return self.code in TRANSIENT_CODES


class ResourceExhaustionError(WebGetError):
    """Raised when the response buffer cannot grow any further."""


class EmptyResultError(WebGetError):
    """Raised when a body is requested but no transfer has completed."""

    def __init__(self, message: str = "Nothing to output"):
        super().__init__(message)


def code_for_exception(exc: httpx.HTTPError) -> TransportCode:
    """Map an httpx exception onto a transport code.

    Args:
        exc: Exception raised by httpx during a transfer

    Returns:
        The matching TransportCode
    """
    if isinstance(exc, httpx.TimeoutException):
        return TransportCode.OPERATION_TIMEDOUT
    if isinstance(exc, httpx.ConnectError):
        text = str(exc).lower()
        if "name or service" in text or "resolve" in text or "getaddrinfo" in text:
            return TransportCode.COULDNT_RESOLVE_HOST
        return TransportCode.COULDNT_CONNECT
    if isinstance(exc, httpx.UnsupportedProtocol):
        return TransportCode.UNSUPPORTED_PROTOCOL
    if isinstance(exc, httpx.TooManyRedirects):
        return TransportCode.TOO_MANY_REDIRECTS
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.LocalProtocolError)):
        return TransportCode.WEIRD_SERVER_REPLY
    if isinstance(exc, httpx.WriteError):
        return TransportCode.SEND_ERROR
    return TransportCode.RECV_ERROR


class ErrorChannel:
    """Fixed-capacity holder for the most recent transport error message.

    Messages longer than the capacity are truncated, mirroring a C error
    buffer of ``capacity`` bytes including its terminator.
    """

    def __init__(self, capacity: int = ERROR_CHANNEL_SIZE):
        if capacity < 2:
            raise ValueError(f"Error channel capacity too small: {capacity}")
        self.capacity = capacity
        self._message = ""

    def write(self, message: str) -> None:
        self._message = message[:self.capacity - 1]

    def read(self) -> str:
        return self._message

    def clear(self) -> None:
        self._message = ""

    def __bool__(self) -> bool:
        return bool(self._message)
