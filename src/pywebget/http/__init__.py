"""HTTP client infrastructure for pywebget (blocking, single transfer at a time).

Uses httpx as the transport and keeps cookies in Netscape cookie jar files.
"""

from pywebget.http.buffer import ResponseBuffer
from pywebget.http.client import (
    ClientState,
    HttpClient,
    TransferResult,
    default_user_agent,
    fetch,
)
from pywebget.http.cookies import (
    CookieJar,
    CookieRecord,
    load_cookies_from_file,
    read_cookie_records,
    write_cookie_records,
)
from pywebget.http.trace import ProtocolTracer
from pywebget.http.transport import DeadlineTransport

__all__ = [
    "ClientState",
    "CookieJar",
    "CookieRecord",
    "DeadlineTransport",
    "HttpClient",
    "ProtocolTracer",
    "ResponseBuffer",
    "TransferResult",
    "default_user_agent",
    "fetch",
    "load_cookies_from_file",
    "read_cookie_records",
    "write_cookie_records",
]
