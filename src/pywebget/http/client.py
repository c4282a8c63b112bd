"""Blocking HTTP client built on httpx.

An :class:`HttpClient` owns one ``httpx.Client`` session, streams every
response body chunk into a :class:`ResponseBuffer` through a write callback,
and keeps cookies in a Netscape cookie jar file shared with later clients.

Example:
    >>> with HttpClient.create("cookies.txt") as client:
    ...     client.set_url("https://wiki.example.org/api.php?action=query")
    ...     client.perform()
    ...     text = client.body()
"""

import codecs
import logging
import time
from dataclasses import dataclass
from enum import Enum
from http.cookiejar import CookieJar as SessionJar
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO, Union

import httpx

from pywebget import __version__
from pywebget.config import Config
from pywebget.errors import (
    EmptyResultError,
    ErrorChannel,
    SessionClosedError,
    TransportCode,
    TransportError,
    WebGetError,
    code_for_exception,
)
from pywebget.http.buffer import ResponseBuffer
from pywebget.http.cookies import CookieJar, CookieRecord, host_only_policy, session_records
from pywebget.http.trace import ProtocolTracer
from pywebget.http.transport import DeadlineBackend, DeadlineTransport

logger = logging.getLogger(__name__)

# callback(chunk, data) -> number of bytes consumed
WriteCallback = Callable[[bytes, Any], int]


class ClientState(Enum):
    """Lifecycle of a transfer on a client."""

    CONFIGURED = "configured"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TransferResult:
    """Summary of a completed transfer."""

    status_code: int
    effective_url: str
    size: int
    elapsed: float  # seconds
    http_version: str


def default_user_agent() -> str:
    """Compose the default agent from pywebget's and httpx's versions."""
    return f"pywebget/{__version__} httpx/{httpx.__version__}"


def write_to_buffer(chunk: bytes, buffer: ResponseBuffer) -> int:
    """Default write callback: append the chunk to the bound buffer."""
    return buffer.append(chunk)


class HttpClient:
    """Single-session HTTP client capturing responses in memory.

    Resources (httpx session, response buffer, cookie jar file) are acquired
    on construction and released by :meth:`close`. A client performs one
    transfer at a time and can be reused for further transfers by setting a
    new URL; sharing one client between threads is not supported.

    Attributes:
        config: Configuration the client was created from
    """

    def __init__(
        self,
        cookie_file: Optional[Union[str, Path]] = None,
        config: Optional[Config] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the client and apply the configured defaults.

        Args:
            cookie_file: Cookie jar path (overrides ``config.cookie_file``)
            config: Configuration object (defaults to ``Config()``)
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
        """
        self.config = config or Config()
        self._session: Optional[httpx.Client] = None
        self._buffer = ResponseBuffer(max_size=self.config.max_body_size)
        self._completed: Optional[ResponseBuffer] = None
        self._own_errors = ErrorChannel()
        self._errors = self._own_errors
        self._tracer = ProtocolTracer()
        self._jar: Optional[CookieJar] = None
        self._backend: Optional[DeadlineBackend] = None

        self._url: Optional[str] = None
        self._timeout = float(self.config.timeout)
        self._fail_on_error = False
        self._write_callback: WriteCallback = write_to_buffer
        self._write_data: Any = self._buffer
        self._default_sink = True

        self._state = ClientState.CONFIGURED
        self._effective_url = ""
        self._status_code: Optional[int] = None
        self._encoding = "utf-8"
        self._completed_encoding = "utf-8"

        try:
            if transport is None:
                transport = DeadlineTransport()
            if isinstance(transport, DeadlineTransport):
                self._backend = transport.backend

            hooks = self._tracer.event_hooks()
            hooks['request'].insert(0, self._apply_cookie_policy)
            self._session = httpx.Client(
                transport=transport,
                cookies=SessionJar(host_only_policy()),
                event_hooks=hooks,
            )
            self.set_error_buffer(self._own_errors)
            self.set_verbose(self.config.verbose)
            self.set_user_agent(self.config.user_agent)
            self.set_timeout(self.config.timeout)
            self.set_follow_redirects(self.config.follow_redirects, self.config.max_redirects)
            self.set_fail_on_error(self.config.fail_on_error)
            self.set_headers(self.config.headers)
            self.set_write_function()
            self.set_cookie_jar(cookie_file or self.config.cookie_file)
        except Exception:
            self.close()
            raise

    @classmethod
    def create(
        cls,
        cookie_file: Optional[Union[str, Path]] = None,
        config: Optional[Config] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "HttpClient":
        """Create a client with default settings bound to a cookie jar.

        Defaults: own error buffer, verbose off, composed user agent,
        20 second timeout, body streamed into the response buffer and the
        cookie jar used for both reading and writing.
        """
        return cls(cookie_file=cookie_file, config=config, transport=transport)

    def _require_session(self) -> httpx.Client:
        if self._session is None:
            raise SessionClosedError("HTTP client is closed")
        return self._session

    def _apply_cookie_policy(self, request: httpx.Request) -> None:
        """Rebuild the Cookie header from the session jar and its policy.

        httpx copies cookies into a jar with the default policy when it
        builds a request, which would send host-only cookies to subdomains.
        An explicit Cookie default header is left alone.
        """
        if self._session is None or 'Cookie' in self._session.headers:
            return
        request.headers.pop('Cookie', None)
        self._session.cookies.set_cookie_header(request)

    # -- configuration -------------------------------------------------------

    def set_url(self, url: str) -> None:
        """Set the absolute URL for the next transfer.

        Raises:
            TransportError: If the URL is malformed, relative or not HTTP(S)
        """
        self._require_session()
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise TransportError(TransportCode.URL_MALFORMAT, f"Malformed URL {url!r}: {e}") from e

        if not parsed.scheme or not parsed.host:
            raise TransportError(TransportCode.URL_MALFORMAT, f"URL is not absolute: {url!r}")
        if parsed.scheme not in ('http', 'https'):
            raise TransportError(
                TransportCode.UNSUPPORTED_PROTOCOL,
                f"Protocol \"{parsed.scheme}\" not supported",
            )

        self._url = url

    def set_user_agent(self, user_agent: Optional[str] = None) -> None:
        """Set the User-Agent header; None restores the composed default."""
        session = self._require_session()
        session.headers['User-Agent'] = user_agent or default_user_agent()

    def set_timeout(self, seconds: float = 20) -> None:
        """Set the maximum time a whole transfer may take.

        Raises:
            TransportError: If the timeout is not positive
        """
        session = self._require_session()
        if seconds is None or seconds <= 0:
            raise TransportError(
                TransportCode.BAD_FUNCTION_ARGUMENT,
                f"Timeout must be positive: {seconds!r}",
            )
        self._timeout = float(seconds)
        session.timeout = httpx.Timeout(self._timeout)

    def set_verbose(self, verbose: bool) -> None:
        """Enable or disable protocol tracing to the trace stream."""
        self._require_session()
        self._tracer.enabled = bool(verbose)

    def set_trace_stream(self, stream: Optional[TextIO]) -> None:
        """Redirect protocol tracing (None means ``sys.stderr``)."""
        self._require_session()
        self._tracer.stream = stream

    def set_error_buffer(self, channel: ErrorChannel) -> None:
        """Set where the message of the next failed transfer is written."""
        self._require_session()
        if not isinstance(channel, ErrorChannel):
            raise TransportError(
                TransportCode.BAD_FUNCTION_ARGUMENT,
                f"Expected an ErrorChannel, got {type(channel).__name__}",
            )
        self._errors = channel

    def set_write_function(
        self,
        callback: Optional[WriteCallback] = None,
        data: Any = None,
    ) -> None:
        """Set the sink receiving each body chunk.

        The callback is called as ``callback(chunk, data)`` and must return
        the number of bytes it consumed; any other value aborts the transfer.
        Without arguments the response buffer becomes the sink again.
        """
        self._require_session()
        if callback is None:
            self._write_callback = write_to_buffer
            self._write_data = self._buffer
            self._default_sink = True
        else:
            self._write_callback = callback
            self._write_data = data
            self._default_sink = False

    def set_cookie_jar(self, path: Optional[Union[str, Path]]) -> None:
        """Bind the cookie file used for reading and writing cookies.

        The file is created empty if missing. None unbinds the jar; cookies
        then only live in the session.
        """
        self._require_session()
        if path is None:
            self._jar = None
            return
        jar = CookieJar(path)
        jar.ensure_exists()
        self._jar = jar

    def set_follow_redirects(self, follow: bool, max_redirects: Optional[int] = None) -> None:
        """Enable or disable following redirects."""
        session = self._require_session()
        session.follow_redirects = bool(follow)
        if max_redirects is not None:
            if max_redirects < 0:
                raise TransportError(
                    TransportCode.BAD_FUNCTION_ARGUMENT,
                    f"Invalid max redirects: {max_redirects}",
                )
            session.max_redirects = max_redirects

    def set_headers(self, headers: Dict[str, str]) -> None:
        """Add default request headers."""
        session = self._require_session()
        session.headers.update(headers)

    def set_fail_on_error(self, fail: bool) -> None:
        """Treat HTTP status codes >= 400 as transfer failures."""
        self._require_session()
        self._fail_on_error = bool(fail)

    # -- transfer ------------------------------------------------------------

    def perform(self) -> TransferResult:
        """Run a GET request against the configured URL.

        Blocks until the whole body has been passed to the write callback,
        at most for the configured timeout (connect, headers and body
        together). Cookies are loaded from the jar before the request and the
        jar is rewritten afterwards, whether or not the transfer succeeded.

        Returns:
            TransferResult describing the completed transfer

        Raises:
            TransportError: On any transfer failure (message also written
                to the bound error buffer)
            ResourceExhaustionError: If the response buffer cannot grow
        """
        session = self._require_session()
        if self._state is ClientState.IN_FLIGHT:
            raise WebGetError("A transfer is already in progress on this client")

        self._errors.clear()
        self._buffer.reset()
        self._effective_url = ""
        self._status_code = None
        self._state = ClientState.IN_FLIGHT
        completed = False

        try:
            if not self._url:
                raise TransportError(TransportCode.URL_MALFORMAT, "No URL set")

            if self._jar is not None:
                loaded = self._jar.load_into(session.cookies.jar)
                self._tracer.info(f"Loaded {loaded} cookies from {self._jar.path}")

            result = self._transfer(session)
            self._keep_completed_body()
            completed = True

        except WebGetError as e:
            self._errors.write(getattr(e, 'message', None) or str(e))
            logger.debug(f"Transfer failed for {self._url}: {e}")
            raise

        finally:
            # Also reached on KeyboardInterrupt, so the client stays usable
            self._state = ClientState.COMPLETED if completed else ClientState.FAILED
            if self._jar is not None:
                self._save_jar(session, transfer_failed=not completed)

        logger.debug(
            f"Completed {result.effective_url}: HTTP {result.status_code}, "
            f"{result.size} bytes in {result.elapsed:.3f}s"
        )
        return result

    def _keep_completed_body(self) -> None:
        """Promote the filled buffer to the completed body and swap in a fresh sink."""
        self._completed = self._buffer
        self._completed_encoding = self._encoding
        self._buffer = ResponseBuffer(max_size=self.config.max_body_size)
        if self._default_sink:
            self._write_data = self._buffer

    def _save_jar(self, session: httpx.Client, transfer_failed: bool) -> None:
        """Rewrite the jar file from the session.

        When the transfer itself failed, a jar write error is logged so the
        transfer error stays the one the caller sees.
        """
        try:
            self._jar.save_from(session.cookies.jar)
        except OSError as e:
            if not transfer_failed:
                raise
            logger.error(f"Could not save cookies to {self._jar.path}: {e}")

    def _transfer(self, session: httpx.Client) -> TransferResult:
        """Stream one response into the write callback."""
        started = time.monotonic()
        deadline = started + self._timeout
        received = 0

        def timed_out() -> TransportError:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            return TransportError(
                TransportCode.OPERATION_TIMEDOUT,
                f"Operation timed out after {elapsed_ms} milliseconds "
                f"with {received} bytes received",
            )

        logger.debug(f"GET {self._url}")

        if self._backend is not None:
            self._backend.deadline = deadline

        try:
            with session.stream('GET', self._url) as response:
                self._effective_url = str(response.url)
                self._status_code = response.status_code
                self._encoding = _usable_encoding(response.encoding)

                if self._fail_on_error and response.status_code >= 400:
                    raise TransportError(
                        TransportCode.HTTP_RETURNED_ERROR,
                        f"The requested URL returned error: {response.status_code}",
                    )

                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        raise timed_out()

                    consumed = self._write_callback(chunk, self._write_data)
                    if consumed != len(chunk):
                        raise TransportError(
                            TransportCode.WRITE_ERROR,
                            f"Failure writing output to destination, "
                            f"passed {len(chunk)} returned {consumed}",
                        )
                    received += len(chunk)

                http_version = response.http_version

        except httpx.InvalidURL as e:
            raise TransportError(TransportCode.URL_MALFORMAT, str(e)) from e

        except httpx.TimeoutException as e:
            raise timed_out() from e

        except httpx.HTTPError as e:
            raise TransportError(code_for_exception(e), str(e) or None) from e

        finally:
            if self._backend is not None:
                self._backend.deadline = None

        return TransferResult(
            status_code=self._status_code,
            effective_url=self._effective_url,
            size=received,
            elapsed=time.monotonic() - started,
            http_version=http_version,
        )

    # -- results -------------------------------------------------------------

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def last_error(self) -> str:
        """Message of the most recent failed transfer ("" if none)."""
        return self._errors.read()

    def effective_url(self) -> str:
        """Final URL of the last transfer after redirects ("" if none)."""
        return self._effective_url

    def status_code(self) -> Optional[int]:
        return self._status_code

    def body(self) -> str:
        """Return the body of the most recent completed transfer as text.

        A later failed transfer does not discard it; check :attr:`state` to
        tell whether the latest transfer completed.

        Raises:
            EmptyResultError: If no transfer has ever completed on this client
        """
        self._require_session()
        if self._completed is None:
            raise EmptyResultError()
        return self._completed.read(self._completed_encoding)

    def content(self) -> bytes:
        """Return the body of the most recent completed transfer as bytes.

        Raises:
            EmptyResultError: If no transfer has ever completed on this client
        """
        self._require_session()
        if self._completed is None:
            raise EmptyResultError()
        return self._completed.content()

    def cookie_list(self) -> List[CookieRecord]:
        """List the cookies currently held by the session."""
        session = self._require_session()
        return session_records(session.cookies.jar)

    # -- lifecycle -----------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._session is None

    def close(self) -> None:
        """Release the session and the response buffers (idempotent)."""
        if self._session is None:
            return
        self._session.close()
        self._session = None
        self._buffer.reset()
        self._completed = None

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<HttpClient url={self._url!r} state={self._state.value} jar={self._jar!r}>"


def _usable_encoding(encoding: Optional[str]) -> str:
    """Return ``encoding`` if Python knows it, else UTF-8."""
    if not encoding:
        return "utf-8"
    try:
        codecs.lookup(encoding)
    except LookupError:
        return "utf-8"
    return encoding


def fetch(
    url: str,
    cookie_file: Optional[Union[str, Path]] = None,
    config: Optional[Config] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """Fetch a URL in one call and return the body text.

    Args:
        url: Absolute URL to fetch
        cookie_file: Optional cookie jar path
        config: Optional configuration
        transport: Optional httpx transport

    Returns:
        Response body as text

    Raises:
        TransportError: If the transfer fails
    """
    with HttpClient.create(cookie_file, config=config, transport=transport) as client:
        client.set_url(url)
        client.perform()
        return client.body()
