"""Cookie jar file support.

Supports the Netscape cookie file format used by browsers and tools like curl,
both for reading cookies before a request and for writing the session's
cookies back after it.
"""

import logging
import time
from dataclasses import dataclass
from http.cookiejar import Cookie, CookieJar as SessionJar, DefaultCookiePolicy
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

JAR_HEADER = (
    "# Netscape HTTP Cookie File\n"
    "# This file was generated by pywebget. Edit at your own risk.\n"
    "\n"
)

HTTPONLY_PREFIX = "#HttpOnly_"


@dataclass
class CookieRecord:
    """A single cookie as stored in a Netscape cookie file.

    An ``expires`` value of 0 marks a session cookie.
    """

    domain: str
    include_subdomains: bool
    path: str
    secure: bool
    expires: int
    name: str
    value: str
    http_only: bool = False

    @classmethod
    def from_line(cls, line: str) -> Optional["CookieRecord"]:
        """Parse one line of a cookie file.

        Args:
            line: Raw line from the file

        Returns:
            CookieRecord, or None for comments, blank and malformed lines
        """
        line = line.rstrip("\r\n")

        http_only = False
        if line.startswith(HTTPONLY_PREFIX):
            http_only = True
            line = line[len(HTTPONLY_PREFIX):]

        # Skip comments and empty lines
        if not line.strip() or line.startswith('#'):
            return None

        parts = line.split('\t')
        if len(parts) < 6:
            logger.warning(f"Skipping malformed cookie line: {line!r}")
            return None

        # A cookie without a value has only six fields
        if len(parts) == 6:
            parts.append("")

        domain, flag, path, secure, expiration, name, value = parts[:7]

        try:
            expires = int(expiration)
        except ValueError:
            logger.warning(f"Skipping cookie {name!r} with bad expiry: {expiration!r}")
            return None

        return cls(
            domain=domain,
            include_subdomains=flag.upper() == 'TRUE',
            path=path,
            secure=secure.upper() == 'TRUE',
            expires=expires,
            name=name,
            value=value,
            http_only=http_only,
        )

    def to_line(self) -> str:
        """Render the record as a tab-separated cookie file line."""
        domain = self.domain
        if self.http_only:
            domain = HTTPONLY_PREFIX + domain
        return '\t'.join([
            domain,
            'TRUE' if self.include_subdomains else 'FALSE',
            self.path,
            'TRUE' if self.secure else 'FALSE',
            str(self.expires),
            self.name,
            self.value,
        ])

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check whether a persistent cookie has expired.

        Session cookies (expires == 0) never expire here.
        """
        if self.expires == 0:
            return False
        if now is None:
            now = time.time()
        return self.expires <= now

    @classmethod
    def from_cookie(cls, cookie: Cookie) -> "CookieRecord":
        """Build a record from an ``http.cookiejar.Cookie``."""
        http_only = (
            cookie.has_nonstandard_attr('HttpOnly')
            or cookie.has_nonstandard_attr('httponly')
        )
        return cls(
            domain=cookie.domain,
            include_subdomains=cookie.domain.startswith('.'),
            path=cookie.path,
            secure=cookie.secure,
            expires=int(cookie.expires) if cookie.expires is not None else 0,
            name=cookie.name,
            value=cookie.value if cookie.value is not None else "",
            http_only=http_only,
        )

    def to_cookie(self) -> Cookie:
        """Convert the record into an ``http.cookiejar.Cookie``."""
        domain = self.domain
        if self.include_subdomains and not domain.startswith('.'):
            domain = '.' + domain

        session = self.expires == 0
        rest = {'HttpOnly': None} if self.http_only else {}

        return Cookie(
            version=0,
            name=self.name,
            value=self.value,
            port=None,
            port_specified=False,
            domain=domain,
            domain_specified=self.include_subdomains,
            domain_initial_dot=domain.startswith('.'),
            path=self.path,
            path_specified=True,
            secure=self.secure,
            expires=None if session else self.expires,
            discard=session,
            comment=None,
            comment_url=None,
            rest=rest,
            rfc2109=False,
        )


def read_cookie_records(cookie_file: Union[str, Path]) -> List[CookieRecord]:
    """Read all cookie records from a Netscape cookie file.

    Args:
        cookie_file: Path to cookie file

    Returns:
        List of CookieRecord objects in file order (empty if the file is missing)

    Example file format:
        # Netscape HTTP Cookie File
        .example.com    TRUE    /    FALSE    1735689600    sessionid    abc123
    """
    records = []
    cookie_path = Path(cookie_file)

    if not cookie_path.exists():
        return records

    with open(cookie_path, 'r', encoding='utf-8') as f:
        for line in f:
            record = CookieRecord.from_line(line)
            if record is not None:
                records.append(record)

    return records


def write_cookie_records(cookie_file: Union[str, Path], records: Iterable[CookieRecord]) -> int:
    """Write cookie records to a Netscape cookie file, replacing its content.

    Args:
        cookie_file: Path to cookie file
        records: Records to write

    Returns:
        Number of records written
    """
    lines = [record.to_line() for record in records]
    with open(cookie_file, 'w', encoding='utf-8') as f:
        f.write(JAR_HEADER)
        for line in lines:
            f.write(line + '\n')
    return len(lines)


def load_cookies_from_file(cookie_file: Union[str, Path]) -> List[Cookie]:
    """Load unexpired cookies from a Netscape cookie file.

    Args:
        cookie_file: Path to cookie file

    Returns:
        List of Cookie objects, expired entries dropped
    """
    now = time.time()
    return [
        record.to_cookie()
        for record in read_cookie_records(cookie_file)
        if not record.is_expired(now)
    ]


class CookieJar:
    """A cookie file bound to a transport session.

    The same path is the read source before each request and the write
    destination after it, so cookie state carries over to any later client
    bound to the same path.

    Concurrent use of one path by several clients is not synchronized.

    Attributes:
        path: Location of the cookie file
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def ensure_exists(self) -> None:
        """Create an empty jar file if none exists yet (never truncates)."""
        if self.path.parent != Path('.'):
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)

    def load_into(self, session_jar: SessionJar) -> int:
        """Load unexpired cookies from the file into a session jar.

        A missing file counts as an empty jar.

        Returns:
            Number of cookies loaded
        """
        cookies = load_cookies_from_file(self.path)
        for cookie in cookies:
            session_jar.set_cookie(cookie)
        logger.debug(f"Loaded {len(cookies)} cookies from {self.path}")
        return len(cookies)

    def save_from(self, session_jar: SessionJar) -> int:
        """Rewrite the file with every cookie held by a session jar.

        Returns:
            Number of cookies written
        """
        count = write_cookie_records(self.path, session_records(session_jar))
        logger.debug(f"Saved {count} cookies to {self.path}")
        return count

    def load_records(self) -> List[CookieRecord]:
        """Read the jar file without touching any session."""
        return read_cookie_records(self.path)

    def save_records(self, records: Iterable[CookieRecord]) -> int:
        """Replace the jar file content with the given records."""
        return write_cookie_records(self.path, records)

    def __repr__(self) -> str:
        return f"CookieJar({str(self.path)!r})"


def session_records(session_jar: SessionJar) -> List[CookieRecord]:
    """List the cookies held by a session jar as records."""
    return [CookieRecord.from_cookie(cookie) for cookie in session_jar]


def host_only_policy() -> DefaultCookiePolicy:
    """Cookie policy matching curl's jar semantics.

    Cookies without a domain attribute (subdomain flag FALSE in the jar) are
    only returned to the exact host that set them.
    """
    return DefaultCookiePolicy(strict_ns_domain=DefaultCookiePolicy.DomainStrictNonDomain)
