"""
pywebget - A small embeddable HTTP client for scripted web access.

This package issues blocking HTTP requests, captures the complete response
body in memory and persists cookies between runs in a Netscape-format cookie
jar, so a sequence of requests (for example fetching a login token and then
logging in) can share session state across separate client instances.
"""

__version__ = "1.0.0"
__author__ = "Sebastian Majstorovic"
__email__ = "storytracer@gmail.com"
__license__ = "AGPL-3.0"

from pywebget.config import Config
from pywebget.errors import (
    EmptyResultError,
    ResourceExhaustionError,
    TransportCode,
    TransportError,
    WebGetError,
)
from pywebget.http.client import HttpClient, fetch

__all__ = [
    "Config",
    "HttpClient",
    "fetch",
    "WebGetError",
    "TransportError",
    "TransportCode",
    "ResourceExhaustionError",
    "EmptyResultError",
    "__version__",
]
