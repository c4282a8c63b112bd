"""Configuration management for pywebget."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional


@dataclass
class Config:
    """Configuration for a pywebget HTTP client.

    This class manages the transfer options applied when a client is created:
    timeout, user agent, cookie jar location, redirect handling and the retry
    settings used by the command-line caller.
    """

    # Cookie jar (Netscape format); None keeps cookies in memory only
    cookie_file: Optional[str] = None

    # HTTP settings
    timeout: float = 20  # seconds, whole transfer
    user_agent: Optional[str] = None  # None composes the default agent
    verbose: bool = False
    follow_redirects: bool = True
    max_redirects: int = 20
    fail_on_error: bool = False  # Treat HTTP status >= 400 as a transport error
    max_body_size: Optional[int] = None  # bytes, None is unlimited
    headers: Dict[str, str] = field(default_factory=dict)

    # Retry settings (using tenacity, applied by callers only)
    max_retries: int = 3  # Maximum number of attempts
    retry_wait_min: float = 1.0  # Minimum wait between retries (seconds)
    retry_wait_max: float = 10.0  # Maximum wait between retries (seconds)
    retry_multiplier: float = 2.0  # Exponential backoff multiplier

    # Progress display
    show_progress: bool = False

    def __post_init__(self):
        """Validate configuration and fill in environment defaults."""
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be positive: {self.timeout}")

        if self.max_redirects < 0:
            raise ValueError(f"Invalid max redirects: {self.max_redirects}")

        if self.max_body_size is not None and self.max_body_size <= 0:
            raise ValueError(f"Invalid max body size: {self.max_body_size}")

        if self.max_retries < 1:
            raise ValueError(f"Max retries must be at least 1: {self.max_retries}")

        # Pick up a cookie jar from the environment if not specified
        if not self.cookie_file:
            self.cookie_file = os.environ.get('PYWEBGET_COOKIE_JAR') or None

    @classmethod
    def get_home_dir(cls) -> Path:
        """Get the pywebget home directory (~/.pywebget)."""
        home = Path.home() / ".pywebget"
        home.mkdir(parents=True, exist_ok=True)
        return home

    @classmethod
    def default_cookie_file(cls) -> Path:
        """Get the default cookie jar path (~/.pywebget/cookies.txt)."""
        return cls.get_home_dir() / "cookies.txt"
