"""Configuration for the codenav client."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SEARCH_URL = "https://searchfox.org/mozilla-central/search"


class ClientConfig:
    """Configuration for the search client and result view."""

    def __init__(self) -> None:
        """Initialize client configuration from environment variables."""
        self.search_url = os.getenv("CODENAV_SEARCH_URL", DEFAULT_SEARCH_URL)
        self.source_root = Path(os.getenv("CODENAV_SOURCE_ROOT", ".")).expanduser()

        # A single shared result view is reused unless this is turned off
        self.reuse_buffer = os.getenv("CODENAV_REUSE_BUFFER", "true").lower() == "true"

        self.request_timeout = self._get_float_env("CODENAV_REQUEST_TIMEOUT", "30")
        self.style_file: Optional[Path] = None
        style_file = os.getenv("CODENAV_STYLE_FILE")
        if style_file:
            self.style_file = Path(style_file).expanduser()

        self.log_level = os.getenv("CODENAV_LOG_LEVEL", "WARNING").upper()

    @staticmethod
    def _get_float_env(key: str, default: str) -> float:
        """Get a numeric environment variable or raise descriptive error."""
        value = os.getenv(key, default)
        try:
            number = float(value)
        except ValueError:
            raise ValueError(f"Environment variable {key} must be a number, got {value!r}")
        if number <= 0:
            raise ValueError(f"Environment variable {key} must be positive, got {value!r}")
        return number
