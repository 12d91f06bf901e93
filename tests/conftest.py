import sys

import pytest

from codenav.config import ClientConfig

CONFIG_VARS = (
    "CODENAV_SEARCH_URL",
    "CODENAV_SOURCE_ROOT",
    "CODENAV_REUSE_BUFFER",
    "CODENAV_REQUEST_TIMEOUT",
    "CODENAV_STYLE_FILE",
    "CODENAV_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> ClientConfig:
    config = ClientConfig()
    config.search_url = "http://search.invalid/search"
    return config


def stream_command(data: bytes, exit_code: int = 0, stderr: bytes = b"", linger: float = 0):
    """Command factory for a process that writes a fixed result stream."""
    script = (
        "import sys, time\n"
        f"sys.stdout.buffer.write({data!r})\n"
        "sys.stdout.flush()\n"
        f"sys.stderr.buffer.write({stderr!r})\n"
        "sys.stderr.flush()\n"
        f"time.sleep({linger!r})\n"
        f"sys.exit({exit_code})\n"
    )
    return lambda request: [sys.executable, "-c", script]
