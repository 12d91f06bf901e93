"""Child process that streams one search's results."""

import logging
import os
import subprocess
import sys
from typing import IO, List, Optional

from codenav.backends.query import FormattedRequest

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
TERMINATE_TIMEOUT = 5.0
DEFAULT_LOG_LEVEL = "WARNING"


def build_fetch_command(
    request: FormattedRequest, timeout: float, log_level: str = DEFAULT_LOG_LEVEL
) -> List[str]:
    """Get the command line that fetches and transforms a search response."""
    return [
        sys.executable,
        "-m",
        "codenav.backends.fetch",
        request.url,
        "--spec",
        request.post_process.model_dump_json(),
        "--timeout",
        str(timeout),
        "--log-level",
        log_level,
    ]


class SearchProcess:
    """A running search whose stdout carries the result stream."""

    def __init__(self, argv: List[str]) -> None:
        """Initialize the process.

        Args:
            argv: Command line to run
        """
        self.argv = argv
        self._popen: Optional[subprocess.Popen] = None

    def start(self) -> None:
        """Spawn the child process."""
        if self._popen is not None:
            raise RuntimeError("Search process already started")
        self._popen = subprocess.Popen(
            self.argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        logger.debug(f"Started search process {self._popen.pid}: {self.argv}")

    @property
    def pid(self) -> Optional[int]:
        return self._popen.pid if self._popen else None

    @property
    def stdout(self) -> IO[bytes]:
        return self._require_started().stdout

    @property
    def stderr(self) -> IO[bytes]:
        return self._require_started().stderr

    @property
    def running(self) -> bool:
        return self._popen is not None and self._popen.poll() is None

    @staticmethod
    def read_chunk(stream: IO[bytes]) -> bytes:
        """Read whatever is available from a pipe; empty bytes means EOF."""
        return os.read(stream.fileno(), CHUNK_SIZE)

    def wait(self, timeout: Optional[float] = None) -> int:
        """Wait for the process to exit and return its exit status."""
        return self._require_started().wait(timeout=timeout)

    def terminate(self) -> None:
        """Stop the process if it is still running and close its pipes."""
        popen = self._require_started()
        if popen.poll() is None:
            logger.debug(f"Terminating search process {popen.pid}")
            popen.terminate()
            try:
                popen.wait(timeout=TERMINATE_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.warning(f"Search process {popen.pid} did not exit, killing it")
                popen.kill()
                popen.wait()
        self.close()

    def close(self) -> None:
        """Close the pipes to the process."""
        popen = self._require_started()
        for stream in (popen.stdout, popen.stderr):
            if stream is not None and not stream.closed:
                stream.close()

    def _require_started(self) -> subprocess.Popen:
        if self._popen is None:
            raise RuntimeError("Search process not started")
        return self._popen
