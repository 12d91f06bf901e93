"""Search sessions and the registry that owns them."""

import logging
import selectors
import time
from enum import Enum
from typing import IO, Callable, Dict, List, Optional, Set

from codenav.backends.models import Query
from codenav.backends.query import FormattedRequest, format_query
from codenav.config import ClientConfig
from codenav.core.navigation import Location, NavigationIndex
from codenav.core.process import SearchProcess, build_fetch_command
from codenav.core.render import IncrementalRenderer, RenderedLine
from codenav.errors import UnknownSessionError

logger = logging.getLogger(__name__)

REUSED_HANDLE = "*codesearch*"
STDOUT = "stdout"
STDERR = "stderr"


class SessionStatus(Enum):
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"


CompletionCallback = Callable[[str, SessionStatus], None]
OutputCallback = Callable[[str, List[RenderedLine]], None]
CommandFactory = Callable[[FormattedRequest], List[str]]


class SearchSession:
    """One search: its process, renderer and navigation cursor."""

    def __init__(
        self,
        handle: str,
        query: Query,
        request: FormattedRequest,
        process: SearchProcess,
        on_complete: Optional[CompletionCallback] = None,
        on_output: Optional[OutputCallback] = None,
        on_cancel: Optional[Callable[["SearchSession"], None]] = None,
    ) -> None:
        """Initialize a search session.

        Args:
            handle: Name the session is registered under
            query: The query being searched
            request: Formatted request for the query
            process: Process producing the result stream
            on_complete: Called once with the terminal status
            on_output: Called with each batch of newly rendered lines
            on_cancel: Called before the process is stopped, while its pipes are still open
        """
        self.handle = handle
        self.query = query
        self.request = request
        self.process = process
        self.renderer = IncrementalRenderer()
        self.status = SessionStatus.RUNNING
        self.returncode: Optional[int] = None
        self.error: Optional[str] = None

        self._on_complete = on_complete
        self._on_output = on_output
        self._on_cancel = on_cancel
        self._stderr = bytearray()

    @property
    def index(self) -> NavigationIndex:
        return self.renderer.index

    @property
    def lines(self) -> List[RenderedLine]:
        return self.renderer.lines

    @property
    def done(self) -> bool:
        return self.status is not SessionStatus.RUNNING

    def handle_output(self, chunk: bytes) -> List[RenderedLine]:
        """Render a chunk of the result stream."""
        lines = self.renderer.feed(chunk)
        if lines and self._on_output:
            self._on_output(self.handle, lines)
        return lines

    def handle_error_output(self, chunk: bytes) -> None:
        self._stderr += chunk

    def complete(self, returncode: int) -> None:
        """Record the exit of the search process."""
        if self.done:
            return
        self.renderer.finish()
        self.returncode = returncode
        if returncode == 0:
            self.status = SessionStatus.FINISHED
            logger.info(f"Search {self.handle} finished with {len(self.index)} matches")
        else:
            self.status = SessionStatus.FAILED
            message = self._stderr.decode("utf-8", errors="replace").strip()
            self.error = message or f"search process exited with status {returncode}"
            logger.error(f"Search {self.handle} failed: {self.error}")
        self._notify()

    def cancel(self) -> None:
        """Stop a running search, keeping the lines rendered so far."""
        if self.done:
            return
        if self._on_cancel:
            self._on_cancel(self)
        self.process.terminate()
        self.renderer.finish()
        self.status = SessionStatus.CANCELLED
        logger.info(f"Search {self.handle} cancelled after {len(self.index)} matches")
        self._notify()

    def close(self) -> None:
        """Cancel the search if needed and release its pipes."""
        self.cancel()
        self.process.close()

    def next(self) -> Optional[Location]:
        """Step to the next match, or None when there are no more matches."""
        entry = self.index.next()
        if entry is None:
            logger.info(f"No more matches in {self.handle}")
            return None
        return self.renderer.location_for(entry)

    def previous(self) -> Optional[Location]:
        """Step to the previous match, or None when at the first match."""
        entry = self.index.previous()
        if entry is None:
            logger.info(f"No previous matches in {self.handle}")
            return None
        return self.renderer.location_for(entry)

    def _notify(self) -> None:
        if self._on_complete:
            self._on_complete(self.handle, self.status)


class SessionRegistry:
    """Process-wide registry mapping session handles to search sessions.

    All sessions are driven from one thread: ``poll`` waits on every running
    process and feeds each chunk to the session that owns it.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        reuse_buffer: Optional[bool] = None,
        command_factory: Optional[CommandFactory] = None,
    ) -> None:
        """Initialize the registry.

        Args:
            config: Client configuration, read from the environment if omitted
            reuse_buffer: Share one result view between searches, defaults to the config
            command_factory: Builds the command line for a request
        """
        self.config = config or ClientConfig()
        self.reuse_buffer = self.config.reuse_buffer if reuse_buffer is None else reuse_buffer
        self._command_factory = command_factory or self._fetch_command
        self._sessions: Dict[str, SearchSession] = {}
        self._open_streams: Dict[SearchSession, Set[str]] = {}
        self._selector = selectors.DefaultSelector()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def handles(self) -> List[str]:
        return list(self._sessions)

    def get(self, handle: str) -> SearchSession:
        """Get a session by handle.

        Raises:
            UnknownSessionError: If no session has this handle
        """
        try:
            return self._sessions[handle]
        except KeyError:
            raise UnknownSessionError(handle)

    def open_search(
        self,
        query: Query,
        on_complete: Optional[CompletionCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> str:
        """Start a search.

        With buffer reuse on, a previous search in the shared view is
        cancelled and its results discarded.

        Args:
            query: The search to run
            on_complete: Called once with the terminal status
            on_output: Called with each batch of newly rendered lines

        Returns:
            Handle of the new session
        """
        handle = self._handle_for(query)
        if handle in self._sessions:
            logger.debug(f"Reusing result view {handle}")
            self._discard(handle)

        request = format_query(query, self.config.search_url)
        process = SearchProcess(self._command_factory(request))
        process.start()

        session = SearchSession(
            handle,
            query,
            request,
            process,
            on_complete=on_complete,
            on_output=on_output,
            on_cancel=self._release,
        )
        registered = []
        try:
            for stream, stream_name in ((process.stdout, STDOUT), (process.stderr, STDERR)):
                self._selector.register(stream, selectors.EVENT_READ, (session, stream_name))
                registered.append(stream)
        except (KeyError, ValueError, OSError):
            logger.error(f"Could not watch output of search {handle}, stopping it")
            for stream in registered:
                self._selector.unregister(stream)
            process.terminate()
            raise
        self._sessions[handle] = session
        self._open_streams[session] = {STDOUT, STDERR}

        logger.info(f"Opened search {handle} for {query.text!r}")
        return handle

    def cancel(self, handle: str) -> None:
        """Stop a running search, keeping its results and its handle."""
        self.get(handle).cancel()

    def next(self, handle: str) -> Optional[Location]:
        return self.get(handle).next()

    def previous(self, handle: str) -> Optional[Location]:
        return self.get(handle).previous()

    def close_session(self, handle: str) -> None:
        self.get(handle)
        self._discard(handle)

    def close_all_sessions(self) -> None:
        for handle in list(self._sessions):
            self._discard(handle)

    def close_other_sessions(self, handle: str) -> None:
        """Close every session except the given one."""
        self.get(handle)
        for other in list(self._sessions):
            if other != handle:
                self._discard(other)

    def close(self) -> None:
        """Close all sessions and release the selector."""
        self.close_all_sessions()
        self._selector.close()

    def poll(self, timeout: Optional[float] = None) -> int:
        """Process output that is ready from running searches.

        Args:
            timeout: Seconds to wait for output, None to block

        Returns:
            Number of events handled
        """
        if not self._open_streams:
            return 0

        events = self._selector.select(timeout)
        for key, _ in events:
            session, stream_name = key.data
            if session.done:
                continue
            chunk = SearchProcess.read_chunk(key.fileobj)
            if chunk:
                if stream_name == STDOUT:
                    session.handle_output(chunk)
                else:
                    session.handle_error_output(chunk)
                continue

            self._selector.unregister(key.fileobj)
            open_streams = self._open_streams.get(session, set())
            open_streams.discard(stream_name)
            if not open_streams:
                self._open_streams.pop(session, None)
                session.complete(session.process.wait())
                session.process.close()
        return len(events)

    def wait(self, handle: Optional[str] = None, timeout: Optional[float] = None) -> bool:
        """Drive sessions until one (or all) have completed.

        Args:
            handle: Session to wait for, all running sessions if omitted
            timeout: Overall seconds to wait, None to wait indefinitely

        Returns:
            True if the awaited sessions completed
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        def pending() -> bool:
            if handle is not None:
                return not self.get(handle).done
            return any(not session.done for session in self._sessions.values())

        while pending():
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
            self.poll(remaining)
        return True

    def _fetch_command(self, request: FormattedRequest) -> List[str]:
        return build_fetch_command(
            request, self.config.request_timeout, log_level=self.config.log_level
        )

    def _handle_for(self, query: Query) -> str:
        if self.reuse_buffer:
            return REUSED_HANDLE
        base = f"*codesearch: {query.text}*"
        handle = base
        suffix = 2
        while handle in self._sessions:
            handle = f"{base}<{suffix}>"
            suffix += 1
        return handle

    def _discard(self, handle: str) -> None:
        session = self._sessions.pop(handle)
        self._release(session)
        session.close()

    def _release(self, session: SearchSession) -> None:
        """Stop watching a session's pipes; they must still be open."""
        if self._open_streams.pop(session, None) is not None:
            for stream in (session.process.stdout, session.process.stderr):
                self._unregister(stream)

    def _unregister(self, stream: IO[bytes]) -> None:
        try:
            self._selector.unregister(stream)
        except (KeyError, ValueError):
            # Already at EOF and unregistered
            pass
