"""Tests for codenav.core.session."""

from unittest.mock import patch

import pytest

from codenav.backends.models import Query
from codenav.core.process import SearchProcess
from codenav.core.session import REUSED_HANDLE, SessionRegistry, SessionStatus
from codenav.errors import UnknownSessionError
from conftest import stream_command

STREAM = (
    b"Type: normal\n\n"
    b"File: foo/bar.js\n"
    b"12:3:6:fn\0var testing = 1;\n"
    b"20:0:3:\0var other;\n\n"
    b"File: foo/baz.js\n"
    b"7:4:11:\0let testing;\n\n"
)


class Recorder:
    def __init__(self) -> None:
        self.calls = []

    def __call__(self, handle, status) -> None:
        self.calls.append((handle, status))


def wait_for_matches(registry: SessionRegistry, handle: str, count: int) -> None:
    for _ in range(100):
        if len(registry.get(handle).index) >= count:
            return
        registry.poll(timeout=5)
    raise AssertionError(f"expected {count} matches")


class TestSearchLifecycle:
    def test_finished_session(self, config) -> None:
        done = Recorder()
        with SessionRegistry(config, command_factory=stream_command(STREAM)) as registry:
            handle = registry.open_search(Query(text="testing"), on_complete=done)
            assert registry.wait(handle, timeout=30)

            session = registry.get(handle)
            assert session.status is SessionStatus.FINISHED
            assert session.returncode == 0
            assert len(session.index) == 3
            assert done.calls == [(handle, SessionStatus.FINISHED)]

    def test_output_callback_receives_rendered_lines(self, config) -> None:
        received = []
        with SessionRegistry(config, command_factory=stream_command(STREAM)) as registry:
            handle = registry.open_search(
                Query(text="testing"), on_output=lambda h, lines: received.extend(lines)
            )
            registry.wait(handle, timeout=30)
            assert received == registry.get(handle).lines

    def test_failure_keeps_confirmed_results(self, config) -> None:
        data = STREAM + b"99:0:1:\0trunc"
        factory = stream_command(data, exit_code=1, stderr=b"Search HTTP error: 502\n")
        done = Recorder()
        with SessionRegistry(config, command_factory=factory) as registry:
            handle = registry.open_search(Query(text="testing"), on_complete=done)
            registry.wait(handle, timeout=30)

            session = registry.get(handle)
            assert session.status is SessionStatus.FAILED
            assert session.error == "Search HTTP error: 502"
            assert len(session.index) == 3
            assert all("trunc" not in line.text for line in session.lines)
            assert done.calls == [(handle, SessionStatus.FAILED)]

    def test_failure_without_stderr(self, config) -> None:
        with SessionRegistry(config, command_factory=stream_command(b"", exit_code=3)) as registry:
            handle = registry.open_search(Query(text="x"))
            registry.wait(handle, timeout=30)
            assert registry.get(handle).error == "search process exited with status 3"

    def test_empty_results(self, config) -> None:
        with SessionRegistry(config, command_factory=stream_command(b"")) as registry:
            handle = registry.open_search(Query(text=""))
            registry.wait(handle, timeout=30)
            session = registry.get(handle)
            assert session.status is SessionStatus.FINISHED
            assert session.lines == []
            assert session.next() is None

    def test_close_running_session_cancels(self, config) -> None:
        factory = stream_command(STREAM + b"1:0:1:\0partial", linger=30)
        done = Recorder()
        with SessionRegistry(config, command_factory=factory) as registry:
            handle = registry.open_search(Query(text="testing"), on_complete=done)
            wait_for_matches(registry, handle, 3)
            session = registry.get(handle)

            registry.close_session(handle)

            assert session.status is SessionStatus.CANCELLED
            assert len(session.index) == 3
            assert session.renderer.pending_bytes == 0
            assert done.calls == [(handle, SessionStatus.CANCELLED)]
            assert registry.handles == []

    def test_wait_timeout(self, config) -> None:
        factory = stream_command(b"", linger=30)
        with SessionRegistry(config, command_factory=factory) as registry:
            handle = registry.open_search(Query(text="slow"))
            assert registry.wait(handle, timeout=0.2) is False
            assert not registry.get(handle).done


class TestCancel:
    def test_direct_cancel_then_new_search(self, config) -> None:
        factory = stream_command(STREAM, linger=30)
        with SessionRegistry(config, reuse_buffer=False, command_factory=factory) as registry:
            first = registry.open_search(Query(text="a"))
            wait_for_matches(registry, first, 3)

            registry.get(first).cancel()
            second = registry.open_search(Query(text="b"))

            wait_for_matches(registry, second, 3)
            assert registry.get(first).status is SessionStatus.CANCELLED
            assert len(registry.get(first).index) == 3
            assert registry.get(second).status is SessionStatus.RUNNING

    def test_registry_cancel_keeps_handle(self, config) -> None:
        factory = stream_command(STREAM, linger=30)
        done = Recorder()
        with SessionRegistry(config, reuse_buffer=False, command_factory=factory) as registry:
            handle = registry.open_search(Query(text="a"), on_complete=done)
            wait_for_matches(registry, handle, 3)

            registry.cancel(handle)

            assert registry.handles == [handle]
            assert done.calls == [(handle, SessionStatus.CANCELLED)]
            assert registry.wait(timeout=5)
            assert registry.poll(timeout=0) == 0
            assert registry.next(handle).line_number == 12

    def test_cancel_after_finish_is_noop(self, config) -> None:
        done = Recorder()
        with SessionRegistry(config, command_factory=stream_command(STREAM)) as registry:
            handle = registry.open_search(Query(text="a"), on_complete=done)
            registry.wait(handle, timeout=30)
            registry.cancel(handle)
            assert registry.get(handle).status is SessionStatus.FINISHED
            assert done.calls == [(handle, SessionStatus.FINISHED)]

    def test_failed_registration_stops_process(self, config, monkeypatch) -> None:
        factory = stream_command(b"", linger=30)
        terminated = []
        original_terminate = SearchProcess.terminate

        def record_terminate(process) -> None:
            terminated.append(process)
            original_terminate(process)

        monkeypatch.setattr(SearchProcess, "terminate", record_terminate)
        with SessionRegistry(config, reuse_buffer=False, command_factory=factory) as registry:
            register = registry._selector.register
            calls = []

            def fail_second_register(fileobj, events, data=None):
                calls.append(fileobj)
                if len(calls) == 2:
                    raise KeyError(f"{fileobj!r} is already registered")
                return register(fileobj, events, data)

            monkeypatch.setattr(registry._selector, "register", fail_second_register)
            with pytest.raises(KeyError):
                registry.open_search(Query(text="a"))

            assert registry.handles == []
            assert len(terminated) == 1
            assert not terminated[0].running
            assert registry.poll(timeout=0) == 0


class TestFetchCommand:
    def test_log_level_from_config(self, config) -> None:
        config.log_level = "DEBUG"
        seen = []

        def fake_build(request, timeout, log_level="WARNING"):
            seen.append((timeout, log_level))
            return stream_command(b"")(request)

        with patch("codenav.core.session.build_fetch_command", fake_build):
            with SessionRegistry(config) as registry:
                registry.wait(registry.open_search(Query(text="a")), timeout=30)

        assert seen == [(config.request_timeout, "DEBUG")]


class TestNavigation:
    def test_next_and_previous(self, config) -> None:
        with SessionRegistry(config, command_factory=stream_command(STREAM)) as registry:
            handle = registry.open_search(Query(text="testing"))
            registry.wait(handle, timeout=30)

            first = registry.next(handle)
            assert (first.path, first.line_number, first.column_start) == ("foo/bar.js", 12, 3)
            second = registry.next(handle)
            third = registry.next(handle)
            assert (third.path, third.line_number) == ("foo/baz.js", 7)
            assert registry.next(handle) is None
            assert registry.previous(handle) == second

    def test_navigate_while_streaming(self, config) -> None:
        factory = stream_command(STREAM, linger=30)
        with SessionRegistry(config, command_factory=factory) as registry:
            handle = registry.open_search(Query(text="testing"))
            wait_for_matches(registry, handle, 3)
            assert registry.next(handle).line_number == 12


class TestBufferPolicy:
    def test_reuse_resets_index(self, config) -> None:
        with SessionRegistry(config, reuse_buffer=True, command_factory=stream_command(STREAM)) as registry:
            first = registry.open_search(Query(text="testing"))
            registry.wait(first, timeout=30)
            first_index = registry.get(first).index
            assert len(first_index) == 3

            second = registry.open_search(Query(text="testing"))
            assert second == first == REUSED_HANDLE
            assert registry.get(second).index is not first_index
            assert len(registry.get(second).index) == 0

            registry.wait(second, timeout=30)
            assert len(registry.get(second).index) == 3
            assert registry.handles == [REUSED_HANDLE]

    def test_reuse_cancels_running_search(self, config) -> None:
        factory = stream_command(STREAM, linger=30)
        done = Recorder()
        with SessionRegistry(config, reuse_buffer=True, command_factory=factory) as registry:
            handle = registry.open_search(Query(text="testing"), on_complete=done)
            registry.open_search(Query(text="other"))
            assert done.calls == [(handle, SessionStatus.CANCELLED)]
            assert registry.get(handle).query.text == "other"

    def test_separate_views(self, config) -> None:
        with SessionRegistry(config, reuse_buffer=False, command_factory=stream_command(STREAM)) as registry:
            first = registry.open_search(Query(text="testing"))
            second = registry.open_search(Query(text="testing"))
            third = registry.open_search(Query(text="other"))
            assert first == "*codesearch: testing*"
            assert second == "*codesearch: testing*<2>"
            assert third == "*codesearch: other*"

            registry.wait(timeout=30)
            assert all(len(registry.get(h).index) == 3 for h in (first, second, third))

    def test_policy_from_config(self, config) -> None:
        config.reuse_buffer = False
        registry = SessionRegistry(config, command_factory=stream_command(b""))
        assert registry.reuse_buffer is False
        registry.close()


class TestClosing:
    def test_close_other_sessions(self, config) -> None:
        with SessionRegistry(config, reuse_buffer=False, command_factory=stream_command(STREAM)) as registry:
            keep = registry.open_search(Query(text="a"))
            registry.open_search(Query(text="b"))
            registry.open_search(Query(text="c"))

            registry.close_other_sessions(keep)
            assert registry.handles == [keep]

    def test_close_all_sessions(self, config) -> None:
        done = Recorder()
        with SessionRegistry(config, reuse_buffer=False, command_factory=stream_command(STREAM)) as registry:
            registry.open_search(Query(text="a"), on_complete=done)
            registry.open_search(Query(text="b"), on_complete=done)
            registry.wait(timeout=30)

            registry.close_all_sessions()
            assert registry.handles == []
            assert len(done.calls) == 2

    def test_unknown_handle(self, config) -> None:
        with SessionRegistry(config, command_factory=stream_command(b"")) as registry:
            with pytest.raises(UnknownSessionError):
                registry.next("*nope*")
            with pytest.raises(KeyError):
                registry.close_session("*nope*")
            with pytest.raises(UnknownSessionError):
                registry.close_other_sessions("*nope*")
