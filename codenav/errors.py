"""Exceptions raised by codenav."""


class CodeNavError(Exception):
    """Base class for codenav errors."""


class FileHeaderNotFound(CodeNavError, LookupError):
    """No ``File:`` header precedes a display line."""

    def __init__(self, display_line: int) -> None:
        self.display_line = display_line
        super().__init__(f"No file header precedes display line {display_line}")


class UnknownSessionError(CodeNavError, KeyError):
    """A session handle is not registered."""

    def __init__(self, handle: str) -> None:
        self.handle = handle
        super().__init__(f"Unknown search session: {handle}")

    def __str__(self) -> str:
        return self.args[0]
