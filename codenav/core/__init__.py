from .navigation import Location, NavigationEntry, NavigationIndex
from .process import SearchProcess, build_fetch_command
from .render import (
    IncrementalRenderer,
    LineKind,
    RenderedLine,
    Span,
    Style,
    classify_line,
    render_hit,
)
from .session import REUSED_HANDLE, SearchSession, SessionRegistry, SessionStatus
from .styles import StyleSheet

__all__ = [
    "IncrementalRenderer",
    "LineKind",
    "RenderedLine",
    "Span",
    "Style",
    "classify_line",
    "render_hit",
    "Location",
    "NavigationEntry",
    "NavigationIndex",
    "SearchProcess",
    "build_fetch_command",
    "REUSED_HANDLE",
    "SearchSession",
    "SessionRegistry",
    "SessionStatus",
    "StyleSheet",
]
