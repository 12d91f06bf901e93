"""Incremental rendering of the result stream into styled, navigable lines."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from codenav.backends.models import FileGroup, Hit, MatchGroup
from codenav.backends.postprocess import FILE_HEADER_PREFIX, GROUP_HEADER_PREFIX
from codenav.core.navigation import Location, NavigationEntry, NavigationIndex
from codenav.errors import FileHeaderNotFound

logger = logging.getLogger(__name__)

HIT_PATTERN = re.compile(r"(\d+):(\d+):(\d+):([^\0]*)\0(.*)", re.DOTALL)
ANNOTATION_TEMPLATE = "// found in {context}"


class LineKind(Enum):
    HIT = "hit"
    GROUP_HEADER = "group_header"
    FILE_HEADER = "file_header"
    SEPARATOR = "separator"
    PLAIN = "plain"


class Style(str, Enum):
    """Semantic styles; the display host decides how they look."""

    MATCH = "match"
    ANNOTATION = "annotation"
    KEYWORD = "keyword"
    INFO = "info"


@dataclass(frozen=True)
class Span:
    start: int
    end: int
    style: Style


@dataclass(frozen=True)
class RenderedLine:
    """The styled projection of one stream record."""

    kind: LineKind
    text: str
    spans: Tuple[Span, ...] = ()
    raw: str = ""
    path: Optional[str] = None
    hit: Optional[Hit] = None

    def segments(self) -> List[Tuple[str, Optional[Style]]]:
        """Split the text into consecutive (text, style) pieces.

        Unstyled pieces carry a style of None. Empty pieces are omitted.
        """
        pieces = []
        offset = 0
        for span in self.spans:
            if span.start > offset:
                pieces.append((self.text[offset : span.start], None))
            pieces.append((self.text[span.start : span.end], span.style))
            offset = span.end
        if offset < len(self.text):
            pieces.append((self.text[offset:], None))
        return pieces


@dataclass(frozen=True)
class Classification:
    """Result of classifying one raw stream line."""

    lines: Tuple[RenderedLine, ...]
    current_file: Optional[str]
    hit: Optional[Hit] = None
    group_label: Optional[str] = None
    file_path: Optional[str] = None


def render_hit(hit: Hit, prefix: Optional[str] = None, raw: str = "") -> RenderedLine:
    """Render a hit as ``<lno>:<line>`` with its match and context highlighted."""
    if prefix is None:
        prefix = f"{hit.line_number}:"

    text = prefix + hit.line_text
    spans = []
    if hit.column_end > hit.column_start:
        spans.append(
            Span(len(prefix) + hit.column_start, len(prefix) + hit.column_end, Style.MATCH)
        )
    if hit.context_label:
        text += " "
        start = len(text)
        text += ANNOTATION_TEMPLATE.format(context=hit.context_label)
        spans.append(Span(start, len(text), Style.ANNOTATION))

    return RenderedLine(kind=LineKind.HIT, text=text, spans=tuple(spans), raw=raw, hit=hit)


def classify_line(raw: str, current_file: Optional[str]) -> Classification:
    """Classify and render one complete stream line.

    This is a pure function of the raw line and the most recent file header,
    so classifying the same input again gives an equal result.

    Args:
        raw: The line without its trailing newline
        current_file: Path of the most recent ``File:`` header, if any

    Returns:
        The rendered line(s) and the file in effect for the following lines
    """
    match = HIT_PATTERN.fullmatch(raw)
    if match:
        lno, start, end, context, line_text = match.groups()
        hit = Hit(
            line_number=int(lno),
            column_start=int(start),
            column_end=int(end),
            context_label=context,
            line_text=line_text,
        )
        rendered = render_hit(hit, prefix=f"{lno}:", raw=raw)
        return Classification(lines=(rendered,), current_file=current_file, hit=hit)

    if raw.startswith(GROUP_HEADER_PREFIX):
        label = raw[len(GROUP_HEADER_PREFIX) :]
        header = RenderedLine(
            kind=LineKind.GROUP_HEADER,
            text=raw,
            spans=(Span(len(GROUP_HEADER_PREFIX), len(raw), Style.KEYWORD),) if label else (),
            raw=raw,
        )
        # Blank line after each group header
        separator = RenderedLine(kind=LineKind.SEPARATOR, text="")
        return Classification(
            lines=(header, separator), current_file=current_file, group_label=label
        )

    if raw.startswith(FILE_HEADER_PREFIX):
        path = raw[len(FILE_HEADER_PREFIX) :]
        header = RenderedLine(
            kind=LineKind.FILE_HEADER,
            text=raw,
            spans=(Span(len(FILE_HEADER_PREFIX), len(raw), Style.INFO),) if path else (),
            raw=raw,
            path=path,
        )
        return Classification(lines=(header,), current_file=path, file_path=path)

    kind = LineKind.SEPARATOR if raw == "" else LineKind.PLAIN
    return Classification(
        lines=(RenderedLine(kind=kind, text=raw, raw=raw),), current_file=current_file
    )


class IncrementalRenderer:
    """Line-buffered renderer for one search session.

    Output is fed in whatever chunks the process delivers. Only complete lines
    are classified; the unconsumed tail waits for the next chunk.
    """

    def __init__(self) -> None:
        self.lines: List[RenderedLine] = []
        self.index = NavigationIndex()
        self.groups: List[MatchGroup] = []
        self.current_file: Optional[str] = None
        self.finished = False

        self._buffer = bytearray()
        self._boundary = 0

    @property
    def pending_bytes(self) -> int:
        """Number of received bytes not yet part of a complete line."""
        return len(self._buffer) - self._boundary

    def feed(self, chunk: Union[bytes, str]) -> List[RenderedLine]:
        """Consume a chunk of output.

        Args:
            chunk: Raw output, split anywhere (even inside a UTF-8 sequence)

        Returns:
            The lines rendered from the newly completed records
        """
        if self.finished:
            raise RuntimeError("Cannot feed a finished renderer")
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")

        self._buffer += chunk
        emitted: List[RenderedLine] = []
        while True:
            end = self._buffer.find(b"\n", self._boundary)
            if end < 0:
                break
            raw = self._buffer[self._boundary : end].decode("utf-8", errors="replace")
            self._boundary = end + 1
            emitted.extend(self._process(raw))

        if self._boundary:
            del self._buffer[: self._boundary]
            self._boundary = 0
        return emitted

    def finish(self) -> int:
        """Stop accepting output, discarding an incomplete trailing line.

        Returns:
            Number of bytes discarded
        """
        discarded = self.pending_bytes
        if discarded:
            logger.debug(f"Discarding {discarded} bytes of incomplete output")
        self._buffer.clear()
        self._boundary = 0
        self.finished = True
        return discarded

    def resolve_file(self, display_line: int) -> str:
        """Find the path of the nearest ``File:`` header at or before a line.

        Raises:
            FileHeaderNotFound: If no file header precedes the line
        """
        if not 0 <= display_line < len(self.lines):
            raise FileHeaderNotFound(display_line)
        for position in range(display_line, -1, -1):
            line = self.lines[position]
            if line.kind is LineKind.FILE_HEADER:
                return line.path
        raise FileHeaderNotFound(display_line)

    def location_for(self, entry: NavigationEntry) -> Location:
        """Get the jump target for a navigation entry."""
        try:
            path: Optional[str] = self.resolve_file(entry.position)
        except FileHeaderNotFound as exc:
            logger.warning(str(exc))
            path = None
        return Location(
            path=path,
            line_number=entry.hit.line_number,
            column_start=entry.hit.column_start,
            column_end=entry.hit.column_end,
            display_line=entry.position,
        )

    def _process(self, raw: str) -> Tuple[RenderedLine, ...]:
        result = classify_line(raw, self.current_file)

        for line in result.lines:
            position = len(self.lines)
            self.lines.append(line)
            if line.kind is LineKind.HIT:
                self.index.append(NavigationEntry(position, result.current_file, result.hit))

        if result.group_label is not None:
            self.groups.append(MatchGroup(label=result.group_label))
        elif result.file_path is not None:
            if not self.groups:
                self.groups.append(MatchGroup(label=""))
            self.groups[-1].files.append(FileGroup(path=result.file_path))
        elif result.hit is not None:
            if self.groups and self.groups[-1].files:
                self.groups[-1].files[-1].hits.append(result.hit)
            else:
                logger.debug(f"Hit outside any file group: {raw!r}")

        self.current_file = result.current_file
        return result.lines
