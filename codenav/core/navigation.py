"""Navigation index over rendered hit lines."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from codenav.backends.models import Hit


@dataclass(frozen=True)
class NavigationEntry:
    """A rendered hit line and the file it belongs to."""

    position: int
    path: Optional[str]
    hit: Hit


@dataclass(frozen=True)
class Location:
    """A jump target for the display host."""

    path: Optional[str]
    line_number: int
    column_start: int
    column_end: int
    display_line: int

    def resolve(self, source_root: Path) -> Optional[Path]:
        """Get the file path under the source root, if the location has one."""
        if self.path is None:
            return None
        return Path(source_root) / self.path

    def __str__(self) -> str:
        # Columns are reported 1-based like compiler messages
        return f"{self.path or '?'}:{self.line_number}:{self.column_start + 1}"


class NavigationIndex:
    """Ordered hit entries with a cursor that persists between steps."""

    def __init__(self) -> None:
        self._entries: List[NavigationEntry] = []
        self._cursor: Optional[int] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[NavigationEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> NavigationEntry:
        return self._entries[index]

    @property
    def cursor(self) -> Optional[int]:
        """Index of the current entry, or None before the first step."""
        return self._cursor

    @property
    def current(self) -> Optional[NavigationEntry]:
        if self._cursor is None:
            return None
        return self._entries[self._cursor]

    def append(self, entry: NavigationEntry) -> None:
        if self._entries and entry.position <= self._entries[-1].position:
            raise ValueError(
                f"Navigation entries must be in display order, got {entry.position} "
                f"after {self._entries[-1].position}"
            )
        self._entries.append(entry)

    def next(self) -> Optional[NavigationEntry]:
        """Move to the next entry.

        Returns:
            The new current entry, or None if there are no more matches
        """
        target = 0 if self._cursor is None else self._cursor + 1
        if target >= len(self._entries):
            return None
        self._cursor = target
        return self._entries[target]

    def previous(self) -> Optional[NavigationEntry]:
        """Move to the previous entry.

        Returns:
            The new current entry, or None if there are no earlier matches
        """
        if self._cursor is None or self._cursor == 0:
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def reset(self) -> None:
        """Drop all entries and the cursor."""
        self._entries = []
        self._cursor = None
