"""Backend models for search queries and results."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Path filter values that mean "search everywhere"
CURRENT_DIRECTORY_GLOBS = ("./", "")


class Query(BaseModel):
    """A search request as typed by the user."""

    model_config = ConfigDict(frozen=True)

    text: str = Field("", description="free text or regular expression to search for")
    is_regex: bool = Field(False, description="interpret text as a regular expression")
    path_glob: Optional[str] = Field(None, description="path filter, supports * and **")

    @field_validator("path_glob")
    @classmethod
    def _normalize_path_glob(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value.strip() in CURRENT_DIRECTORY_GLOBS:
            return None
        return value


class BackendLine(BaseModel):
    """One line entry of a backend file result."""

    lno: int = 1
    bounds: Tuple[int, int] = (0, 0)
    context: str = ""
    line: str = ""

    @field_validator("context", "line", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class BackendFile(BaseModel):
    """One file entry of a backend match group."""

    path: str
    lines: List[BackendLine] = Field(default_factory=list)


@dataclass
class Hit:
    """Represents one matched line."""

    line_number: int
    column_start: int = 0
    column_end: int = 0
    context_label: str = ""
    line_text: str = ""

    def __post_init__(self) -> None:
        # Keep the highlighted range inside the line
        length = len(self.line_text)
        self.column_start = min(max(self.column_start, 0), length)
        self.column_end = min(max(self.column_end, self.column_start), length)

    @property
    def before(self) -> str:
        return self.line_text[: self.column_start]

    @property
    def matched(self) -> str:
        return self.line_text[self.column_start : self.column_end]

    @property
    def after(self) -> str:
        return self.line_text[self.column_end :]


@dataclass
class FileGroup:
    """Hits belonging to one source file."""

    path: str
    hits: List[Hit] = field(default_factory=list)


@dataclass
class MatchGroup:
    """A backend-defined category of results."""

    label: str
    files: List[FileGroup] = field(default_factory=list)
