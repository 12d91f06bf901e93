"""Transform a grouped JSON search response into the line-oriented result stream.

The stream carries one record per line::

    Type: <group-label>
    <blank>
    File: <path>
    <lno>:<start>:<end>:<context>\\0<line>
    <blank>

The NUL byte separates the context annotation from the matched line, since
both may contain colons.
"""

import logging
from typing import Any, Iterator, List

from pydantic import BaseModel, ConfigDict, ValidationError

from codenav.backends.models import BackendFile, BackendLine, FileGroup, Hit, MatchGroup

logger = logging.getLogger(__name__)

GROUP_HEADER_PREFIX = "Type: "
FILE_HEADER_PREFIX = "File: "
FIELD_SEPARATOR = "\0"


class PostProcessSpec(BaseModel):
    """Describes how a backend response becomes the intermediate stream.

    The spec is serializable so it can be handed to the fetch process on its
    command line.
    """

    model_config = ConfigDict(frozen=True)

    ignored_group_prefix: str = "*"
    default_line: BackendLine = BackendLine()

    def parse(self, payload: Any) -> List[MatchGroup]:
        """Validate a backend response into match groups.

        Groups or files that do not have the expected shape are skipped.

        Args:
            payload: Decoded JSON response

        Returns:
            List of match groups in response order
        """
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring search response of type {type(payload).__name__}")
            return []

        groups = []
        for label, entries in payload.items():
            if not isinstance(label, str) or label.startswith(self.ignored_group_prefix):
                continue
            if not isinstance(entries, list):
                logger.warning(f"Ignoring malformed result group {label!r}")
                continue

            group = MatchGroup(label=label)
            for entry in entries:
                try:
                    backend_file = BackendFile.model_validate(entry)
                except ValidationError as exc:
                    logger.warning(f"Ignoring malformed file entry in group {label!r}: {exc}")
                    continue
                group.files.append(self._to_file_group(backend_file))
            groups.append(group)

        return groups

    def apply(self, payload: Any) -> Iterator[str]:
        """Yield the stream lines (without newlines) for a backend response."""
        for group in self.parse(payload):
            yield from self.encode_group(group)

    def encode_group(self, group: MatchGroup) -> Iterator[str]:
        """Yield the stream lines of one match group."""
        yield f"{GROUP_HEADER_PREFIX}{_single_line(group.label)}"
        yield ""
        for file_group in group.files:
            yield f"{FILE_HEADER_PREFIX}{_single_line(file_group.path)}"
            for hit in file_group.hits:
                yield encode_hit(hit)
            yield ""

    def _to_file_group(self, backend_file: BackendFile) -> FileGroup:
        lines = backend_file.lines or [self.default_line]
        hits = [
            Hit(
                line_number=line.lno,
                column_start=line.bounds[0],
                column_end=line.bounds[1],
                context_label=line.context,
                line_text=line.line,
            )
            for line in lines
        ]
        return FileGroup(path=backend_file.path, hits=hits)


def encode_hit(hit: Hit) -> str:
    """Encode a hit as one stream record."""
    context = _single_line(hit.context_label).replace(FIELD_SEPARATOR, " ")
    return (
        f"{hit.line_number}:{hit.column_start}:{hit.column_end}:"
        f"{context}{FIELD_SEPARATOR}{_single_line(hit.line_text)}"
    )


def _single_line(text: str) -> str:
    # Replacing one character with one keeps the column bounds valid
    return text.replace("\r", " ").replace("\n", " ")
