from copy import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from codenav.core.render import RenderedLine, Style

DEFAULT_STYLE_FILE = Path(__file__).parent.parent / "styles.yaml"
DEFAULT_SECTION = "styles.ansi"

ESCAPE = "\x1b["
RESET = "\x1b[0m"


class StyleSheet:
    def __init__(
        self,
        file_path: Optional[Union[str, Path]] = None,
        section_path: Optional[str] = DEFAULT_SECTION,
        enabled: bool = True,
    ) -> None:
        """Initialize the style sheet from a YAML file.

        Args:
            file_path: Path to the YAML file, defaults to the bundled styles
            section_path: Section holding the style table (supports dot notation for nested keys)
            enabled: Emit escape sequences; when False lines are painted as plain text

        Raises:
            FileNotFoundError: If the style file doesn't exist
            yaml.YAMLError: If the YAML file is malformed
            ValueError: If the section is not found or is not a table
        """
        file_path = Path(file_path) if file_path else DEFAULT_STYLE_FILE
        if not file_path.exists():
            raise FileNotFoundError(f"Style file not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                style_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Failed to parse YAML file {file_path}: {e}")

        if section_path:
            style_data = self._traverse_path(style_data, section_path)
        if not isinstance(style_data, dict):
            raise ValueError(f"Style section '{section_path}' is not a mapping")

        self._codes: Dict[str, str] = {
            str(name): "" if code is None else str(code) for name, code in copy(style_data).items()
        }
        self.enabled = enabled

    def _traverse_path(self, data: Any, path: str) -> Any:
        """Traverse nested dictionary structure using dot notation."""
        current = data

        try:
            for key in path.split("."):
                current = current[key]
        except (KeyError, TypeError):
            raise ValueError(f"Path '{path}' not found in style data")

        return current

    def code(self, style: Style) -> str:
        """Get the SGR parameters for a style, empty if it is not styled."""
        return self._codes.get(style.value, "")

    def paint(self, line: RenderedLine) -> str:
        """Render a line with escape sequences for its styled spans."""
        if not self.enabled:
            return line.text

        parts = []
        for text, style in line.segments():
            sgr = self.code(style) if style is not None else ""
            if sgr:
                parts.append(f"{ESCAPE}{sgr}m{text}{RESET}")
            else:
                parts.append(text)
        return "".join(parts)
